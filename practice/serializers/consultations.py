from rest_framework import serializers

from practice.serializers.patients import clean_text

PAYMENT_METHODS = ['card', 'cash', 'check', 'transfer', 'other']
POSITIVE_AMOUNT = 'Le montant doit être positif'


def long_text(message):
    return serializers.CharField(required=False, allow_blank=True, max_length=10000,
                                 error_messages={'max_length': message})


class PaymentInputSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=9, decimal_places=2, error_messages={
        'required': 'Le montant est requis', 'invalid': POSITIVE_AMOUNT})
    method = serializers.ChoiceField(choices=PAYMENT_METHODS, error_messages={
        'required': 'Le mode de paiement est requis', 'invalid_choice': 'Mode de paiement invalide'})
    payment_date = serializers.DateField(required=False, allow_null=True)
    check_number = serializers.CharField(required=False, allow_blank=True, max_length=50, error_messages={
        'max_length': 'Le numéro de chèque ne peut pas dépasser 50 caractères'})
    notes = serializers.CharField(required=False, allow_blank=True, max_length=500, error_messages={
        'max_length': 'Les notes ne peuvent pas dépasser 500 caractères'})

    def validate_amount(self, v):
        if v <= 0:
            raise serializers.ValidationError(POSITIVE_AMOUNT)
        return v


class ConsultationSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField(error_messages={
        'required': 'ID patient invalide', 'invalid': 'ID patient invalide', 'null': 'ID patient invalide'})
    date_time = serializers.DateTimeField(error_messages={
        'required': "La date et l'heure sont requises",
        'null': "La date et l'heure sont requises",
        'invalid': "La date et l'heure sont requises",
    })
    reason = serializers.CharField(max_length=500, error_messages={
        'required': 'Le motif de consultation est requis',
        'blank': 'Le motif de consultation est requis',
        'max_length': 'Le motif ne peut pas dépasser 500 caractères',
    })
    session_type_id = serializers.UUIDField(required=False, allow_null=True)
    anamnesis = long_text("L'anamnèse ne peut pas dépasser 10000 caractères")
    examination = long_text("L'examen ne peut pas dépasser 10000 caractères")
    advice = long_text('Les conseils ne peuvent pas dépasser 10000 caractères')
    follow_up_7d = serializers.BooleanField(required=False, default=False)
    send_post_session_advice = serializers.BooleanField(required=False, default=False)

    def validate_reason(self, v):
        v = clean_text(v)
        if not v:
            raise serializers.ValidationError('Le motif de consultation est requis')
        return v


class ConsultationCreateSerializer(ConsultationSerializer):
    create_invoice = serializers.BooleanField(required=False, default=True)
    invoice_amount = serializers.DecimalField(max_digits=9, decimal_places=2, required=False, allow_null=True,
                                              error_messages={'invalid': POSITIVE_AMOUNT})
    payments = PaymentInputSerializer(many=True, required=False)

    def validate_invoice_amount(self, v):
        if v is not None and v <= 0:
            raise serializers.ValidationError(POSITIVE_AMOUNT)
        return v


class ConsultationListQuerySerializer(serializers.Serializer):
    patient = serializers.UUIDField(required=False)
    # ``from`` is a Python keyword
    locals()["from"] = serializers.DateField(required=False)
    to = serializers.DateField(required=False)
    includeArchived = serializers.BooleanField(required=False, default=False)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=100)


class AttachmentUploadSerializer(serializers.Serializer):
    consultationId = serializers.UUIDField(error_messages={'required': 'Consultation requise',
                                                           'invalid': 'Consultation requise'})
    fileName = serializers.CharField(max_length=255)
    mimeType = serializers.CharField(max_length=100, required=False, allow_blank=True)
    data = serializers.CharField(error_messages={'required': 'Fichier requis', 'blank': 'Fichier requis'})
