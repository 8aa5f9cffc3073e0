from rest_framework import serializers

from practice.serializers.consultations import POSITIVE_AMOUNT


class InvoiceStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['draft', 'issued', 'paid', 'cancelled'], error_messages={
        'required': 'Statut requis', 'invalid_choice': 'Statut invalide'})


class InvoiceUpdateSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=9, decimal_places=2, required=False, error_messages={
        'invalid': POSITIVE_AMOUNT})
    notes = serializers.CharField(required=False, allow_blank=True, max_length=1000, error_messages={
        'max_length': 'Les notes ne peuvent pas dépasser 1000 caractères'})

    def validate_amount(self, v):
        if v <= 0:
            raise serializers.ValidationError(POSITIVE_AMOUNT)
        return v


class InvoiceListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=['draft', 'issued', 'paid', 'cancelled'], required=False)
    q = serializers.CharField(max_length=100, required=False, allow_blank=True)
    locals()["from"] = serializers.DateField(required=False)
    to = serializers.DateField(required=False)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=100)


class InvoiceEmailSerializer(serializers.Serializer):
    invoiceId = serializers.UUIDField(error_messages={'required': 'ID de facture requis',
                                                      'invalid': 'ID de facture requis'})
