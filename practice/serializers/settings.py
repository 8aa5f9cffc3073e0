import re

from rest_framework import serializers

from practice.serializers.patients import clean_text

COLOR_RE = re.compile(r'^#[0-9A-Fa-f]{6}$')


def optional_text(max_length, message):
    return serializers.CharField(required=False, allow_blank=True, max_length=max_length,
                                 error_messages={'max_length': message})


class PractitionerSettingsSerializer(serializers.Serializer):
    first_name = serializers.CharField(max_length=100, error_messages={
        'blank': 'Le prénom est requis', 'max_length': 'Le prénom ne peut pas dépasser 100 caractères'})
    last_name = serializers.CharField(max_length=100, error_messages={
        'blank': 'Le nom est requis', 'max_length': 'Le nom ne peut pas dépasser 100 caractères'})
    email = serializers.EmailField(error_messages={'invalid': "Format d'email invalide"})
    phone = optional_text(20, 'Le téléphone ne peut pas dépasser 20 caractères')
    practice_name = optional_text(255, 'Le nom du cabinet ne peut pas dépasser 255 caractères')
    specialty = optional_text(100, 'La spécialité ne peut pas dépasser 100 caractères')
    address = optional_text(500, "L'adresse ne peut pas dépasser 500 caractères")
    city = optional_text(100, 'La ville ne peut pas dépasser 100 caractères')
    postal_code = optional_text(10, 'Le code postal ne peut pas dépasser 10 caractères')
    siret = optional_text(14, 'Le SIRET ne peut pas dépasser 14 caractères')
    rpps = optional_text(11, 'Le RPPS ne peut pas dépasser 11 caractères')
    default_rate = serializers.DecimalField(max_digits=7, decimal_places=2, error_messages={
        'invalid': 'Le tarif doit être positif',
        'max_digits': 'Le tarif ne peut pas dépasser 9999.99€',
        'max_whole_digits': 'Le tarif ne peut pas dépasser 9999.99€',
    })
    invoice_prefix = serializers.CharField(max_length=20, error_messages={
        'blank': 'Le préfixe est requis', 'max_length': 'Le préfixe ne peut pas dépasser 20 caractères'})
    primary_color = serializers.CharField(max_length=7, error_messages={
        'max_length': 'Format de couleur invalide (ex: #2563eb)'})
    accountant_email = serializers.EmailField(required=False, allow_blank=True,
                                              error_messages={'invalid': "Format d'email invalide"})
    google_review_url = serializers.URLField(required=False, allow_blank=True, max_length=500,
                                             error_messages={'invalid': 'URL invalide'})

    def validate_default_rate(self, v):
        if v <= 0:
            raise serializers.ValidationError('Le tarif doit être positif')
        return v

    def validate_primary_color(self, v):
        if not COLOR_RE.match(v or ''):
            raise serializers.ValidationError('Format de couleur invalide (ex: #2563eb)')
        return v

    def validate_practice_name(self, v):
        return clean_text(v)


class EmailSettingsSerializer(serializers.Serializer):
    smtp_host = serializers.CharField(max_length=255, error_messages={
        'required': 'Le serveur SMTP est requis', 'blank': 'Le serveur SMTP est requis'})
    smtp_port = serializers.IntegerField(min_value=1, max_value=65535, default=587)
    smtp_secure = serializers.BooleanField(default=False)
    smtp_user = serializers.CharField(max_length=255, error_messages={
        'required': "L'identifiant SMTP est requis", 'blank': "L'identifiant SMTP est requis"})
    smtp_password = serializers.CharField(max_length=255, trim_whitespace=False, write_only=True, error_messages={
        'required': 'Le mot de passe SMTP est requis', 'blank': 'Le mot de passe SMTP est requis'})
    imap_host = serializers.CharField(max_length=255, error_messages={
        'required': 'Le serveur IMAP est requis', 'blank': 'Le serveur IMAP est requis'})
    imap_port = serializers.IntegerField(min_value=1, max_value=65535, default=993)
    imap_secure = serializers.BooleanField(default=True)
    imap_user = serializers.CharField(max_length=255, error_messages={
        'required': "L'identifiant IMAP est requis", 'blank': "L'identifiant IMAP est requis"})
    imap_password = serializers.CharField(max_length=255, trim_whitespace=False, write_only=True, error_messages={
        'required': 'Le mot de passe IMAP est requis', 'blank': 'Le mot de passe IMAP est requis'})
    from_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    from_email = serializers.EmailField(error_messages={
        'required': "Format d'email invalide", 'invalid': "Format d'email invalide"})
    sync_enabled = serializers.BooleanField(default=True)


class EmailTemplateSerializer(serializers.Serializer):
    subject = serializers.CharField(max_length=255, error_messages={
        'required': "L'objet est requis", 'blank': "L'objet est requis",
        'max_length': "L'objet ne peut pas dépasser 255 caractères"})
    body = serializers.CharField(max_length=10000, error_messages={
        'required': 'Le contenu est requis', 'blank': 'Le contenu est requis',
        'max_length': 'Le contenu ne peut pas dépasser 10000 caractères'})


class ObjectivesSerializer(serializers.Serializer):
    annual_revenue_objective = serializers.DecimalField(max_digits=10, decimal_places=2, required=False,
                                                        allow_null=True, min_value=0)
    vacation_weeks_per_year = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=52)
    working_days_per_week = serializers.IntegerField(required=False, allow_null=True, min_value=1, max_value=7)
    average_consultation_price = serializers.DecimalField(max_digits=7, decimal_places=2, required=False,
                                                          allow_null=True, min_value=0)


class ManualRevenueSerializer(serializers.Serializer):
    year = serializers.IntegerField(min_value=2000, max_value=2100)
    month = serializers.IntegerField(min_value=1, max_value=12, error_messages={
        'min_value': 'Le mois doit être compris entre 1 et 12',
        'max_value': 'Le mois doit être compris entre 1 et 12'})
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
