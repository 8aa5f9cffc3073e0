import datetime
import re

import bleach
from django.utils import timezone
from rest_framework import serializers

FRENCH_PHONE_RE = re.compile(r'^(?:(?:\+|00)33|0)\s*[1-9](?:[\s.-]*\d{2}){4}$')
MIN_BIRTH_DATE = datetime.date(1900, 1, 1)


def clean_text(value):
    return bleach.clean((value or '').strip(), strip=True)


def text_field(*, max_length, required=False, required_message=None, too_long=None, **kwargs):
    messages = {'max_length': too_long or f'Ne peut pas dépasser {max_length} caractères'}
    if required:
        messages.update({'required': required_message, 'blank': required_message, 'null': required_message})
        return serializers.CharField(max_length=max_length, error_messages=messages, **kwargs)
    return serializers.CharField(max_length=max_length, required=False, allow_blank=True,
                                 error_messages=messages, **kwargs)


class PatientSerializer(serializers.Serializer):
    gender = serializers.ChoiceField(choices=['M', 'F'], error_messages={
        'required': 'Le sexe est requis', 'invalid_choice': 'Le sexe est requis'})
    first_name = text_field(max_length=100, required=True, required_message='Le prénom est requis',
                            too_long='Le prénom ne peut pas dépasser 100 caractères')
    last_name = text_field(max_length=100, required=True, required_message='Le nom est requis',
                           too_long='Le nom ne peut pas dépasser 100 caractères')
    birth_date = serializers.DateField(error_messages={
        'required': 'La date de naissance est requise',
        'null': 'La date de naissance est requise',
        'invalid': 'La date de naissance semble incorrecte',
    })
    phone = text_field(max_length=30, required=True, required_message='Le téléphone est requis')
    email = serializers.EmailField(required=False, allow_blank=True,
                                   error_messages={'invalid': "Format d'email invalide"})
    profession = text_field(max_length=100, too_long='La profession ne peut pas dépasser 100 caractères')
    sport_activity = text_field(max_length=255,
                                too_long="L'activité sportive ne peut pas dépasser 255 caractères")
    primary_physician = text_field(max_length=255,
                                   too_long='Le médecin traitant ne peut pas dépasser 255 caractères')
    trauma_history = serializers.CharField(required=False, allow_blank=True, max_length=10000)
    medical_history = serializers.CharField(required=False, allow_blank=True, max_length=10000)
    surgical_history = serializers.CharField(required=False, allow_blank=True, max_length=10000)
    family_history = serializers.CharField(required=False, allow_blank=True, max_length=10000)
    notes = text_field(max_length=5000, too_long='Les notes ne peuvent pas dépasser 5000 caractères')

    def validate_first_name(self, v):
        return clean_text(v)

    def validate_last_name(self, v):
        return clean_text(v)

    def validate_birth_date(self, v):
        if v > timezone.localdate():
            raise serializers.ValidationError('La date de naissance ne peut pas être dans le futur')
        if v < MIN_BIRTH_DATE:
            raise serializers.ValidationError('La date de naissance semble incorrecte')
        return v

    def validate_phone(self, v):
        v = (v or '').strip()
        if not FRENCH_PHONE_RE.match(v):
            raise serializers.ValidationError('Format de téléphone français invalide (ex: 06 12 34 56 78)')
        return v

    def validate_notes(self, v):
        return clean_text(v)


class PatientListQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=100, required=False, allow_blank=True)
    includeArchived = serializers.BooleanField(required=False, default=False)
    page = serializers.IntegerField(required=False, min_value=1)
    pageSize = serializers.IntegerField(required=False, min_value=1, max_value=100)


class MedicalHistorySerializer(serializers.Serializer):
    history_type = serializers.ChoiceField(choices=['traumatic', 'medical', 'surgical', 'family'])
    description = serializers.CharField(max_length=2000, error_messages={
        'required': 'La description est requise', 'blank': 'La description est requise'})
    onset_date = serializers.DateField(required=False, allow_null=True)
    onset_age = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=130)
    onset_duration_value = serializers.IntegerField(required=False, allow_null=True, min_value=1)
    onset_duration_unit = serializers.ChoiceField(choices=['days', 'weeks', 'months', 'years'],
                                                  required=False, allow_blank=True, allow_null=True)
    is_vigilance = serializers.BooleanField(required=False, default=False)
    note = serializers.CharField(required=False, allow_blank=True, max_length=2000)
    display_order = serializers.IntegerField(required=False, min_value=0)

    def validate_description(self, v):
        return clean_text(v)

    def validate(self, attrs):
        value = attrs.get('onset_duration_value')
        unit = attrs.get('onset_duration_unit') or ''
        if (value is None) != (not unit):
            raise serializers.ValidationError({
                'onset_duration_unit': 'La durée et son unité doivent être renseignées ensemble'})
        modes = [attrs.get('onset_date') is not None, attrs.get('onset_age') is not None, value is not None]
        if sum(modes) > 1:
            raise serializers.ValidationError({
                'onset_date': "Un seul mode de début peut être renseigné (date, âge ou durée)"})
        attrs['onset_duration_unit'] = unit
        return attrs


class SessionTypeSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100, error_messages={
        'required': 'Le nom est requis', 'blank': 'Le nom est requis'})
    price = serializers.DecimalField(max_digits=7, decimal_places=2, error_messages={
        'required': 'Le tarif est requis', 'invalid': 'Le tarif doit être positif'})
    is_active = serializers.BooleanField(required=False, default=True)

    def validate_price(self, v):
        if v <= 0:
            raise serializers.ValidationError('Le tarif doit être positif')
        return v
