from rest_framework import serializers

METHOD_FILTERS = ['card', 'cash', 'check', 'transfer', 'other', 'all']


class AccountingFiltersSerializer(serializers.Serializer):
    startDate = serializers.DateField(required=False, allow_null=True)
    endDate = serializers.DateField(required=False, allow_null=True)
    period = serializers.ChoiceField(choices=['day', 'week', 'month', 'year', 'custom'], required=False)
    paymentMethod = serializers.ChoiceField(choices=METHOD_FILTERS, required=False, allow_blank=True)
    patientId = serializers.UUIDField(required=False, allow_null=True)

    def to_internal_value(self, data):
        if hasattr(data, 'dict'):
            data = data.dict()
        # empty strings from query strings mean "not set"
        data = {k: v for k, v in dict(data).items() if v not in ('', None)}
        return super().to_internal_value(data)

    def validate(self, attrs):
        start, end = attrs.get('startDate'), attrs.get('endDate')
        if start and end and start > end:
            raise serializers.ValidationError({'startDate': 'La date de début doit précéder la date de fin'})
        return attrs


class AccountingRangeSerializer(AccountingFiltersSerializer):
    startDate = serializers.DateField(error_messages={'required': 'Dates de début et de fin requises',
                                                      'invalid': 'Date invalide'})
    endDate = serializers.DateField(error_messages={'required': 'Dates de début et de fin requises',
                                                    'invalid': 'Date invalide'})


class SavedReportSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100, error_messages={
        'required': 'Le nom est requis', 'blank': 'Le nom est requis',
        'max_length': 'Le nom ne peut pas dépasser 100 caractères'})
    filters = AccountingFiltersSerializer(required=False)


class StatisticsQuerySerializer(AccountingFiltersSerializer):
    gender = serializers.ChoiceField(choices=['M', 'F'], required=False)
    ageGroup = serializers.ChoiceField(choices=['0-17', '18-29', '30-44', '45-59', '60-74', '75+'], required=False)

    def to_internal_value(self, data):
        if hasattr(data, 'dict'):
            data = data.dict()
        data = {k: v for k, v in dict(data).items() if not (k in ('gender', 'ageGroup') and v == 'all')}
        return super().to_internal_value(data)
