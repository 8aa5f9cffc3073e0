from rest_framework import serializers

from practice.services.imports import IGNORE, IMPORT_FIELDS


class PatientImportSerializer(serializers.Serializer):
    """CSV text in ``content`` or an uploaded ``file``; ``mapping`` maps column index to field."""
    content = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    file = serializers.FileField(required=False)
    mapping = serializers.DictField(
        child=serializers.ChoiceField(choices=IMPORT_FIELDS + [IGNORE],
                                      error_messages={'invalid_choice': 'Champ de correspondance invalide'}),
        required=False, allow_null=True,
    )

    def validate_file(self, f):
        if not f.name.lower().endswith('.csv'):
            raise serializers.ValidationError('Veuillez sélectionner un fichier CSV')
        try:
            return f.read().decode('utf-8-sig')
        except UnicodeDecodeError:
            raise serializers.ValidationError('Le fichier doit être encodé en UTF-8')

    def validate_mapping(self, mapping):
        if mapping is None:
            return None
        try:
            return {int(k): v for k, v in mapping.items()}
        except ValueError:
            raise serializers.ValidationError('Correspondance de colonnes invalide')

    def validate(self, attrs):
        text = attrs.get('file') or attrs.get('content') or ''
        if not text.strip():
            raise serializers.ValidationError({'file': 'Fichier CSV requis'})
        attrs['content'] = text
        return attrs
