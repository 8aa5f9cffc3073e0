from rest_framework import serializers

from practice.serializers.patients import clean_text


def message_content():
    return serializers.CharField(max_length=10000, error_messages={
        'required': 'Le message est requis', 'blank': 'Le message est requis',
        'max_length': 'Le message ne peut pas dépasser 10000 caractères'})


class ConversationCreateSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField(required=False, allow_null=True)
    external_email = serializers.EmailField(required=False, allow_blank=True,
                                            error_messages={'invalid': "Format d'email invalide"})
    external_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    subject = serializers.CharField(max_length=255, required=False, allow_blank=True)

    def validate(self, attrs):
        if not attrs.get('patient_id') and not attrs.get('external_email'):
            raise serializers.ValidationError({'patient_id': 'Un patient ou une adresse email est requis'})
        return attrs


class ConversationListQuerySerializer(serializers.Serializer):
    archived = serializers.BooleanField(required=False, default=False)
    search = serializers.CharField(max_length=100, required=False, allow_blank=True)


class InternalMessageSerializer(serializers.Serializer):
    content = message_content()
    consultation_id = serializers.UUIDField(required=False, allow_null=True)

    def validate_content(self, v):
        v = clean_text(v)
        if not v:
            raise serializers.ValidationError('Le message est requis')
        return v


class SendEmailSerializer(serializers.Serializer):
    conversationId = serializers.UUIDField(error_messages={'required': 'Conversation requise',
                                                           'invalid': 'Conversation requise'})
    content = message_content()
    subject = serializers.CharField(max_length=255, required=False, allow_blank=True)


class BroadcastSerializer(serializers.Serializer):
    content = message_content()
    subject = serializers.CharField(max_length=255, required=False, allow_blank=True)


class MessageTemplateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=100, error_messages={
        'required': 'Le nom est requis', 'blank': 'Le nom est requis'})
    content = serializers.CharField(max_length=10000, error_messages={
        'required': 'Le contenu est requis', 'blank': 'Le contenu est requis'})
    category = serializers.CharField(max_length=50, required=False, allow_blank=True)


class ConsultationRefSerializer(serializers.Serializer):
    consultationId = serializers.UUIDField(error_messages={'required': 'ID de consultation requis',
                                                           'invalid': 'ID de consultation requis'})
