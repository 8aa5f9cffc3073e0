from rest_framework import serializers

from practice.models import ScheduledTask


class ScheduledTaskQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[s for s, _ in ScheduledTask.STATUS_CHOICES], required=False,
                                     allow_blank=True, error_messages={'invalid_choice': 'Statut invalide'})
    search = serializers.CharField(max_length=100, required=False, allow_blank=True)
