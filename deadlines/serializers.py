from rest_framework import serializers
from .models import Postponement, TaskAcknowledgement


class PostponementSerializer(serializers.ModelSerializer):
    actor_name = serializers.CharField(source='actor.get_full_name', read_only=True, default=None)
    actor_employee_id = serializers.CharField(source='actor.employee_id', read_only=True, default=None)

    class Meta:
        model = Postponement
        fields = [
            'id', 'task_id', 'project_code', 'sequence',
            'previous_due_date', 'new_due_date', 'reason',
            'actor', 'actor_name', 'actor_employee_id', 'created_at'
        ]
        read_only_fields = fields


class TaskAcknowledgementSerializer(serializers.ModelSerializer):
    actor_name = serializers.CharField(source='actor.get_full_name', read_only=True, default=None)

    class Meta:
        model = TaskAcknowledgement
        fields = ['id', 'task_id', 'project_code', 'actor', 'actor_name', 'created_at']
        read_only_fields = fields


class BlockingSettingSerializer(serializers.Serializer):
    blocking_enabled = serializers.BooleanField()
