from datetime import datetime
from decimal import Decimal

from rest_framework import serializers

from employees.serializers import EmployeeSummarySerializer
from .models import TimeEntry


def hours_between(start_time, end_time):
    """Decimal hours between two times on the same day"""
    start = datetime.combine(datetime.min, start_time)
    end = datetime.combine(datetime.min, end_time)
    return (Decimal((end - start).total_seconds()) / Decimal(3600)).quantize(Decimal('0.01'))


class TimeEntrySerializer(serializers.ModelSerializer):
    """Read serializer with employee and approval details"""
    employee_detail = EmployeeSummarySerializer(source='employee', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    is_draft = serializers.BooleanField(read_only=True)
    manager_approved_by_name = serializers.CharField(
        source='manager_approved_by.get_full_name', read_only=True, default=None
    )
    approved_by_name = serializers.CharField(source='approved_by.get_full_name', read_only=True, default=None)
    rejected_by_name = serializers.CharField(source='rejected_by.get_full_name', read_only=True, default=None)

    class Meta:
        model = TimeEntry
        fields = [
            'id', 'employee', 'employee_detail', 'date',
            'project_name', 'project_code', 'task_description', 'external_task_id',
            'start_time', 'end_time', 'total_hours',
            'problem_and_issues', 'quantify', 'achievements',
            'scope_of_improvements', 'tools_used', 'percentage_complete',
            'status', 'status_display', 'is_draft', 'submitted_at',
            'manager_approved_by', 'manager_approved_by_name', 'manager_approved_at',
            'approved_by', 'approved_by_name', 'approved_at',
            'rejected_by', 'rejected_by_name', 'rejected_at', 'rejection_reason',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class TimeEntryCreateUpdateSerializer(serializers.ModelSerializer):
    """Serializer for creating/updating an employee's own entries"""
    tools_used = serializers.ListField(
        child=serializers.CharField(max_length=100),
        required=False,
        default=list
    )

    class Meta:
        model = TimeEntry
        fields = [
            'date', 'project_name', 'project_code', 'task_description', 'external_task_id',
            'start_time', 'end_time', 'total_hours',
            'problem_and_issues', 'quantify', 'achievements',
            'scope_of_improvements', 'tools_used', 'percentage_complete'
        ]

    def validate_project_name(self, value):
        if not value.strip():
            raise serializers.ValidationError("Project name cannot be blank.")
        return value.strip()

    def validate_task_description(self, value):
        if not value.strip():
            raise serializers.ValidationError("Task description cannot be blank.")
        return value.strip()

    def validate(self, data):
        start_time = data.get('start_time', getattr(self.instance, 'start_time', None))
        end_time = data.get('end_time', getattr(self.instance, 'end_time', None))
        if start_time and end_time:
            if end_time <= start_time:
                raise serializers.ValidationError({"end_time": "End time must be after start time."})
            if data.get('total_hours') is None and ('start_time' in data or 'end_time' in data):
                data['total_hours'] = hours_between(start_time, end_time)
        return data


class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField(help_text="Why the entry is rejected")


class SubmitDaySerializer(serializers.Serializer):
    date = serializers.DateField(help_text="Day whose drafts are submitted")
