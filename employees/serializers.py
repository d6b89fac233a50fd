from rest_framework import serializers
from .models import Employee


class EmployeeListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for employee lists"""
    full_name = serializers.CharField(source='get_full_name', read_only=True)
    manager_name = serializers.CharField(source='reporting_manager.get_full_name', read_only=True, default=None)

    class Meta:
        model = Employee
        fields = [
            'id', 'employee_id', 'full_name', 'email', 'role',
            'department', 'reporting_manager', 'manager_name', 'is_active'
        ]


class EmployeeSummarySerializer(serializers.ModelSerializer):
    """Embedded employee block for timesheet payloads"""
    full_name = serializers.CharField(source='get_full_name', read_only=True)

    class Meta:
        model = Employee
        fields = ['id', 'employee_id', 'full_name', 'email', 'department']
