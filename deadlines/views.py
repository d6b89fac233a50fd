import logging

from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from employees.models import Employee
from employees.permissions import get_employee, is_management
from .dates import business_localdate, parse_day
from .serializers import BlockingSettingSerializer, PostponementSerializer, TaskAcknowledgementSerializer
from .services import DeadlineReconciler, PostponementLedger
from .settings_store import load_blocking_setting, save_blocking_setting

logger = logging.getLogger(__name__)


def _no_profile_response():
    return Response({
        "error": 1,
        "message": "User must have an employee profile."
    }, status=status.HTTP_400_BAD_REQUEST)


class PendingDeadlinesView(APIView):
    """
    Tasks due on a day that have no time entry yet
    GET /api/deadlines/pending/?date=2025-12-24&userid=12
    """
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(manual_parameters=[
        openapi.Parameter('date', openapi.IN_QUERY, type=openapi.TYPE_STRING, description="YYYY-MM-DD, defaults to today"),
        openapi.Parameter('userid', openapi.IN_QUERY, type=openapi.TYPE_INTEGER, description="Employee id (HR/Admin only)"),
    ])
    def get(self, request):
        raw_date = request.query_params.get('date')
        day = parse_day(raw_date) if raw_date else business_localdate()
        if day is None:
            return Response({
                "error": 1,
                "message": "Invalid date format. Use YYYY-MM-DD."
            }, status=status.HTTP_400_BAD_REQUEST)

        employee = get_employee(request.user)
        user_id = request.query_params.get('userid')
        if user_id and (employee is None or str(employee.id) != str(user_id)):
            if not is_management(request.user):
                return Response({
                    "error": 1,
                    "message": "You can only view your own pending deadlines."
                }, status=status.HTTP_403_FORBIDDEN)
            employee = Employee.objects.filter(pk=user_id).first() if str(user_id).isdigit() else None
            if employee is None:
                return Response({
                    "error": 1,
                    "message": "Employee not found"
                }, status=status.HTTP_404_NOT_FOUND)

        if employee is None:
            return _no_profile_response()

        pending = DeadlineReconciler().compute_pending(employee, day)
        return Response({
            "error": 0,
            "data": {
                "date": day.isoformat(),
                "employee_id": employee.employee_id,
                "blocking_enabled": load_blocking_setting(),
                "tasks": [item.to_dict() for item in pending],
            }
        })


class PostponeTaskView(APIView):
    """
    Move a PMS task's due date with a reason
    POST /api/deadlines/tasks/{task_id}/postpone/
    Body: {"new_due_date": "2025-12-30", "reason": "Waiting on client", "previous_due_date": "2025-12-24"}
    """
    permission_classes = [IsAuthenticated]

    @swagger_auto_schema(request_body=openapi.Schema(
        type=openapi.TYPE_OBJECT,
        properties={
            'new_due_date': openapi.Schema(type=openapi.TYPE_STRING, format='date'),
            'reason': openapi.Schema(type=openapi.TYPE_STRING),
            'previous_due_date': openapi.Schema(type=openapi.TYPE_STRING, format='date'),
            'project_code': openapi.Schema(type=openapi.TYPE_STRING),
        },
        required=['new_due_date', 'reason']
    ))
    def post(self, request, task_id):
        employee = get_employee(request.user)
        if employee is None:
            return _no_profile_response()

        record = PostponementLedger().postpone(
            task_id=task_id,
            new_due_date=request.data.get('new_due_date'),
            reason=request.data.get('reason'),
            actor=employee,
            previous_due_date=request.data.get('previous_due_date'),
            project_code=request.data.get('project_code') or '',
        )
        return Response({
            "error": 0,
            "message": "Task postponed",
            "data": PostponementSerializer(record).data
        }, status=status.HTTP_201_CREATED)


class AcknowledgeTaskView(APIView):
    """
    Accept a task's deadline without moving it
    POST /api/deadlines/tasks/{task_id}/acknowledge/
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, task_id):
        employee = get_employee(request.user)
        if employee is None:
            return _no_profile_response()

        record = PostponementLedger().acknowledge(
            task_id=task_id,
            actor=employee,
            project_code=request.data.get('project_code') or '',
        )
        return Response({
            "error": 0,
            "message": "Task acknowledged",
            "data": TaskAcknowledgementSerializer(record).data
        }, status=status.HTTP_201_CREATED)


class PostponementHistoryView(APIView):
    """
    GET /api/deadlines/tasks/{task_id}/postponements/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, task_id):
        history = PostponementLedger.history(task_id)
        return Response({
            "error": 0,
            "data": PostponementSerializer(history, many=True).data
        })


class BlockingSettingView(APIView):
    """
    Whether outstanding deadlines should be flagged as blocking
    GET /api/deadlines/settings/blocking/
    PUT /api/deadlines/settings/blocking/  (HR/Admin)
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response({
            "error": 0,
            "data": {"blocking_enabled": load_blocking_setting()}
        })

    @swagger_auto_schema(request_body=BlockingSettingSerializer)
    def put(self, request):
        if not is_management(request.user):
            return Response({
                "error": 1,
                "message": "Only HR or admins can change this setting."
            }, status=status.HTTP_403_FORBIDDEN)

        serializer = BlockingSettingSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({
                "error": 1,
                "message": "Validation failed",
                "errors": serializer.errors
            }, status=status.HTTP_400_BAD_REQUEST)

        enabled = save_blocking_setting(serializer.validated_data['blocking_enabled'])
        return Response({
            "error": 0,
            "data": {"blocking_enabled": enabled}
        })
