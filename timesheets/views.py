import logging

from django.db import transaction
from django_filters.rest_framework import DjangoFilterBackend
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.filters import OrderingFilter, SearchFilter
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from deadlines.dates import business_localdate, parse_day
from employees.permissions import IsApprover, IsManagement, get_employee, is_management
from notifications.realtime import broadcast
from .exceptions import EntryNotFound
from .models import TimeEntry
from .permissions import TimeEntryObjectPermission
from .serializers import (
    RejectSerializer,
    SubmitDaySerializer,
    TimeEntryCreateUpdateSerializer,
    TimeEntrySerializer,
)
from .services import SubmissionGate, TimesheetApprovalService, entry_payload

logger = logging.getLogger(__name__)


class TimeEntryViewSet(viewsets.ModelViewSet):
    """
    ViewSet for timesheet entries

    list: Entries visible to the caller (own, reportees, or all for HR/Admin)
    retrieve: Single entry
    create: Log a draft entry for yourself
    update: Edit your own entry while it is pending
    destroy: Delete your own entry while it is pending
    """
    queryset = TimeEntry.objects.select_related(
        'employee', 'manager_approved_by', 'approved_by', 'rejected_by'
    )
    permission_classes = [IsAuthenticated, TimeEntryObjectPermission]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ['employee', 'date', 'status', 'project_code']
    search_fields = [
        'project_name', 'task_description',
        'employee__first_name', 'employee__last_name', 'employee__employee_id'
    ]
    ordering_fields = ['date', 'start_time', 'created_at', 'status']
    ordering = ['-date', 'start_time']

    def get_serializer_class(self):
        if self.action in ['create', 'update', 'partial_update']:
            return TimeEntryCreateUpdateSerializer
        return TimeEntrySerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        user = self.request.user

        # Admin/HR can see all entries
        if is_management(user):
            return queryset

        employee = get_employee(user)
        if employee is None:
            return queryset.none()

        if employee.is_manager():
            return queryset.filter(employee=employee) | queryset.for_reportees_of(employee)
        return queryset.filter(employee=employee)

    def _require_employee(self):
        employee = get_employee(self.request.user)
        if employee is None:
            raise PermissionDenied("User must have an employee profile to log time.")
        return employee

    def _require_editable(self, entry):
        if entry.employee_id != self._require_employee().id:
            raise PermissionDenied("You can only change your own time entries.")
        if not entry.is_editable:
            return Response({
                "error": 1,
                "message": f"Only pending entries can be changed. Current status: {entry.get_status_display()}"
            }, status=status.HTTP_409_CONFLICT)
        return None

    def create(self, request, *args, **kwargs):
        """
        Log a time entry (draft until the day is submitted)
        POST /api/time-entries/
        """
        employee = self._require_employee()
        serializer = self.get_serializer(data=request.data)
        if not serializer.is_valid():
            return Response({
                "error": 1,
                "message": "Validation failed",
                "errors": serializer.errors
            }, status=status.HTTP_400_BAD_REQUEST)

        data = serializer.validated_data
        # Double submits from the client: hand back the entry we already have
        existing = TimeEntry.objects.filter(
            employee=employee,
            date=data['date'],
            project_name=data['project_name'],
            task_description=data['task_description'],
            start_time=data.get('start_time'),
        ).first()
        if existing:
            logger.info(f"Duplicate time entry for {employee.employee_id} on {data['date']}, returning {existing.id}")
            return Response({
                "error": 0,
                "message": "Entry already exists",
                "data": TimeEntrySerializer(existing).data
            }, status=status.HTTP_200_OK)

        entry = serializer.save(employee=employee)
        transaction.on_commit(lambda: broadcast('time_entry_created', entry_payload(entry)))
        return Response({
            "error": 0,
            "message": "Time entry saved",
            "data": TimeEntrySerializer(entry).data
        }, status=status.HTTP_201_CREATED)

    def update(self, request, *args, **kwargs):
        entry = self.get_object()
        blocked = self._require_editable(entry)
        if blocked:
            return blocked

        serializer = self.get_serializer(entry, data=request.data, partial=kwargs.pop('partial', False))
        if not serializer.is_valid():
            return Response({
                "error": 1,
                "message": "Validation failed",
                "errors": serializer.errors
            }, status=status.HTTP_400_BAD_REQUEST)

        entry = serializer.save()
        transaction.on_commit(lambda: broadcast('time_entry_updated', entry_payload(entry)))
        return Response({
            "error": 0,
            "message": "Time entry updated",
            "data": TimeEntrySerializer(entry).data
        })

    def destroy(self, request, *args, **kwargs):
        """
        Delete a pending entry
        DELETE /api/time-entries/{id}/
        """
        entry = self.get_object()
        blocked = self._require_editable(entry)
        if blocked:
            return blocked

        payload = entry_payload(entry)
        self.perform_destroy(entry)
        transaction.on_commit(lambda: broadcast('time_entry_deleted', payload))
        return Response({
            "error": 0,
            "data": {"message": "Time entry deleted successfully"}
        }, status=status.HTTP_200_OK)

    # ------------------------------------------------------------------ #
    # Approvals
    # ------------------------------------------------------------------ #

    def _entry_for_review(self, pk):
        entry = TimeEntry.objects.select_related('employee').filter(pk=pk).first()
        if entry is None:
            raise EntryNotFound(f"Time entry {pk} not found.")
        return entry

    def _check_reviewer(self, entry):
        """Managers review their reportees; HR/Admin review anyone."""
        user = self.request.user
        if is_management(user):
            return
        employee = get_employee(user)
        if employee is None or entry.employee.reporting_manager_id != employee.id:
            raise PermissionDenied("You can only review timesheets of your reportees.")

    @swagger_auto_schema(request_body=openapi.Schema(type=openapi.TYPE_OBJECT, properties={}))
    @action(detail=True, methods=['patch'], url_path='manager-approve', permission_classes=[IsApprover])
    def manager_approve(self, request, pk=None):
        """
        Manager stage approval
        PATCH /api/time-entries/{id}/manager-approve/
        """
        entry = self._entry_for_review(pk)
        self._check_reviewer(entry)
        entry = TimesheetApprovalService().manager_approve(entry.pk, get_employee(request.user))
        return Response({
            "error": 0,
            "message": "Time entry approved by manager",
            "data": TimeEntrySerializer(entry).data
        })

    @swagger_auto_schema(request_body=openapi.Schema(type=openapi.TYPE_OBJECT, properties={}))
    @action(detail=True, methods=['patch'], url_path='approve', permission_classes=[IsManagement])
    def approve(self, request, pk=None):
        """
        Final approval (HR/Admin)
        PATCH /api/time-entries/{id}/approve/
        """
        entry = self._entry_for_review(pk)
        entry = TimesheetApprovalService().admin_approve(entry.pk, get_employee(request.user))
        return Response({
            "error": 0,
            "message": "Time entry approved",
            "data": TimeEntrySerializer(entry).data
        })

    @swagger_auto_schema(request_body=RejectSerializer)
    @action(detail=True, methods=['patch'], url_path='reject', permission_classes=[IsApprover])
    def reject(self, request, pk=None):
        """
        Reject an entry
        PATCH /api/time-entries/{id}/reject/
        Body: {"reason": "Hours don't match the tracker"}
        """
        entry = self._entry_for_review(pk)
        self._check_reviewer(entry)
        serializer = RejectSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({
                "error": 1,
                "message": "A reason is required to reject a time entry.",
                "errors": serializer.errors
            }, status=status.HTTP_400_BAD_REQUEST)

        entry = TimesheetApprovalService().reject(
            entry.pk, get_employee(request.user), serializer.validated_data['reason']
        )
        return Response({
            "error": 0,
            "message": "Time entry rejected",
            "data": TimeEntrySerializer(entry).data
        })

    @action(detail=False, methods=['get'], url_path='pending', permission_classes=[IsApprover])
    def pending(self, request):
        """
        Approval queue: submitted entries still awaiting a decision
        GET /api/time-entries/pending/
        """
        queryset = TimeEntry.objects.awaiting_review().select_related('employee')
        if not is_management(request.user):
            queryset = queryset.for_reportees_of(get_employee(request.user)).filter(status=TimeEntry.STATUS_PENDING)
        queryset = queryset.order_by('date', 'employee__employee_id', 'start_time')
        return Response({
            "error": 0,
            "data": TimeEntrySerializer(queryset, many=True).data
        })

    # ------------------------------------------------------------------ #
    # Submission
    # ------------------------------------------------------------------ #

    @action(detail=False, methods=['get'], url_path='submission-status')
    def submission_status(self, request):
        """
        Whether the caller has drafts to submit for a day
        GET /api/time-entries/submission-status/?date=2025-12-24
        """
        employee = self._require_employee()
        raw_date = request.query_params.get('date')
        day = parse_day(raw_date) if raw_date else business_localdate()
        if day is None:
            return Response({
                "error": 1,
                "message": "Invalid date format. Use YYYY-MM-DD."
            }, status=status.HTTP_400_BAD_REQUEST)

        drafts = TimeEntry.objects.for_day(employee, day).drafts().count()
        return Response({
            "error": 0,
            "data": {
                "date": day.isoformat(),
                "can_submit": SubmissionGate.can_submit(employee, day),
                "draft_count": drafts,
            }
        })

    @swagger_auto_schema(request_body=SubmitDaySerializer)
    @action(detail=False, methods=['post'], url_path='submit-day')
    def submit_day(self, request):
        """
        Submit every draft of a day for review
        POST /api/time-entries/submit-day/
        Body: {"date": "2025-12-24"}
        """
        employee = self._require_employee()
        serializer = SubmitDaySerializer(data=request.data)
        if not serializer.is_valid():
            return Response({
                "error": 1,
                "message": "Validation failed",
                "errors": serializer.errors
            }, status=status.HTTP_400_BAD_REQUEST)

        result = SubmissionGate().submit_day(employee, serializer.validated_data['date'])
        return Response({
            "error": 0,
            "message": "Timesheet submitted successfully",
            "warning": result['warning'],
            "data": {
                "entries": TimeEntrySerializer(result['entries'], many=True).data,
                "pending_deadlines": [item.to_dict() for item in result['pending_deadlines']],
            }
        }, status=status.HTTP_200_OK)
