from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework.filters import SearchFilter, OrderingFilter
from django_filters.rest_framework import DjangoFilterBackend

from .models import Employee
from .serializers import EmployeeListSerializer
from .permissions import get_employee, is_management


class EmployeeViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read-only employee directory

    list: HR/Admin see everyone, managers see themselves and their reportees,
          employees see themselves
    retrieve: Single employee within the same visibility
    me: The caller's own profile
    """
    queryset = Employee.objects.select_related('reporting_manager')
    serializer_class = EmployeeListSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [DjangoFilterBackend, SearchFilter, OrderingFilter]
    filterset_fields = ['role', 'department', 'is_active', 'reporting_manager']
    search_fields = ['employee_id', 'first_name', 'last_name', 'email']
    ordering_fields = ['employee_id', 'first_name', 'last_name', 'created_at']
    ordering = ['employee_id']

    def get_queryset(self):
        queryset = super().get_queryset()
        user = self.request.user

        if is_management(user):
            return queryset

        employee = get_employee(user)
        if employee is None:
            return queryset.none()

        if employee.is_manager():
            return queryset.filter(id=employee.id) | queryset.filter(reporting_manager=employee)
        return queryset.filter(id=employee.id)

    @action(detail=False, methods=['get'], url_path='me')
    def me(self, request):
        """
        Current employee profile
        GET /api/employees/me/
        """
        employee = get_employee(request.user)
        if employee is None:
            return Response({
                "error": 1,
                "message": "User does not have an employee profile."
            }, status=status.HTTP_404_NOT_FOUND)

        return Response({
            "error": 0,
            "data": EmployeeListSerializer(employee).data
        })
