from rest_framework.permissions import BasePermission, SAFE_METHODS

from employees.permissions import get_employee, is_management


class TimeEntryObjectPermission(BasePermission):
    """
    Time entry permissions:

    Employee  → own entries; edit/delete only while pending
    Manager   → reportees (read-only here, approvals go through actions)
    HR/Admin  → read everything
    """
    message = "You do not have access to this time entry."

    def has_object_permission(self, request, view, obj):
        user = request.user
        employee = get_employee(user)

        # Owner
        if employee is not None and obj.employee_id == employee.id:
            return True

        if request.method not in SAFE_METHODS:
            return False

        if is_management(user):
            return True

        # Manager → view reportees only (READ-ONLY)
        if employee is not None:
            return obj.employee.reporting_manager_id == employee.id

        return False
