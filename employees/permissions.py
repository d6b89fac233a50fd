from rest_framework.permissions import BasePermission


def get_employee(user):
    """Return the employee profile of a user, or None"""
    if not user or not user.is_authenticated:
        return None
    return getattr(user, 'employee_profile', None)


def effective_role(user):
    """
    Role used for access decisions.

    Superusers and staff without a profile act as admin, which keeps
    Django admin accounts working against the API.
    """
    employee = get_employee(user)
    if employee is not None:
        return employee.role
    if user and (user.is_superuser or user.is_staff):
        return 'admin'
    return None


def is_management(user):
    """Admin / HR (or Django staff)"""
    if user.is_superuser or user.is_staff:
        return True
    return effective_role(user) in ('admin', 'hr')


class IsApprover(BasePermission):
    """
    Timesheet approval permissions:

    Manager   → manager stage
    HR/Admin  → both stages
    Employee  → no access
    """
    message = "Only managers, HR or admins can approve timesheets."

    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        return effective_role(request.user) in ('admin', 'hr', 'manager')


class IsManagement(BasePermission):
    """Admin / HR only"""
    message = "Only HR or admins can perform this action."

    def has_permission(self, request, view):
        return request.user.is_authenticated and is_management(request.user)
