from django.conf import settings
from django.db import models


class Employee(models.Model):
    """Employee profile used for timesheets, approvals and PMS visibility"""

    ROLE_ADMIN = 'admin'
    ROLE_HR = 'hr'
    ROLE_MANAGER = 'manager'
    ROLE_EMPLOYEE = 'employee'

    # Role Choices
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Admin'),
        (ROLE_HR, 'HR'),
        (ROLE_MANAGER, 'Manager'),
        (ROLE_EMPLOYEE, 'Employee'),
    ]

    # ========== CORE IDENTIFICATION ==========
    employee_id = models.CharField(
        max_length=50,
        unique=True,
        db_index=True,
        help_text="Unique employee code (also used as PMS assignee code)"
    )
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='employee_profile',
        null=True,
        blank=True,
        help_text="Link to user account for login"
    )

    # ========== PERSONAL INFORMATION ==========
    first_name = models.CharField(max_length=50)
    last_name = models.CharField(max_length=50, blank=True)
    email = models.EmailField(unique=True, db_index=True)

    # ========== PROFESSIONAL INFORMATION ==========
    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default=ROLE_EMPLOYEE,
        help_text="Employee role for access control"
    )
    department = models.CharField(
        max_length=100,
        blank=True,
        help_text="Department label as entered (e.g. 'Software Developers', 'HR & Admin')"
    )
    reporting_manager = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='subordinates',
        help_text="Direct reporting manager"
    )

    # ========== SYSTEM FIELDS ==========
    is_active = models.BooleanField(default=True)
    slack_user_id = models.CharField(max_length=50, blank=True, null=True, help_text="Slack ID for notifications")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['role'], name='employees_e_role_5c6f1d_idx'),
            models.Index(fields=['department'], name='employees_e_departm_8f2a3b_idx'),
        ]
        verbose_name = 'Employee'
        verbose_name_plural = 'Employees'

    def __str__(self):
        return f"{self.employee_id} - {self.get_full_name()}"

    def get_full_name(self):
        """Return full name of employee"""
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def full_name(self):
        return self.get_full_name()

    def has_role(self, role_name):
        return (self.role or '').lower() == role_name.lower()

    def is_admin(self):
        return self.has_role(self.ROLE_ADMIN)

    def is_hr(self):
        return self.has_role(self.ROLE_HR)

    def is_manager(self):
        return self.has_role(self.ROLE_MANAGER)

    def can_view_all_timesheets(self):
        """Admin and HR see every employee's entries"""
        return self.is_admin() or self.is_hr()

    def can_approve_timesheets(self):
        return self.is_admin() or self.is_hr() or self.is_manager()

    @classmethod
    def management_group(cls):
        """Active Admin/HR employees, the audience for escalations"""
        return cls.objects.filter(is_active=True, role__in=[cls.ROLE_ADMIN, cls.ROLE_HR])
