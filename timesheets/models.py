from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models

from employees.models import Employee
from .managers import TimeEntryQuerySet


class TimeEntry(models.Model):
    """A block of work an employee logged against a project task on one day"""

    STATUS_PENDING = 'pending'
    STATUS_MANAGER_APPROVED = 'manager_approved'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'

    # Status Choices
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_MANAGER_APPROVED, 'Manager Approved'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    # Employee relationship
    employee = models.ForeignKey(
        Employee,
        on_delete=models.CASCADE,
        related_name='time_entries',
        help_text="Employee who logged the entry"
    )

    date = models.DateField(
        db_index=True,
        help_text="Work date"
    )

    # Project / task
    project_name = models.CharField(max_length=200)
    project_code = models.CharField(
        max_length=50,
        blank=True,
        help_text="PMS project code, used for progress write-back"
    )
    task_description = models.TextField()
    external_task_id = models.CharField(
        max_length=64,
        blank=True,
        null=True,
        db_index=True,
        help_text="PMS task id this entry reports on"
    )

    # Time
    start_time = models.TimeField(null=True, blank=True)
    end_time = models.TimeField(null=True, blank=True)
    total_hours = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(24)]
    )

    # Narrative
    problem_and_issues = models.TextField(blank=True)
    quantify = models.TextField(blank=True)
    achievements = models.TextField(blank=True)
    scope_of_improvements = models.TextField(blank=True)
    tools_used = models.JSONField(default=list, blank=True)

    percentage_complete = models.PositiveSmallIntegerField(
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)]
    )

    # Approval workflow
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
        db_index=True
    )
    submitted_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Null while the entry is a draft"
    )
    manager_approved_by = models.ForeignKey(
        Employee,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='manager_approved_entries'
    )
    manager_approved_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(
        Employee,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='approved_entries'
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_by = models.ForeignKey(
        Employee,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='rejected_entries'
    )
    rejected_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = TimeEntryQuerySet.as_manager()

    class Meta:
        db_table = 'time_entries'
        ordering = ['-date', 'start_time', 'id']
        indexes = [
            models.Index(fields=['employee', 'date'], name='time_entrie_employe_3b1c2d_idx'),
            models.Index(fields=['status', 'date'], name='time_entrie_status_7d4e5f_idx'),
        ]
        verbose_name = 'Time Entry'
        verbose_name_plural = 'Time Entries'

    def __str__(self):
        return f"{self.employee.employee_id} - {self.date} - {self.project_name}"

    @property
    def is_draft(self):
        return self.submitted_at is None

    @property
    def is_editable(self):
        """Owners may edit or delete only while the entry awaits review"""
        return self.status == self.STATUS_PENDING
