from django.contrib import admin
from .models import TimeEntry


@admin.register(TimeEntry)
class TimeEntryAdmin(admin.ModelAdmin):
    list_display = (
        'employee', 'date', 'project_name', 'get_task', 'total_hours',
        'percentage_complete', 'status', 'is_submitted', 'created_at'
    )
    list_filter = ('status', 'date', 'employee__department', 'created_at')
    search_fields = (
        'employee__first_name', 'employee__last_name',
        'employee__employee_id', 'project_name', 'project_code', 'task_description'
    )
    raw_id_fields = ('employee', 'manager_approved_by', 'approved_by', 'rejected_by')
    readonly_fields = ('created_at', 'updated_at')

    fieldsets = (
        ('Employee & Date', {
            'fields': ('employee', 'date')
        }),
        ('Work', {
            'fields': (
                'project_name', 'project_code', 'external_task_id', 'task_description',
                ('start_time', 'end_time', 'total_hours'), 'percentage_complete'
            )
        }),
        ('Report', {
            'fields': ('problem_and_issues', 'quantify', 'achievements', 'scope_of_improvements', 'tools_used'),
            'classes': ('collapse',)
        }),
        ('Approval', {
            'fields': (
                'status', 'submitted_at',
                ('manager_approved_by', 'manager_approved_at'),
                ('approved_by', 'approved_at'),
                ('rejected_by', 'rejected_at'), 'rejection_reason'
            )
        }),
        ('System Information', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def get_task(self, obj):
        return obj.task_description[:60]
    get_task.short_description = 'Task'

    def is_submitted(self, obj):
        return obj.submitted_at is not None
    is_submitted.boolean = True
    is_submitted.short_description = 'Submitted'
