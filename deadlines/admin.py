from django.contrib import admin
from .models import Postponement, TaskAcknowledgement


class ReadOnlyLedgerAdmin(admin.ModelAdmin):
    """Ledger rows are append-only, admin can only look"""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Postponement)
class PostponementAdmin(ReadOnlyLedgerAdmin):
    list_display = ('task_id', 'sequence', 'project_code', 'previous_due_date', 'new_due_date', 'actor', 'created_at')
    list_filter = ('project_code', 'created_at')
    search_fields = ('task_id', 'project_code', 'reason', 'actor__employee_id', 'actor__first_name')


@admin.register(TaskAcknowledgement)
class TaskAcknowledgementAdmin(ReadOnlyLedgerAdmin):
    list_display = ('task_id', 'project_code', 'actor', 'created_at')
    list_filter = ('project_code', 'created_at')
    search_fields = ('task_id', 'project_code', 'actor__employee_id')
