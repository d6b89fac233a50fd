from django.contrib import admin
from .models import Employee


@admin.register(Employee)
class EmployeeAdmin(admin.ModelAdmin):
    list_display = (
        'employee_id', 'get_full_name', 'email', 'role', 'department',
        'reporting_manager', 'is_active', 'created_at'
    )
    list_filter = ('role', 'department', 'is_active', 'created_at')
    search_fields = ('employee_id', 'first_name', 'last_name', 'email', 'department')
    readonly_fields = ('created_at', 'updated_at')
    raw_id_fields = ('user', 'reporting_manager')

    fieldsets = (
        ('Core Information', {
            'fields': ('employee_id', 'user', 'first_name', 'last_name', 'email')
        }),
        ('Professional Information', {
            'fields': ('role', 'department', 'reporting_manager')
        }),
        ('System Information', {
            'fields': ('is_active', 'slack_user_id', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def get_full_name(self, obj):
        return obj.get_full_name()
    get_full_name.short_description = 'Full Name'
