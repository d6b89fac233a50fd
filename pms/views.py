from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from employees.permissions import effective_role, get_employee
from .gateway import PMSGateway


def caller_scope(user):
    """(role, employee code, department) of the requesting user"""
    employee = get_employee(user)
    return (
        effective_role(user),
        employee.employee_id if employee else None,
        employee.department if employee else None,
    )


class PMSViewSet(viewsets.ViewSet):
    """
    Read-only window onto the external PMS, narrowed to the caller's department

    projects: Projects visible to the caller
    tasks: Tasks, optionally of one project (?project_id= id or project code)
    subtasks: Subtasks, optionally of one task (?task_id=)
    """
    permission_classes = [IsAuthenticated]

    @action(detail=False, methods=['get'], url_path='projects')
    def projects(self, request):
        role, code, department = caller_scope(request.user)
        projects = PMSGateway().list_projects(role=role, employee_code=code, department=department)
        return Response({
            "error": 0,
            "data": [project.to_dict() for project in projects]
        })

    @swagger_auto_schema(manual_parameters=[
        openapi.Parameter('project_id', openapi.IN_QUERY, type=openapi.TYPE_STRING, description="Project id or code"),
    ])
    @action(detail=False, methods=['get'], url_path='tasks')
    def tasks(self, request):
        role, _, department = caller_scope(request.user)
        tasks = PMSGateway().list_tasks(
            project_id=request.query_params.get('project_id'),
            department=department,
            role=role,
        )
        return Response({
            "error": 0,
            "data": [task.to_dict() for task in tasks]
        })

    @swagger_auto_schema(manual_parameters=[
        openapi.Parameter('task_id', openapi.IN_QUERY, type=openapi.TYPE_STRING),
    ])
    @action(detail=False, methods=['get'], url_path='subtasks')
    def subtasks(self, request):
        role, _, department = caller_scope(request.user)
        subtasks = PMSGateway().list_subtasks(
            task_id=request.query_params.get('task_id'),
            department=department,
            role=role,
        )
        return Response({
            "error": 0,
            "data": [subtask.to_dict() for subtask in subtasks]
        })
