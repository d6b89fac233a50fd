from django.urls import path
from .views import (
    AcknowledgeTaskView,
    BlockingSettingView,
    PendingDeadlinesView,
    PostponeTaskView,
    PostponementHistoryView,
)

urlpatterns = [
    path('pending/', PendingDeadlinesView.as_view(), name='deadlines-pending'),
    path('tasks/<str:task_id>/postpone/', PostponeTaskView.as_view(), name='task-postpone'),
    path('tasks/<str:task_id>/acknowledge/', AcknowledgeTaskView.as_view(), name='task-acknowledge'),
    path('tasks/<str:task_id>/postponements/', PostponementHistoryView.as_view(), name='task-postponements'),
    path('settings/blocking/', BlockingSettingView.as_view(), name='deadline-blocking-setting'),
]
