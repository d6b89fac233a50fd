from django.urls import path
from .views import EventStreamView, SlackInteractionsView

urlpatterns = [
    path('events/', EventStreamView.as_view(), name='event-stream'),
    path('slack/interactions/', SlackInteractionsView.as_view(), name='slack-interactions'),
]
