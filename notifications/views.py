import json
import queue
import threading
import logging
import requests
from django.http import JsonResponse, HttpResponse, StreamingHttpResponse
from django.utils.dateparse import parse_date
from django.utils.decorators import method_decorator
from django.views.decorators.csrf import csrf_exempt
from rest_framework.views import APIView
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.parsers import JSONParser, FormParser, MultiPartParser

from employees.models import Employee
from timesheets.exceptions import TransitionNotAllowed
from timesheets.models import TimeEntry
from timesheets.services import TimesheetApprovalService
from .realtime import get_registry

logger = logging.getLogger(__name__)


class EventStreamView(APIView):
    """
    Server-sent events stream of live updates
    GET /api/events/

    Each event is a JSON document {"type": ..., "data": ..., "sent_at": ...}.
    """
    permission_classes = [IsAuthenticated]
    heartbeat_seconds = 25
    queue_size = 100

    def get(self, request, *args, **kwargs):
        registry = get_registry()
        messages = queue.Queue(maxsize=self.queue_size)
        overflowed = threading.Event()

        def observer(message):
            try:
                messages.put_nowait(message)
            except queue.Full:
                # registry drops us; the stream ends and the client reconnects
                overflowed.set()
                raise

        registry.add(observer)

        def stream():
            try:
                yield "retry: 5000\n\n"
                while not overflowed.is_set():
                    try:
                        message = messages.get(timeout=self.heartbeat_seconds)
                    except queue.Empty:
                        if not overflowed.is_set():
                            yield ": keep-alive\n\n"
                        continue
                    yield f"event: {message['type']}\ndata: {json.dumps(message, default=str)}\n\n"
                logger.info("Closing event stream of a client that fell behind")
            finally:
                registry.remove(observer)

        response = StreamingHttpResponse(stream(), content_type='text/event-stream')
        response['Cache-Control'] = 'no-cache'
        response['X-Accel-Buffering'] = 'no'
        return response


@method_decorator(csrf_exempt, name="dispatch")
class SlackInteractionsView(APIView):
    """Handles the Approve/Reject buttons on submitted timesheets"""
    permission_classes = [AllowAny]
    authentication_classes = []
    parser_classes = [FormParser, JSONParser, MultiPartParser]

    def get(self, request, *args, **kwargs):
        return HttpResponse("Slack Interaction Endpoint is Active! Path: " + request.path)

    def post(self, request, *args, **kwargs):
        if request.data.get("type") == "url_verification":
            return JsonResponse({"challenge": request.data.get("challenge")})

        # Ack Slack immediately, the work happens in the background
        response = HttpResponse("OK")

        payload_str = request.data.get("payload")
        if not payload_str:
            return response

        try:
            payload = json.loads(payload_str)
        except ValueError:
            logger.warning("Slack interaction with unreadable payload")
            return response

        threading.Thread(
            target=self.process_action,
            args=(payload,),
            daemon=True
        ).start()

        return response

    def process_action(self, payload):
        try:
            actions = payload.get("actions", [])
            if not actions:
                return None

            action = actions[0]
            action_id = action.get("action_id")
            value = action.get("value") or ""
            response_url = payload.get("response_url")
            slack_user = payload.get("user", {})
            user_name = slack_user.get("name", "Admin")

            if action_id not in ("approve_timesheet_day", "reject_timesheet_day"):
                return None

            message = self.review_day(action_id, value, slack_user.get("id"), user_name)

            if response_url:
                requests.post(
                    response_url,
                    json={"text": message, "replace_original": True},
                    timeout=2
                )
            return message

        except Exception as e:
            logger.error(f"Slack interaction error: {e}")
            return None

    @staticmethod
    def review_day(action_id, value, slack_user_id, user_name):
        employee_pk, _, day_str = value.replace(f"{action_id}_", "", 1).partition("_")
        day = parse_date(day_str)
        reviewer = Employee.objects.filter(slack_user_id=slack_user_id, is_active=True).first()
        if reviewer is None or not reviewer.can_approve_timesheets():
            return f"@{user_name} is not allowed to review timesheets."

        owner = Employee.objects.filter(pk=employee_pk).first() if employee_pk.isdigit() else None
        if owner is None or day is None:
            return "Timesheet not found."
        if not reviewer.can_view_all_timesheets() and owner.reporting_manager_id != reviewer.id:
            return f"@{user_name} can only review timesheets of their reportees."

        service = TimesheetApprovalService()
        entries = TimeEntry.objects.for_day(owner, day).submitted()
        changed = 0
        for entry in entries:
            try:
                if action_id == "reject_timesheet_day":
                    service.reject(entry.pk, reviewer, f"Rejected from Slack by @{user_name}")
                elif reviewer.can_view_all_timesheets():
                    service.admin_approve(entry.pk, reviewer)
                else:
                    service.manager_approve(entry.pk, reviewer)
                changed += 1
            except TransitionNotAllowed:
                continue

        verb = "rejected" if action_id == "reject_timesheet_day" else "approved"
        return f"{changed} entr{'y' if changed == 1 else 'ies'} of {owner.get_full_name()} for {day} {verb} by @{user_name}"
