import logging
from dataclasses import asdict, dataclass
from datetime import datetime, time, timedelta

from django.db import IntegrityError, transaction
from django.db.models import Count
from django.utils.dateparse import parse_date
from rest_framework.exceptions import ValidationError

from notifications.dispatch import management_recipients, send_plain_notification
from notifications.realtime import broadcast
from notifications.slack_utils import SlackNotificationService
from pms.gateway import PMSGateway
from timesheets.models import TimeEntry
from .dates import business_localdate, business_timezone, local_day, local_day_key
from .models import Postponement, TaskAcknowledgement
from .settings_store import load_blocking_setting

logger = logging.getLogger(__name__)


def _norm(value):
    return ' '.join(str(value or '').lower().split())


@dataclass(frozen=True)
class PendingDeadline:
    task_id: str
    task_name: str
    project_id: str
    project_code: str
    project_name: str
    due_date: str
    status: str
    assignee: str
    assigned_to_employee: bool
    blocking_enabled: bool
    acknowledged: bool
    postponement_count: int

    def to_dict(self):
        return asdict(self)


class DeadlineReconciler:
    """
    Works out which PMS tasks are due on a day but have no local time entry.

    The assignment, blocking and acknowledgement flags are attached for the
    caller to display; none of them removes a task from the result.
    """

    def __init__(self, gateway=None):
        self.gateway = gateway or PMSGateway()

    @staticmethod
    def _represented(entries):
        task_ids = set()
        keys = set()
        for entry in entries:
            if 'external_task_id' not in entry.get_deferred_fields() and entry.external_task_id:
                task_ids.add(str(entry.external_task_id))
            title = _norm(entry.task_description)
            for project in (entry.project_name, entry.project_code):
                if _norm(project):
                    keys.add((_norm(project), title))
        return task_ids, keys

    @staticmethod
    def _is_assigned(task, employee):
        identities = {
            _norm(employee.employee_id),
            _norm(employee.email),
            _norm(employee.get_full_name()),
        }
        identities.discard('')
        people = {_norm(task.assignee)} | {_norm(member) for member in task.members}
        return bool(identities & people)

    @staticmethod
    def _acknowledged_task_ids(employee, day):
        tz = business_timezone()
        start = datetime.combine(day, time.min, tzinfo=tz)
        return set(
            TaskAcknowledgement.objects.filter(
                actor=employee,
                created_at__gte=start,
                created_at__lt=start + timedelta(days=1),
            ).values_list('task_id', flat=True)
        )

    def compute_pending(self, employee, day=None):
        day = day or business_localdate()
        day_key = local_day_key(day)

        tasks = self.gateway.list_tasks(department=employee.department, role=employee.role)
        due_today = [
            task for task in tasks
            if local_day_key(task.due_date) == day_key and not task.completed
        ]
        if not due_today:
            return []

        task_ids, keys = self._represented(TimeEntry.objects.entries_for_day(employee, day))
        blocking = load_blocking_setting()
        acknowledged = self._acknowledged_task_ids(employee, day)
        counts = dict(
            Postponement.objects.filter(task_id__in=[task.id for task in due_today])
            .order_by()
            .values_list('task_id')
            .annotate(total=Count('id'))
        )

        pending = []
        seen = set()
        for task in due_today:
            if task.id in seen or task.id in task_ids:
                continue
            title = _norm(task.name)
            if (_norm(task.project_name), title) in keys or (_norm(task.project_code), title) in keys:
                continue
            seen.add(task.id)
            pending.append(PendingDeadline(
                task_id=task.id,
                task_name=task.name,
                project_id=task.project_id,
                project_code=task.project_code,
                project_name=task.project_name,
                due_date=day_key,
                status=task.status,
                assignee=task.assignee,
                assigned_to_employee=self._is_assigned(task, employee),
                blocking_enabled=blocking,
                acknowledged=task.id in acknowledged,
                postponement_count=counts.get(task.id, 0),
            ))
        return pending


class PostponementLedger:
    """Append-only record of postponements and acknowledgements"""

    max_attempts = 5

    def __init__(self, gateway=None):
        self.gateway = gateway or PMSGateway()

    @staticmethod
    def _parse_day(field, value, errors):
        if value in (None, ''):
            return None
        if hasattr(value, 'isoformat') and not isinstance(value, str):
            return local_day(value)
        parsed = parse_date(str(value))
        if parsed is None:
            errors[field] = ["Enter a valid date in YYYY-MM-DD format."]
        return parsed

    def postpone(self, task_id, new_due_date, reason, actor, previous_due_date=None, project_code=''):
        errors = {}
        if not str(task_id or '').strip():
            errors['task_id'] = ["This field is required."]
        if not str(reason or '').strip():
            errors['reason'] = ["This field is required."]
        if not new_due_date:
            errors['new_due_date'] = ["This field is required."]
        if actor is None:
            errors['actor'] = ["An employee profile is required to postpone a task."]
        new_day = self._parse_day('new_due_date', new_due_date, errors)
        previous_day = self._parse_day('previous_due_date', previous_due_date, errors)
        if errors:
            raise ValidationError(errors)

        task_id = str(task_id).strip()
        if previous_day is None or not project_code:
            task = self.gateway.get_task(task_id)
            if task is not None:
                previous_day = previous_day or local_day(task.due_date)
                project_code = project_code or task.project_code

        for attempt in range(self.max_attempts):
            try:
                with transaction.atomic():
                    sequence = Postponement.objects.filter(task_id=task_id).count() + 1
                    record = Postponement.objects.create(
                        task_id=task_id,
                        project_code=project_code or '',
                        previous_due_date=previous_day,
                        new_due_date=new_day,
                        reason=str(reason).strip(),
                        actor=actor,
                        sequence=sequence,
                    )
                break
            except IntegrityError:
                # Another postponement of the same task took this sequence number
                if attempt == self.max_attempts - 1:
                    raise
                logger.warning(f"Postponement sequence clash on task {task_id}, retrying")

        transaction.on_commit(lambda: self._after_postpone(record))
        return record

    def _after_postpone(self, record):
        self.gateway.set_task_due_date(record.task_id, record.new_due_date)

        actor = record.actor
        subject = f"Task {record.task_id} postponed to {record.new_due_date}"
        message = "\n".join([
            f"{actor.get_full_name()} ({actor.employee_id}) postponed a task.",
            "",
            f"Task: {record.task_id}",
            f"Project: {record.project_code or 'N/A'}",
            f"Previous due date: {record.previous_due_date or 'N/A'}",
            f"New due date: {record.new_due_date}",
            f"Reason: {record.reason}",
            f"Postponement number: {record.sequence}",
        ])
        send_plain_notification(management_recipients() + [actor.email], subject, message)
        try:
            SlackNotificationService.notify_task_postponed(record)
        except Exception as e:
            logger.error(f"Error sending Slack postponement notification: {e}")

        broadcast('task_postponed', postponement_payload(record))

    def acknowledge(self, task_id, actor, project_code=''):
        errors = {}
        if not str(task_id or '').strip():
            errors['task_id'] = ["This field is required."]
        if actor is None:
            errors['actor'] = ["An employee profile is required to acknowledge a task."]
        if errors:
            raise ValidationError(errors)

        record = TaskAcknowledgement.objects.create(
            task_id=str(task_id).strip(),
            project_code=project_code or '',
            actor=actor,
        )
        transaction.on_commit(lambda: broadcast('task_acknowledged', {
            "task_id": record.task_id,
            "project_code": record.project_code,
            "employee_id": actor.employee_id,
        }))
        return record

    @staticmethod
    def history(task_id):
        return Postponement.objects.filter(task_id=str(task_id)).select_related('actor').order_by('sequence')


def postponement_payload(record):
    return {
        "id": record.id,
        "task_id": record.task_id,
        "project_code": record.project_code,
        "previous_due_date": record.previous_due_date.isoformat() if record.previous_due_date else None,
        "new_due_date": record.new_due_date.isoformat(),
        "reason": record.reason,
        "sequence": record.sequence,
        "employee_id": record.actor.employee_id if record.actor else None,
    }
