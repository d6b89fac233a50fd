"""
dispatch.py

Grouped outbound notifications.

Callers hand over a recipient list and the entries a notification is
about; one email goes out per call, never one per entry. Failures are
logged and swallowed so a mail outage never undoes an approval.
"""
import logging

from django.conf import settings
from django.core.mail import send_mail

from employees.models import Employee
from .slack_utils import SlackNotificationService

logger = logging.getLogger(__name__)


def _unique(emails):
    seen = []
    for email in emails:
        email = (email or '').strip()
        if email and email.lower() not in [s.lower() for s in seen]:
            seen.append(email)
    return seen


def configured_recipients():
    """Extra addresses from TIMESHEET_NOTIFICATION_RECIPIENTS (comma separated)."""
    value = getattr(settings, 'TIMESHEET_NOTIFICATION_RECIPIENTS', '') or ''
    if isinstance(value, (list, tuple)):
        return _unique(value)
    return _unique(value.split(','))


def management_recipients():
    """Admin / HR employees plus the configured extra recipients."""
    emails = list(Employee.management_group().values_list('email', flat=True))
    return _unique(emails + configured_recipients())


def recipients_for(*employees, include_management=False):
    emails = [employee.email for employee in employees if employee is not None]
    if include_management:
        emails += management_recipients()
    else:
        emails += configured_recipients()
    return _unique(emails)


def _entry_line(entry):
    hours = f"{entry.total_hours}h" if entry.total_hours is not None else "-"
    return f"- {entry.project_name}: {entry.task_description} ({hours}, {entry.percentage_complete}%)"


def build_grouped_body(employee, day, status_label, entries, note=None):
    lines = [
        f"Hi {employee.first_name},",
        "",
        f"Timesheet for {day}: {len(entries)} entr{'y' if len(entries) == 1 else 'ies'} {status_label}.",
        "",
    ]
    lines.extend(_entry_line(entry) for entry in entries)
    if note:
        lines.extend(["", note])
    return "\n".join(lines)


def send_grouped_notification(recipients, status_label, entries, employee=None, day=None, note=None):
    """
    Send a single notification covering every entry of one employee/day.

    Returns True when the email was handed to the mail backend.
    """
    entries = list(entries)
    if not entries:
        return False

    employee = employee or entries[0].employee
    day = day or entries[0].date
    recipients = _unique(recipients)
    sent = False

    if recipients:
        try:
            subject = f"Timesheet {status_label}: {employee.get_full_name()} ({day})"
            body = build_grouped_body(employee, day, status_label, entries, note=note)
            sent = bool(send_mail(
                subject,
                body,
                settings.DEFAULT_FROM_EMAIL,
                recipients,
                fail_silently=False,
            ))
        except Exception as e:
            logger.error(f"Error sending grouped timesheet notification for {employee} on {day}: {e}")
    else:
        logger.warning(f"No recipients for {status_label} notification of {employee} on {day}")

    try:
        SlackNotificationService.notify_timesheet_status(employee, day, status_label, len(entries))
    except Exception as e:
        logger.error(f"Error sending Slack timesheet notification: {e}")

    return sent


def send_plain_notification(recipients, subject, message):
    """Best-effort single email; used for postponement escalations."""
    recipients = _unique(recipients)
    if not recipients:
        logger.warning(f"No recipients for notification '{subject}'")
        return False
    try:
        return bool(send_mail(subject, message, settings.DEFAULT_FROM_EMAIL, recipients, fail_silently=False))
    except Exception as e:
        logger.error(f"Error sending notification '{subject}': {e}")
        return False
