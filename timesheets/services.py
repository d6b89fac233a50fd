import logging

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from notifications.dispatch import (
    management_recipients,
    recipients_for,
    send_grouped_notification,
)
from notifications.realtime import broadcast
from notifications.slack_utils import SlackNotificationService
from pms.gateway import PMSGateway
from .exceptions import EntryNotFound, TransitionNotAllowed
from .models import TimeEntry

logger = logging.getLogger(__name__)


def entry_payload(entry):
    return {
        "id": entry.id,
        "employee_id": entry.employee.employee_id,
        "date": entry.date.isoformat(),
        "project_name": entry.project_name,
        "task_description": entry.task_description,
        "status": entry.status,
        "submitted": entry.submitted_at is not None,
    }


class TimesheetApprovalService:
    """
    Approval state machine for time entries.

    pending ──manager_approve──▶ manager_approved ──admin_approve──▶ approved
       │                               │
       └──────────── reject ───────────┴──▶ rejected

    Admins may approve straight from pending. Approved and rejected are
    terminal, except that re-approving or re-rejecting refreshes the
    approval metadata.
    """

    # target status -> statuses it can be reached from
    ALLOWED_FROM = {
        TimeEntry.STATUS_MANAGER_APPROVED: (TimeEntry.STATUS_PENDING,),
        TimeEntry.STATUS_APPROVED: (
            TimeEntry.STATUS_PENDING,
            TimeEntry.STATUS_MANAGER_APPROVED,
            TimeEntry.STATUS_APPROVED,
        ),
        TimeEntry.STATUS_REJECTED: (
            TimeEntry.STATUS_PENDING,
            TimeEntry.STATUS_MANAGER_APPROVED,
            TimeEntry.STATUS_REJECTED,
        ),
    }

    STATUS_LABELS = dict(TimeEntry.STATUS_CHOICES)

    def __init__(self, gateway=None):
        self.gateway = gateway or PMSGateway()

    def _locked_entry(self, entry_id):
        try:
            return TimeEntry.objects.select_for_update().select_related('employee').get(pk=entry_id)
        except (TimeEntry.DoesNotExist, ValueError):
            raise EntryNotFound(f"Time entry {entry_id} not found.")

    def _transition(self, entry_id, target, apply):
        with transaction.atomic():
            entry = self._locked_entry(entry_id)
            if entry.submitted_at is None:
                raise TransitionNotAllowed(detail=f"Time entry {entry.pk} is a draft and has not been submitted.")
            if entry.status not in self.ALLOWED_FROM[target]:
                raise TransitionNotAllowed(entry, self.STATUS_LABELS[target])
            now = timezone.now()
            entry.status = target
            update_fields = ['status', 'updated_at'] + apply(entry, now)
            entry.save(update_fields=update_fields)

        logger.info(f"Time entry {entry.id} of {entry.employee.employee_id} is now {target}")
        self._notify_if_day_complete(entry)
        broadcast('time_entry_updated', entry_payload(entry))
        return entry

    def manager_approve(self, entry_id, manager):
        def apply(entry, now):
            entry.manager_approved_by = manager
            entry.manager_approved_at = now
            return ['manager_approved_by', 'manager_approved_at']

        return self._transition(entry_id, TimeEntry.STATUS_MANAGER_APPROVED, apply)

    def admin_approve(self, entry_id, admin):
        def apply(entry, now):
            entry.approved_by = admin
            entry.approved_at = now
            return ['approved_by', 'approved_at']

        entry = self._transition(entry_id, TimeEntry.STATUS_APPROVED, apply)
        transaction.on_commit(lambda: self.sync_to_pms(entry))
        return entry

    def reject(self, entry_id, approver, reason):
        reason = (reason or '').strip()
        if not reason:
            raise ValidationError({"reason": ["A reason is required to reject a time entry."]})

        def apply(entry, now):
            entry.rejected_by = approver
            entry.rejected_at = now
            entry.rejection_reason = reason
            return ['rejected_by', 'rejected_at', 'rejection_reason']

        return self._transition(entry_id, TimeEntry.STATUS_REJECTED, apply)

    def _notify_if_day_complete(self, entry):
        """One notification per employee/day, once every entry shares the new status."""
        try:
            day_entries = TimeEntry.objects.entries_for_day(entry.employee, entry.date)
            if not day_entries or any(e.status != entry.status for e in day_entries):
                return False
            recipients = recipients_for(
                entry.employee,
                entry.employee.reporting_manager if entry.status == TimeEntry.STATUS_MANAGER_APPROVED else None,
            )
            return send_grouped_notification(
                recipients,
                self.STATUS_LABELS[entry.status].lower(),
                day_entries,
                employee=entry.employee,
                day=entry.date,
                note=f"Reason: {entry.rejection_reason}" if entry.status == TimeEntry.STATUS_REJECTED else None,
            )
        except Exception as e:
            logger.error(f"Error notifying {entry.status} timesheet of {entry.employee} on {entry.date}: {e}")
            return False

    def sync_to_pms(self, entry):
        """Push progress of a finally approved entry back to the PMS"""
        if entry.project_code:
            self.gateway.set_project_progress(entry.project_code, entry.percentage_complete)
        if entry.external_task_id and entry.percentage_complete >= 100:
            self.gateway.set_task_status(entry.external_task_id, 'Completed')


class SubmissionGate:
    """
    Moves a day's drafts into review.

    Outstanding PMS deadlines only produce a warning: submission is never
    blocked, whatever the blocking setting says.
    """

    def __init__(self, reconciler=None):
        if reconciler is None:
            from deadlines.services import DeadlineReconciler
            reconciler = DeadlineReconciler()
        self.reconciler = reconciler

    @staticmethod
    def can_submit(employee, day):
        return TimeEntry.objects.for_day(employee, day).drafts().exists()

    def submit_day(self, employee, day):
        with transaction.atomic():
            drafts = TimeEntry.objects.select_for_update().for_day(employee, day).drafts()
            entries = list(drafts)
            if not entries:
                raise ValidationError({"date": [f"No draft entries to submit for {day}."]})
            now = timezone.now()
            TimeEntry.objects.filter(pk__in=[e.pk for e in entries]).update(submitted_at=now)
            for entry in entries:
                entry.submitted_at = now

        pending = self.reconciler.compute_pending(employee, day)
        outstanding = [item for item in pending if not item.acknowledged]
        warning = None
        if outstanding:
            names = ", ".join(item.task_name for item in outstanding)
            warning = f"{len(outstanding)} task(s) due today have no time entry: {names}"
            logger.info(f"{employee.employee_id} submitted {day} with outstanding deadlines: {names}")

        transaction.on_commit(lambda: self._after_submit(employee, day, entries))
        return {
            "entries": entries,
            "pending_deadlines": pending,
            "warning": warning,
        }

    @staticmethod
    def _after_submit(employee, day, entries):
        recipients = recipients_for(employee, employee.reporting_manager) + management_recipients()
        send_grouped_notification(recipients, 'submitted', entries, employee=employee, day=day)
        try:
            SlackNotificationService.notify_management_day_submitted(employee, day, entries)
        except Exception as e:
            logger.error(f"Error posting submitted timesheet to Slack: {e}")
        broadcast('timesheet_submitted', {
            "employee_id": employee.employee_id,
            "date": day.isoformat(),
            "entry_ids": [entry.id for entry in entries],
        })
