import tempfile
from datetime import date, time
from decimal import Decimal
from pathlib import Path

from django.contrib.auth.models import User
from django.core import mail
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework.exceptions import ValidationError
from rest_framework.test import APIClient

from deadlines.services import DeadlineReconciler
from employees.models import Employee
from pms.adapters import ExternalTask
from .exceptions import EntryNotFound, TransitionNotAllowed
from .models import TimeEntry
from .serializers import hours_between
from .services import SubmissionGate, TimesheetApprovalService

DAY = date(2025, 12, 24)


class StubGateway:
    """Stands in for the PMS: serves fixed tasks and records write-backs"""

    def __init__(self, tasks=()):
        self.tasks = list(tasks)
        self.progress = []
        self.statuses = []

    def list_tasks(self, project_id=None, department=None, role=None):
        return list(self.tasks)

    def set_project_progress(self, project_id, progress):
        self.progress.append((project_id, progress))
        return True

    def set_task_status(self, task_id, status):
        self.statuses.append((task_id, status))
        return True


def make_employee(code, role=Employee.ROLE_EMPLOYEE, manager=None, department='Software Developers'):
    user = User.objects.create_user(username=code.lower(), password='pass')
    return Employee.objects.create(
        employee_id=code,
        user=user,
        first_name=code.title(),
        last_name='Tester',
        email=f'{code.lower()}@example.com',
        role=role,
        department=department,
        reporting_manager=manager,
    )


def make_entry(employee, day=DAY, submitted=True, **fields):
    values = {
        'project_name': 'Website',
        'project_code': 'PRJ-1',
        'task_description': 'Build header',
        'total_hours': Decimal('2.00'),
    }
    values.update(fields)
    return TimeEntry.objects.create(
        employee=employee,
        date=day,
        submitted_at=timezone.now() if submitted else None,
        **values
    )


@override_settings(SLACK_BOT_TOKEN=None, TIMESHEET_NOTIFICATION_RECIPIENTS='')
class TimesheetTestCase(TestCase):

    def setUp(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.settings_override = override_settings(
            DEADLINE_SETTINGS_FILE=str(Path(tmp.name) / 'deadline_settings.json')
        )
        self.settings_override.enable()
        self.addCleanup(self.settings_override.disable)

        self.admin = make_employee('ADM001', role=Employee.ROLE_ADMIN)
        self.hr = make_employee('HR001', role=Employee.ROLE_HR)
        self.manager = make_employee('MGR001', role=Employee.ROLE_MANAGER)
        self.other_manager = make_employee('MGR002', role=Employee.ROLE_MANAGER)
        self.employee = make_employee('EMP001', manager=self.manager)
        self.gateway = StubGateway()
        self.service = TimesheetApprovalService(gateway=self.gateway)


class ApprovalStateMachineTest(TimesheetTestCase):

    def test_manager_then_admin_approval(self):
        entry = make_entry(self.employee)
        entry = self.service.manager_approve(entry.pk, self.manager)
        self.assertEqual(entry.status, TimeEntry.STATUS_MANAGER_APPROVED)
        self.assertEqual(entry.manager_approved_by, self.manager)
        self.assertIsNotNone(entry.manager_approved_at)

        entry = self.service.admin_approve(entry.pk, self.admin)
        self.assertEqual(entry.status, TimeEntry.STATUS_APPROVED)
        self.assertEqual(entry.approved_by, self.admin)

    def test_admin_may_approve_straight_from_pending(self):
        entry = make_entry(self.employee)
        entry = self.service.admin_approve(entry.pk, self.hr)
        self.assertEqual(entry.status, TimeEntry.STATUS_APPROVED)
        self.assertIsNone(entry.manager_approved_by)

    def test_manager_stage_only_from_pending(self):
        entry = make_entry(self.employee)
        self.service.admin_approve(entry.pk, self.admin)
        with self.assertRaises(TransitionNotAllowed):
            self.service.manager_approve(entry.pk, self.manager)
        entry.refresh_from_db()
        self.assertEqual(entry.status, TimeEntry.STATUS_APPROVED)

    def test_rejected_entry_cannot_be_approved(self):
        entry = make_entry(self.employee)
        self.service.reject(entry.pk, self.manager, "Wrong project")
        with self.assertRaises(TransitionNotAllowed):
            self.service.admin_approve(entry.pk, self.admin)

    def test_reject_twice_overwrites_reason(self):
        entry = make_entry(self.employee)
        self.service.reject(entry.pk, self.manager, "Hours look high")
        entry = self.service.reject(entry.pk, self.admin, "Split into two tasks")
        self.assertEqual(entry.status, TimeEntry.STATUS_REJECTED)
        self.assertEqual(entry.rejection_reason, "Split into two tasks")
        self.assertEqual(entry.rejected_by, self.admin)

    def test_reject_requires_reason(self):
        entry = make_entry(self.employee)
        with self.assertRaises(ValidationError):
            self.service.reject(entry.pk, self.manager, "   ")
        entry.refresh_from_db()
        self.assertEqual(entry.status, TimeEntry.STATUS_PENDING)

    def test_drafts_cannot_be_reviewed(self):
        draft = make_entry(self.employee, submitted=False)
        with self.assertRaises(TransitionNotAllowed):
            self.service.admin_approve(draft.pk, self.admin)
        with self.assertRaises(TransitionNotAllowed):
            self.service.manager_approve(draft.pk, self.manager)
        with self.assertRaises(TransitionNotAllowed):
            self.service.reject(draft.pk, self.manager, "Not yet")
        draft.refresh_from_db()
        self.assertEqual(draft.status, TimeEntry.STATUS_PENDING)
        self.assertIsNone(draft.approved_by)
        self.assertTrue(SubmissionGate.can_submit(self.employee, DAY))

    def test_unknown_entry(self):
        with self.assertRaises(EntryNotFound):
            self.service.manager_approve(999999, self.manager)


class GroupedNotificationTest(TimesheetTestCase):

    def test_one_notification_per_employee_day(self):
        entries = [
            make_entry(self.employee, task_description=f"Task {n}") for n in range(3)
        ]
        for entry in entries[:2]:
            self.service.admin_approve(entry.pk, self.admin)
            self.assertEqual(len(mail.outbox), 0)

        self.service.admin_approve(entries[2].pk, self.admin)
        self.assertEqual(len(mail.outbox), 1)
        message = mail.outbox[0]
        self.assertIn('approved', message.subject.lower())
        self.assertIn(self.employee.email, message.to)
        for n in range(3):
            self.assertIn(f"Task {n}", message.body)

    def test_manager_stage_notifies_manager(self):
        entry = make_entry(self.employee)
        self.service.manager_approve(entry.pk, self.manager)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(self.manager.email, mail.outbox[0].to)

    def test_rejection_mentions_reason(self):
        entry = make_entry(self.employee)
        self.service.reject(entry.pk, self.manager, "Missing details")
        self.assertIn("Missing details", mail.outbox[0].body)


class PMSWriteBackTest(TimesheetTestCase):

    def test_final_approval_pushes_progress_after_commit(self):
        entry = make_entry(self.employee, external_task_id='10', percentage_complete=100)
        with self.captureOnCommitCallbacks(execute=True):
            self.service.admin_approve(entry.pk, self.admin)
        self.assertEqual(self.gateway.progress, [('PRJ-1', 100)])
        self.assertEqual(self.gateway.statuses, [('10', 'Completed')])

    def test_partial_progress_leaves_task_status(self):
        entry = make_entry(self.employee, external_task_id='10', percentage_complete=40)
        with self.captureOnCommitCallbacks(execute=True):
            self.service.admin_approve(entry.pk, self.admin)
        self.assertEqual(self.gateway.progress, [('PRJ-1', 40)])
        self.assertEqual(self.gateway.statuses, [])

    def test_manager_stage_does_not_write_back(self):
        entry = make_entry(self.employee, percentage_complete=100)
        with self.captureOnCommitCallbacks(execute=True):
            self.service.manager_approve(entry.pk, self.manager)
        self.assertEqual(self.gateway.progress, [])


class SubmissionGateTest(TimesheetTestCase):

    def _gate(self, tasks=()):
        return SubmissionGate(reconciler=DeadlineReconciler(gateway=StubGateway(tasks)))

    def test_submits_drafts_with_deadline_warning(self):
        tasks = [
            ExternalTask(id='20', project_id='1', name='Write API docs', project_code='PRJ-1',
                         project_name='Website', due_date=DAY),
            ExternalTask(id='21', project_id='1', name='Fix footer', project_code='PRJ-1',
                         project_name='Website', due_date=DAY),
        ]
        make_entry(self.employee, submitted=False)
        make_entry(self.employee, submitted=False, task_description='Review PRs')

        with self.captureOnCommitCallbacks(execute=True):
            result = self._gate(tasks).submit_day(self.employee, DAY)

        self.assertEqual(len(result['entries']), 2)
        self.assertEqual(len(result['pending_deadlines']), 2)
        self.assertIn('2 task(s)', result['warning'])
        self.assertFalse(TimeEntry.objects.for_day(self.employee, DAY).drafts().exists())
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('submitted', mail.outbox[0].subject.lower())

    def test_no_warning_without_deadlines(self):
        make_entry(self.employee, submitted=False)
        result = self._gate().submit_day(self.employee, DAY)
        self.assertIsNone(result['warning'])

    def test_nothing_to_submit(self):
        make_entry(self.employee, submitted=True)
        self.assertFalse(SubmissionGate.can_submit(self.employee, DAY))
        with self.assertRaises(ValidationError):
            self._gate().submit_day(self.employee, DAY)


class HoursTest(SimpleTestCase):

    def test_hours_between(self):
        self.assertEqual(hours_between(time(9, 0), time(11, 30)), Decimal('2.50'))


class TimeEntryAPITest(TimesheetTestCase):

    def setUp(self):
        super().setUp()
        self.client = APIClient()

    def login(self, employee):
        self.client.force_authenticate(user=employee.user)

    def payload(self, **overrides):
        data = {
            'date': '2025-12-24',
            'project_name': 'Website',
            'project_code': 'PRJ-1',
            'task_description': 'Build header',
            'start_time': '09:00',
            'end_time': '11:30',
            'percentage_complete': 50,
        }
        data.update(overrides)
        return data

    def test_create_computes_hours(self):
        self.login(self.employee)
        response = self.client.post('/api/time-entries/', self.payload(), format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['error'], 0)
        self.assertEqual(response.data['data']['total_hours'], '2.50')
        self.assertTrue(response.data['data']['is_draft'])

    def test_duplicate_create_returns_existing_entry(self):
        self.login(self.employee)
        first = self.client.post('/api/time-entries/', self.payload(), format='json')
        second = self.client.post('/api/time-entries/', self.payload(), format='json')
        self.assertEqual(second.status_code, 200)
        self.assertEqual(second.data['data']['id'], first.data['data']['id'])
        self.assertEqual(TimeEntry.objects.filter(employee=self.employee).count(), 1)

    def test_end_before_start_is_rejected(self):
        self.login(self.employee)
        response = self.client.post(
            '/api/time-entries/', self.payload(start_time='12:00', end_time='11:00'), format='json'
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn('end_time', response.data['errors'])

    def test_only_pending_entries_can_change(self):
        entry = make_entry(self.employee)
        self.login(self.employee)
        response = self.client.patch(f'/api/time-entries/{entry.pk}/', {'percentage_complete': 80}, format='json')
        self.assertEqual(response.status_code, 200)

        self.service.admin_approve(entry.pk, self.admin)
        response = self.client.patch(f'/api/time-entries/{entry.pk}/', {'percentage_complete': 90}, format='json')
        self.assertEqual(response.status_code, 409)
        response = self.client.delete(f'/api/time-entries/{entry.pk}/')
        self.assertEqual(response.status_code, 409)
        self.assertTrue(TimeEntry.objects.filter(pk=entry.pk).exists())

    def test_manager_cannot_edit_reportee_entry(self):
        entry = make_entry(self.employee)
        self.login(self.manager)
        response = self.client.patch(f'/api/time-entries/{entry.pk}/', {'percentage_complete': 80}, format='json')
        self.assertEqual(response.status_code, 403)

    def test_list_scoping(self):
        make_entry(self.employee)
        make_entry(self.other_manager)
        self.login(self.employee)
        self.assertEqual(self.client.get('/api/time-entries/').data['count'], 1)
        self.login(self.manager)
        self.assertEqual(self.client.get('/api/time-entries/').data['count'], 1)
        self.login(self.hr)
        self.assertEqual(self.client.get('/api/time-entries/').data['count'], 2)

    def test_manager_approves_reportee(self):
        entry = make_entry(self.employee)
        self.login(self.manager)
        response = self.client.patch(f'/api/time-entries/{entry.pk}/manager-approve/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['data']['status'], TimeEntry.STATUS_MANAGER_APPROVED)

    def test_manager_cannot_approve_other_team(self):
        entry = make_entry(self.employee)
        self.login(self.other_manager)
        response = self.client.patch(f'/api/time-entries/{entry.pk}/manager-approve/')
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.data['error'], 1)

    def test_final_approval_is_management_only(self):
        entry = make_entry(self.employee)
        self.login(self.manager)
        self.assertEqual(self.client.patch(f'/api/time-entries/{entry.pk}/approve/').status_code, 403)
        self.login(self.hr)
        self.assertEqual(self.client.patch(f'/api/time-entries/{entry.pk}/approve/').status_code, 200)

    def test_invalid_transition_is_conflict(self):
        entry = make_entry(self.employee)
        self.service.admin_approve(entry.pk, self.admin)
        self.login(self.manager)
        response = self.client.patch(f'/api/time-entries/{entry.pk}/manager-approve/')
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data['error'], 1)

    def test_reject_needs_reason(self):
        entry = make_entry(self.employee)
        self.login(self.manager)
        response = self.client.patch(f'/api/time-entries/{entry.pk}/reject/', {}, format='json')
        self.assertEqual(response.status_code, 400)
        response = self.client.patch(
            f'/api/time-entries/{entry.pk}/reject/', {'reason': 'Too vague'}, format='json'
        )
        self.assertEqual(response.data['data']['rejection_reason'], 'Too vague')

    def test_approving_a_draft_is_conflict(self):
        draft = make_entry(self.employee, submitted=False)
        self.login(self.hr)
        response = self.client.patch(f'/api/time-entries/{draft.pk}/approve/')
        self.assertEqual(response.status_code, 409)
        self.assertIn('draft', response.data['message'])

    def test_missing_entry_is_not_found(self):
        self.login(self.hr)
        response = self.client.patch('/api/time-entries/999999/approve/')
        self.assertEqual(response.status_code, 404)

    def test_pending_queue(self):
        make_entry(self.employee)
        make_entry(self.employee, submitted=False, task_description='Draft')
        make_entry(self.other_manager)
        self.login(self.manager)
        response = self.client.get('/api/time-entries/pending/')
        self.assertEqual(len(response.data['data']), 1)
        self.login(self.admin)
        response = self.client.get('/api/time-entries/pending/')
        self.assertEqual(len(response.data['data']), 2)

    def test_submission_status_and_submit(self):
        make_entry(self.employee, submitted=False)
        self.login(self.employee)
        response = self.client.get('/api/time-entries/submission-status/', {'date': '2025-12-24'})
        self.assertTrue(response.data['data']['can_submit'])
        self.assertEqual(response.data['data']['draft_count'], 1)

        response = self.client.post('/api/time-entries/submit-day/', {'date': '2025-12-24'}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data['data']['entries']), 1)

        response = self.client.get('/api/time-entries/submission-status/', {'date': '2025-12-24'})
        self.assertFalse(response.data['data']['can_submit'])

    def test_submission_status_bad_date(self):
        self.login(self.employee)
        response = self.client.get('/api/time-entries/submission-status/', {'date': '24/12/2025'})
        self.assertEqual(response.status_code, 400)
