import json
import tempfile
from datetime import date, datetime, timezone as dt_timezone
from pathlib import Path

from django.contrib.auth.models import User
from django.core import mail
from django.test import SimpleTestCase, TestCase, override_settings
from rest_framework.exceptions import ValidationError
from rest_framework.test import APIClient

from employees.models import Employee
from pms import schema as pms_schema
from pms.gateway import PMSGateway
from pms.testing import add_project, add_task, create_pms_tables, fetch_value
from timesheets.models import TimeEntry
from .dates import business_localdate, local_day, local_day_key, parse_day
from .models import AppendOnlyError, Postponement, TaskAcknowledgement
from .services import DeadlineReconciler, PostponementLedger
from .settings_store import load_blocking_setting, load_settings, save_blocking_setting

DAY = date(2025, 12, 24)


def make_employee(code, role=Employee.ROLE_EMPLOYEE, department='Software Developers'):
    user = User.objects.create_user(username=code.lower(), password='pass')
    return Employee.objects.create(
        employee_id=code,
        user=user,
        first_name=code.title(),
        email=f'{code.lower()}@example.com',
        role=role,
        department=department,
    )


class DatesTest(SimpleTestCase):

    @override_settings(BUSINESS_TIMEZONE='Asia/Kolkata')
    def test_aware_datetimes_use_business_day(self):
        late_evening_utc = datetime(2024, 5, 1, 20, 0, tzinfo=dt_timezone.utc)
        self.assertEqual(local_day(late_evening_utc), date(2024, 5, 2))

    def test_naive_datetimes_and_dates_are_local(self):
        self.assertEqual(local_day(datetime(2024, 5, 1, 23, 59)), date(2024, 5, 1))
        self.assertEqual(local_day_key(date(2024, 5, 1)), '2024-05-01')
        self.assertEqual(local_day_key(None), '')

    def test_parse_day(self):
        self.assertEqual(parse_day('2025-12-24'), DAY)
        self.assertIsNone(parse_day('2025-13-01'))
        self.assertIsNone(parse_day('tomorrow'))
        self.assertIsNone(parse_day(''))


class SettingsFileMixin:

    def use_settings_file(self):
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        path = Path(tmp.name) / 'settings' / 'deadlines.json'
        override = override_settings(DEADLINE_SETTINGS_FILE=str(path))
        override.enable()
        self.addCleanup(override.disable)
        return path


class BlockingSettingStoreTest(SettingsFileMixin, SimpleTestCase):

    def test_defaults_when_file_missing(self):
        self.use_settings_file()
        self.assertFalse(load_blocking_setting())

    def test_round_trip_keeps_other_keys(self):
        path = self.use_settings_file()
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({'reminder_hour': 17}))
        self.assertTrue(save_blocking_setting(True))
        self.assertTrue(load_blocking_setting())
        self.assertEqual(load_settings()['reminder_hour'], 17)

    def test_corrupt_file_falls_back_to_defaults(self):
        path = self.use_settings_file()
        path.parent.mkdir(parents=True)
        path.write_text('{not json')
        self.assertFalse(load_blocking_setting())


@override_settings(SLACK_BOT_TOKEN=None, TIMESHEET_NOTIFICATION_RECIPIENTS='', BUSINESS_TIMEZONE='Asia/Kolkata')
class DeadlineTestCase(SettingsFileMixin, TestCase):
    databases = {'default', 'pms'}

    def setUp(self):
        self.use_settings_file()
        pms_schema.reset()
        self.addCleanup(pms_schema.reset)
        create_pms_tables()
        add_project(1, 'Website', 'PRJ-1', departments=['software'])
        add_project(2, 'Ledger', 'PRJ-2', department='Finance')
        self.employee = make_employee('EMP001')
        self.hr = make_employee('HR001', role=Employee.ROLE_HR, department='HR')
        self.gateway = PMSGateway()


class DeadlineReconcilerTest(DeadlineTestCase):

    def pending_ids(self, day=DAY):
        return [item.task_id for item in DeadlineReconciler(self.gateway).compute_pending(self.employee, day)]

    def test_due_task_without_entry_is_pending_until_logged(self):
        add_task(10, 1, 'Build header', end_date='2025-12-24')
        self.assertEqual(self.pending_ids(), ['10'])

        TimeEntry.objects.create(
            employee=self.employee, date=DAY, project_name='Website',
            task_description='Something else', external_task_id='10',
        )
        self.assertEqual(self.pending_ids(), [])

    def test_project_and_title_fallback(self):
        add_task(10, 1, 'Build header', end_date='2025-12-24')
        TimeEntry.objects.create(
            employee=self.employee, date=DAY, project_name='PRJ-1', task_description='  build   HEADER ',
        )
        self.assertEqual(self.pending_ids(), [])

    def test_entry_on_another_day_does_not_count(self):
        add_task(10, 1, 'Build header', end_date='2025-12-24')
        TimeEntry.objects.create(
            employee=self.employee, date=date(2025, 12, 23), project_name='Website',
            task_description='Build header', external_task_id='10',
        )
        self.assertEqual(self.pending_ids(), ['10'])

    def test_only_open_tasks_due_that_day(self):
        add_task(10, 1, 'Due today', end_date='2025-12-24')
        add_task(11, 1, 'Done already', end_date='2025-12-24', status='Completed')
        add_task(12, 1, 'Due tomorrow', end_date='2025-12-25')
        add_task(13, 1, 'No deadline')
        self.assertEqual(self.pending_ids(), ['10'])

    def test_only_completed_status_closes_a_task(self):
        add_task(20, 1, 'Marked done', end_date='2025-12-24', status='Done')
        add_task(21, 1, 'Marked closed', end_date='2025-12-24', status='Closed')
        add_task(22, 1, 'Marked completed', end_date='2025-12-24', status='COMPLETED')
        self.assertEqual(sorted(self.pending_ids()), ['20', '21'])

    def test_project_tagged_with_json_array(self):
        add_project(3, 'Portal', 'PRJ-3', department='["Finance", "Software Developers"]')
        add_task(30, 3, 'Portal login', end_date='2025-12-24')
        self.assertEqual(self.pending_ids(), ['30'])

    def test_due_timestamp_is_read_in_business_timezone(self):
        add_task(10, 1, 'Late UTC deadline', end_date='2025-12-23T20:00:00+00:00')
        self.assertEqual(self.pending_ids(DAY), ['10'])
        self.assertEqual(self.pending_ids(date(2025, 12, 23)), [])

    def test_other_department_projects_are_ignored(self):
        add_task(20, 2, 'Close books', end_date='2025-12-24')
        self.assertEqual(self.pending_ids(), [])

    def test_flags_are_attached_but_never_filter(self):
        add_task(10, 1, 'Mine', end_date='2025-12-24', assignee='EMP001')
        add_task(11, 1, 'Team', end_date='2025-12-24', members='EMP002, EMP003')
        save_blocking_setting(True)

        pending = {item.task_id: item for item in DeadlineReconciler(self.gateway).compute_pending(self.employee, DAY)}
        self.assertEqual(set(pending), {'10', '11'})
        self.assertTrue(pending['10'].assigned_to_employee)
        self.assertFalse(pending['11'].assigned_to_employee)
        self.assertTrue(pending['11'].blocking_enabled)
        self.assertEqual(pending['10'].project_code, 'PRJ-1')

    def test_acknowledged_today_is_flagged(self):
        today = business_localdate()
        add_task(10, 1, 'Overdue', end_date=today.isoformat())
        PostponementLedger(self.gateway).acknowledge('10', self.employee, 'PRJ-1')
        pending = DeadlineReconciler(self.gateway).compute_pending(self.employee, today)
        self.assertEqual(len(pending), 1)
        self.assertTrue(pending[0].acknowledged)

    def test_postponement_count(self):
        add_task(10, 1, 'Slipping', end_date='2025-12-24')
        Postponement.objects.create(task_id='10', new_due_date=DAY, reason='Blocked', actor=self.employee, sequence=1)
        pending = DeadlineReconciler(self.gateway).compute_pending(self.employee, DAY)
        self.assertEqual(pending[0].postponement_count, 1)

    def test_unreachable_pms_means_nothing_pending(self):
        class DownGateway:
            def list_tasks(self, **kwargs):
                return []

        self.assertEqual(DeadlineReconciler(DownGateway()).compute_pending(self.employee, DAY), [])


class PostponementLedgerTest(DeadlineTestCase):

    def setUp(self):
        super().setUp()
        add_task(10, 1, 'Build header', end_date='2025-12-24')
        self.ledger = PostponementLedger(self.gateway)

    def test_sequence_increments_per_task(self):
        first = self.ledger.postpone('10', '2025-12-26', 'Waiting on design', self.employee)
        second = self.ledger.postpone('10', '2025-12-30', 'Client review', self.employee)
        other = self.ledger.postpone('11', '2025-12-30', 'Different task', self.employee)
        self.assertEqual((first.sequence, second.sequence, other.sequence), (1, 2, 1))
        self.assertEqual([p.sequence for p in PostponementLedger.history('10')], [1, 2])

    def test_previous_due_date_and_project_come_from_pms(self):
        record = self.ledger.postpone('10', '2025-12-26', 'Waiting on design', self.employee)
        self.assertEqual(record.previous_due_date, DAY)
        self.assertEqual(record.project_code, 'PRJ-1')

    def test_missing_fields_are_named(self):
        with self.assertRaises(ValidationError) as ctx:
            self.ledger.postpone('10', None, '  ', self.employee)
        self.assertEqual(set(ctx.exception.detail), {'new_due_date', 'reason'})
        self.assertFalse(Postponement.objects.exists())

    def test_bad_date_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            self.ledger.postpone('10', '30/12/2025', 'Reason', self.employee)
        self.assertIn('new_due_date', ctx.exception.detail)

    def test_pms_and_people_hear_about_it_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            self.ledger.postpone('10', '2025-12-30', 'Client review', self.employee)
        self.assertEqual(fetch_value("SELECT end_date FROM project_tasks WHERE id = %s", [10]), '2025-12-30')
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn(self.hr.email, mail.outbox[0].to)
        self.assertIn(self.employee.email, mail.outbox[0].to)
        self.assertIn('Client review', mail.outbox[0].body)

    def test_ledger_rows_are_append_only(self):
        record = self.ledger.postpone('10', '2025-12-26', 'Waiting on design', self.employee)
        record.reason = 'Rewritten'
        with self.assertRaises(AppendOnlyError):
            record.save()
        with self.assertRaises(AppendOnlyError):
            record.delete()
        with self.assertRaises(AppendOnlyError):
            Postponement.objects.filter(task_id='10').update(reason='Rewritten')
        with self.assertRaises(AppendOnlyError):
            Postponement.objects.all().delete()
        self.assertEqual(Postponement.objects.get().reason, 'Waiting on design')

    def test_acknowledge(self):
        record = self.ledger.acknowledge('10', self.employee, 'PRJ-1')
        self.assertEqual(TaskAcknowledgement.objects.get().pk, record.pk)
        with self.assertRaises(ValidationError):
            self.ledger.acknowledge('', self.employee)


class DeadlineAPITest(DeadlineTestCase):

    def setUp(self):
        super().setUp()
        add_task(10, 1, 'Build header', end_date='2025-12-24')
        self.client = APIClient()

    def test_pending_for_self(self):
        self.client.force_authenticate(user=self.employee.user)
        response = self.client.get('/api/deadlines/pending/', {'date': '2025-12-24'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([t['task_id'] for t in response.data['data']['tasks']], ['10'])

    def test_pending_bad_date(self):
        self.client.force_authenticate(user=self.employee.user)
        response = self.client.get('/api/deadlines/pending/', {'date': 'yesterday'})
        self.assertEqual(response.status_code, 400)

    def test_pending_for_others_is_management_only(self):
        other = make_employee('EMP002')
        self.client.force_authenticate(user=other.user)
        response = self.client.get('/api/deadlines/pending/', {'date': '2025-12-24', 'userid': self.employee.pk})
        self.assertEqual(response.status_code, 403)

        self.client.force_authenticate(user=self.hr.user)
        response = self.client.get('/api/deadlines/pending/', {'date': '2025-12-24', 'userid': self.employee.pk})
        self.assertEqual(response.data['data']['employee_id'], 'EMP001')
        self.assertEqual(len(response.data['data']['tasks']), 1)

    def test_postpone_endpoint(self):
        self.client.force_authenticate(user=self.employee.user)
        response = self.client.post(
            '/api/deadlines/tasks/10/postpone/',
            {'new_due_date': '2025-12-27', 'reason': 'Blocked by API'},
            format='json',
        )
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['data']['sequence'], 1)

        response = self.client.get('/api/deadlines/tasks/10/postponements/')
        self.assertEqual(len(response.data['data']), 1)

    def test_postpone_without_reason(self):
        self.client.force_authenticate(user=self.employee.user)
        response = self.client.post(
            '/api/deadlines/tasks/10/postpone/', {'new_due_date': '2025-12-27'}, format='json'
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 1)
        self.assertIn('reason', response.data['errors'])

    def test_acknowledge_endpoint(self):
        self.client.force_authenticate(user=self.employee.user)
        response = self.client.post('/api/deadlines/tasks/10/acknowledge/', {}, format='json')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(TaskAcknowledgement.objects.count(), 1)

    def test_blocking_setting(self):
        self.client.force_authenticate(user=self.employee.user)
        self.assertFalse(self.client.get('/api/deadlines/settings/blocking/').data['data']['blocking_enabled'])
        response = self.client.put('/api/deadlines/settings/blocking/', {'blocking_enabled': True}, format='json')
        self.assertEqual(response.status_code, 403)

        self.client.force_authenticate(user=self.hr.user)
        response = self.client.put('/api/deadlines/settings/blocking/', {'blocking_enabled': True}, format='json')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(load_blocking_setting())
