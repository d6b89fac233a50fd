import json
from datetime import date
from unittest import mock

from django.contrib.auth.models import User
from django.core import mail
from django.core.signals import request_finished
from django.db import close_old_connections
from django.test import SimpleTestCase, TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient, APIRequestFactory, force_authenticate

from employees.models import Employee
from timesheets.models import TimeEntry
from .dispatch import (
    configured_recipients,
    management_recipients,
    recipients_for,
    send_grouped_notification,
    send_plain_notification,
)
from .realtime import ConnectionRegistry, get_registry
from .slack_utils import SlackNotificationService
from .views import EventStreamView, SlackInteractionsView

DAY = date(2025, 12, 24)


def make_employee(code, role=Employee.ROLE_EMPLOYEE, manager=None, slack_user_id=None):
    user = User.objects.create_user(username=code.lower(), password='pass')
    return Employee.objects.create(
        employee_id=code,
        user=user,
        first_name=code.title(),
        email=f'{code.lower()}@example.com',
        role=role,
        reporting_manager=manager,
        slack_user_id=slack_user_id,
    )


class ConnectionRegistryTest(SimpleTestCase):

    def test_broadcast_reaches_every_observer(self):
        registry = ConnectionRegistry()
        received = []
        registry.add(received.append)
        registry.add(lambda message: received.append(message['type']))

        self.assertEqual(registry.broadcast('time_entry_updated', {'id': 1}), 2)
        self.assertIn('time_entry_updated', received)
        message = next(item for item in received if isinstance(item, dict))
        self.assertEqual(message['data'], {'id': 1})
        self.assertIn('sent_at', message)

    def test_failing_observer_is_dropped(self):
        registry = ConnectionRegistry()

        def broken(message):
            raise ConnectionResetError("client went away")

        registry.add(broken)
        registry.add(lambda message: None)
        self.assertEqual(registry.broadcast('ping'), 1)
        self.assertEqual(len(registry), 1)

    def test_remove(self):
        registry = ConnectionRegistry()
        observer = mock.Mock()
        registry.add(observer)
        registry.remove(observer)
        registry.remove(observer)
        self.assertEqual(registry.broadcast('ping'), 0)
        observer.assert_not_called()

    def test_app_owns_a_registry(self):
        self.assertIsInstance(get_registry(), ConnectionRegistry)


class EventStreamTest(TestCase):

    def test_stream_registers_observer_for_its_lifetime(self):
        registry = get_registry()
        before = len(registry)

        request = APIRequestFactory().get('/api/events/')
        force_authenticate(request, user=User(username='viewer'))
        response = EventStreamView.as_view()(request)
        self.assertEqual(response['Content-Type'], 'text/event-stream')
        stream = iter(response.streaming_content)
        self.assertIn(b'retry', next(stream))
        self.assertEqual(len(registry), before + 1)

        registry.broadcast('task_postponed', {'task_id': '10'})
        chunk = next(stream).decode()
        self.assertTrue(chunk.startswith('event: task_postponed'))
        self.assertEqual(json.loads(chunk.split('data: ', 1)[1])['data'], {'task_id': '10'})

        # Closing fires request_finished, which must not close the test connection
        request_finished.disconnect(close_old_connections)
        try:
            response.close()
        finally:
            request_finished.connect(close_old_connections)
        self.assertEqual(len(registry), before)

    def test_slow_client_stream_ends_when_dropped(self):
        class TinyQueueStream(EventStreamView):
            queue_size = 1
            heartbeat_seconds = 0.01

        registry = get_registry()
        before = len(registry)

        request = APIRequestFactory().get('/api/events/')
        force_authenticate(request, user=User(username='viewer'))
        stream = iter(TinyQueueStream.as_view()(request).streaming_content)
        self.assertIn(b'retry', next(stream))

        self.assertEqual(registry.broadcast('task_postponed', {'task_id': '10'}), before + 1)
        self.assertEqual(registry.broadcast('task_postponed', {'task_id': '11'}), before)
        self.assertEqual(len(registry), before)
        self.assertEqual(list(stream), [])

    def test_requires_authentication(self):
        self.assertEqual(APIClient().get('/api/events/').status_code, 401)


@override_settings(SLACK_BOT_TOKEN=None, TIMESHEET_NOTIFICATION_RECIPIENTS='ops@example.com, OPS@example.com')
class DispatchTest(TestCase):

    def setUp(self):
        self.manager = make_employee('MGR001', role=Employee.ROLE_MANAGER)
        self.employee = make_employee('EMP001', manager=self.manager)
        self.hr = make_employee('HR001', role=Employee.ROLE_HR)

    def entries(self, count=2):
        return [
            TimeEntry.objects.create(
                employee=self.employee, date=DAY, project_name='Website',
                task_description=f'Task {n}', submitted_at=timezone.now(),
            )
            for n in range(count)
        ]

    def test_recipient_lists(self):
        self.assertEqual(configured_recipients(), ['ops@example.com'])
        self.assertEqual(
            recipients_for(self.employee, self.manager, None),
            ['emp001@example.com', 'mgr001@example.com', 'ops@example.com'],
        )
        self.assertEqual(management_recipients(), ['hr001@example.com', 'ops@example.com'])
        self.assertIn('hr001@example.com', recipients_for(self.employee, include_management=True))

    def test_grouped_notification_is_one_email(self):
        entries = self.entries(3)
        sent = send_grouped_notification(recipients_for(self.employee), 'approved', entries)
        self.assertTrue(sent)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('3 entries approved', mail.outbox[0].body)
        self.assertEqual(mail.outbox[0].to, ['emp001@example.com', 'ops@example.com'])

    def test_nothing_to_send(self):
        self.assertFalse(send_grouped_notification(['a@example.com'], 'approved', []))
        self.assertEqual(len(mail.outbox), 0)

    def test_mail_failure_is_swallowed(self):
        with mock.patch('notifications.dispatch.send_mail', side_effect=OSError('smtp down')):
            self.assertFalse(send_grouped_notification(['a@example.com'], 'approved', self.entries(1)))
            self.assertFalse(send_plain_notification(['a@example.com'], 'Subject', 'Body'))

    def test_plain_notification_without_recipients(self):
        self.assertFalse(send_plain_notification([], 'Subject', 'Body'))


class SlackServiceTest(TestCase):

    @override_settings(SLACK_BOT_TOKEN=None)
    def test_disabled_without_token(self):
        service = SlackNotificationService()
        self.assertFalse(service.enabled)
        self.assertFalse(service.send_message('C123', 'hello'))

    @override_settings(SLACK_BOT_TOKEN='xoxb-test', SLACK_MANAGEMENT_CHANNEL_ID='C999')
    def test_day_submission_carries_review_buttons(self):
        employee = make_employee('EMP001')
        entry = TimeEntry.objects.create(
            employee=employee, date=DAY, project_name='Website', task_description='Header',
        )
        with mock.patch('notifications.slack_utils.WebClient') as client_class:
            self.assertTrue(SlackNotificationService.notify_management_day_submitted(employee, DAY, [entry]))

        kwargs = client_class.return_value.chat_postMessage.call_args.kwargs
        self.assertEqual(kwargs['channel'], 'C999')
        buttons = kwargs['blocks'][1]['elements']
        self.assertEqual(buttons[0]['value'], f'approve_timesheet_day_{employee.id}_2025-12-24')
        self.assertEqual(buttons[1]['action_id'], 'reject_timesheet_day')


@override_settings(SLACK_BOT_TOKEN=None, TIMESHEET_NOTIFICATION_RECIPIENTS='')
class SlackReviewTest(TestCase):

    def setUp(self):
        self.manager = make_employee('MGR001', role=Employee.ROLE_MANAGER, slack_user_id='UMGR')
        self.other_manager = make_employee('MGR002', role=Employee.ROLE_MANAGER, slack_user_id='UOTHER')
        self.admin = make_employee('ADM001', role=Employee.ROLE_ADMIN, slack_user_id='UADM')
        self.employee = make_employee('EMP001', manager=self.manager, slack_user_id='UEMP')
        for n in range(2):
            TimeEntry.objects.create(
                employee=self.employee, date=DAY, project_name='Website',
                task_description=f'Task {n}', submitted_at=timezone.now(),
            )
        TimeEntry.objects.create(
            employee=self.employee, date=DAY, project_name='Website', task_description='Draft',
        )

    def value(self, action_id):
        return f'{action_id}_{self.employee.id}_2025-12-24'

    def statuses(self):
        return set(TimeEntry.objects.submitted().values_list('status', flat=True))

    def test_manager_approves_day(self):
        message = SlackInteractionsView.review_day(
            'approve_timesheet_day', self.value('approve_timesheet_day'), 'UMGR', 'mgr'
        )
        self.assertIn('2 entries', message)
        self.assertEqual(self.statuses(), {TimeEntry.STATUS_MANAGER_APPROVED})
        self.assertEqual(TimeEntry.objects.drafts().get().status, TimeEntry.STATUS_PENDING)

    def test_admin_approval_is_final(self):
        SlackInteractionsView.review_day('approve_timesheet_day', self.value('approve_timesheet_day'), 'UADM', 'adm')
        self.assertEqual(self.statuses(), {TimeEntry.STATUS_APPROVED})

    def test_reject_records_reviewer(self):
        SlackInteractionsView.review_day('reject_timesheet_day', self.value('reject_timesheet_day'), 'UMGR', 'mgr')
        self.assertEqual(self.statuses(), {TimeEntry.STATUS_REJECTED})
        self.assertEqual(
            set(TimeEntry.objects.submitted().values_list('rejection_reason', flat=True)),
            {'Rejected from Slack by @mgr'},
        )

    def test_reviewers_are_checked(self):
        message = SlackInteractionsView.review_day(
            'approve_timesheet_day', self.value('approve_timesheet_day'), 'UEMP', 'emp'
        )
        self.assertIn('not allowed', message)
        message = SlackInteractionsView.review_day(
            'approve_timesheet_day', self.value('approve_timesheet_day'), 'UOTHER', 'other'
        )
        self.assertIn('reportees', message)
        self.assertEqual(self.statuses(), {TimeEntry.STATUS_PENDING})

    def test_garbled_value(self):
        message = SlackInteractionsView.review_day('approve_timesheet_day', 'approve_timesheet_day_x_y', 'UADM', 'adm')
        self.assertEqual(message, 'Timesheet not found.')

    def test_process_action_replies_to_slack(self):
        payload = {
            'actions': [{'action_id': 'approve_timesheet_day', 'value': self.value('approve_timesheet_day')}],
            'response_url': 'https://hooks.slack.test/respond',
            'user': {'id': 'UADM', 'name': 'adm'},
        }
        with mock.patch('notifications.views.requests.post') as post:
            message = SlackInteractionsView().process_action(payload)
        post.assert_called_once()
        self.assertEqual(post.call_args.args[0], 'https://hooks.slack.test/respond')
        self.assertEqual(post.call_args.kwargs['json']['text'], message)

    def test_url_verification(self):
        response = APIClient().post(
            '/api/slack/interactions/', {'type': 'url_verification', 'challenge': 'abc'}, format='json'
        )
        self.assertEqual(json.loads(response.content), {'challenge': 'abc'})
