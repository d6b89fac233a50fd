from datetime import date, datetime
from io import StringIO
from unittest import mock

from django.contrib.auth.models import User
from django.core.management import call_command
from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from rest_framework.test import APIClient

from employees.models import Employee
from . import schema as pms_schema
from .adapters import (
    ExternalProject,
    is_completed,
    parse_due,
    project_departments,
    subtask_parent_id,
    to_project,
    to_subtask,
    to_task,
)
from .gateway import PMSGateway, missing_column
from .schema import DetectedTable
from .testing import add_project, add_subtask, add_task, create_pms_tables, fetch_value


class AdapterTest(SimpleTestCase):
    """Raw PMS rows → canonical records"""

    def test_departments_from_every_shape(self):
        row = {'department': 'Software, QA', 'departments': ['Finance'], 'dept': '{"Sales","HR"}'}
        self.assertEqual(
            project_departments(row, joined=['Finance', 'Marketing']),
            ('Software', 'QA', 'Finance', 'Sales', 'HR', 'Marketing'),
        )

    def test_departments_from_json_array_text(self):
        row = {'departments': '["Software Developers", "Finance"]'}
        self.assertEqual(project_departments(row), ('Software Developers', 'Finance'))
        self.assertEqual(project_departments({'department': '[Software]'}), ('[Software]',))

    def test_subtask_parent_link_names(self):
        self.assertEqual(subtask_parent_id({'parent_task_id': 7}), '7')
        self.assertEqual(subtask_parent_id({'taskId': 'T-9'}), 'T-9')
        self.assertEqual(subtask_parent_id({'task_id': None, 'task_ref': 3}), '3')
        self.assertEqual(subtask_parent_id({}), '')

    def test_due_dates(self):
        self.assertEqual(parse_due('2025-12-24'), date(2025, 12, 24))
        self.assertEqual(parse_due('2025-12-24 18:30:00'), datetime(2025, 12, 24, 18, 30))
        self.assertIsNone(parse_due('not a date'))
        self.assertIsNone(parse_due(''))
        self.assertIsNone(parse_due('2025-02-30'))

    def test_completion(self):
        self.assertTrue(is_completed({'status': 'COMPLETED'}))
        self.assertFalse(is_completed({'status': 'Done'}))
        self.assertFalse(is_completed({'status': 'Closed'}))
        self.assertTrue(is_completed({'is_completed': 1, 'status': 'Open'}))
        self.assertFalse(is_completed({'is_completed': 0, 'status': 'In Progress'}))

    def test_to_project(self):
        project = to_project({'id': 4, 'title': 'Portal', 'project_code': 'PRJ-4', 'progress': '37.6'}, ['IT'])
        self.assertEqual(project.id, '4')
        self.assertEqual(project.code, 'PRJ-4')
        self.assertEqual(project.progress, 38)
        self.assertEqual(project.departments, ('IT',))

    def test_to_task_and_with_project(self):
        task = to_task({
            'id': 11, 'project_id': 4, 'task_name': 'Login page', 'deadline': '2025-12-24',
            'assigned_to': 'EMP001', 'task_members': 'EMP002, EMP003', 'status': 'Open',
        })
        self.assertEqual(task.due_date, date(2025, 12, 24))
        self.assertEqual(task.members, ('EMP002', 'EMP003'))
        self.assertFalse(task.completed)

        joined = task.with_project(ExternalProject(id='4', code='PRJ-4', name='Portal'))
        self.assertEqual(joined.project_code, 'PRJ-4')
        self.assertEqual(joined.project_name, 'Portal')
        self.assertIs(task.with_project(None), task)

    def test_to_subtask(self):
        subtask = to_subtask({'id': 1, 'task': 11, 'name': 'CSS', 'completed': 'true'})
        self.assertEqual(subtask.task_id, '11')
        self.assertEqual(subtask.title, 'CSS')
        self.assertTrue(subtask.completed)


class MissingColumnTest(SimpleTestCase):

    def test_reports_longest_matching_column(self):
        exc = DatabaseError('no such column: task_id')
        self.assertEqual(missing_column(exc, ['id', 'task_id']), 'task_id')

    def test_other_errors_are_not_drift(self):
        exc = DatabaseError('database is locked')
        self.assertIsNone(missing_column(exc, ['id']))


class PMSDatabaseTestCase(TestCase):
    databases = {'default', 'pms'}

    def setUp(self):
        pms_schema.reset()
        create_pms_tables()

    def tearDown(self):
        pms_schema.reset()


class SchemaDetectionTest(PMSDatabaseTestCase):

    def test_detects_tables_and_columns(self):
        schema = pms_schema.detect_schema()
        self.assertEqual(schema.table('projects').name, 'projects')
        self.assertEqual(schema.table('tasks').name, 'project_tasks')
        self.assertEqual(schema.table('subtasks').name, 'subtasks')
        self.assertTrue(schema.table('tasks').has('end_date'))

    def test_layout_is_cached_until_reset(self):
        first = pms_schema.detect_schema()
        self.assertIs(pms_schema.detect_schema(), first)
        pms_schema.reset()
        self.assertIsNot(pms_schema.detect_schema(), first)

    def test_management_command_reports_layout(self):
        out = StringIO()
        call_command('detect_pms_schema', stdout=out)
        self.assertIn('tasks: project_tasks', out.getvalue())

    def test_prefers_candidate_with_rows(self):
        from django.db import connections
        with connections['pms'].cursor() as cursor:
            cursor.execute("CREATE TABLE tasks (id INTEGER PRIMARY KEY, project_id INTEGER, title VARCHAR(100))")
            cursor.execute("INSERT INTO tasks (id, project_id, title) VALUES (1, 1, 'Legacy')")
        pms_schema.reset()
        self.assertEqual(pms_schema.detect_schema().table('tasks').name, 'tasks')


class GatewayReadTest(PMSDatabaseTestCase):

    def setUp(self):
        super().setUp()
        add_project(1, 'Website', 'PRJ-1', departments=['software'])
        add_project(2, 'Ledger', 'PRJ-2', department='Finance')
        add_project(3, 'Untagged', 'PRJ-3')
        add_task(10, 1, 'Build header', end_date='2025-12-24', assignee='EMP001')
        add_task(11, 2, 'Close books', end_date='2025-12-24')
        add_task(12, 3, 'Orphan work')
        add_subtask(100, 10, 'Logo', assigned_to='EMP001')
        add_subtask(101, 11, 'Reconcile')
        self.gateway = PMSGateway()

    def test_projects_narrowed_by_department(self):
        names = [p.name for p in self.gateway.list_projects(role='employee', department='Software Developers')]
        self.assertEqual(names, ['Website'])
        names = [p.name for p in self.gateway.list_projects(role='employee', department='Finance')]
        self.assertEqual(names, ['Ledger'])

    def test_admin_sees_every_project(self):
        names = [p.name for p in self.gateway.list_projects(role='admin', department='Finance')]
        self.assertEqual(names, ['Ledger', 'Untagged', 'Website'])

    def test_no_department_means_no_narrowing(self):
        self.assertEqual(len(self.gateway.list_projects(role='employee', department='')), 3)

    def test_tasks_of_project_by_id_or_code(self):
        by_id = self.gateway.list_tasks(project_id='1')
        by_code = self.gateway.list_tasks(project_id='PRJ-1')
        self.assertEqual([t.id for t in by_id], ['10'])
        self.assertEqual(by_id, by_code)
        self.assertEqual(by_id[0].project_code, 'PRJ-1')
        self.assertEqual(by_id[0].due_date, date(2025, 12, 24))

    def test_tasks_narrowed_by_department(self):
        tasks = self.gateway.list_tasks(department='Finance', role='employee')
        self.assertEqual([t.name for t in tasks], ['Close books'])

    def test_subtasks(self):
        self.assertEqual([s.id for s in self.gateway.list_subtasks(task_id=10)], ['100'])
        visible = self.gateway.list_subtasks(department='software', role='employee')
        self.assertEqual([s.title for s in visible], ['Logo'])

    def test_get_task(self):
        task = self.gateway.get_task('11')
        self.assertEqual(task.project_name, 'Ledger')
        self.assertIsNone(self.gateway.get_task('999'))

    def test_vanished_column_is_dropped_and_retried(self):
        table = pms_schema.detect_schema().table('tasks')
        drifted = DetectedTable(name=table.name, columns=table.columns + ('legacy_code',))
        rows = self.gateway._fetch(drifted)
        self.assertEqual(len(rows), 3)
        self.assertNotIn('legacy_code', rows[0])


class GatewayFailureTest(TestCase):
    databases = {'default', 'pms'}

    def setUp(self):
        pms_schema.reset()

    def tearDown(self):
        pms_schema.reset()

    def test_missing_tables_read_as_empty(self):
        gateway = PMSGateway()
        self.assertEqual(gateway.list_projects(role='employee', department='IT'), [])
        self.assertEqual(gateway.list_tasks(), [])
        self.assertEqual(gateway.list_subtasks(), [])
        self.assertIsNone(gateway.get_task('1'))

    def test_unreachable_pms_reads_as_empty(self):
        with mock.patch.object(pms_schema, 'detect_schema', side_effect=DatabaseError('connection refused')):
            gateway = PMSGateway()
            self.assertEqual(gateway.list_tasks(), [])
            self.assertFalse(gateway.set_task_status('1', 'Completed'))


class GatewayWriteTest(PMSDatabaseTestCase):

    def setUp(self):
        super().setUp()
        add_project(1, 'Website', 'PRJ-1', departments=['software'], progress=10)
        add_task(10, 1, 'Build header', end_date='2025-12-24')
        self.gateway = PMSGateway()

    def test_set_task_due_date(self):
        self.assertTrue(self.gateway.set_task_due_date('10', date(2025, 12, 30)))
        self.assertEqual(fetch_value("SELECT end_date FROM project_tasks WHERE id = %s", [10]), '2025-12-30')
        self.assertIsNotNone(fetch_value("SELECT updated_at FROM project_tasks WHERE id = %s", [10]))

    def test_set_task_status(self):
        self.assertTrue(self.gateway.set_task_status('10', 'Completed'))
        self.assertEqual(fetch_value("SELECT status FROM project_tasks WHERE id = %s", [10]), 'Completed')
        self.assertFalse(self.gateway.set_task_status('404', 'Completed'))

    def test_set_project_progress_by_code(self):
        self.assertTrue(self.gateway.set_project_progress('PRJ-1', 80))
        self.assertEqual(fetch_value("SELECT progress FROM projects WHERE id = %s", [1]), 80)
        self.assertFalse(self.gateway.set_project_progress('PRJ-404', 80))


class PMSEndpointTest(PMSDatabaseTestCase):

    def setUp(self):
        super().setUp()
        add_project(1, 'Website', 'PRJ-1', departments=['software'])
        add_project(2, 'Ledger', 'PRJ-2', department='Finance')
        add_task(10, 1, 'Build header')
        user = User.objects.create_user(username='dev', password='pass')
        Employee.objects.create(
            employee_id='EMP001', user=user, first_name='Dev', email='dev@example.com',
            department='Software Developers',
        )
        self.client = APIClient()
        self.client.force_authenticate(user=user)

    def test_projects_endpoint_uses_caller_department(self):
        response = self.client.get('/api/pms/projects/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['error'], 0)
        self.assertEqual([p['name'] for p in response.data['data']], ['Website'])

    def test_tasks_endpoint(self):
        response = self.client.get('/api/pms/tasks/', {'project_id': 'PRJ-1'})
        self.assertEqual([t['id'] for t in response.data['data']], ['10'])

    def test_requires_authentication(self):
        self.assertEqual(APIClient().get('/api/pms/projects/').status_code, 401)
