from django.contrib.auth.models import AnonymousUser, User
from django.test import TestCase
from rest_framework.test import APIClient

from .models import Employee
from .permissions import effective_role, get_employee, is_management


def make_employee(code, role=Employee.ROLE_EMPLOYEE, manager=None):
    user = User.objects.create_user(username=code.lower(), password='pass')
    return Employee.objects.create(
        employee_id=code,
        user=user,
        first_name=code.title(),
        email=f'{code.lower()}@example.com',
        role=role,
        reporting_manager=manager,
    )


class RoleTest(TestCase):

    def test_roles(self):
        hr = make_employee('HR001', role=Employee.ROLE_HR)
        manager = make_employee('MGR001', role=Employee.ROLE_MANAGER)
        employee = make_employee('EMP001', manager=manager)

        self.assertTrue(hr.can_view_all_timesheets())
        self.assertFalse(manager.can_view_all_timesheets())
        self.assertTrue(manager.can_approve_timesheets())
        self.assertFalse(employee.can_approve_timesheets())
        self.assertEqual(list(Employee.management_group()), [hr])

    def test_staff_without_profile_acts_as_admin(self):
        staff = User.objects.create_user(username='ops', password='pass', is_staff=True)
        self.assertIsNone(get_employee(staff))
        self.assertEqual(effective_role(staff), 'admin')
        self.assertTrue(is_management(staff))
        self.assertIsNone(get_employee(AnonymousUser()))

    def test_profile_changes_reach_user(self):
        employee = make_employee('EMP001')
        employee.first_name = 'Asha'
        employee.email = 'asha@example.com'
        employee.save()
        employee.user.refresh_from_db()
        self.assertEqual(employee.user.first_name, 'Asha')
        self.assertEqual(employee.user.email, 'asha@example.com')


class EmployeeAPITest(TestCase):

    def setUp(self):
        self.hr = make_employee('HR001', role=Employee.ROLE_HR)
        self.manager = make_employee('MGR001', role=Employee.ROLE_MANAGER)
        self.employee = make_employee('EMP001', manager=self.manager)
        self.outsider = make_employee('EMP002')
        self.client = APIClient()

    def codes(self, user):
        self.client.force_authenticate(user=user)
        response = self.client.get('/api/employees/')
        return sorted(item['employee_id'] for item in response.data['results'])

    def test_visibility(self):
        self.assertEqual(self.codes(self.employee.user), ['EMP001'])
        self.assertEqual(self.codes(self.manager.user), ['EMP001', 'MGR001'])
        self.assertEqual(self.codes(self.hr.user), ['EMP001', 'EMP002', 'HR001', 'MGR001'])

    def test_me(self):
        self.client.force_authenticate(user=self.employee.user)
        response = self.client.get('/api/employees/me/')
        self.assertEqual(response.data['data']['manager_name'], 'Mgr001')

    def test_me_without_profile(self):
        self.client.force_authenticate(user=User.objects.create_user(username='ghost', password='pass'))
        self.assertEqual(self.client.get('/api/employees/me/').status_code, 404)
