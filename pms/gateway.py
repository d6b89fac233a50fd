import logging
import re

from django.db import DatabaseError, connections, transaction
from django.utils import timezone

from departments.normalizer import is_visible

from . import schema as pms_schema
from .adapters import (
    TASK_DUE_FIELDS,
    to_project,
    to_subtask,
    to_task,
)

logger = logging.getLogger(__name__)


MISSING_COLUMN_MARKERS = (
    'no such column',
    'does not exist',
    'unknown column',
    'invalid column',
)


def missing_column(exc, columns):
    """Return the selected column a database error complains about, if any."""
    cause = getattr(exc, '__cause__', None)
    code = getattr(cause, 'pgcode', None) or getattr(cause, 'sqlstate', None)
    message = str(exc).lower()
    if code != '42703' and not any(marker in message for marker in MISSING_COLUMN_MARKERS):
        return None
    # Longest first so "task_id" wins over "id"
    for column in sorted(columns, key=len, reverse=True):
        if re.search(r'(?<![\w])' + re.escape(column.lower()) + r'(?![\w])', message):
            return column
    return None


class PMSGateway:
    """
    Read/write access to the external Project Management System.

    Reads never raise: any failure (PMS down, table missing, schema drift
    that can't be repaired) is logged and an empty result is returned.
    Writes are single-field updates that report success as a boolean.
    """

    def __init__(self, using=None):
        self.using = using or pms_schema.pms_alias()

    @property
    def connection(self):
        return connections[self.using]

    def _schema(self):
        return pms_schema.detect_schema(self.using)

    # ------------------------------------------------------------------ #
    # Low level
    # ------------------------------------------------------------------ #

    def _fetch(self, table, where='', params=()):
        """SELECT every known column; retries once without a column that vanished."""
        columns = list(table.columns)
        qn = self.connection.ops.quote_name
        for attempt in range(2):
            sql = f"SELECT {', '.join(qn(c) for c in columns)} FROM {qn(table.name)}"
            if where:
                sql += f" WHERE {where}"
            try:
                with transaction.atomic(using=self.using):
                    with self.connection.cursor() as cursor:
                        cursor.execute(sql, list(params))
                        names = [description[0] for description in cursor.description]
                        return [dict(zip(names, row)) for row in cursor.fetchall()]
            except DatabaseError as exc:
                column = missing_column(exc, columns)
                if attempt or column is None:
                    raise
                logger.warning(f"PMS column {table.name}.{column} is gone, retrying without it")
                columns.remove(column)
        return []

    def _update(self, table, values, where, params):
        qn = self.connection.ops.quote_name
        assignments = ', '.join(f"{qn(column)} = %s" for column in values)
        sql = f"UPDATE {qn(table.name)} SET {assignments} WHERE {where}"
        with transaction.atomic(using=self.using):
            with self.connection.cursor() as cursor:
                cursor.execute(sql, list(values.values()) + list(params))
                return cursor.rowcount

    def _timestamp_values(self, table, values):
        if table.has('updated_at'):
            values['updated_at'] = self.connection.ops.adapt_datetimefield_value(timezone.now())
        return values

    # ------------------------------------------------------------------ #
    # Collections
    # ------------------------------------------------------------------ #

    def _department_map(self):
        table = self._schema().table('project_departments')
        if table is None or not table.has('project_id') or not table.has('department'):
            return {}
        departments = {}
        for row in self._fetch(table):
            departments.setdefault(str(row['project_id']), []).append(row['department'])
        return departments

    def _projects(self):
        table = self._schema().table('projects')
        if table is None:
            return []
        departments = self._department_map()
        projects = [
            to_project(row, departments.get(str(row.get('id')), ()))
            for row in self._fetch(table)
        ]
        return sorted(projects, key=lambda project: project.name.lower())

    def _tasks(self, where='', params=()):
        table = self._schema().table('tasks')
        if table is None:
            return []
        return [to_task(row) for row in self._fetch(table, where, params)]

    @staticmethod
    def _project_index(projects):
        index = {}
        for project in projects:
            if project.id:
                index[project.id] = project
            if project.code:
                index.setdefault(project.code, project)
        return index

    @staticmethod
    def _visible_keys(projects, role, department):
        keys = set()
        for project in projects:
            if is_visible(project.departments, role=role, user_department=department):
                keys.update(key for key in (project.id, project.code) if key)
        return keys

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def list_projects(self, role=None, employee_code=None, department=None):
        try:
            projects = self._projects()
        except Exception as e:
            logger.error(f"Error fetching PMS projects for {employee_code or 'anonymous'}: {e}")
            return []

        if not department:
            return projects

        filtered = [
            project for project in projects
            if is_visible(project.departments, role=role, user_department=department)
        ]
        logger.debug(
            f"PMS projects for {employee_code} ({department}): {len(filtered)} of {len(projects)}"
        )
        return filtered

    def list_tasks(self, project_id=None, department=None, role=None):
        """Tasks of one project (by id or code) or of every project."""
        try:
            projects = self._projects()
            tasks = self._tasks()
        except Exception as e:
            logger.error(f"Error fetching PMS tasks for project {project_id}: {e}")
            return []

        index = self._project_index(projects)

        if project_id:
            project_id = str(project_id)
            project = index.get(project_id)
            keys = {project.id, project.code} if project else {project_id}
            keys.discard('')
            tasks = [t for t in tasks if t.project_id in keys or t.project_code in keys]

        if department:
            visible = self._visible_keys(projects, role, department)
            tasks = [t for t in tasks if t.project_id in visible or t.project_code in visible]

        tasks = [task.with_project(index.get(task.project_id)) for task in tasks]
        return sorted(tasks, key=lambda task: task.name.lower())

    def list_subtasks(self, task_id=None, department=None, role=None):
        try:
            table = self._schema().table('subtasks')
            rows = self._fetch(table) if table is not None else []
        except Exception as e:
            logger.error(f"Error fetching PMS subtasks for task {task_id}: {e}")
            return []

        subtasks = [to_subtask(row) for row in rows]
        if task_id:
            subtasks = [s for s in subtasks if s.task_id == str(task_id)]
        if department:
            allowed = {task.id for task in self.list_tasks(department=department, role=role)}
            subtasks = [s for s in subtasks if s.task_id in allowed]
        return subtasks

    def get_task(self, task_id):
        try:
            projects = self._projects()
            tasks = self._tasks('id = %s', [str(task_id)])
        except Exception as e:
            logger.error(f"Error fetching PMS task {task_id}: {e}")
            return None
        if not tasks:
            return None
        return tasks[0].with_project(self._project_index(projects).get(tasks[0].project_id))

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def set_task_due_date(self, task_id, due_date):
        try:
            table = self._schema().table('tasks')
            column = table.first_of(TASK_DUE_FIELDS) if table else None
            if column is None:
                logger.warning(f"PMS task table has no due date column, cannot move task {task_id}")
                return False
            values = self._timestamp_values(
                table, {column: self.connection.ops.adapt_datefield_value(due_date)}
            )
            updated = self._update(table, values, 'id = %s', [str(task_id)])
        except Exception as e:
            logger.error(f"Error updating due date of PMS task {task_id}: {e}")
            return False
        if updated:
            logger.info(f"PMS task {task_id} due date set to {due_date}")
        return bool(updated)

    def set_task_status(self, task_id, status):
        try:
            table = self._schema().table('tasks')
            if table is None or not table.has('status'):
                logger.warning(f"PMS task table has no status column, cannot update task {task_id}")
                return False
            values = self._timestamp_values(table, {'status': status})
            updated = self._update(table, values, 'id = %s', [str(task_id)])
        except Exception as e:
            logger.error(f"Error updating status of PMS task {task_id}: {e}")
            return False
        if updated:
            logger.info(f"PMS task {task_id} status set to {status}")
        return bool(updated)

    def set_project_progress(self, project_id, progress):
        """``project_id`` may be the PMS id or the project code."""
        try:
            table = self._schema().table('projects')
            column = table.first_of(('progress', 'progress_percentage')) if table else None
            if column is None:
                logger.warning(f"PMS project table has no progress column, cannot update {project_id}")
                return False
            project = self._project_index(self._projects()).get(str(project_id))
            if project is None:
                logger.warning(f"PMS project {project_id} not found, progress not updated")
                return False
            values = self._timestamp_values(table, {column: int(progress)})
            updated = self._update(table, values, 'id = %s', [project.id])
        except Exception as e:
            logger.error(f"Error updating progress of PMS project {project_id}: {e}")
            return False
        if updated:
            logger.info(f"PMS project {project_id} progress set to {progress}")
        return bool(updated)
