"""Helpers for building a throwaway PMS database in tests."""
from django.db import connections

from . import schema as pms_schema


PMS_TABLES = (
    """
    CREATE TABLE projects (
        id INTEGER PRIMARY KEY,
        title VARCHAR(200),
        project_code VARCHAR(50),
        client_name VARCHAR(200),
        description TEXT,
        status VARCHAR(50),
        start_date VARCHAR(30),
        end_date VARCHAR(30),
        progress INTEGER,
        department VARCHAR(200),
        updated_at VARCHAR(40)
    )
    """,
    """
    CREATE TABLE project_departments (
        project_id INTEGER,
        department VARCHAR(100)
    )
    """,
    """
    CREATE TABLE project_tasks (
        id INTEGER PRIMARY KEY,
        project_id INTEGER,
        task_name VARCHAR(200),
        description TEXT,
        priority VARCHAR(20),
        status VARCHAR(50),
        start_date VARCHAR(30),
        end_date VARCHAR(30),
        assignee VARCHAR(100),
        task_members VARCHAR(500),
        updated_at VARCHAR(40)
    )
    """,
    """
    CREATE TABLE subtasks (
        id INTEGER PRIMARY KEY,
        parent_task_id INTEGER,
        title VARCHAR(200),
        assigned_to VARCHAR(100),
        is_completed INTEGER
    )
    """,
)


def _execute(sql, params=(), using='pms'):
    with connections[using].cursor() as cursor:
        cursor.execute(sql, list(params))


def create_pms_tables(using='pms'):
    for statement in PMS_TABLES:
        _execute(statement, using=using)
    pms_schema.reset()


def add_project(id, title, code, department=None, departments=(), end_date=None,
                progress=0, status='Active', using='pms'):
    _execute(
        "INSERT INTO projects (id, title, project_code, status, end_date, progress, department) "
        "VALUES (%s, %s, %s, %s, %s, %s, %s)",
        [id, title, code, status, end_date, progress, department],
        using=using,
    )
    for label in departments:
        _execute(
            "INSERT INTO project_departments (project_id, department) VALUES (%s, %s)",
            [id, label],
            using=using,
        )


def add_task(id, project_id, name, end_date=None, status='In Progress', assignee='',
             members='', using='pms'):
    _execute(
        "INSERT INTO project_tasks (id, project_id, task_name, status, end_date, assignee, task_members) "
        "VALUES (%s, %s, %s, %s, %s, %s, %s)",
        [id, project_id, name, status, end_date, assignee, members],
        using=using,
    )


def add_subtask(id, task_id, title, assigned_to='', is_completed=0, using='pms'):
    _execute(
        "INSERT INTO subtasks (id, parent_task_id, title, assigned_to, is_completed) "
        "VALUES (%s, %s, %s, %s, %s)",
        [id, task_id, title, assigned_to, is_completed],
        using=using,
    )


def fetch_value(sql, params=(), using='pms'):
    with connections[using].cursor() as cursor:
        cursor.execute(sql, list(params))
        row = cursor.fetchone()
    return row[0] if row else None
