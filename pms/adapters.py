"""
Canonical shapes for PMS records.

The PMS schema is not owned by this service and has drifted over time:
department tags live under several column names and shapes, subtasks point
at their parent through one of many foreign-key names, and due dates are
stored as dates, timestamps or strings. Everything that guesses at those
shapes lives here; the rest of the code only sees the dataclasses below.
"""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional, Tuple

from django.utils.dateparse import parse_date, parse_datetime


PROJECT_DEPARTMENT_FIELDS = ('department', 'departments', 'dept', 'department_name')
SUBTASK_LINK_FIELDS = (
    'task_id', 'taskid', 'task', 'parent_task_id', 'parent_task', 'task_ref', 'taskId',
)
TASK_DUE_FIELDS = ('end_date', 'due_date', 'deadline')
PROJECT_DUE_FIELDS = ('end_date', 'due_date', 'deadline')
TASK_MEMBER_FIELDS = ('task_members', 'members')
COMPLETED_STATUS = 'completed'


@dataclass(frozen=True)
class ExternalProject:
    id: str
    code: str
    name: str
    client_name: str = ''
    description: str = ''
    status: str = ''
    start_date: Optional[date] = None
    due_date: Optional[Any] = None
    progress: Optional[int] = None
    departments: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ExternalTask:
    id: str
    project_id: str
    name: str
    project_code: str = ''
    project_name: str = ''
    description: str = ''
    priority: str = ''
    status: str = ''
    start_date: Optional[Any] = None
    due_date: Optional[Any] = None
    assignee: str = ''
    members: Tuple[str, ...] = field(default_factory=tuple)
    completed: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    def with_project(self, project: Optional[ExternalProject]) -> 'ExternalTask':
        if project is None:
            return self
        return replace(
            self,
            project_code=project.code or self.project_code,
            project_name=project.name or self.project_name,
        )


@dataclass(frozen=True)
class ExternalSubtask:
    id: str
    task_id: str
    title: str
    assignee: str = ''
    completed: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


def _text(value) -> str:
    if value is None:
        return ''
    return str(value).strip()


def _first(row: Mapping, names: Iterable[str]):
    for name in names:
        value = row.get(name)
        if value not in (None, '', [], ()):
            return value
    return None


def _as_list(value) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_text(v) for v in value if _text(v)]
    text = _text(value)
    # JSON array column as returned by PyMySQL
    if text.startswith('[') and text.endswith(']'):
        try:
            decoded = json.loads(text)
        except ValueError:
            decoded = None
        if isinstance(decoded, list):
            return _as_list(decoded)
    # Postgres array literal coming through a driver that doesn't decode it
    if text.startswith('{') and text.endswith('}'):
        text = text[1:-1]
    return [part.strip().strip('"') for part in text.split(',') if part.strip().strip('"')]


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return _text(value).lower() in ('1', 'true', 't', 'yes', 'y')


def parse_due(value):
    """Turn a PMS date value into a ``date`` or ``datetime`` (None if unparseable)."""
    if value in (None, ''):
        return None
    if isinstance(value, (datetime, date)):
        return value
    text = _text(value)
    try:
        if len(text) == 10:
            return parse_date(text)
        parsed = parse_datetime(text.replace(' ', 'T', 1))
        if parsed is not None:
            return parsed
        return parse_date(text[:10])
    except ValueError:
        return None


def _as_int(value) -> Optional[int]:
    if value in (None, ''):
        return None
    try:
        return int(round(float(value)))
    except (TypeError, ValueError):
        return None


def project_departments(row: Mapping, joined: Iterable[str] = ()) -> Tuple[str, ...]:
    """Gather department labels from every known column plus join-table rows."""
    labels = []
    for name in PROJECT_DEPARTMENT_FIELDS:
        labels.extend(_as_list(row.get(name)))
    labels.extend(_as_list(list(joined)))
    seen = []
    for label in labels:
        if label not in seen:
            seen.append(label)
    return tuple(seen)


def subtask_parent_id(row: Mapping) -> str:
    return _text(_first(row, SUBTASK_LINK_FIELDS))


def is_completed(row: Mapping) -> bool:
    for name in ('is_completed', 'completed'):
        if name in row and row[name] is not None:
            if _as_bool(row[name]):
                return True
    return _text(row.get('status')).lower() == COMPLETED_STATUS


def to_project(row: Mapping, departments: Iterable[str] = ()) -> ExternalProject:
    return ExternalProject(
        id=_text(row.get('id')),
        code=_text(row.get('project_code') or row.get('code')),
        name=_text(row.get('title') or row.get('project_name') or row.get('name')),
        client_name=_text(row.get('client_name')),
        description=_text(row.get('description')),
        status=_text(row.get('status')),
        start_date=parse_due(row.get('start_date')),
        due_date=parse_due(_first(row, PROJECT_DUE_FIELDS)),
        progress=_as_int(row.get('progress', row.get('progress_percentage'))),
        departments=project_departments(row, departments),
    )


def to_task(row: Mapping) -> ExternalTask:
    members = []
    for name in TASK_MEMBER_FIELDS:
        members.extend(_as_list(row.get(name)))
    return ExternalTask(
        id=_text(row.get('id')),
        project_id=_text(_first(row, ('project_id', 'projectId', 'project'))),
        project_code=_text(row.get('project_code')),
        project_name=_text(row.get('project_name')),
        name=_text(row.get('task_name') or row.get('title') or row.get('name')),
        description=_text(row.get('description')),
        priority=_text(row.get('priority')),
        status=_text(row.get('status')),
        start_date=parse_due(row.get('start_date')),
        due_date=parse_due(_first(row, TASK_DUE_FIELDS)),
        assignee=_text(row.get('assignee') or row.get('assigned_to')),
        members=tuple(members),
        completed=is_completed(row),
    )


def to_subtask(row: Mapping) -> ExternalSubtask:
    return ExternalSubtask(
        id=_text(row.get('id')),
        task_id=subtask_parent_id(row),
        title=_text(row.get('title') or row.get('name') or row.get('subtask_name')),
        assignee=_text(row.get('assigned_to') or row.get('assignee')),
        completed=is_completed(row),
    )
