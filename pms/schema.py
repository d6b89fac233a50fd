"""
One-time discovery of which PMS tables hold which collection.

Different PMS deployments have used different table names for the same
data. Instead of probing candidates on every request, the layout is
inspected once per process and cached.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from django.conf import settings
from django.db import connections

logger = logging.getLogger(__name__)


TABLE_CANDIDATES = {
    'projects': ('projects',),
    'tasks': ('project_tasks', 'tasks'),
    'subtasks': ('subtasks', 'project_subtasks', 'sub_tasks'),
    'project_departments': ('project_departments',),
}


def pms_alias():
    return getattr(settings, 'PMS_DATABASE_ALIAS', 'pms')


@dataclass(frozen=True)
class DetectedTable:
    name: str
    columns: Tuple[str, ...]

    def has(self, column):
        return column in self.columns

    def first_of(self, candidates):
        for column in candidates:
            if column in self.columns:
                return column
        return None


@dataclass(frozen=True)
class PMSSchema:
    tables: Dict[str, DetectedTable] = field(default_factory=dict)

    def table(self, collection) -> Optional[DetectedTable]:
        return self.tables.get(collection)


_cache = {}
_lock = threading.Lock()


def _has_rows(connection, cursor, table_name):
    cursor.execute(f"SELECT 1 FROM {connection.ops.quote_name(table_name)} LIMIT 1")
    return cursor.fetchone() is not None


def _inspect(using):
    connection = connections[using]
    tables = {}
    with connection.cursor() as cursor:
        existing = set(connection.introspection.table_names(cursor))
        for collection, candidates in TABLE_CANDIDATES.items():
            chosen = None
            for name in candidates:
                if name not in existing:
                    continue
                columns = tuple(
                    column.name
                    for column in connection.introspection.get_table_description(cursor, name)
                )
                table = DetectedTable(name=name, columns=columns)
                if chosen is None:
                    chosen = table
                if _has_rows(connection, cursor, name):
                    chosen = table
                    break
            if chosen is not None:
                tables[collection] = chosen
            else:
                logger.warning(f"No PMS table found for {collection} (tried {', '.join(candidates)})")
    return PMSSchema(tables=tables)


def detect_schema(using=None) -> PMSSchema:
    """
    Return the cached PMS layout, inspecting the database on first use.

    Errors propagate and nothing is cached, so an unreachable PMS is probed
    again on the next call.
    """
    using = using or pms_alias()
    schema = _cache.get(using)
    if schema is not None:
        return schema
    with _lock:
        schema = _cache.get(using)
        if schema is None:
            schema = _inspect(using)
            _cache[using] = schema
            logger.info(
                "PMS schema detected: "
                + ", ".join(f"{key}={table.name}" for key, table in schema.tables.items())
            )
    return schema


def reset(using=None):
    """Forget the cached layout (all aliases when ``using`` is None)."""
    with _lock:
        if using is None:
            _cache.clear()
        else:
            _cache.pop(using, None)
