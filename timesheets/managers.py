import logging

from django.db import DatabaseError, models, transaction

logger = logging.getLogger(__name__)


# Columns added after the first deployments; older databases may lack them
LATE_COLUMNS = ('external_task_id',)


class TimeEntryQuerySet(models.QuerySet):

    def for_employee(self, employee):
        return self.filter(employee=employee)

    def for_day(self, employee, day):
        return self.filter(employee=employee, date=day)

    def drafts(self):
        return self.filter(submitted_at__isnull=True)

    def submitted(self):
        return self.filter(submitted_at__isnull=False)

    def awaiting_review(self):
        return self.submitted().filter(status__in=['pending', 'manager_approved'])

    def for_reportees_of(self, manager):
        return self.filter(employee__reporting_manager=manager)

    def entries_for_day(self, employee, day):
        """
        Evaluate the day's entries, tolerating a schema without late columns.

        On a database that hasn't been migrated yet the query is retried with
        those columns deferred; callers must check ``get_deferred_fields()``
        before touching them.
        """
        queryset = self.for_day(employee, day)
        try:
            with transaction.atomic(using=self.db):
                return list(queryset)
        except DatabaseError as exc:
            message = str(exc).lower()
            missing = [column for column in LATE_COLUMNS if column in message]
            if not missing:
                raise
            logger.warning(f"time_entries is missing {', '.join(missing)}, reading without it")
            return list(queryset.defer(*missing))
