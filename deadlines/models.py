from django.db import models

from employees.models import Employee


class AppendOnlyError(Exception):
    """Raised when something tries to rewrite or remove a ledger record"""


class AppendOnlyQuerySet(models.QuerySet):

    def update(self, **kwargs):
        raise AppendOnlyError(f"{self.model.__name__} records cannot be updated")

    def delete(self):
        raise AppendOnlyError(f"{self.model.__name__} records cannot be deleted")


class AppendOnlyModel(models.Model):
    """Insert-only ledger row"""

    objects = AppendOnlyQuerySet.as_manager()

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise AppendOnlyError(f"{type(self).__name__} {self.pk} cannot be modified")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise AppendOnlyError(f"{type(self).__name__} {self.pk} cannot be deleted")


class Postponement(AppendOnlyModel):
    """A reasoned move of a PMS task's due date"""

    task_id = models.CharField(max_length=64, db_index=True, help_text="PMS task id")
    project_code = models.CharField(max_length=50, blank=True)
    previous_due_date = models.DateField(null=True, blank=True)
    new_due_date = models.DateField()
    reason = models.TextField()
    actor = models.ForeignKey(
        Employee,
        on_delete=models.SET_NULL,
        null=True,
        related_name='postponements',
        help_text="Employee who postponed the task"
    )
    sequence = models.PositiveIntegerField(help_text="1 for the first postponement of a task, then 2, 3, ...")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'task_postponements'
        ordering = ['task_id', 'sequence']
        constraints = [
            models.UniqueConstraint(fields=['task_id', 'sequence'], name='unique_postponement_sequence'),
        ]
        verbose_name = 'Postponement'
        verbose_name_plural = 'Postponements'

    def __str__(self):
        return f"Task {self.task_id} #{self.sequence}: {self.previous_due_date} -> {self.new_due_date}"


class TaskAcknowledgement(AppendOnlyModel):
    """An employee accepting that a task is overdue without moving its date"""

    task_id = models.CharField(max_length=64, db_index=True, help_text="PMS task id")
    project_code = models.CharField(max_length=50, blank=True)
    actor = models.ForeignKey(
        Employee,
        on_delete=models.SET_NULL,
        null=True,
        related_name='task_acknowledgements'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'task_acknowledgements'
        ordering = ['-created_at']
        verbose_name = 'Task Acknowledgement'
        verbose_name_plural = 'Task Acknowledgements'

    def __str__(self):
        return f"Task {self.task_id} acknowledged by {self.actor}"
