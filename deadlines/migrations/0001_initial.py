from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('employees', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Postponement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('task_id', models.CharField(db_index=True, help_text='PMS task id', max_length=64)),
                ('project_code', models.CharField(blank=True, max_length=50)),
                ('previous_due_date', models.DateField(blank=True, null=True)),
                ('new_due_date', models.DateField()),
                ('reason', models.TextField()),
                ('sequence', models.PositiveIntegerField(help_text='1 for the first postponement of a task, then 2, 3, ...')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('actor', models.ForeignKey(help_text='Employee who postponed the task', null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='postponements', to='employees.employee')),
            ],
            options={
                'verbose_name': 'Postponement',
                'verbose_name_plural': 'Postponements',
                'db_table': 'task_postponements',
                'ordering': ['task_id', 'sequence'],
            },
        ),
        migrations.CreateModel(
            name='TaskAcknowledgement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('task_id', models.CharField(db_index=True, help_text='PMS task id', max_length=64)),
                ('project_code', models.CharField(blank=True, max_length=50)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('actor', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='task_acknowledgements', to='employees.employee')),
            ],
            options={
                'verbose_name': 'Task Acknowledgement',
                'verbose_name_plural': 'Task Acknowledgements',
                'db_table': 'task_acknowledgements',
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddConstraint(
            model_name='postponement',
            constraint=models.UniqueConstraint(fields=('task_id', 'sequence'), name='unique_postponement_sequence'),
        ),
    ]
