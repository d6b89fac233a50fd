import django.core.validators
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('employees', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='TimeEntry',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField(db_index=True, help_text='Work date')),
                ('project_name', models.CharField(max_length=200)),
                ('project_code', models.CharField(blank=True, help_text='PMS project code, used for progress write-back', max_length=50)),
                ('task_description', models.TextField()),
                ('external_task_id', models.CharField(blank=True, db_index=True, help_text='PMS task id this entry reports on', max_length=64, null=True)),
                ('start_time', models.TimeField(blank=True, null=True)),
                ('end_time', models.TimeField(blank=True, null=True)),
                ('total_hours', models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(24)])),
                ('problem_and_issues', models.TextField(blank=True)),
                ('quantify', models.TextField(blank=True)),
                ('achievements', models.TextField(blank=True)),
                ('scope_of_improvements', models.TextField(blank=True)),
                ('tools_used', models.JSONField(blank=True, default=list)),
                ('percentage_complete', models.PositiveSmallIntegerField(default=0, validators=[django.core.validators.MinValueValidator(0), django.core.validators.MaxValueValidator(100)])),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('manager_approved', 'Manager Approved'), ('approved', 'Approved'), ('rejected', 'Rejected')], db_index=True, default='pending', max_length=20)),
                ('submitted_at', models.DateTimeField(blank=True, help_text='Null while the entry is a draft', null=True)),
                ('manager_approved_at', models.DateTimeField(blank=True, null=True)),
                ('approved_at', models.DateTimeField(blank=True, null=True)),
                ('rejected_at', models.DateTimeField(blank=True, null=True)),
                ('rejection_reason', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('employee', models.ForeignKey(help_text='Employee who logged the entry', on_delete=django.db.models.deletion.CASCADE, related_name='time_entries', to='employees.employee')),
                ('manager_approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='manager_approved_entries', to='employees.employee')),
                ('approved_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='approved_entries', to='employees.employee')),
                ('rejected_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='rejected_entries', to='employees.employee')),
            ],
            options={
                'verbose_name': 'Time Entry',
                'verbose_name_plural': 'Time Entries',
                'db_table': 'time_entries',
                'ordering': ['-date', 'start_time', 'id'],
                'indexes': [
                    models.Index(fields=['employee', 'date'], name='time_entrie_employe_3b1c2d_idx'),
                    models.Index(fields=['status', 'date'], name='time_entrie_status_7d4e5f_idx'),
                ],
            },
        ),
    ]
