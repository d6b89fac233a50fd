"""
Management command to inspect the PMS database layout.

Usage:
    python manage.py detect_pms_schema
"""
from django.core.management.base import BaseCommand, CommandError
from pms import schema as pms_schema


class Command(BaseCommand):
    help = 'Detect which PMS tables and columns this service will use'

    def add_arguments(self, parser):
        parser.add_argument(
            '--database',
            type=str,
            default=None,
            help='Database alias of the PMS (default: PMS_DATABASE_ALIAS setting)',
        )

    def handle(self, *args, **options):
        using = options['database'] or pms_schema.pms_alias()
        pms_schema.reset(using)
        try:
            detected = pms_schema.detect_schema(using)
        except Exception as e:
            raise CommandError(f'Could not inspect PMS database "{using}": {e}')

        for collection in pms_schema.TABLE_CANDIDATES:
            table = detected.table(collection)
            if table is None:
                self.stdout.write(self.style.WARNING(f'{collection}: not found'))
                continue
            self.stdout.write(self.style.SUCCESS(f'{collection}: {table.name}'))
            self.stdout.write(f'    {", ".join(table.columns)}')
