from django.conf import settings


class PMSRouter:
    """
    The PMS database belongs to another system.

    Only raw SQL from ``pms.gateway`` touches it; models always live in the
    default database and no migration ever runs against the PMS alias.
    """

    @staticmethod
    def _alias():
        return getattr(settings, 'PMS_DATABASE_ALIAS', 'pms')

    def db_for_read(self, model, **hints):
        return 'default'

    def db_for_write(self, model, **hints):
        return 'default'

    def allow_relation(self, obj1, obj2, **hints):
        return None

    def allow_migrate(self, db, app_label, model_name=None, **hints):
        if db == self._alias():
            return False
        return None
