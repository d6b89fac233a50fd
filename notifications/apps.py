from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    name = 'notifications'
    default_auto_field = 'django.db.models.BigAutoField'

    def ready(self):
        from .realtime import ConnectionRegistry
        # One registry per process; request handlers and services share it
        self.registry = ConnectionRegistry()
