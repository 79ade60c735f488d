from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    name = 'apps.notifications'
    default_auto_field = 'django.db.models.BigAutoField'

    def ready(self):
        from shared.application.message_bus import message_bus

        from .handlers import register_handlers
        from .services import CeleryNotifier

        register_handlers(message_bus, CeleryNotifier())
