from django.apps import AppConfig


class GateConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'gate'
    verbose_name = 'Access Gate'

    def ready(self):
        # Import signal handlers so they are connected on startup
        import gate.signals  # noqa: F401
        import gate.gate  # noqa: F401
