# service_requests/apps.py

from django.apps import AppConfig
import logging


class ServiceRequestsConfig(AppConfig):
    """App configuration for table service requests."""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'service_requests'
    verbose_name = "Table Service Requests"

    backend = None

    def ready(self):
        """
        Bind signal receivers and build the single ServiceBackend that views and
        consumers receive explicitly.
        """
        from django.core.files.storage import default_storage

        from .backend import ServiceBackend

        import service_requests.signals  # noqa: F401  # Import solely for side effects

        self.backend = ServiceBackend(storage=default_storage)
        logging.getLogger(__name__).info("✅ service_requests backend and signals ready.")


def get_backend():
    from django.apps import apps
    return apps.get_app_config("service_requests").backend
