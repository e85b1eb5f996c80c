from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _
import logging


class ResourceCommentsConfig(AppConfig):
    name = 'resource_comments'
    verbose_name = _('Resource comments')
    default_auto_field = 'django.db.models.BigAutoField'

    def ready(self):
        # Import signals to register the resource deletion handler
        import resource_comments.signals  # noqa: F401

        from .conf import comments_settings

        comments_settings.validate()

        logger = logging.getLogger(comments_settings.LOGGER_NAME)
        logger.debug('Resource comments initialized')
