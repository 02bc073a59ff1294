from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
import logging
import sys

logger = logging.getLogger(__name__)


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Perform startup validation checks when Django initializes.

        Only serving processes are checked, so migrations, shell and other
        management commands run without the full configuration.
        """
        serving = 'runserver' in sys.argv or 'gunicorn' in sys.argv[0]
        if not serving:
            return

        self._validate_jwt_configuration()
        self._validate_plan_prices()

        logger.info("Startup configuration validation passed")

    def _validate_jwt_configuration(self):
        """Validate JWT secret key configuration."""
        jwt_secret = getattr(settings, 'JWT_SECRET_KEY', None)
        secret_key = getattr(settings, 'SECRET_KEY', None)

        if not jwt_secret:
            raise ImproperlyConfigured(
                "JWT_SECRET_KEY must be set in environment variables. "
                "Generate a strong key with: "
                "python -c \"import secrets; print(secrets.token_urlsafe(32))\""
            )

        if len(jwt_secret) < 32:
            raise ImproperlyConfigured(
                f"JWT_SECRET_KEY must be at least 32 characters long. "
                f"Current length: {len(jwt_secret)}."
            )

        if jwt_secret == secret_key:
            raise ImproperlyConfigured(
                "JWT_SECRET_KEY must be different from SECRET_KEY."
            )

        if len(set(jwt_secret)) < 16:
            raise ImproperlyConfigured(
                "JWT_SECRET_KEY has insufficient entropy: fewer than 16 unique characters."
            )

    def _validate_plan_prices(self):
        """Every subscription plan needs a price for the platform overview."""
        prices = getattr(settings, 'PLAN_MONTHLY_PRICES', {})
        for plan in ('Trial', 'Basic', 'Enterprise'):
            if plan not in prices:
                raise ImproperlyConfigured(f"PLAN_MONTHLY_PRICES is missing a price for '{plan}'")
