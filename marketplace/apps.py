from django.apps import AppConfig


class MarketplaceConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'marketplace'
    verbose_name = 'Food Donation Marketplace'

    def ready(self):
        from . import receivers  # noqa: F401
