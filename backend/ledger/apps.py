from django.apps import AppConfig
from django.core.signals import setting_changed


class LedgerConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "ledger"
    verbose_name = "Cafe loyalty ledger"

    def ready(self):
        from . import catalog

        catalog.load_catalog()
        setting_changed.connect(catalog.reload_on_setting_change, dispatch_uid="ledger-catalog-reload")
