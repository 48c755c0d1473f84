from django.apps import AppConfig


class ProcurementConfig(AppConfig):
    """Stock reconciliation, reports and note workflows over Supabase."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "procurement"
