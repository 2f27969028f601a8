from django.apps import AppConfig  # type: ignore


class SlotsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.slots"
    verbose_name = "Slots"
