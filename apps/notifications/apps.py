from django.apps import AppConfig  # type: ignore


class NotificationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.notifications"
    verbose_name = "Notifications"

    def ready(self) -> None:
        from apps.slots.domain.events import SlotConfirmed
        from shared.application.message_bus import message_bus

        from .services import on_slot_confirmed

        message_bus.register_event_handler(SlotConfirmed, on_slot_confirmed)
