from django.apps import AppConfig


class RentalsConfig(AppConfig):
    name = "apps.rentals"
    label = "rentals"
    verbose_name = "Rental checkout"

    def ready(self) -> None:
        from shared.application.message_bus import message_bus

        from .application.command_handlers import register_command_handlers
        from .handlers import register_event_handlers
        from .infrastructure.booking_api import RentalApiClient

        register_event_handlers(message_bus)
        register_command_handlers(message_bus, RentalApiClient.from_settings())
