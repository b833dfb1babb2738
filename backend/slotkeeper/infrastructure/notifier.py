import logging

from ..domain.notifications import Notifier
from ..models import Reservation

logger = logging.getLogger("notifications")


class LoggingNotifier(Notifier):
    """Stand-in for the messaging provider: records what would have been sent."""

    async def reservation_created(self, reservation: Reservation) -> None:
        logger.info(
            "reservation %s created for resource %s on %s (%s)",
            reservation.id,
            reservation.resource_id,
            reservation.day.isoformat(),
            reservation.status.value,
        )

    async def reservation_expired(self, reservation: Reservation) -> None:
        logger.info(
            "hold on reservation %s for resource %s on %s expired; notifying %s",
            reservation.id,
            reservation.resource_id,
            reservation.day.isoformat(),
            reservation.customer_phone,
        )
