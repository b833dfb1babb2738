from __future__ import annotations

import logging
from datetime import datetime

from ..domain import lifecycle
from ..domain.notifications import Notifier
from ..domain.repositories import ReservationRepository
from ..models import Reservation, ReservationStatus
from ..utils.audit_log import emit_audit_log

logger = logging.getLogger(__name__)


async def sweep_expired(
    res_repo: ReservationRepository,
    notifier: Notifier,
    *,
    now: datetime,
) -> list[Reservation]:
    """
    Send the one-time expiry notice for every lapsed hold.

    Status stays `pending`: availability already ignores lapsed holds at read
    time, the sweep only drives the notice. A reservation whose notice fails
    keeps its flag unset and is picked up again on the next pass.
    """
    notified: list[Reservation] = []
    for reservation in await res_repo.list_expired_unnotified(now):
        if not lifecycle.needs_expiry_notice(reservation, now):
            continue
        try:
            await notifier.reservation_expired(reservation)
        except Exception:
            logger.exception("expiry notice for reservation %s failed", reservation.id)
            continue
        lifecycle.mark_expiry_notice_sent(reservation, now)
        await res_repo.save(reservation)
        try:
            emit_audit_log(
                action="reservation.expired",
                initiator="system",
                resource_id=reservation.resource_id,
                reservation_id=reservation.id,
                day=reservation.day,
                status_from=ReservationStatus.PENDING,
                status_to=lifecycle.EffectiveStatus.EXPIRED,
                version=reservation.version,
            )
        except RuntimeError:
            # The notice already went out; the flag has to survive the pass.
            logger.exception("audit record for expired reservation %s failed", reservation.id)
        notified.append(reservation)
    if notified:
        logger.info("sent %d expiry notices", len(notified))
    return notified
