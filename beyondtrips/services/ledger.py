"""Append-only writer for the driver earnings ledger."""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from beyondtrips.config import settings
from beyondtrips.models.reward import DriverEarning

logger = logging.getLogger(__name__)

BTL_COIN_DESCRIPTION = "BTL Coin reward from rider interaction"


async def append_btl_coin_earning(
    db: AsyncSession, driver_id: uuid.UUID, points: int = 1
) -> DriverEarning:
    """
    Insert one earning row worth `points` BTL coins.

    The amount is computed from the configured coin value now and stored;
    later changes to the rate do not touch existing rows. BTL coins are not
    counted as scans.
    """
    if points < 1:
        raise ValueError("points must be a positive integer")

    earning = DriverEarning(
        driver_id=driver_id,
        scans=0,
        points=points,
        amount=points * settings.btl_coin_value_ngn,
        currency=settings.btl_coin_currency,
        type="bonus",
        source="btl_coin",
        status="active",
        description=BTL_COIN_DESCRIPTION,
    )
    db.add(earning)
    await db.flush()
    logger.info(
        "Ledger: driver %s +%d %s (%d point%s)",
        driver_id, earning.amount, earning.currency, points, "" if points == 1 else "s",
    )
    return earning
