"""Reference point acquisition with a bounded wait."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from . import config
from .models import ReferencePoint

logger = logging.getLogger(__name__)

LocationProvider = Callable[[], Awaitable[Optional[ReferencePoint]]]


async def acquire_reference_point(
    provider: LocationProvider,
    timeout: float = config.GEOLOCATION_TIMEOUT_SECONDS,
) -> Optional[ReferencePoint]:
    """One-shot location lookup; timeout or failure means no reference point."""
    try:
        return await asyncio.wait_for(provider(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.info("Reference point not available within %.1fs", timeout)
        return None
    except Exception as exc:
        logger.info("Reference point provider failed: %s", exc)
        return None


def static_provider(latitude: float, longitude: float) -> LocationProvider:
    async def provide() -> Optional[ReferencePoint]:
        return ReferencePoint(latitude=float(latitude), longitude=float(longitude))

    return provide
