"""
Order numbers: ``<PREFIX>-<YYYYMMDD>-<SUFFIX>``, e.g. ``RAY-20261019-7K3QX9ZD``.

The suffix is drawn from the OS CSPRNG over a 32-symbol alphabet without
look-alike characters (no I, L, O, U), which keeps numbers easy to read out
over the phone. There is no counter, so concurrent checkouts never contend;
the unique index on ``orders.order_number`` remains the final guard.
"""
import re
import secrets
from datetime import datetime, timezone
from functools import lru_cache
from typing import Awaitable, Callable, Optional

import structlog

from shared.config.settings import ORDER_NUMBER_MAX_ATTEMPTS, ORDER_NUMBER_PREFIX
from shared.errors import GenerationFailure
from shared.observability import ecomm_order_number_collisions_total

logger = structlog.get_logger(__name__)

ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
SUFFIX_LENGTH = 8


def new_order_number(prefix: str = ORDER_NUMBER_PREFIX, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    suffix = "".join(secrets.choice(ALPHABET) for _ in range(SUFFIX_LENGTH))
    return f"{prefix.upper()}-{now:%Y%m%d}-{suffix}"


async def generate_order_number(
    exists: Callable[[str], Awaitable[bool]],
    prefix: str = ORDER_NUMBER_PREFIX,
    max_attempts: int = ORDER_NUMBER_MAX_ATTEMPTS,
) -> str:
    """Returns a number for which ``exists`` is false, retrying on collision."""
    for attempt in range(1, max_attempts + 1):
        candidate = new_order_number(prefix)
        if not await exists(candidate):
            return candidate
        ecomm_order_number_collisions_total.inc()
        logger.warning("order_number_collision", order_number=candidate, attempt=attempt)

    logger.error("order_number_exhausted", attempts=max_attempts)
    raise GenerationFailure()


@lru_cache(maxsize=8)
def _pattern(prefix: str) -> re.Pattern:
    # Suffixes of 4 characters are still accepted for numbers issued before
    # the random suffix was lengthened.
    return re.compile(rf"{re.escape(prefix)}-\d{{8}}-[0-9A-Z]{{4,16}}")


def normalize_order_number(raw: str, prefix: str = ORDER_NUMBER_PREFIX) -> Optional[str]:
    """Canonical form of a customer-typed number, or None if it cannot be one."""
    if not isinstance(raw, str):
        return None
    candidate = raw.strip().upper()
    if _pattern(prefix.upper()).fullmatch(candidate):
        return candidate
    return None
