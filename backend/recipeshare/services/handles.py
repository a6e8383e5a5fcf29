"""
Recipe Share Backend — Unique Handle Allocator
================================================

What:  Derives a unique public username from a display name.
How:   1. Sanitize: trim, lowercase, drop whitespace and anything outside
          [a-z0-9], cut to 20 characters; nothing left → "user"
       2. If the sanitized base is free, use it
       3. Otherwise try "<base>.<suffix>" with a random 6-character suffix,
          up to 10 times, then give up with AllocationExhausted

    The suffix alphabet has no vowels (no accidental words) and no 0/1
    (no confusion with o/l).

    `exists` is supplied by the caller. Sign-up binds it to the unit-of-work
    session, so the check and the insert share one transaction; a concurrent
    sign-up can still take the same handle between them, in which case the
    unique index on users.username rejects the insert.
"""

import logging
import re
import secrets
from typing import Awaitable, Callable

from recipeshare.exceptions import AllocationExhausted

logger = logging.getLogger(__name__)

SUFFIX_ALPHABET = "bcdfghjklmnpqrstvwxyz23456789"
SUFFIX_LENGTH = 6
MAX_BASE_LENGTH = 20
MAX_SUFFIX_ATTEMPTS = 10
FALLBACK_HANDLE = "user"

_DISALLOWED = re.compile(r"[^a-z0-9]")


def sanitize_handle(base: str) -> str:
    """
    Normalizes a display name into a handle base.

    >>> sanitize_handle("  Ada Lovelace! ")
    'adalovelace'
    >>> sanitize_handle("!!!")
    'user'
    """
    cleaned = _DISALLOWED.sub("", (base or "").strip().lower())
    return cleaned[:MAX_BASE_LENGTH] or FALLBACK_HANDLE


def generate_suffix(length: int = SUFFIX_LENGTH) -> str:
    return "".join(secrets.choice(SUFFIX_ALPHABET) for _ in range(length))


async def allocate_handle(
    base: str,
    exists: Callable[[str], Awaitable[bool]],
    suffix: Callable[[], str] = generate_suffix,
) -> str:
    """
    Returns a handle for `base` that `exists` reports as free.

    Args:
        base:   Display name to derive the handle from
        exists: Async predicate, True when a candidate is already taken
        suffix: Suffix generator (tests pass a deterministic one)

    Raises:
        AllocationExhausted: the base and 10 suffixed candidates were all taken
    """
    handle = sanitize_handle(base)
    if not await exists(handle):
        return handle

    for attempt in range(1, MAX_SUFFIX_ATTEMPTS + 1):
        candidate = f"{handle}.{suffix()}"
        if not await exists(candidate):
            logger.debug("Handle '%s' taken, allocated '%s' on attempt %d", handle, candidate, attempt)
            return candidate

    logger.error(
        "Could not allocate a handle for base '%s' after %d attempts",
        handle,
        MAX_SUFFIX_ATTEMPTS + 1,
    )
    raise AllocationExhausted(base=handle, attempts=MAX_SUFFIX_ATTEMPTS + 1)
