"""
Recipe Share Backend — Best-Effort Image Cleanup
==================================================

What:  Deletes stored images that no recipe references any more.
When:  After a recipe delete (its image) or an image replacement on update
       (the previous image) has committed.
Why separate: the database write already succeeded and the client already
       has its answer, so a storage hiccup here must never turn into an error
       response. Failures are retried, then logged for an operator to sweep.
How:   Tenacity retries with exponential backoff and jitter; on exhaustion an
       ERROR record tagged event=image_cleanup_failed carries the public id.
"""

import logging
from typing import Optional

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    stop_after_attempt,
    wait_random_exponential,
)

from recipeshare.config import settings
from recipeshare.services.image_store import ImageStore

logger = logging.getLogger(__name__)


class ImageCleanup:
    """
    Retried, never-raising image discards.

    Args:
        store:    Image store to delete from
        attempts: Total delete attempts (settings.cleanup_retry_attempts)
        min_wait: Initial backoff in seconds (settings.cleanup_retry_min_wait)
        max_wait: Backoff cap in seconds (settings.cleanup_retry_max_wait)
    """

    def __init__(
        self,
        store: ImageStore,
        attempts: Optional[int] = None,
        min_wait: Optional[float] = None,
        max_wait: Optional[float] = None,
    ):
        self.store = store
        self.attempts = attempts or settings.cleanup_retry_attempts
        self.min_wait = settings.cleanup_retry_min_wait if min_wait is None else min_wait
        self.max_wait = settings.cleanup_retry_max_wait if max_wait is None else max_wait

    async def discard(self, public_id: Optional[str]) -> bool:
        """
        Deletes `public_id` from the store.

        Returns:
            True when the image is gone, False when every attempt failed.
            Images without a public id (external defaults) are skipped.
        """
        if not public_id:
            return True

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.attempts),
                wait=wait_random_exponential(multiplier=self.min_wait, max=self.max_wait),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    await self.store.delete(public_id)
        except Exception as e:
            logger.error(
                "Image cleanup failed for %s after %d attempts: %s",
                public_id,
                self.attempts,
                e,
                exc_info=True,
                extra={"event": "image_cleanup_failed", "public_id": public_id},
            )
            return False

        return True
