"""
Concurrent per-item updates with no rollback.

Used by category migrations and reorder. Updates run concurrently, at most
``max_concurrency`` at a time, and are joined; a failure in one does not
cancel or undo the others.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence

from app.exceptions import ErrorCode, UpstreamError, is_retryable_error

logger = logging.getLogger(__name__)

RETRY_HINT = "Retry the request; items that were already updated are skipped"
DEFAULT_MAX_CONCURRENCY = 3


async def run_bulk_updates(
    operation: str,
    item_ids: Sequence[str],
    update: Callable[[str], Awaitable[Any]],
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> int:
    """
    Run ``update(item_id)`` for every id, ``max_concurrency`` at a time.

    Returns:
        Number of successful updates.

    Raises:
        UpstreamError: If any update failed. ``details`` carries the
            ``succeeded``/``failed`` counts; successful updates stay applied.
    """
    if not item_ids:
        return 0

    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def update_with_semaphore(item_id: str) -> Any:
        async with semaphore:
            return await update(item_id)

    results = await asyncio.gather(
        *(update_with_semaphore(item_id) for item_id in item_ids),
        return_exceptions=True,
    )

    failures = [
        (item_id, result)
        for item_id, result in zip(item_ids, results)
        if isinstance(result, Exception)
    ]
    succeeded = len(results) - len(failures)

    if not failures:
        return succeeded

    for item_id, error in failures:
        logger.warning("%s failed for item %s: %s", operation, item_id, error)

    first_error = failures[0][1]
    logger.error(
        f"{operation} partially applied: {succeeded} succeeded, {len(failures)} failed",
        extra={"operation": operation, "succeeded": succeeded, "failed": len(failures)},
    )
    raise UpstreamError(
        f"{operation} failed for {len(failures)} of {len(results)} item(s)",
        operation=operation,
        succeeded=succeeded,
        failed=len(failures),
        error_code=ErrorCode.PARTIAL_FAILURE,
        hint=RETRY_HINT if all(is_retryable_error(e) for _, e in failures) else None,
        original_error=first_error,
    )
