"""
Batched configuration writes.

Large configuration sets are split into several frames. Every batch is sent
even if an earlier one failed; failures are reported per batch in the result.
"""
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterable, Sequence, TypeVar

from ..exceptions import RcuCancelledError, RcuError

T = TypeVar("T")


@dataclass
class RcuBatchError:
    batch_index: int
    indices: list[int]
    error: RcuError


@dataclass
class RcuBatchResult:
    success_count: int = 0
    fail_count: int = 0
    total_batches: int = 0
    errors: list[RcuBatchError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.fail_count == 0


def split_by_size(items: Iterable[T], size_of: Callable[[T], int], max_bytes: int) -> list[list[T]]:
    """Group items so that no batch exceeds max_bytes. An item larger than max_bytes gets a batch of its own."""
    batches: list[list[T]] = []
    current: list[T] = []
    current_size = 0
    for item in items:
        size = size_of(item)
        if current and current_size + size > max_bytes:
            batches.append(current)
            current, current_size = [], 0
        current.append(item)
        current_size += size
    if current:
        batches.append(current)
    return batches


def split_by_count(items: Sequence[T], per_batch: int) -> list[list[T]]:
    return [list(items[i:i + per_batch]) for i in range(0, len(items), per_batch)]


async def send_batches(batches: list[list[T]],
                       send: Callable[[int, list[T]], Awaitable[object]],
                       index_of: Callable[[T], int],
                       logger: logging.Logger,
                       what: str = "config") -> RcuBatchResult:
    """Send each batch with send(batch_index, batch), collecting failures instead of stopping at the first."""
    result = RcuBatchResult(total_batches=len(batches))
    for batch_index, batch in enumerate(batches):
        try:
            await send(batch_index, batch)
        except RcuCancelledError:
            raise
        except RcuError as e:
            result.fail_count += len(batch)
            result.errors.append(RcuBatchError(batch_index, [index_of(item) for item in batch], e))
            logger.error(f"Batch {batch_index + 1}/{len(batches)} of {what} failed: {e}")
            continue
        result.success_count += len(batch)
        logger.debug(f"Batch {batch_index + 1}/{len(batches)}: sent {len(batch)} {what}(s)")
    return result
