"""Bounded batches flushed to the Store.

A batch flushes as soon as it reaches its threshold. The pending
generation is detached before the sink is awaited, so records added
during a slow flush go to the next generation. A failed generation is
put back in front of the newer records and retried on the next trigger;
nothing is dropped, and a Store that keeps failing makes the batch grow
without bound.
"""
from typing import Awaitable, Callable, Generic, List, Sequence, TypeVar

from trendstream.core.errors import PersistenceError
from trendstream.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 250


class BatchWriter(Generic[T]):
    """Accumulates records and hands full generations to ``sink``."""

    def __init__(
        self,
        name: str,
        sink: Callable[[Sequence[T]], Awaitable[bool]],
        threshold: int = DEFAULT_BATCH_SIZE,
    ):
        self.name = name
        self.sink = sink
        self.threshold = threshold
        self._pending: List[T] = []
        self.flushes = 0
        self.failed_flushes = 0
        self.records_flushed = 0

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> List[T]:
        return list(self._pending)

    async def add(self, record: T) -> bool:
        """
        Append a record, flushing when the threshold is reached.

        Returns:
            False only when a triggered flush failed
        """
        self._pending.append(record)
        if len(self._pending) >= self.threshold:
            return await self.flush()
        return True

    async def flush(self) -> bool:
        """Hand the pending generation to the sink; keep it on failure."""
        if not self._pending:
            return True

        generation, self._pending = self._pending, []
        ok = False
        try:
            ok = bool(await self.sink(generation))
        except PersistenceError as e:
            logger.error(f"Flush of {self.name} failed: {e}")
        except Exception as e:
            logger.exception(f"Unexpected error flushing {self.name}: {type(e).__name__}: {e}")
        finally:
            # Runs on cancellation too
            if not ok:
                self._pending = generation + self._pending
                self.failed_flushes += 1

        if not ok:
            logger.warning(f"Keeping {len(generation)} {self.name} records for the next flush")
            return False

        self.flushes += 1
        self.records_flushed += len(generation)
        logger.info(f"Flushed {len(generation)} {self.name} records")
        return True
