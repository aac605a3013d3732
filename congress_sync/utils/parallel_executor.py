"""
Bounded parallel execution of async operations.

Runs independent coroutine factories under a concurrency ceiling with a
delay between starts and index-stable result placement. With retry on,
a failed operation goes back to the end of the queue so pending work
starts first.

Responsibility: Concurrency-capped fan-out for detail fetches
"""

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import (
    Any, Awaitable, Callable, Deque, Generic, List, Optional, Sequence, Set, Tuple, TypeVar
)

logger = logging.getLogger(__name__)

T = TypeVar('T')
I = TypeVar('I')

Operation = Callable[[], Awaitable[T]]
ProgressCallback = Callable[[int, int], None]

CHUNK_PAUSE_SECONDS = 0.1


@dataclass
class ParallelExecutionResult(Generic[T]):
    """
    Aggregated outcome.

    `results` is aligned with the input operations; failed slots hold None.
    `errors` lists (index, exception) for operations that failed permanently.
    """
    results: List[Optional[T]] = field(default_factory=list)
    errors: List[Tuple[int, BaseException]] = field(default_factory=list)
    duration: float = 0.0
    completed: int = 0
    failed: int = 0


class ParallelExecutor:
    """
    Concurrency-capped executor.

    Example:
        executor = ParallelExecutor(concurrency=3, delay_between_seconds=0.15, retry=True)
        result = await executor.execute([lambda: fetch(1), lambda: fetch(2)])
    """

    def __init__(
        self,
        concurrency: int = 5,
        delay_between_seconds: float = 0.1,
        retry: bool = False,
        max_retries: int = 2,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if concurrency < 1:
            raise ValueError("Concurrency must be at least 1")
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        self.concurrency = concurrency
        self.delay_between_seconds = delay_between_seconds
        self.retry = retry
        self.max_retries = max_retries
        self._sleep = sleep

    async def execute(
        self,
        operations: Sequence[Operation[T]],
        on_progress: Optional[ProgressCallback] = None,
    ) -> ParallelExecutionResult[T]:
        """
        Run every operation, at most `concurrency` at a time.

        Args:
            operations: Zero-argument callables returning awaitables
            on_progress: Called with (completed, total) after each success

        Returns:
            ParallelExecutionResult with index-aligned results
        """
        start = time.monotonic()
        total = len(operations)
        outcome: ParallelExecutionResult[T] = ParallelExecutionResult(results=[None] * total)

        if total == 0:
            return outcome

        semaphore = asyncio.Semaphore(self.concurrency)
        # (index, operation, retries used); a failed operation rejoins at the back
        queue: Deque[Tuple[int, Operation[T], int]] = deque(
            (index, operation, 0) for index, operation in enumerate(operations)
        )
        in_flight: Set[asyncio.Task] = set()

        async def run(index: int, operation: Operation[T], attempts: int) -> None:
            try:
                value = await operation()
            except Exception as e:
                if self.retry and attempts < self.max_retries:
                    logger.debug(
                        f"Operation {index} failed ({e}), retry {attempts + 1}/{self.max_retries} queued"
                    )
                    queue.append((index, operation, attempts + 1))
                    return
                outcome.errors.append((index, e))
                outcome.failed += 1
                return
            finally:
                semaphore.release()

            outcome.results[index] = value
            outcome.completed += 1
            if on_progress:
                on_progress(outcome.completed, total)

        started = 0
        while queue or in_flight:
            if not queue:
                # Nothing to start until a running operation finishes (or requeues)
                await asyncio.wait(set(in_flight), return_when=asyncio.FIRST_COMPLETED)
                continue

            if started and self.delay_between_seconds > 0:
                await self._sleep(self.delay_between_seconds)
            await semaphore.acquire()

            index, operation, attempts = queue.popleft()
            task = asyncio.create_task(run(index, operation, attempts))
            in_flight.add(task)
            task.add_done_callback(in_flight.discard)
            started += 1

        outcome.errors.sort(key=lambda item: item[0])
        outcome.duration = time.monotonic() - start

        logger.debug(
            f"Parallel execution finished: {outcome.completed} completed, "
            f"{outcome.failed} failed in {outcome.duration:.2f}s"
        )
        return outcome

    async def execute_batch(
        self,
        items: Sequence[I],
        transform: Callable[[I, int], Awaitable[T]],
        on_progress: Optional[ProgressCallback] = None,
    ) -> ParallelExecutionResult[T]:
        """Apply an async transform to every item (called as transform(item, index))."""
        operations = [
            (lambda item=item, index=index: transform(item, index))
            for index, item in enumerate(items)
        ]
        return await self.execute(operations, on_progress=on_progress)

    async def execute_in_chunks(
        self,
        operations: Sequence[Operation[T]],
        chunk_size: int,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ParallelExecutionResult[T]:
        """
        Run operations chunk by chunk with a short pause between chunks.

        Error indexes are reported against the full operations list.
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")

        start = time.monotonic()
        total = len(operations)
        combined: ParallelExecutionResult[T] = ParallelExecutionResult()

        for offset in range(0, total, chunk_size):
            chunk = operations[offset:offset + chunk_size]

            progress: Optional[ProgressCallback] = None
            if on_progress:
                done_before = combined.completed

                def progress(completed: int, _chunk_total: int, _done=done_before) -> None:
                    on_progress(_done + completed, total)

            chunk_result = await self.execute(chunk, on_progress=progress)

            combined.results.extend(chunk_result.results)
            combined.errors.extend(
                (index + offset, error) for index, error in chunk_result.errors
            )
            combined.completed += chunk_result.completed
            combined.failed += chunk_result.failed

            if offset + chunk_size < total:
                await self._sleep(CHUNK_PAUSE_SECONDS)

        combined.duration = time.monotonic() - start
        return combined
