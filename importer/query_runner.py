import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class DirectoryQueryRunner:
    """
    Run blocking directory queries from asyncio code.

    Each query executes in a thread pool; an asyncio.Semaphore caps how many
    are outstanding at once so a large import does not flood the directory.
    """

    def __init__(
        self,
        max_concurrent_queries: int = 8,
        executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.max_concurrent_queries = max(1, max_concurrent_queries)
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.max_concurrent_queries,
            thread_name_prefix="directory-query",
        )
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._semaphore_loop = None

        logger.debug(
            f"Directory query runner initialized (max concurrent: {self.max_concurrent_queries})"
        )

    def _get_semaphore(self) -> asyncio.Semaphore:
        loop = asyncio.get_running_loop()
        # A semaphore belongs to one event loop; each asyncio.run() gets a fresh one
        if self._semaphore is None or self._semaphore_loop is not loop:
            self._semaphore = asyncio.Semaphore(self.max_concurrent_queries)
            self._semaphore_loop = loop
        return self._semaphore

    async def run(self, func: Callable[..., Any], *args) -> Any:
        """Run one blocking call in the thread pool and await its result."""
        loop = asyncio.get_running_loop()
        async with self._get_semaphore():
            return await loop.run_in_executor(
                self._executor, functools.partial(func, *args)
            )

    async def run_many(
        self, func: Callable[[Any], Any], items: Iterable[Any]
    ) -> List[Tuple[Any, Any]]:
        """
        Fan out one call per item and wait for the whole batch.

        Exceptions are returned in place of results, never raised, so one
        failing query does not abort the batch.

        Returns:
            List[Tuple[Any, Any]]: (item, result_or_exception) pairs in input order
        """
        items = list(items)
        if not items:
            return []
        results = await asyncio.gather(
            *(self.run(func, item) for item in items), return_exceptions=True
        )
        return list(zip(items, results))

    def shutdown(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=True)
            logger.debug("Directory query thread pool shut down")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
