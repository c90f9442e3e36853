import asyncio
import logging
from typing import AsyncIterator, Iterable, TypeVar

T = TypeVar("T")

LOG = logging.getLogger("narrative.streaming")

_DONE = object()


def iter_as_async(it: Iterable[T]) -> AsyncIterator[T]:
    """Adapt a blocking iterator for async consumers; each ``next`` runs in a worker thread.

    Closing the async iterator early closes the source as well, so a streamed
    HTTP response is released when its consumer goes away.
    """

    async def gen() -> AsyncIterator[T]:
        iterator = iter(it)
        try:
            while True:
                item = await asyncio.to_thread(next, iterator, _DONE)
                if item is _DONE:
                    break
                yield item
        finally:
            close = getattr(iterator, "close", None)
            if close is not None:
                try:
                    close()
                except ValueError:
                    # next() is still running in its worker thread
                    LOG.debug("stream_close_deferred")

    return gen()
