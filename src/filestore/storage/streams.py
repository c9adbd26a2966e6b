"""Async plumbing between callers and blocking provider channels."""

import asyncio
import logging
from typing import AsyncIterator, BinaryIO, Callable, Optional

logger = logging.getLogger("filestore.storage.streams")

DEFAULT_CHUNK_SIZE = 256 * 1024  # bytes per read from a download channel
DEFAULT_QUEUE_SIZE = 16  # chunks buffered between caller and provider


class UploadSink:
    """
    Write end of a streaming upload.

    Chunks go through a bounded queue, so ``write()`` suspends while the
    provider lags behind. ``close()`` marks the end of the object. Once the
    forwarding has failed, writes raise the provider error.
    """

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE):
        self._queue: "asyncio.Queue[Optional[bytes]]" = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._error: Optional[BaseException] = None

    @property
    def closed(self) -> bool:
        return self._closed

    async def write(self, data: bytes) -> None:
        if self._error is not None:
            raise self._error
        if self._closed:
            raise ValueError("write to closed upload stream")
        if data:
            await self._queue.put(bytes(data))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._error is None:
            await self._queue.put(None)

    async def __aenter__(self) -> "UploadSink":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ---------- forwarding side ---------- #
    async def _next_chunk(self) -> Optional[bytes]:
        return await self._queue.get()

    def _fail(self, error: BaseException) -> None:
        self._error = error
        # Unblock writers stuck on a full queue
        while not self._queue.empty():
            self._queue.get_nowait()


async def forward_to_channel(
    sink: UploadSink,
    open_channel: Callable[[], BinaryIO],
    object_key: str,
) -> str:
    """
    Drain *sink* into the provider channel returned by *open_channel*.
    Returns *object_key* once the channel is closed, i.e. the provider
    has the whole object.
    """
    try:
        channel = await asyncio.to_thread(open_channel)
        try:
            while True:
                chunk = await sink._next_chunk()
                if chunk is None:
                    break
                await asyncio.to_thread(channel.write, chunk)
        except BaseException:
            # Leave nothing half-written behind on the provider side
            await asyncio.to_thread(_discard, channel)
            raise
        await asyncio.to_thread(channel.close)
    except Exception as e:
        logger.error(f"Streaming upload of '{object_key}' failed: {e}")
        sink._fail(e)
        raise
    logger.info(f"Streaming upload of '{object_key}' completed")
    return object_key


def _discard(channel: BinaryIO) -> None:
    discard = getattr(channel, "discard", None)
    if discard is not None:
        discard()
    else:
        channel.close()


async def iter_channel(
    channel: BinaryIO, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> AsyncIterator[bytes]:
    """Yield the channel's bytes chunk by chunk, closing it at the end."""
    try:
        while True:
            chunk = await asyncio.to_thread(channel.read, chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        await asyncio.to_thread(channel.close)
