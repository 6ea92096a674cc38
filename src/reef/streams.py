"""Merge several byte streams (e.g. stdout and stderr) into one."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterable, AsyncIterator, Sequence

ByteSource = asyncio.StreamReader | AsyncIterable[bytes]

READ_CHUNK_SIZE = 64 * 1024
_QUEUE_SIZE = 64
_END = object()


async def iter_chunks(source: ByteSource) -> AsyncIterator[bytes]:
    """Yield raw chunks from a stream reader or any async byte iterable."""

    if isinstance(source, asyncio.StreamReader):
        while True:
            chunk = await source.read(READ_CHUNK_SIZE)
            if not chunk:
                return
            yield chunk
    else:
        async for chunk in source:
            yield chunk


async def merge_streams(sources: Sequence[ByteSource]) -> AsyncIterator[bytes]:
    """Forward chunks from every source as they arrive.

    Chunks of one source keep their order; there is no ordering across
    sources. The merged stream ends once all sources ended, and the first
    source failure is raised before any further chunk is yielded.
    """

    if not sources:
        return

    queue: asyncio.Queue[object] = asyncio.Queue(maxsize=_QUEUE_SIZE)
    failures: list[BaseException] = []

    async def pump(source: ByteSource) -> None:
        try:
            async for chunk in iter_chunks(source):
                await queue.put(chunk)
        except Exception as error:  # noqa: BLE001
            failures.append(error)
        await queue.put(_END)

    tasks = [asyncio.create_task(pump(source)) for source in sources]
    remaining = len(tasks)
    try:
        while remaining:
            item = await queue.get()
            if failures:
                raise failures[0]
            if item is _END:
                remaining -= 1
                continue
            yield item  # type: ignore[misc]
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
