"""Crash-safe JSON snapshot storage for job and event state."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path

import aiofiles
import aiofiles.os

from reef.models import JobStatus, Snapshot

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Atomic save / tolerant load of one snapshot document."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    async def save(self, snapshot: Snapshot) -> None:
        """Write to a unique temp file beside the destination, then atomically replace it."""

        payload = json.dumps(snapshot.to_dict(), ensure_ascii=False, indent=2)
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.",
            suffix=".tmp",
            dir=self.path.parent,
        )
        os.close(fd)
        try:
            async with aiofiles.open(tmp_name, "w", encoding="utf-8") as handle:
                await handle.write(payload)
                await handle.flush()
                await asyncio.to_thread(os.fsync, handle.fileno())
            await aiofiles.os.replace(tmp_name, self.path)
        except BaseException:
            try:
                await aiofiles.os.remove(tmp_name)
            except FileNotFoundError:
                pass
            raise

    async def load(self) -> Snapshot:
        """Read the snapshot; any missing or invalid document yields an empty one.

        Every restored job is marked stale because its process did not survive
        the restart.
        """

        try:
            async with aiofiles.open(self.path, encoding="utf-8") as handle:
                raw = await handle.read()
        except FileNotFoundError:
            return Snapshot()
        except (OSError, UnicodeDecodeError) as error:
            logger.warning("Snapshot %s unreadable, starting empty: %s", self.path, error)
            return Snapshot()

        try:
            snapshot = Snapshot.from_dict(json.loads(raw))
        except (ValueError, TypeError, RecursionError) as error:
            logger.warning("Snapshot %s invalid, starting empty: %s", self.path, error)
            return Snapshot()

        for job in (*snapshot.jobs, *snapshot.completed):
            job.status = JobStatus.STALE
        return snapshot
