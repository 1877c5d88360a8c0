# node_admin/storage/maintainer.py
"""Archiving and cleanup of host-local node storage."""

import logging
import shutil
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Optional

from node_admin.agent.context import NodeAgentContext
from node_admin.core.errors import StorageFault

logger = logging.getLogger(__name__)


TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
PARTIAL_SUFFIX = ".partial"


class StorageMaintainer(ABC):
    """Storage capability used by node agents."""

    @abstractmethod
    def archive_node_storage(self, context: NodeAgentContext) -> Optional[Path]:
        """
        Move the node's live storage to the archive area and clear it.

        Safe to call repeatedly: returns None when there is nothing left
        to archive. Raises StorageFault on failure.
        """
        raise NotImplementedError

    @abstractmethod
    def cleanup_after_archive(self) -> List[Path]:
        """Delete archives older than the retention period."""
        raise NotImplementedError


class FileSystemStorageMaintainer(StorageMaintainer):
    """
    Keeps each node's data under ``storage_root/<container name>``.

    Archives land in ``archive_root/<container name>_<UTC timestamp>``.
    A move first goes to a hidden ``.partial`` directory and is renamed
    when complete, so the archive area never holds a half-written archive
    under its final name. A partial directory left by an interrupted move
    is finished by the next archive call for that node. Archives never
    share a directory: a second archive within the same second gets a
    ``-1``, ``-2``, ... suffix.
    """

    def __init__(
        self,
        storage_root: Path,
        archive_root: Path,
        retention: timedelta = timedelta(days=7),
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.storage_root = Path(storage_root)
        self.archive_root = Path(archive_root)
        self.retention = retention
        self._clock = clock

    def live_path(self, context: NodeAgentContext) -> Path:
        return self.storage_root / context.container_name.name

    def archive_node_storage(self, context: NodeAgentContext) -> Optional[Path]:
        live = self.live_path(context)
        name = context.container_name.name

        try:
            recovered = self._finish_partial_archives(name)
            if not live.exists() or not any(live.iterdir()):
                if recovered:
                    return recovered[-1]
                logger.info(f"[storage] Nothing to archive for {context.container_name}")
                return None

            self.archive_root.mkdir(parents=True, exist_ok=True)
            stamp = self._clock().strftime(TIMESTAMP_FORMAT)
            final = self._unique_archive_path(f"{name}_{stamp}")
            partial = _partial_path(final)

            logger.info(f"[storage] Archiving {live} -> {final}")
            partial.mkdir(parents=True)
            for entry in list(live.iterdir()):
                shutil.move(str(entry), str(partial / entry.name))
            partial.rename(final)
        except OSError as e:
            raise StorageFault(
                f"Failed to archive storage of {context.container_name}: {e}"
            ) from e

        logger.info(f"[storage] ✅ Archived storage of {context.container_name}")
        return final

    def _finish_partial_archives(self, name: str) -> List[Path]:
        """Complete archives whose move was interrupted. Returns their final paths."""
        if not self.archive_root.exists():
            return []

        finished = []
        for partial in sorted(self.archive_root.glob(f".{name}_*.partial")):
            if not any(partial.iterdir()):
                partial.rmdir()
                continue
            base = partial.name[1:-len(PARTIAL_SUFFIX)]
            final = self.archive_root / base
            n = 1
            while final.exists():
                final = self.archive_root / f"{base}-{n}"
                n += 1
            partial.rename(final)
            logger.warning(f"[storage] Finished interrupted archive {final.name}")
            finished.append(final)
        return finished

    def _unique_archive_path(self, base: str) -> Path:
        candidate = self.archive_root / base
        n = 1
        while candidate.exists() or _partial_path(candidate).exists():
            candidate = self.archive_root / f"{base}-{n}"
            n += 1
        return candidate

    def cleanup_after_archive(self) -> List[Path]:
        if not self.archive_root.exists():
            return []

        cutoff = self._clock() - self.retention
        removed = []
        for archive in sorted(self.archive_root.iterdir()):
            if archive.name.startswith("."):
                continue
            archived_at = _archived_at(archive.name)
            if archived_at is None or archived_at >= cutoff:
                continue
            try:
                shutil.rmtree(archive)
            except OSError as e:
                logger.error(f"[storage] Failed to delete archive {archive}: {e}")
                continue
            logger.info(f"[storage] Deleted expired archive {archive.name}")
            removed.append(archive)
        return removed


def _partial_path(final: Path) -> Path:
    return final.with_name(f".{final.name}{PARTIAL_SUFFIX}")


def _archived_at(archive_name: str) -> Optional[datetime]:
    # <name>_<stamp> or <name>_<stamp>-<n>
    stamp = archive_name.rpartition("_")[2].split("-")[0]
    try:
        return datetime.strptime(stamp, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None
