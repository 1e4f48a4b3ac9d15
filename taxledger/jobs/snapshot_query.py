"""Read-side access to the latest persisted snapshot."""

import logging
from pathlib import Path

from taxledger.db import SnapshotStorePort
from taxledger.snapshot import StateSnapshot, snapshot_decode

logger = logging.getLogger(__name__)


class LatestSnapshotQuery:
    """Loads and decodes the latest snapshot file of a snapshot directory."""

    def __init__(self, snapshot_store: SnapshotStorePort, snapshot_dir: Path):
        if snapshot_store is None:
            raise ValueError("snapshot_store must not be None")
        self._snapshot_store = snapshot_store
        self._snapshot_dir = Path(snapshot_dir)

    def snapshot_query_latest(self) -> StateSnapshot | None:
        """Return the latest snapshot, or None when none was written yet.

        Returns:
            StateSnapshot | None: Decoded snapshot.

        Raises:
            SnapshotSerializationError: Raised when the file cannot be read or decoded.
        """

        snapshot_path = self._snapshot_store.snapshot_latest_path(self._snapshot_dir)
        if snapshot_path is None:
            return None
        logger.debug("Loading snapshot %s", snapshot_path)
        return snapshot_decode(self._snapshot_store.snapshot_read(snapshot_path))


__all__ = ["LatestSnapshotQuery"]
