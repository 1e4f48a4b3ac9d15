"""File-system persistence for encoded state snapshots."""

import logging
import re
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from taxledger.domain import SnapshotSerializationError

from .interfaces import SnapshotStorePort

logger = logging.getLogger(__name__)

SNAPSHOT_FILENAME_PATTERN = re.compile(r"^snapshot-\d{4}-\d{2}-\d{2}-\d{6}\.json$")


class FileSnapshotStore(SnapshotStorePort):
    """Stores snapshots as `snapshot-YYYY-MM-DD-HHMMSS.json` files.

    File names carry the last processed transaction timestamp in the reporting
    time zone, so the lexicographically greatest name is the latest snapshot.
    """

    def __init__(self, report_timezone: ZoneInfo):
        if report_timezone is None:
            raise ValueError("report_timezone must not be None")
        self._report_timezone = report_timezone

    def snapshot_build_filename(self, last_transaction_date: datetime) -> str:
        """Build the snapshot file name for a last transaction timestamp.

        Args:
            last_transaction_date: Offset-aware timestamp of the last applied transaction.

        Returns:
            str: File name such as `snapshot-2022-01-10-153000.json`.

        Raises:
            ValueError: Raised when the timestamp is naive.
        """

        if last_transaction_date.tzinfo is None:
            raise ValueError("last_transaction_date must be offset-aware")
        local_timestamp = last_transaction_date.astimezone(self._report_timezone)
        return f"snapshot-{local_timestamp.strftime('%Y-%m-%d-%H%M%S')}.json"

    def snapshot_build_path(self, directory: Path, last_transaction_date: datetime) -> Path:
        return Path(directory) / self.snapshot_build_filename(last_transaction_date)

    def snapshot_write(self, payload: bytes, path: Path) -> None:
        """Write snapshot bytes, replacing the target file atomically.

        Args:
            payload: Encoded snapshot.
            path: Target file path.

        Raises:
            SnapshotSerializationError: Raised when the file cannot be written.
        """

        target_path = Path(path)
        temporary_path = target_path.with_name(f".{target_path.name}.tmp")
        try:
            target_path.parent.mkdir(parents=True, exist_ok=True)
            temporary_path.write_bytes(payload)
            temporary_path.replace(target_path)
        except OSError as error:
            raise SnapshotSerializationError(f"failed to write snapshot file {target_path}: {error}") from error
        logger.info("Wrote snapshot %s (%d bytes)", target_path, len(payload))

    def snapshot_read(self, path: Path) -> bytes:
        """Read snapshot bytes.

        Raises:
            SnapshotSerializationError: Raised when the file cannot be read.
        """

        try:
            return Path(path).read_bytes()
        except OSError as error:
            raise SnapshotSerializationError(f"failed to read snapshot file {path}: {error}") from error

    def snapshot_list_candidates(self, directory: Path) -> list[str]:
        """List snapshot file names in a directory, sorted ascending.

        A missing directory yields an empty list.

        Raises:
            SnapshotSerializationError: Raised when the directory cannot be listed.
        """

        snapshot_dir = Path(directory)
        if not snapshot_dir.is_dir():
            return []
        try:
            names = [entry.name for entry in snapshot_dir.iterdir() if entry.is_file()]
        except OSError as error:
            raise SnapshotSerializationError(f"failed to list snapshot directory {snapshot_dir}: {error}") from error
        return sorted(name for name in names if SNAPSHOT_FILENAME_PATTERN.match(name))

    def snapshot_latest_path(self, directory: Path) -> Path | None:
        candidates = self.snapshot_list_candidates(directory)
        if not candidates:
            return None
        return Path(directory) / candidates[-1]


__all__ = ["FileSnapshotStore", "SNAPSHOT_FILENAME_PATTERN"]
