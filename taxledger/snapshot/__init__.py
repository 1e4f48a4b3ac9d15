"""State snapshot package for checkpointing and resuming processing."""

from .codec import SnapshotCodec, SnapshotMetadata, StateSnapshot, snapshot_decode, snapshot_encode
from .models import SNAPSHOT_FORMAT_VERSION

__all__ = [
    "SNAPSHOT_FORMAT_VERSION",
    "SnapshotCodec",
    "SnapshotMetadata",
    "StateSnapshot",
    "snapshot_decode",
    "snapshot_encode",
]
