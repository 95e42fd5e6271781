"""Snapshot of the last applied instance spec.

The snapshot is a JSON copy of the instance spec stored in a metadata
annotation. It is written whenever a plan starts and read back to find
out what changed since then.
"""

import json
import logging
from typing import Optional

from config import DEFAULT_SETTINGS, Settings
from instance.errors import SnapshotCorruptedError
from instance.model import Instance, InstanceSpec

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Saves and loads spec snapshots in instance annotations."""

    def __init__(self, settings: Settings = DEFAULT_SETTINGS):
        self.annotation = settings.snapshot_annotation

    def save(self, instance: Instance) -> str:
        """Store the current spec, replacing any previous snapshot.

        Returns:
            The serialized snapshot
        """
        snapshot = json.dumps(instance.spec.to_dict(), sort_keys=True)
        instance.metadata.annotations[self.annotation] = snapshot
        logger.debug(f"Saved snapshot for {instance.full_name}")
        return snapshot

    def load(self, instance: Instance) -> Optional[InstanceSpec]:
        """Return the last applied spec, or None if no snapshot exists.

        Raises:
            SnapshotCorruptedError: If the snapshot cannot be parsed
        """
        raw = instance.metadata.annotations.get(self.annotation)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise SnapshotCorruptedError(f"snapshot of instance {instance.full_name} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise SnapshotCorruptedError(f"snapshot of instance {instance.full_name} is not an object")
        return InstanceSpec.from_dict(data)
