"""Bounded, persisted memory of previously analyzed dataset fingerprints."""

import json
import logging
from typing import List, Sequence, Tuple

from pydantic import TypeAdapter, ValidationError

from src.datasight.config import DATASET_MEMORY_KEY, MEMORY_CAPACITY
from src.datasight.models.dataset import DatasetFingerprint, FileRecord
from src.datasight.services.storage_service import KeyValueStore

logger = logging.getLogger(__name__)

_FINGERPRINT_LIST = TypeAdapter(List[DatasetFingerprint])


class DatasetMemoryStore:
    """
    Keeps the most recent dataset fingerprints, oldest first.

    The store never holds more than ``capacity`` entries; recording past
    capacity evicts from the front. Every ``record`` writes a full snapshot
    to durable storage. Restarting a conversation does not touch it.
    """

    def __init__(self, storage: KeyValueStore, capacity: int = MEMORY_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.storage = storage
        self.capacity = capacity
        self._entries: List[DatasetFingerprint] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def fingerprints(self) -> Tuple[DatasetFingerprint, ...]:
        return tuple(self._entries)

    def load(self) -> None:
        """Restore the store from durable storage; missing or corrupt data yields an empty store."""
        raw = self.storage.get(DATASET_MEMORY_KEY)
        if raw is None:
            self._entries = []
            return
        try:
            entries = _FINGERPRINT_LIST.validate_json(raw)
        except (ValidationError, ValueError) as exc:
            logger.warning("Dataset memory in storage is unreadable; starting empty: %s", exc)
            self._entries = []
            return
        self._entries = entries[-self.capacity:]
        logger.debug("Loaded %d dataset fingerprints from storage", len(self._entries))

    def record(self, fingerprint: DatasetFingerprint) -> None:
        self._entries.append(fingerprint)
        if len(self._entries) > self.capacity:
            self._entries = self._entries[-self.capacity:]
        self.storage.set(DATASET_MEMORY_KEY, self.snapshot())

    def record_batch(self, files: Sequence[FileRecord]) -> DatasetFingerprint:
        fingerprint = DatasetFingerprint.from_files(files)
        self.record(fingerprint)
        logger.info(
            "Recorded dataset fingerprint (%d files); memory holds %d/%d",
            fingerprint.file_count,
            len(self._entries),
            self.capacity,
        )
        return fingerprint

    def snapshot(self) -> str:
        return json.dumps([entry.model_dump(by_alias=True) for entry in self._entries])
