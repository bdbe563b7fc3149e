"""Durable history of saved artifacts.

The history is intentionally simple:

- the whole list lives under a single storage key (``lumina_history``)
- list order is reverse-chronological (newest first)
- every mutation rewrites the full list synchronously

The list is loaded once, when the store is constructed.  Entries that no
longer validate as :class:`~lumina.core.models.GeneratedArtifact` are
treated as stale metadata and pruned; the cleaned list is persisted
immediately so future loads observe the corrected history.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from .models import GeneratedArtifact
from .storage import HISTORY_KEY, LocalStorage

logger = logging.getLogger(__name__)


def load_history(storage: LocalStorage, key: str = HISTORY_KEY) -> list[GeneratedArtifact]:
    """Load the persisted history and drop entries that fail validation.

    The reconciliation rule is conservative:

    - if the document is missing or not a list, return an empty history
    - if an entry does not validate, drop it
    - if two entries share an id, keep the first (most recent)

    Args:
        storage: Local storage holding the history document.
        key: Storage key of the history document.

    Returns:
        Surviving artifacts in persisted order.
    """
    raw_entries = storage.get(key, [])
    if not isinstance(raw_entries, list):
        raw_entries = []

    artifacts: list[GeneratedArtifact] = []
    seen: set[str] = set()

    for entry in raw_entries:
        try:
            artifact = GeneratedArtifact.model_validate(entry)
        except ValidationError as e:
            logger.warning(f"Dropping invalid history entry: {e.error_count()} error(s)")
            continue

        if artifact.id in seen:
            logger.warning(f"Dropping duplicate history entry: {artifact.id}")
            continue

        seen.add(artifact.id)
        artifacts.append(artifact)

    if len(artifacts) != len(raw_entries):
        storage.set(key, [artifact.to_record() for artifact in artifacts])

    return artifacts


class ArtifactStore:
    """Ordered, persisted collection of saved artifacts.

    Args:
        storage: Local storage backing the history.
        key: Namespace key for the history document.
    """

    def __init__(self, storage: LocalStorage, key: str = HISTORY_KEY) -> None:
        self._storage = storage
        self._key = key
        self._artifacts = load_history(storage, key)
        logger.info(f"Loaded {len(self._artifacts)} artifact(s) from history")

    def _persist(self) -> None:
        self._storage.set(self._key, [artifact.to_record() for artifact in self._artifacts])

    def append(self, artifact: GeneratedArtifact) -> None:
        """Insert *artifact* at the head of the history and persist.

        An existing entry with the same id is replaced, so saving the same
        artifact twice never breaks id uniqueness.
        """
        self._artifacts = [a for a in self._artifacts if a.id != artifact.id]
        self._artifacts.insert(0, artifact)
        self._persist()
        logger.info(f"Saved artifact {artifact.id} ({len(self._artifacts)} in history)")

    def list(self) -> list[GeneratedArtifact]:
        """Return the history, most recent first."""
        return list(self._artifacts)

    def get(self, artifact_id: str) -> GeneratedArtifact | None:
        return next((a for a in self._artifacts if a.id == artifact_id), None)

    def replace(self, artifact: GeneratedArtifact) -> bool:
        """Swap in a new version of a saved artifact, keeping its position.

        Returns:
            True if an entry with the same id existed.
        """
        for index, existing in enumerate(self._artifacts):
            if existing.id == artifact.id:
                self._artifacts[index] = artifact
                self._persist()
                return True
        return False

    def remove(self, artifact_id: str) -> None:
        """Remove the artifact with *artifact_id*; unknown ids are a no-op."""
        remaining = [a for a in self._artifacts if a.id != artifact_id]
        if len(remaining) == len(self._artifacts):
            logger.debug(f"Remove ignored, artifact not in history: {artifact_id}")
            return
        self._artifacts = remaining
        self._persist()
        logger.info(f"Removed artifact {artifact_id}")

    def __len__(self) -> int:
        return len(self._artifacts)
