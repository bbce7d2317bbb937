"""Vector index adapters: USearch HNSW on disk, exact numpy search in memory."""

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from usearch.index import Index as USearchIndex

from .exceptions import DimensionMismatch, ValidationError
from .models import VectorEntry, VectorMatch

logger = logging.getLogger(__name__)


class BaseVectorIndex(ABC):
    """
    Similarity-searchable store of (key, vector, metadata) entries.

    Keys are unique: upserting an existing key replaces its vector and
    metadata (last write wins).
    """

    def __init__(self, embedding_dim: int):
        self.embedding_dim = embedding_dim

    def _check_dim(self, vector: Sequence[float]) -> None:
        if len(vector) != self.embedding_dim:
            raise DimensionMismatch(self.embedding_dim, len(vector))

    @abstractmethod
    def upsert(self, entries: Sequence[VectorEntry]) -> None:
        """Insert or overwrite entries."""
        pass

    @abstractmethod
    def query(
        self,
        vector: Sequence[float],
        top_k: int = 5,
        include_metadata: bool = True,
    ) -> List[VectorMatch]:
        """Nearest neighbours by cosine similarity, best first."""
        pass

    @abstractmethod
    def __len__(self) -> int:
        pass


class InMemoryVectorIndex(BaseVectorIndex):
    """Exact cosine search over vectors held in memory."""

    def __init__(self, embedding_dim: int):
        super().__init__(embedding_dim)
        self._entries: Dict[str, Tuple[np.ndarray, dict]] = {}
        self._lock = threading.Lock()

    def upsert(self, entries: Sequence[VectorEntry]) -> None:
        for entry in entries:
            self._check_dim(entry.embedding)
        with self._lock:
            for entry in entries:
                self._entries[entry.key] = (
                    np.asarray(entry.embedding, dtype=np.float32),
                    dict(entry.metadata),
                )

    def query(
        self,
        vector: Sequence[float],
        top_k: int = 5,
        include_metadata: bool = True,
    ) -> List[VectorMatch]:
        if top_k < 1:
            raise ValidationError(f"top_k must be positive, got {top_k}")
        self._check_dim(vector)
        with self._lock:
            snapshot = dict(self._entries)
        if not snapshot:
            return []

        keys = list(snapshot)
        matrix = np.stack([snapshot[k][0] for k in keys])
        q = np.asarray(vector, dtype=np.float32)

        norms = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
        with np.errstate(divide="ignore", invalid="ignore"):
            scores = np.where(norms > 0, matrix @ q / norms, 0.0)

        # Stable sort keeps insertion order among equal scores
        order = np.argsort(-scores, kind="stable")[:top_k]
        return [
            VectorMatch(
                key=keys[i],
                score=float(scores[i]),
                metadata=dict(snapshot[keys[i]][1]) if include_metadata else {},
            )
            for i in order
        ]

    def __len__(self) -> int:
        return len(self._entries)


class USearchVectorIndex(BaseVectorIndex):
    """
    USearch HNSW index with string keys.

    USearch labels are integers, so a SQLite side table maps each string
    key to its current label and stores the entry metadata as JSON.
    Overwriting a key removes the old label and assigns a fresh one.
    """

    def __init__(
        self,
        index_path: str,
        embedding_dim: int,
        *,
        keymap_path: Optional[str] = None,
        metric: str = "cos",
        dtype: str = "f32",
        connectivity: int = 16,
        expansion_add: int = 128,
        expansion_search: int = 64,
    ):
        super().__init__(embedding_dim)
        self.index_path = Path(index_path)
        self.keymap_path = Path(keymap_path) if keymap_path else self.index_path.with_suffix(".keys.db")
        self.metric = metric
        self.dtype = dtype
        self.connectivity = connectivity
        self.expansion_add = expansion_add
        self.expansion_search = expansion_search

        self.index = self._init_index()
        self._lock = threading.RLock()
        self.conn = sqlite3.connect(str(self.keymap_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_keymap()

    def _init_index(self) -> USearchIndex:
        """Initialize or load the USearch index."""
        if self.index_path.exists():
            index = USearchIndex.restore(str(self.index_path))
            if index is not None:
                if index.ndim != self.embedding_dim:
                    raise DimensionMismatch(self.embedding_dim, index.ndim)
                return index
            logger.warning("Could not restore %s, starting an empty index", self.index_path)

        return USearchIndex(
            ndim=self.embedding_dim,
            metric=self.metric,
            dtype=self.dtype,
            connectivity=self.connectivity,
            expansion_add=self.expansion_add,
            expansion_search=self.expansion_search,
        )

    def _init_keymap(self) -> None:
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS vector_keys (
                label INTEGER PRIMARY KEY AUTOINCREMENT,
                key TEXT NOT NULL UNIQUE,
                metadata_json TEXT
            )
        """)
        self.conn.commit()

    def upsert(self, entries: Sequence[VectorEntry]) -> None:
        if not entries:
            return
        for entry in entries:
            self._check_dim(entry.embedding)

        # Last write wins within the batch as well
        latest: Dict[str, VectorEntry] = {}
        for entry in entries:
            latest[entry.key] = entry
        entries = list(latest.values())
        vectors = np.asarray([e.embedding for e in entries], dtype=np.float32)

        with self._lock:
            cursor = self.conn.cursor()
            old_labels: List[int] = []
            labels: List[int] = []
            added = False
            try:
                for entry in entries:
                    row = cursor.execute(
                        "SELECT label FROM vector_keys WHERE key = ?", (entry.key,)
                    ).fetchone()
                    if row is not None:
                        old_labels.append(int(row["label"]))
                        cursor.execute("DELETE FROM vector_keys WHERE label = ?", (row["label"],))
                    cursor.execute(
                        "INSERT INTO vector_keys (key, metadata_json) VALUES (?, ?)",
                        (entry.key, json.dumps(entry.metadata, ensure_ascii=False, default=str)),
                    )
                    labels.append(cursor.lastrowid)

                self.index.add(np.asarray(labels, dtype=np.uint64), vectors)
                added = True
                self.conn.commit()
            except Exception:
                self.conn.rollback()
                if added:
                    for label in labels:
                        self.index.remove(label)
                raise

            # Old vectors go only once their replacements are committed
            for label in old_labels:
                if label in self.index:
                    self.index.remove(label)
            self.save()

    def query(
        self,
        vector: Sequence[float],
        top_k: int = 5,
        include_metadata: bool = True,
    ) -> List[VectorMatch]:
        if top_k < 1:
            raise ValidationError(f"top_k must be positive, got {top_k}")
        self._check_dim(vector)
        q = np.asarray(vector, dtype=np.float32)

        with self._lock:
            size = len(self.index)
            if size == 0:
                return []
            count = min(top_k, size)
            while True:
                results = self._resolve(self.index.search(q, count), include_metadata)
                # Labels without a key row are skipped; widen the search until top_k are found
                if len(results) >= top_k or count >= size:
                    return results[:top_k]
                count = min(count * 2, size)

    def _resolve(self, matches, include_metadata: bool) -> List[VectorMatch]:
        results = []
        cursor = self.conn.cursor()
        for match in matches:
            row = cursor.execute(
                "SELECT key, metadata_json FROM vector_keys WHERE label = ?",
                (int(match.key),),
            ).fetchone()
            if row is None:
                continue
            metadata = {}
            if include_metadata and row["metadata_json"]:
                metadata = json.loads(row["metadata_json"])
            results.append(VectorMatch(
                key=row["key"],
                score=1.0 - float(match.distance),
                metadata=metadata,
            ))
        return results

    def save(self) -> None:
        """Persist index to disk."""
        with self._lock:
            self.index.save(str(self.index_path))

    def close(self) -> None:
        with self._lock:
            self.save()
            self.conn.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self.index)
