"""
Persisted inventory of managed containers and the discovery topics
published for them.
"""
import logging
import os
import sqlite3
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class InventoryRow:
    """A container as recorded in the inventory."""
    id: str
    name: str
    image: str
    tag: str


class InventoryStore:
    """
    SQLite store with a 'containers' and a 'topics' table.
    """

    def __init__(self, path: str = "data/database.db"):
        """
        Opens (and creates) the database.

        :param path: Database file, or ':memory:'.
        """
        if path != ":memory:":
            directory = os.path.dirname(path)
            if directory:
                os.makedirs(directory, exist_ok=True)
        self.path = path
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._conn:
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS containers(id TEXT PRIMARY KEY, name TEXT, image TEXT, tag TEXT)"
            )
            self._conn.execute(
                "CREATE TABLE IF NOT EXISTS topics(id INTEGER PRIMARY KEY AUTOINCREMENT, topic TEXT, containerId TEXT)"
            )
        logger.debug("Inventory opened at %s", path)

    def exists(self, container_id: str) -> bool:
        row = self._conn.execute("SELECT 1 FROM containers WHERE id = ?", (container_id,)).fetchone()
        return row is not None

    def get(self, container_id: str) -> Optional[InventoryRow]:
        row = self._conn.execute(
            "SELECT id, name, image, tag FROM containers WHERE id = ?", (container_id,)
        ).fetchone()
        return InventoryRow(**dict(row)) if row else None

    def upsert(self, container_id: str, name: str, image: str, tag: str) -> None:
        with self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO containers(id, name, image, tag) VALUES(?, ?, ?, ?)",
                (container_id, name, image, tag),
            )

    def delete(self, container_id: str) -> None:
        """Deletes the container row and its topics."""
        with self._conn:
            self._conn.execute("DELETE FROM containers WHERE id = ?", (container_id,))
            self._conn.execute("DELETE FROM topics WHERE containerId = ?", (container_id,))

    def list_all(self) -> List[InventoryRow]:
        rows = self._conn.execute("SELECT id, name, image, tag FROM containers ORDER BY name").fetchall()
        return [InventoryRow(**dict(row)) for row in rows]

    def add_topic(self, container_id: str, topic: str) -> None:
        """Records a discovery topic once per container."""
        with self._conn:
            exists = self._conn.execute(
                "SELECT 1 FROM topics WHERE containerId = ? AND topic = ?", (container_id, topic)
            ).fetchone()
            if not exists:
                self._conn.execute(
                    "INSERT INTO topics(topic, containerId) VALUES(?, ?)", (topic, container_id)
                )

    def get_topics(self, container_id: str) -> List[str]:
        rows = self._conn.execute(
            "SELECT topic FROM topics WHERE containerId = ? ORDER BY id", (container_id,)
        ).fetchall()
        return [row["topic"] for row in rows]

    def exclusive_topics(self, container_id: str) -> List[str]:
        """
        Topics of a container that no other container holds, the ones that
        are safe to clear when it goes away.
        """
        rows = self._conn.execute(
            "SELECT DISTINCT topic FROM topics WHERE containerId != ?", (container_id,)
        ).fetchall()
        shared = {row["topic"] for row in rows}
        return [topic for topic in self.get_topics(container_id) if topic not in shared]

    def close(self) -> None:
        self._conn.close()
