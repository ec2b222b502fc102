import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import closing
from datetime import date
from pathlib import Path
from typing import Dict, Optional, Tuple

from pyactivesite.data_containers import Alignment, Match_record


class Match_store(ABC):
    """
    Records, per (motif, structure) pair, whether the motif was found in the structure. Writing a record for a pair
    that already has one replaces it, so repeated writes of the same outcome are harmless.
    """

    @abstractmethod
    def lookup(self, motif_ID: str, structure_ID: str) -> Optional[Match_record]:
        ...

    @abstractmethod
    def record(self, match_record: Match_record) -> None:
        ...

    @abstractmethod
    def count(self) -> int:
        ...

    @abstractmethod
    def clear(self, motif_ID: Optional[str] = None) -> int:
        """Deletes all the records, or only those of the given motif. Returns the number of deleted records."""
        ...


class In_memory_match_store(Match_store):
    def __init__(self) -> None:
        self._records: Dict[Tuple[str, str], Match_record] = {}
        self._lock = threading.Lock()

    def lookup(self, motif_ID: str, structure_ID: str) -> Optional[Match_record]:
        with self._lock:
            return self._records.get((motif_ID, structure_ID))

    def record(self, match_record: Match_record) -> None:
        with self._lock:
            self._records[(match_record.motif_ID, match_record.structure_ID)] = match_record

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def clear(self, motif_ID: Optional[str] = None) -> int:
        with self._lock:
            keys_to_delete = [key for key in self._records if motif_ID is None or key[0] == motif_ID]
            for key in keys_to_delete:
                del self._records[key]

        return len(keys_to_delete)


class SQLite_match_store(Match_store):
    """Match records persisted in a SQLite database file. A new connection is opened for each operation."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_database(self) -> None:
        with closing(self._connect()) as connection, connection:
            connection.execute("""
                CREATE TABLE IF NOT EXISTS match_records (
                    motif_ID TEXT NOT NULL,
                    structure_ID TEXT NOT NULL,
                    matched INTEGER NOT NULL,
                    recorded_on TEXT NOT NULL,
                    motif_fingerprint TEXT NOT NULL DEFAULT '',
                    structure_fingerprint TEXT NOT NULL DEFAULT '',
                    precision_factor REAL NOT NULL DEFAULT 1.0,
                    alignment TEXT,
                    PRIMARY KEY (motif_ID, structure_ID)
                )
            """)

    def lookup(self, motif_ID: str, structure_ID: str) -> Optional[Match_record]:
        with closing(self._connect()) as connection:
            row = connection.execute("""
                SELECT matched, recorded_on, motif_fingerprint, structure_fingerprint, precision_factor, alignment
                FROM match_records
                WHERE motif_ID = ? AND structure_ID = ?
            """, (motif_ID, structure_ID)).fetchone()

        if row is None:
            return None

        matched, recorded_on, motif_fingerprint, structure_fingerprint, precision_factor, alignment_json = row
        return Match_record(
            motif_ID=motif_ID,
            structure_ID=structure_ID,
            matched=bool(matched),
            recorded_on=date.fromisoformat(recorded_on),
            motif_fingerprint=motif_fingerprint,
            structure_fingerprint=structure_fingerprint,
            precision_factor=float(precision_factor),
            alignment=Alignment.from_dict(json.loads(alignment_json)) if alignment_json else None,
        )

    def record(self, match_record: Match_record) -> None:
        alignment_json = json.dumps(match_record.alignment.to_dict()) if match_record.alignment is not None else None
        with closing(self._connect()) as connection, connection:
            connection.execute("""
                INSERT OR REPLACE INTO match_records
                (motif_ID, structure_ID, matched, recorded_on, motif_fingerprint, structure_fingerprint, precision_factor, alignment)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                match_record.motif_ID, match_record.structure_ID, int(match_record.matched), match_record.recorded_on.isoformat(),
                match_record.motif_fingerprint, match_record.structure_fingerprint, match_record.precision_factor, alignment_json
            ))

    def count(self) -> int:
        with closing(self._connect()) as connection:
            (n_records,) = connection.execute("SELECT COUNT(*) FROM match_records").fetchone()
        return int(n_records)

    def clear(self, motif_ID: Optional[str] = None) -> int:
        with closing(self._connect()) as connection, connection:
            if motif_ID is None:
                cursor = connection.execute("DELETE FROM match_records")
            else:
                cursor = connection.execute("DELETE FROM match_records WHERE motif_ID = ?", (motif_ID,))
        return cursor.rowcount


def record_is_reusable(match_record: Match_record, motif_fingerprint: str, structure_fingerprint: str, precision_factor: float) -> bool:
    """
    A record can only be trusted if neither the motif nor the structure changed since it was written, and if it was computed
    with the same precision factor.
    """
    if match_record.motif_fingerprint != motif_fingerprint or match_record.structure_fingerprint != structure_fingerprint:
        return False
    if match_record.precision_factor != precision_factor:
        return False
    # Positive records written without their alignment can't be used to answer a request
    return not match_record.matched or match_record.alignment is not None
