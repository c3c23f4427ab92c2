"""
Append-only record of purchases the ledger has confirmed.

The whole log lives in a single JSON blob under a fixed key of the
``local_storage`` table and is rewritten on every append. Loading a blob
that does not parse resets the log to empty and records the problem on
``load_error`` instead of raising.
"""
import json
import logging
from typing import Callable, List, Optional, Tuple

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from medcover.errors import PersistedLogCorrupt
from medcover.local_database import LocalStorageEntry
from medcover.model import TransactionRecord, TransactionType

logger = logging.getLogger(__name__)

TRANSACTIONS_KEY = "transactions"

_records_adapter = TypeAdapter(List[TransactionRecord])


class LocalTransactionLog:
    def __init__(self, session_factory: Callable[[], Session], key: str = TRANSACTIONS_KEY):
        self._session_factory = session_factory
        self._key = key
        self._records: List[TransactionRecord] = []
        self._hashes: set[str] = set()
        self.load_error: Optional[PersistedLogCorrupt] = None

    def load(self) -> None:
        self._records = []
        self._hashes = set()
        self.load_error = None

        db = self._session_factory()
        try:
            entry = db.get(LocalStorageEntry, self._key)
            raw = entry.value if entry else None
        finally:
            db.close()

        if raw is None:
            return

        try:
            records = _records_adapter.validate_python(json.loads(raw))
        except (json.JSONDecodeError, ValidationError, TypeError) as exc:
            self.load_error = PersistedLogCorrupt(f"Stored transaction log is unreadable: {exc}")
            logger.warning("Transaction log '%s' is corrupt, starting empty: %s", self._key, exc)
            return

        for record in records:
            # tolerate duplicates written by older clients
            if record.hash in self._hashes:
                continue
            self._records.append(record)
            self._hashes.add(record.hash)

        logger.info("Loaded %d transaction(s) from '%s'", len(self._records), self._key)

    def append(self, record: TransactionRecord) -> bool:
        """Add a record. Returns False, writing nothing, when its hash is already logged."""
        if record.hash in self._hashes:
            logger.debug("Transaction %s already logged", record.hash)
            return False

        updated = self._records + [record]
        self._save(updated)
        self._records = updated
        self._hashes.add(record.hash)
        return True

    def _save(self, records: List[TransactionRecord]) -> None:
        payload = json.dumps(
            [r.model_dump(mode="json", by_alias=True) for r in records]
        )
        db = self._session_factory()
        try:
            entry = db.get(LocalStorageEntry, self._key)
            if entry is None:
                db.add(LocalStorageEntry(key=self._key, value=payload))
            else:
                entry.value = payload
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def all(self) -> Tuple[TransactionRecord, ...]:
        return tuple(self._records)

    def of_type(self, type: TransactionType) -> Tuple[TransactionRecord, ...]:
        wanted = TransactionType(type)
        return tuple(r for r in self._records if r.type == wanted)

    def contains(self, hash: str) -> bool:
        return hash in self._hashes

    def get(self, hash: str) -> Optional[TransactionRecord]:
        for record in self._records:
            if record.hash == hash:
                return record
        return None

    def __len__(self) -> int:
        return len(self._records)
