"""Custom sample repository — CRUD operations for the encrypted data bank.

The repository mediates between CustomHealthSample objects and the SQLite
database, using FieldEncryptor to encrypt/decrypt sample payloads.

Dates are stored as UTC ISO 8601 strings so that lexical order matches
chronological order.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from typing import Any

from mhc.core.storage.database import HealthDatabase
from mhc.core.storage.encryption import FieldEncryptor
from mhc.core.storage.models import CustomHealthSample

logger = logging.getLogger(__name__)


class RepositoryError(Exception):
    """Raised when repository operations fail."""


def _to_utc_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


class CustomSampleRepository:
    """CRUD repository for encrypted custom health samples.

    Usage::

        db = HealthDatabase(":memory:")
        db.initialize()
        encryptor = FieldEncryptor(key="...")
        repo = CustomSampleRepository(db, encryptor)

        sample_id = repo.save_sample(sample)
        latest = repo.get_latest_sample("bloodLipids")
    """

    def __init__(self, database: HealthDatabase, encryptor: FieldEncryptor) -> None:
        self._db = database
        self._enc = encryptor

    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def _now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()

    # ------------------------------------------------------------------
    # Samples
    # ------------------------------------------------------------------

    def save_sample(self, sample: CustomHealthSample) -> str:
        """Persist a sample with an encrypted payload.

        Args:
            sample: The sample to save. If ``sample.id`` is empty, a UUID
                will be generated.

        Returns:
            The sample ID.

        Raises:
            RepositoryError: If the end date is before the start date or
                the ID is already taken.
        """
        if sample.end_date < sample.start_date:
            raise RepositoryError("Sample end date is before its start date")

        conn = self._db.connection
        sid = sample.id or self._new_id()
        created = sample.created_at or self._now_iso()

        try:
            conn.execute(
                """INSERT INTO custom_health_samples (
                    id, sample_type, start_date, end_date, payload_enc, created_at
                ) VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    sid,
                    sample.sample_type,
                    _to_utc_iso(sample.start_date),
                    _to_utc_iso(sample.end_date),
                    self._enc.encrypt_payload(sample.value, sample.unit),
                    created,
                ),
            )
        except sqlite3.Error as exc:
            conn.rollback()
            raise RepositoryError(f"Failed to save sample {sid}: {exc}") from exc

        conn.commit()
        sample.id = sid
        sample.created_at = created
        logger.info("Saved custom sample %s (type=%s)", sid, sample.sample_type)
        return sid

    def get_sample(self, sample_id: str) -> CustomHealthSample | None:
        """Retrieve a sample by ID, decrypting its payload.

        Returns:
            The decrypted sample, or None if not found.
        """
        row = self._db.connection.execute(
            "SELECT * FROM custom_health_samples WHERE id = ?", (sample_id,)
        ).fetchone()
        if row is None:
            return None
        return self._row_to_sample(row)

    def get_samples(
        self,
        sample_type: str | None = None,
        *,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int = 100,
    ) -> list[CustomHealthSample]:
        """Query samples with optional filters.

        Args:
            sample_type: Filter by sample type identifier.
            since: Samples ending at or after this instant.
            until: Samples starting before this instant.
            limit: Maximum results to return.

        Returns:
            List of decrypted samples, newest (by end date) first.
        """
        conditions: list[str] = []
        params: list[Any] = []

        if sample_type:
            conditions.append("sample_type = ?")
            params.append(sample_type)
        if since:
            conditions.append("end_date >= ?")
            params.append(_to_utc_iso(since))
        if until:
            conditions.append("start_date < ?")
            params.append(_to_utc_iso(until))

        query = "SELECT * FROM custom_health_samples"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY end_date DESC, created_at DESC LIMIT ?"
        params.append(limit)

        rows = self._db.connection.execute(query, params).fetchall()
        return [self._row_to_sample(row) for row in rows]

    def get_latest_sample(self, sample_type: str) -> CustomHealthSample | None:
        """Get the most recent sample of a type."""
        results = self.get_samples(sample_type, limit=1)
        return results[0] if results else None

    def count_samples(self, sample_type: str | None = None) -> int:
        """Return the number of stored samples, optionally of one type."""
        conn = self._db.connection
        if sample_type:
            row = conn.execute(
                "SELECT COUNT(*) FROM custom_health_samples WHERE sample_type = ?", (sample_type,)
            ).fetchone()
        else:
            row = conn.execute("SELECT COUNT(*) FROM custom_health_samples").fetchone()
        return row[0]

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_sample(self, sample_id: str) -> bool:
        """Delete a single sample.

        Returns:
            True if a sample was found and deleted, False otherwise.
        """
        conn = self._db.connection
        cursor = conn.execute("DELETE FROM custom_health_samples WHERE id = ?", (sample_id,))
        conn.commit()
        if cursor.rowcount == 0:
            return False
        logger.info("Deleted custom sample %s", sample_id)
        return True

    def purge_before(self, before: datetime) -> int:
        """Delete all samples that ended before ``before``.

        Returns:
            Number of samples deleted.
        """
        cutoff = _to_utc_iso(before)
        conn = self._db.connection
        cursor = conn.execute("DELETE FROM custom_health_samples WHERE end_date < ?", (cutoff,))
        conn.commit()
        logger.info("Purged %d custom samples older than %s", cursor.rowcount, cutoff)
        return cursor.rowcount

    def delete_all_samples(self) -> int:
        """Delete ALL custom samples.

        Returns:
            Number of samples deleted.
        """
        conn = self._db.connection
        cursor = conn.execute("DELETE FROM custom_health_samples")
        conn.commit()
        logger.warning("Deleted ALL custom health samples: %d removed", cursor.rowcount)
        return cursor.rowcount

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _row_to_sample(self, row: Any) -> CustomHealthSample:
        """Convert a database row to a CustomHealthSample with decrypted payload."""
        value, unit = self._enc.decrypt_payload(row["payload_enc"])
        return CustomHealthSample(
            id=row["id"],
            sample_type=row["sample_type"],
            value=value,
            unit=unit,
            start_date=datetime.fromisoformat(row["start_date"]),
            end_date=datetime.fromisoformat(row["end_date"]),
            created_at=row["created_at"],
        )
