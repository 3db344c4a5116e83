"""
Audit Spine

Append-only record of every gate state change. Each write is
``(actor_id, action_type, payload)`` and returns the event id so callers
can reference it downstream.

Two spines share one interface:
  - AuditSpineManager writes to the PostgreSQL ``audit_events`` table, where
    a trigger fills in event_hash / previous_event_hash.
  - MemoryAuditSpine keeps events in process and computes the same hash
    chain itself. Tests use it, and so does the devnet when no database is
    configured.
"""

from __future__ import annotations

import hashlib
import json
import os
import time
from datetime import datetime, timezone
from typing import Any, Optional, Protocol
from uuid import uuid4

import psycopg2


def db_config_from_env() -> dict[str, Any]:
    return {
        "host": os.environ.get("GOVGATE_DB_HOST", "localhost"),
        "port": int(os.environ.get("GOVGATE_DB_PORT", "5433")),
        "dbname": os.environ.get("GOVGATE_DB_NAME", "govgate"),
        "user": os.environ.get("GOVGATE_DB_USER", "admin"),
        "password": os.environ.get("GOVGATE_DB_PASSWORD", ""),
    }


DB_CONFIG = db_config_from_env()

POLICY_VERSION = "1.0.0"
GENESIS = "GENESIS"


class AuditSpine(Protocol):
    def log_event(
        self,
        actor_id: str,
        action_type: str,
        intent_payload: dict[str, Any],
        policy_version: str = POLICY_VERSION,
    ) -> str: ...

    def get_event(self, event_id: str) -> Optional[dict[str, Any]]: ...

    def events_for_proposal(self, proposal_id: str) -> list[dict[str, Any]]: ...


def compute_event_hash(prev_hash: str, actor_id: str, action_type: str,
                       intent_payload: str, policy_version: str,
                       created_at: str) -> str:
    """Hash formula shared with the database trigger."""
    material = (
        f"{prev_hash}|{actor_id}|{action_type}"
        f"|{intent_payload}|{policy_version}|{created_at}"
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


def verify_chain(events: list[dict[str, Any]]) -> bool:
    """Recompute every hash in *events* (oldest first) and check the links."""
    prev = GENESIS
    for event in events:
        if event["previous_event_hash"] != prev:
            return False
        expected = compute_event_hash(
            prev,
            event["actor_id"],
            event["action_type"],
            json.dumps(event["intent_payload"], sort_keys=True),
            event["policy_version"],
            event["created_at"],
        )
        if expected != event["event_hash"]:
            return False
        prev = event["event_hash"]
    return True


# ---------------------------------------------------------------------------
# PostgreSQL spine
# ---------------------------------------------------------------------------

_COLUMNS = (
    "id, created_at, actor_id, action_type, "
    "intent_payload, policy_version, event_hash, previous_event_hash"
)


def _row_to_event(row) -> dict[str, Any]:
    return {
        "id": str(row[0]),
        "created_at": row[1],
        "actor_id": row[2],
        "action_type": row[3],
        "intent_payload": row[4],
        "policy_version": row[5],
        "event_hash": row[6],
        "previous_event_hash": row[7],
    }


class AuditSpineManager:
    """
    Append-only writer for the audit_events ledger.

    All inserts go through this class so that every gate component shares
    one interface.
    """

    def __init__(self, db_config: dict | None = None):
        self._db_config = db_config or DB_CONFIG

    def _connect(self):
        return psycopg2.connect(**self._db_config)

    def get_event(self, event_id: str) -> Optional[dict[str, Any]]:
        """Fetch a single audit event by ID, or None."""
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute(
                f"SELECT {_COLUMNS} FROM audit_events WHERE id = %s",
                (event_id,),
            )
            row = cur.fetchone()
            cur.close()
            return None if row is None else _row_to_event(row)
        finally:
            conn.close()

    def events_for_proposal(self, proposal_id: str) -> list[dict[str, Any]]:
        """Every event whose payload names *proposal_id*, oldest first."""
        conn = self._connect()
        try:
            cur = conn.cursor()
            cur.execute(
                f"SELECT {_COLUMNS} FROM audit_events "
                "WHERE intent_payload->>'proposal_id' = %s "
                "ORDER BY created_at ASC, id ASC",
                (proposal_id,),
            )
            rows = cur.fetchall()
            cur.close()
            return [_row_to_event(row) for row in rows]
        finally:
            conn.close()

    def log_event(
        self,
        actor_id: str,
        action_type: str,
        intent_payload: dict[str, Any],
        policy_version: str = POLICY_VERSION,
        _max_retries: int = 3,
    ) -> str:
        """
        Write an event to the Audit Spine and return its UUID.

        The hash-chaining trigger handles event_hash and previous_event_hash.
        Retries on UniqueViolation (concurrent inserts racing for the same
        previous_event_hash).
        """
        for attempt in range(_max_retries):
            conn = self._connect()
            try:
                cur = conn.cursor()
                cur.execute(
                    "INSERT INTO audit_events "
                    "(actor_id, action_type, intent_payload, policy_version) "
                    "VALUES (%s, %s, %s, %s) "
                    "RETURNING id",
                    (
                        actor_id,
                        action_type,
                        json.dumps(intent_payload, sort_keys=True),
                        policy_version,
                    ),
                )
                event_id = str(cur.fetchone()[0])
                conn.commit()
                cur.close()
                return event_id
            except (psycopg2.errors.UniqueViolation, psycopg2.errors.DeadlockDetected):
                conn.rollback()
                if attempt < _max_retries - 1:
                    time.sleep(0.05 * (attempt + 1))
                    continue
                raise
            finally:
                conn.close()
        raise RuntimeError("log_event: exhausted retries")


# ---------------------------------------------------------------------------
# In-process spine
# ---------------------------------------------------------------------------

class MemoryAuditSpine:
    """Hash-chained event list held in memory."""

    def __init__(self):
        self.events: list[dict[str, Any]] = []

    def log_event(
        self,
        actor_id: str,
        action_type: str,
        intent_payload: dict[str, Any],
        policy_version: str = POLICY_VERSION,
    ) -> str:
        prev = self.events[-1]["event_hash"] if self.events else GENESIS
        created_at = datetime.now(timezone.utc).isoformat()
        # Round-trip so stored payloads hold plain JSON values only.
        payload = json.loads(json.dumps(intent_payload, sort_keys=True))
        event = {
            "id": str(uuid4()),
            "created_at": created_at,
            "actor_id": actor_id,
            "action_type": action_type,
            "intent_payload": payload,
            "policy_version": policy_version,
            "previous_event_hash": prev,
            "event_hash": compute_event_hash(
                prev, actor_id, action_type,
                json.dumps(payload, sort_keys=True),
                policy_version, created_at,
            ),
        }
        self.events.append(event)
        return event["id"]

    def get_event(self, event_id: str) -> Optional[dict[str, Any]]:
        for event in self.events:
            if event["id"] == event_id:
                return event
        return None

    def events_for_proposal(self, proposal_id: str) -> list[dict[str, Any]]:
        return [
            e for e in self.events
            if e["intent_payload"].get("proposal_id") == proposal_id
        ]

    def action_types(self) -> list[str]:
        return [e["action_type"] for e in self.events]


def spine_from_env() -> AuditSpine:
    """PostgreSQL spine when ``GOVGATE_DB_HOST`` is set, in-process otherwise."""
    if os.environ.get("GOVGATE_DB_HOST"):
        return AuditSpineManager(db_config_from_env())
    return MemoryAuditSpine()
