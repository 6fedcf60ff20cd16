"""
Module: inventory_ledger.selectors.replay_selector
Responsibility: Log-completeness verification.  Rebuilds the
    ``(component, location) -> quantity`` snapshot by folding every
    transaction record, in ``(created_at, id)`` order, over an empty ledger
    and compares it with the stored ``inventory_items`` snapshot.
Architecture position: Ledger > Selectors.  Read-only.

Invariants enforced:
    - An absent inventory row and a row with quantity 0 are the same state.
    - canonical_hash() is deterministic: same snapshot always produces the
      same hash, regardless of query order or Python dict ordering.

Audit relevance:
    A mismatch means something changed a quantity without a transaction
    record (or a record was tampered with).  Comparing canonical hashes
    across replays gives a cheap tamper check.
"""

import hashlib
import json
from collections.abc import Iterable

from sqlalchemy.orm import Session

from inventory_ledger.db.engine import LedgerDatabase
from inventory_ledger.domain.dtos import ReplayMismatch, ReplayVerification, TransactionRecord
from inventory_ledger.logging_config import get_logger
from inventory_ledger.selectors.base import BaseSelector
from inventory_ledger.services.ledger_store import LedgerStore
from inventory_ledger.services.transaction_log import SortOrder, TransactionLog

logger = get_logger("selectors.replay")

Snapshot = dict[tuple[int, int], int]


def replay_transactions(
    records: Iterable[TransactionRecord],
) -> tuple[Snapshot, tuple[tuple[int, int], ...]]:
    """
    Fold records over an empty ledger.

    Returns:
        (snapshot, keys that went negative at some point while folding)
    """
    snapshot: Snapshot = {}
    negative: list[tuple[int, int]] = []
    for record in records:
        for key, delta in record.deltas():
            quantity = snapshot.get(key, 0) + delta
            snapshot[key] = quantity
            if quantity < 0 and key not in negative:
                negative.append(key)
    return snapshot, tuple(sorted(negative))


def canonical_hash(snapshot: Snapshot) -> str:
    """
    SHA-256 over the non-zero entries of ``snapshot`` sorted by key.

    Returns:
        Hex-encoded SHA-256 hash.
    """
    hasher = hashlib.sha256()
    for (component_id, location_id), quantity in sorted(snapshot.items()):
        if quantity == 0:
            continue
        line = json.dumps(
            {"component_id": component_id, "location_id": location_id, "quantity": quantity},
            sort_keys=True,
            separators=(",", ":"),
        )
        hasher.update(line.encode("utf-8"))
        hasher.update(b"\n")
    return hasher.hexdigest()


def compare_snapshots(stored: Snapshot, replayed: Snapshot) -> tuple[ReplayMismatch, ...]:
    mismatches = []
    for key in sorted(set(stored) | set(replayed)):
        stored_qty = stored.get(key, 0)
        replayed_qty = replayed.get(key, 0)
        if stored_qty != replayed_qty:
            mismatches.append(
                ReplayMismatch(
                    component_id=key[0],
                    location_id=key[1],
                    stored_quantity=stored_qty,
                    replayed_quantity=replayed_qty,
                )
            )
    return tuple(mismatches)


class ReplaySelector(BaseSelector):
    """Replays the transaction log inside the caller's read scope."""

    def __init__(self, session: Session):
        super().__init__(session)

    def stored_snapshot(self) -> Snapshot:
        return LedgerStore(self.session).snapshot()

    def replayed_snapshot(self) -> tuple[Snapshot, tuple[tuple[int, int], ...], int]:
        records = TransactionLog(self.session).query(order=SortOrder.OLDEST_FIRST)
        snapshot, negative = replay_transactions(records)
        return snapshot, negative, len(records)

    def verify(self) -> ReplayVerification:
        stored = self.stored_snapshot()
        replayed, negative, count = self.replayed_snapshot()
        result = ReplayVerification(
            transaction_count=count,
            stored_hash=canonical_hash(stored),
            replayed_hash=canonical_hash(replayed),
            mismatches=compare_snapshots(stored, replayed),
            negative_keys=negative,
        )
        if result.is_consistent:
            logger.info(
                "replay_verified",
                extra={"transaction_count": count, "snapshot_hash": result.stored_hash},
            )
        else:
            logger.error(
                "replay_mismatch_detected",
                extra={
                    "transaction_count": count,
                    "mismatches": len(result.mismatches),
                    "negative_keys": [list(k) for k in negative],
                },
            )
        return result


def verify_ledger(database: LedgerDatabase) -> ReplayVerification:
    """Run ``ReplaySelector.verify()`` in a fresh read scope."""
    with database.read_scope() as session:
        return ReplaySelector(session).verify()
