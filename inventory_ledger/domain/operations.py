"""
Operations -- the tagged union of ledger mutations.

Responsibility:
    Defines the four mutation payloads accepted by the TransferEngine.  Each
    variant carries only the fields meaningful to it: ``AddStock`` has no
    source location, ``RemoveStock`` and ``ConsumeStock`` have no
    destination, ``TransferStock`` has both.

Architecture position:
    Ledger > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - quantity is a positive ``int`` (``bool`` is rejected).
    - A transfer's source and destination differ.
    - ``touched_keys()`` is sorted, so every caller locks rows in the same
      global order.

Failure modes:
    - NonPositiveQuantityError, SameLocationError from ``validate()``.

Data flow:
    Operation -> validate() -> TransferEngine.apply() -> TransactionRecord
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Union

from inventory_ledger.exceptions import NonPositiveQuantityError, SameLocationError


class TransactionType(str, Enum):
    """Kind of stock mutation recorded in the log.

    REMOVE and CONSUME share mechanics but are kept apart so reporting can
    separate stock that was moved out or returned from stock used up in
    production.
    """

    ADD = "add"
    REMOVE = "remove"
    TRANSFER = "transfer"
    CONSUME = "consume"


DEFAULT_CONSUME_NOTES = "Used in production"


def validate_quantity(quantity: object) -> int:
    """Return ``quantity`` if it is a positive integer, else raise."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise NonPositiveQuantityError(quantity)
    return quantity


@dataclass(frozen=True)
class AddStock:
    """Receive stock into a location."""

    component_id: int
    location_id: int
    quantity: int
    notes: str | None = None
    actor_id: int | None = None

    transaction_type: ClassVar[TransactionType] = TransactionType.ADD

    @property
    def from_location_id(self) -> None:
        return None

    @property
    def to_location_id(self) -> int:
        return self.location_id

    def validate(self) -> None:
        validate_quantity(self.quantity)

    def touched_keys(self) -> tuple[tuple[int, int], ...]:
        return ((self.component_id, self.location_id),)


@dataclass(frozen=True)
class RemoveStock:
    """Take stock out of a location (returns, scrap, corrections)."""

    component_id: int
    location_id: int
    quantity: int
    notes: str | None = None
    actor_id: int | None = None

    transaction_type: ClassVar[TransactionType] = TransactionType.REMOVE

    @property
    def from_location_id(self) -> int:
        return self.location_id

    @property
    def to_location_id(self) -> None:
        return None

    def validate(self) -> None:
        validate_quantity(self.quantity)

    def touched_keys(self) -> tuple[tuple[int, int], ...]:
        return ((self.component_id, self.location_id),)


@dataclass(frozen=True)
class ConsumeStock:
    """Use stock up in production.  Same mechanics as RemoveStock."""

    component_id: int
    location_id: int
    quantity: int
    notes: str | None = DEFAULT_CONSUME_NOTES
    actor_id: int | None = None

    transaction_type: ClassVar[TransactionType] = TransactionType.CONSUME

    @property
    def from_location_id(self) -> int:
        return self.location_id

    @property
    def to_location_id(self) -> None:
        return None

    def validate(self) -> None:
        validate_quantity(self.quantity)

    def touched_keys(self) -> tuple[tuple[int, int], ...]:
        return ((self.component_id, self.location_id),)


@dataclass(frozen=True)
class TransferStock:
    """Move stock between two locations, conserving the component total."""

    component_id: int
    from_location_id: int
    to_location_id: int
    quantity: int
    notes: str | None = None
    actor_id: int | None = None

    transaction_type: ClassVar[TransactionType] = TransactionType.TRANSFER

    def validate(self) -> None:
        validate_quantity(self.quantity)
        if self.from_location_id == self.to_location_id:
            raise SameLocationError(self.from_location_id)

    def touched_keys(self) -> tuple[tuple[int, int], ...]:
        return tuple(sorted({
            (self.component_id, self.from_location_id),
            (self.component_id, self.to_location_id),
        }))


Operation = Union[AddStock, RemoveStock, ConsumeStock, TransferStock]
