"""
Typed Exception Hierarchy for the Inventory Ledger.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (API handlers, the stock-count importer, the CLI) need
to tell a bad request from a stock shortfall from a database outage without
parsing message strings. Every error therefore:

  1. Has its own class (catch by type, not message)
  2. Carries a ``code`` class attribute (machine-readable, API-safe)
  3. Stores its context as attributes (component_id, requested, ...)

Example:
    try:
        engine.transfer(component_id, main_id, line_id, 20)
    except InsufficientQuantityError as e:
        return {"error": e.code, "available": e.available}
    except ValidationError as e:
        return {"error": e.code, "detail": str(e)}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryLedgerError (base)
    |
    +-- ValidationError                 rejected before any state is touched
    |   +-- NonPositiveQuantityError
    |   +-- SameLocationError
    |   +-- UnknownComponentError
    |   +-- UnknownLocationError
    |   +-- InvalidThresholdError
    |
    +-- InsufficientQuantityError       rejected atomically, zero side effects
    |
    +-- InfrastructureError             store unavailable / timeout, never retried
    |   +-- StoreUnavailableError
    |   +-- LockTimeoutError
    |   +-- DatabaseNotOpenError
    |
    +-- ImmutabilityViolationError      attempt to rewrite the transaction log
    |
    +-- ConfigurationError              invalid settings

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Validation      | NON_POSITIVE_QUANTITY       | quantity <= 0 or not an integer
                | SAME_LOCATION               | transfer from == to
                | UNKNOWN_COMPONENT           | component id / number does not exist
                | UNKNOWN_LOCATION            | location id does not exist
                | INVALID_THRESHOLD           | negative min stock level
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_QUANTITY       | requested > available at location
----------------|-----------------------------|-----------------------------------------
Infrastructure  | STORE_UNAVAILABLE           | database error inside a unit of work
                | LOCK_TIMEOUT                | row lock not acquired in time
                | DATABASE_NOT_OPEN           | LedgerDatabase used before open()
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | UPDATE/DELETE of a transaction record
----------------|-----------------------------|-----------------------------------------
Config          | CONFIGURATION_ERROR         | bad YAML / environment value

===============================================================================
DESIGN DECISIONS
===============================================================================

1. Infrastructure errors are surfaced, never retried. A mutation that timed
   out may or may not have reached the database from the client's point of
   view, and replaying it blindly could apply it twice.

2. InsufficientQuantityError is not a ValidationError. The request was well
   formed; the ledger state did not allow it.
"""


class InventoryLedgerError(Exception):
    """
    Base exception for all inventory ledger errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_LEDGER_ERROR"


# Validation exceptions


class ValidationError(InventoryLedgerError):
    """Base exception for malformed requests."""

    code: str = "VALIDATION_ERROR"


class NonPositiveQuantityError(ValidationError):
    """Quantity is zero, negative or not a whole number."""

    code: str = "NON_POSITIVE_QUANTITY"

    def __init__(self, quantity: object):
        self.quantity = quantity
        super().__init__(f"Quantity must be a positive integer, got {quantity!r}")


class SameLocationError(ValidationError):
    """Transfer source and destination are the same location."""

    code: str = "SAME_LOCATION"

    def __init__(self, location_id: int):
        self.location_id = location_id
        super().__init__(
            f"Cannot transfer from location {location_id} to itself"
        )


class UnknownComponentError(ValidationError):
    """Component with given id or number was not found."""

    code: str = "UNKNOWN_COMPONENT"

    def __init__(self, component: int | str):
        self.component = component
        super().__init__(f"Component not found: {component}")


class UnknownLocationError(ValidationError):
    """Location with given id or name was not found."""

    code: str = "UNKNOWN_LOCATION"

    def __init__(self, location_id: int | str):
        self.location_id = location_id
        super().__init__(f"Location not found: {location_id}")


class InvalidThresholdError(ValidationError):
    """Minimum stock level must be a non-negative integer."""

    code: str = "INVALID_THRESHOLD"

    def __init__(self, min_stock_level: object):
        self.min_stock_level = min_stock_level
        super().__init__(
            f"Minimum stock level must be a non-negative integer, got {min_stock_level!r}"
        )


# Stock exceptions


class InsufficientQuantityError(InventoryLedgerError):
    """
    Requested quantity exceeds the stock held at the location.

    Raised from inside the atomic unit that would have applied the change,
    so the check and the write never race.  Nothing is written.
    """

    code: str = "INSUFFICIENT_QUANTITY"

    def __init__(
        self,
        component_id: int,
        location_id: int,
        requested: int,
        available: int,
    ):
        self.component_id = component_id
        self.location_id = location_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient quantity of component {component_id} at location "
            f"{location_id}: requested {requested}, available {available}"
        )


# Infrastructure exceptions


class InfrastructureError(InventoryLedgerError):
    """Base exception for store failures. Never retried by the ledger."""

    code: str = "INFRASTRUCTURE_ERROR"


class StoreUnavailableError(InfrastructureError):
    """The database rejected or dropped the unit of work."""

    code: str = "STORE_UNAVAILABLE"

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Store unavailable during {operation}: {reason}")


class LockTimeoutError(InfrastructureError):
    """Exclusive access to a ledger row was not obtained in time."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, keys: list[tuple[int, int]], timeout_seconds: float):
        self.keys = keys
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timed out after {timeout_seconds}s waiting for inventory rows {keys}"
        )


class DatabaseNotOpenError(InfrastructureError):
    """LedgerDatabase used before open() or after close()."""

    code: str = "DATABASE_NOT_OPEN"

    def __init__(self) -> None:
        super().__init__("Ledger database is not open. Call open() first.")


# Immutability exceptions


class ImmutabilityViolationError(InventoryLedgerError):
    """Attempt to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )


# Configuration exceptions


class ConfigurationError(InventoryLedgerError):
    """Settings could not be loaded or are out of range."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration for '{key}': {reason}")
