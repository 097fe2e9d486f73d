"""
Core types and pure helpers for the card exchange ledger.

This module provides the foundational data structures for the exchange system:
1. Enums: ExchangeStatus, CoinReason
2. Exceptions: LedgerError and the domain-specific error taxonomy
3. Immutable records: UserBalance, Card, ExchangeRequest, CoinTransaction
4. Canonical hashing: content-addressable ids for requests and settlements

Everything here is immutable. State changes produce new instances; no function
in this module mutates its arguments.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
import hashlib
from typing import Any, Optional, Tuple


# ============================================================================
# CONSTANTS
# ============================================================================

# Requests not decided within this window move to EXPIRED.
EXCHANGE_REQUEST_EXPIRATION_HOURS = 72

# Length of content-hash identifiers (hex characters).
CONTENT_ID_LENGTH = 16


# ============================================================================
# ENUMS
# ============================================================================

class ExchangeStatus(Enum):
    """
    Lifecycle state of an exchange request.

    PENDING is the only non-terminal state. Every other state is final:
    once a request leaves PENDING its record never changes again.
    """
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not ExchangeStatus.PENDING

    def __str__(self) -> str:
        return self.value


class CoinReason(Enum):
    """Why a user's coin balance changed. Recorded on every CoinTransaction."""
    CARD_CREATED = "card_created"
    CARD_EXCHANGED = "card_exchanged"           # Owner receives coins for a card
    DAILY_LOGIN = "daily_login"
    EXCHANGE_PURCHASE = "exchange_purchase"     # Requester pays for a card


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LedgerError(Exception):
    """
    Base exception for all exchange-ledger errors.

    Every LedgerError is a terminal outcome: it reports a violated
    precondition, never a transient fault. Callers re-fetch state and
    decide again instead of retrying.
    """
    code = "ledger_error"


class InsufficientFunds(LedgerError):
    """Raised when a debit would take a balance below zero."""
    code = "insufficient_funds"


class InvalidAmount(LedgerError):
    """Raised when an amount is negative or not an integer."""
    code = "invalid_amount"


class InvalidStateTransition(LedgerError):
    """Raised when a transition is not permitted from the request's current status."""
    code = "invalid_state_transition"


class NotPending(InvalidStateTransition):
    """Raised when acting on a request that has already left PENDING."""
    code = "not_pending"


class RequestExpired(NotPending):
    """Raised when accepting a request whose deadline has passed."""
    code = "request_expired"


class OwnerMismatch(LedgerError):
    """Raised when the card's creator no longer matches the request's recorded owner."""
    code = "owner_mismatch"


class ExchangeNotAllowed(LedgerError):
    """Raised when a viewer may not file an exchange request for a card."""
    code = "exchange_not_allowed"


class UnauthorizedAction(LedgerError):
    """Raised when a user acts on a request they are not a party to."""
    code = "unauthorized_action"


class UnknownEntity(LedgerError):
    """Raised when a user, card or request id is not registered."""
    code = "unknown_entity"


# ============================================================================
# CANONICAL HASHING
# ============================================================================

def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Dict and set ordering never affect the output, so semantically equal
    values always hash the same.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return f"E:{value.value}"
    if isinstance(value, int):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, datetime):
        return f"T:{value.isoformat()}"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    if isinstance(value, (set, frozenset)):
        serialized = ",".join(_canonicalize(item) for item in sorted(value, key=str))
        return f"<{serialized}>"
    return f"R:{repr(value)}"


def compute_content_id(prefix: str, **fields: Any) -> str:
    """
    Compute a deterministic content hash over named fields.

    Same fields always produce the same id, whatever order they are passed in.

    Example:
        compute_content_id("req", requester_id="alice", card_id="c1")
        # -> 'req_3f0a9c...'
    """
    content = _canonicalize(fields)
    digest = hashlib.sha256(content.encode()).hexdigest()[:CONTENT_ID_LENGTH]
    return f"{prefix}_{digest}"


# ============================================================================
# VALIDATION HELPERS
# ============================================================================

def _is_coin_amount(value: Any) -> bool:
    """Coins are plain ints. bool is an int subclass and is rejected."""
    return isinstance(value, int) and not isinstance(value, bool)


def _require_id(name: str, value: Any) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} cannot be empty")


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class UserBalance:
    """
    A user's coin balance at a point in time.

    Attributes:
        user_id: Owner of the balance.
        coin_balance: Non-negative integer number of coins.
    """
    user_id: str
    coin_balance: int

    def __post_init__(self):
        _require_id("UserBalance user_id", self.user_id)
        if not _is_coin_amount(self.coin_balance):
            raise ValueError(f"coin_balance must be int, got {type(self.coin_balance)}")
        if self.coin_balance < 0:
            raise ValueError(f"coin_balance cannot be negative, got {self.coin_balance}")


@dataclass(frozen=True, slots=True)
class Card:
    """
    A life card as seen by the exchange subsystem.

    Price and creator are fixed when the card is created elsewhere; this
    subsystem only reads them.
    """
    id: str
    creator_id: str
    exchange_price: int

    def __post_init__(self):
        _require_id("Card id", self.id)
        _require_id("Card creator_id", self.creator_id)
        if not _is_coin_amount(self.exchange_price):
            raise ValueError(f"exchange_price must be int, got {type(self.exchange_price)}")
        if self.exchange_price < 0:
            raise ValueError(f"exchange_price cannot be negative, got {self.exchange_price}")


@dataclass(frozen=True, slots=True)
class ExchangeRequest:
    """
    A proposal by one user to acquire another user's card for coins.

    coin_cost and card_owner_id are snapshots taken when the request is
    filed. The price is never re-read; the owner is re-validated at
    settlement.

    Attributes:
        id: Request identifier.
        requester_id: User asking for the card.
        card_id: Card being requested.
        card_owner_id: Card creator at the time the request was filed.
        coin_cost: Price snapshot in coins.
        status: Current lifecycle state.
        created_at: When the request was filed (None if unknown).
        expires_at: Deadline for a decision (None means never expires).
    """
    id: str
    requester_id: str
    card_id: str
    card_owner_id: str
    coin_cost: int
    status: ExchangeStatus = ExchangeStatus.PENDING
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def __post_init__(self):
        _require_id("ExchangeRequest id", self.id)
        _require_id("ExchangeRequest requester_id", self.requester_id)
        _require_id("ExchangeRequest card_id", self.card_id)
        _require_id("ExchangeRequest card_owner_id", self.card_owner_id)
        if not _is_coin_amount(self.coin_cost):
            raise ValueError(f"coin_cost must be int, got {type(self.coin_cost)}")
        if self.coin_cost < 0:
            raise ValueError(f"coin_cost cannot be negative, got {self.coin_cost}")
        if not isinstance(self.status, ExchangeStatus):
            object.__setattr__(self, 'status', ExchangeStatus(self.status))

    @property
    def is_pending(self) -> bool:
        return self.status is ExchangeStatus.PENDING

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def is_expired(self, as_of: datetime) -> bool:
        """True once as_of is strictly past the decision deadline."""
        return self.expires_at is not None and as_of > self.expires_at

    def is_actionable(self, as_of: datetime) -> bool:
        """Pending and not yet past its deadline."""
        return self.is_pending and not self.is_expired(as_of)

    def with_status(self, status: ExchangeStatus) -> ExchangeRequest:
        """Return a copy carrying a new status. Validation is the state machine's job."""
        return replace(self, status=status)

    def __repr__(self) -> str:
        return (
            f"ExchangeRequest({self.id}: {self.requester_id}←{self.card_id}"
            f" from {self.card_owner_id}, {self.coin_cost} coins, {self.status.value})"
        )


@dataclass(frozen=True, slots=True)
class CoinTransaction:
    """
    Audit record of a single balance change.

    Pure functions build these with executed_at=None; the stateful caller
    stamps the time when it commits them.

    Attributes:
        user_id: Whose balance changed.
        amount: Signed change (negative for debits).
        reason: Why the balance changed.
        reference_id: Request or event that caused the change.
        balance_after: Balance immediately after the change.
        executed_at: Commit time, assigned by the caller.
    """
    user_id: str
    amount: int
    reason: CoinReason
    reference_id: Optional[str]
    balance_after: int
    executed_at: Optional[datetime] = None

    def __post_init__(self):
        _require_id("CoinTransaction user_id", self.user_id)
        if not _is_coin_amount(self.amount):
            raise ValueError(f"amount must be int, got {type(self.amount)}")
        if self.amount == 0:
            raise ValueError("CoinTransaction amount cannot be zero")
        if self.balance_after < 0:
            raise ValueError(f"balance_after cannot be negative, got {self.balance_after}")

    def stamped(self, executed_at: datetime) -> CoinTransaction:
        return replace(self, executed_at=executed_at)

    def __repr__(self) -> str:
        sign = "+" if self.amount > 0 else ""
        return f"CoinTransaction({self.user_id} {sign}{self.amount} [{self.reason.value}] → {self.balance_after})"


def transactions_total(transactions: Tuple[CoinTransaction, ...]) -> int:
    """Net coin change across a set of transactions (zero for a pure transfer)."""
    return sum(tx.amount for tx in transactions)
