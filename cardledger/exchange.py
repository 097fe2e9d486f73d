"""
exchange.py - Exchange Request State Machine

This module models one exchange request's lifecycle:
1. create_exchange_request() - Validated factory; snapshots price and owner
2. transition() - The single guarded entry point for status changes
3. reject() / cancel() / expire() - Side-effect-free terminal transitions
4. can_transition() - Pure table lookup

State diagram:

    PENDING ──accept──▶ ACCEPTED    (owner; only via settlement.complete_exchange)
       │
       ├──reject──────▶ REJECTED    (owner)
       ├──cancel──────▶ CANCELLED   (requester)
       └──expire──────▶ EXPIRED     (deadline passed)

Every non-PENDING state is terminal. A transition attempted from a terminal
state raises NotPending and the record is left exactly as it was. Nothing
ever re-enters PENDING.
"""

from __future__ import annotations
from datetime import datetime, timedelta
from typing import Dict, FrozenSet, Optional

from .core import (
    Card, ExchangeRequest, ExchangeStatus,
    InvalidStateTransition, NotPending, ExchangeNotAllowed, InsufficientFunds,
    compute_content_id,
)
from .balance import has_sufficient_balance
from .visibility import resolve_visibility


# Legal targets from each state. Terminal states map to the empty set.
ALLOWED_TRANSITIONS: Dict[ExchangeStatus, FrozenSet[ExchangeStatus]] = {
    ExchangeStatus.PENDING: frozenset({
        ExchangeStatus.ACCEPTED,
        ExchangeStatus.REJECTED,
        ExchangeStatus.CANCELLED,
        ExchangeStatus.EXPIRED,
    }),
    ExchangeStatus.ACCEPTED: frozenset(),
    ExchangeStatus.REJECTED: frozenset(),
    ExchangeStatus.CANCELLED: frozenset(),
    ExchangeStatus.EXPIRED: frozenset(),
}


def can_transition(current: ExchangeStatus, target: ExchangeStatus) -> bool:
    """Return True if current -> target is a legal transition."""
    return target in ALLOWED_TRANSITIONS[current]


def transition(request: ExchangeRequest, target: ExchangeStatus) -> ExchangeRequest:
    """
    Apply a status transition and return the new request record.

    Args:
        request: Current request snapshot (not modified).
        target: Desired status.

    Returns:
        A new ExchangeRequest carrying the target status.

    Raises:
        NotPending: If the request is already terminal.
        InvalidStateTransition: If target is not reachable from a pending
            request (only PENDING itself).
    """
    if request.is_terminal:
        raise NotPending(
            f"Cannot move exchange request {request.id} to {target.value}: "
            f"status is {request.status.value}"
        )
    if not can_transition(request.status, target):
        raise InvalidStateTransition(
            f"Illegal transition for {request.id}: {request.status.value} -> {target.value}"
        )
    return request.with_status(target)


def reject(request: ExchangeRequest) -> ExchangeRequest:
    """Owner declines the request. Status change only."""
    return transition(request, ExchangeStatus.REJECTED)


def cancel(request: ExchangeRequest) -> ExchangeRequest:
    """Requester withdraws the request. Status change only."""
    return transition(request, ExchangeStatus.CANCELLED)


def expire(request: ExchangeRequest) -> ExchangeRequest:
    """Deadline passed without a decision. Status change only."""
    return transition(request, ExchangeStatus.EXPIRED)


# ============================================================================
# REQUEST CREATION
# ============================================================================

def create_exchange_request(
    requester_id: str,
    card: Card,
    requester_balance: int,
    is_already_collected: bool,
    has_pending_request: bool = False,
    created_at: Optional[datetime] = None,
    expiry: Optional[timedelta] = None,
    request_id: Optional[str] = None,
) -> ExchangeRequest:
    """
    File a new PENDING exchange request for a card.

    Checks, in order:
    1. The viewer may request the card (not their own, not already collected).
    2. The requester has no other pending request for this card.
    3. The requester can cover the card's current price.

    The card's price and creator are snapshotted onto the request. No coins
    move at this point; settlement debits the requester.

    Args:
        requester_id: User filing the request.
        card: Card snapshot (creator and price as of now).
        requester_balance: Requester's current coin balance.
        is_already_collected: Whether the requester already holds the card.
        has_pending_request: Whether the requester already has a pending
            request for this card.
        created_at: Filing time (None if the caller does not track time).
        expiry: Decision window; requires created_at. None means the request
            never expires.
        request_id: Explicit id. If omitted, a deterministic content hash of
            the request fields is used.

    Returns:
        The new ExchangeRequest in PENDING.

    Raises:
        ExchangeNotAllowed: Own card, already collected, or duplicate pending.
        InsufficientFunds: Balance below the card's price.

    Example:
        card = Card("card_1", creator_id="bob", exchange_price=150)
        request = create_exchange_request("alice", card, 200, False)
        # request.coin_cost == 150, request.card_owner_id == "bob"
    """
    flags = resolve_visibility(card.creator_id, requester_id, is_already_collected)
    if not flags.can_request_exchange:
        if flags.can_edit:
            raise ExchangeNotAllowed(f"{requester_id} cannot exchange their own card {card.id}")
        raise ExchangeNotAllowed(f"{requester_id} has already collected card {card.id}")

    if has_pending_request:
        raise ExchangeNotAllowed(
            f"{requester_id} already has a pending exchange request for card {card.id}"
        )

    if not has_sufficient_balance(requester_balance, card.exchange_price):
        raise InsufficientFunds(
            f"Insufficient coin balance. Required: {card.exchange_price}, "
            f"Available: {requester_balance}"
        )

    expires_at = None
    if expiry is not None:
        if created_at is None:
            raise ValueError("expiry requires created_at")
        expires_at = created_at + expiry

    if request_id is None:
        request_id = compute_content_id(
            "req",
            requester_id=requester_id,
            card_id=card.id,
            card_owner_id=card.creator_id,
            coin_cost=card.exchange_price,
            created_at=created_at,
        )

    return ExchangeRequest(
        id=request_id,
        requester_id=requester_id,
        card_id=card.id,
        card_owner_id=card.creator_id,
        coin_cost=card.exchange_price,
        status=ExchangeStatus.PENDING,
        created_at=created_at,
        expires_at=expires_at,
    )
