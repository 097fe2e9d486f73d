"""
settlement.py - Exchange Completion Engine

Performs the PENDING -> ACCEPTED transition together with its side effects
as one value:
    - requester pays coin_cost
    - owner receives coin_cost
    - card_id joins the requester's collection (idempotent)
    - request status becomes ACCEPTED

complete_exchange() is a pure function over snapshots. It reads no live
state, consults no clock and returns a frozen Settlement describing the new
facts. Either every effect is in the Settlement or the call raised and no
effect exists anywhere.

Snapshot balances must be non-negative ints, else InvalidAmount.

Precondition order (first failure wins):
    1. status == PENDING                       else NotPending
    2. requester_balance >= coin_cost          else InsufficientFunds
    3. card_creator_id == request.card_owner_id else OwnerMismatch
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, Optional, Tuple

from .core import (
    ExchangeRequest, ExchangeStatus, CoinTransaction, CoinReason,
    NotPending, InsufficientFunds, OwnerMismatch,
    compute_content_id,
)
from .balance import has_sufficient_balance, transfer, _validate_balance
from .exchange import transition


@dataclass(frozen=True, slots=True)
class SettleNotification:
    """
    Emitted to the caller once a settlement has been computed.

    Carries just what a UI or feed needs to react to the exchange.
    """
    settlement_id: str
    request_id: str
    card_id: str
    requester_id: str
    owner_id: str
    coin_amount: int


@dataclass(frozen=True, slots=True)
class Settlement:
    """
    The complete outcome of an accepted exchange.

    Attributes:
        settlement_id: Content hash of the settlement (same inputs, same id).
        request: The request in ACCEPTED.
        requester_balance: Requester balance after paying.
        owner_balance: Owner balance after being paid.
        requester_collection: Requester's collection including card_id.
        coin_transactions: Audit records (empty for a zero-cost exchange).
        notification: The on-settle notification for this settlement.
    """
    settlement_id: str
    request: ExchangeRequest
    requester_balance: int
    owner_balance: int
    requester_collection: FrozenSet[str]
    coin_transactions: Tuple[CoinTransaction, ...]
    notification: SettleNotification

    def __repr__(self) -> str:
        return (
            f"Settlement({self.settlement_id}: {self.request.card_id} → {self.request.requester_id}, "
            f"{self.request.coin_cost} coins → {self.request.card_owner_id})"
        )


SettleListener = Callable[[SettleNotification], None]


def check_preconditions(
    request: ExchangeRequest,
    requester_balance: int,
    card_creator_id: str,
) -> None:
    """
    Raise the first failing settlement precondition, or return None.

    Exposed separately so callers can pre-flight an accept without building
    a Settlement.
    """
    if not request.is_pending:
        raise NotPending(
            f"Exchange request {request.id} is {request.status.value}, not pending"
        )
    if not has_sufficient_balance(requester_balance, request.coin_cost):
        raise InsufficientFunds(
            f"Insufficient coin balance. Required: {request.coin_cost}, "
            f"Available: {requester_balance}"
        )
    if card_creator_id != request.card_owner_id:
        raise OwnerMismatch(
            f"Card {request.card_id} is now owned by {card_creator_id}, "
            f"request {request.id} was filed against {request.card_owner_id}"
        )


def complete_exchange(
    request: ExchangeRequest,
    requester_balance: int,
    owner_balance: int,
    card_creator_id: str,
    requester_collection: Iterable[str] = (),
    on_settle: Optional[SettleListener] = None,
) -> Settlement:
    """
    Settle a pending exchange request.

    Args:
        request: Request snapshot to accept.
        requester_balance: Requester's current balance.
        owner_balance: Owner's current balance.
        card_creator_id: The card's creator as recorded now.
        requester_collection: Card ids the requester currently holds.
        on_settle: Optional callback, invoked with the SettleNotification
            after the Settlement has been built.

    Returns:
        Settlement with every new fact.

    Raises:
        InvalidAmount: A snapshot balance is negative or not an int.
        NotPending, InsufficientFunds, OwnerMismatch: see module docstring.

    Example:
        request = ExchangeRequest("r1", "alice", "card_1", "bob", 150)
        s = complete_exchange(request, 150, 20, "bob")
        # s.requester_balance == 0, s.owner_balance == 170
        # "card_1" in s.requester_collection
    """
    _validate_balance(requester_balance)
    _validate_balance(owner_balance)
    check_preconditions(request, requester_balance, card_creator_id)

    cost = request.coin_cost
    new_requester, new_owner = transfer(requester_balance, owner_balance, cost)
    accepted = transition(request, ExchangeStatus.ACCEPTED)
    collection = frozenset(requester_collection) | {request.card_id}

    transactions: Tuple[CoinTransaction, ...] = ()
    if cost > 0:
        transactions = (
            CoinTransaction(
                user_id=request.requester_id,
                amount=-cost,
                reason=CoinReason.EXCHANGE_PURCHASE,
                reference_id=request.id,
                balance_after=new_requester,
            ),
            CoinTransaction(
                user_id=request.card_owner_id,
                amount=cost,
                reason=CoinReason.CARD_EXCHANGED,
                reference_id=request.id,
                balance_after=new_owner,
            ),
        )

    settlement_id = compute_content_id(
        "stl",
        request_id=request.id,
        requester_id=request.requester_id,
        owner_id=request.card_owner_id,
        card_id=request.card_id,
        coin_cost=cost,
        requester_before=requester_balance,
        owner_before=owner_balance,
    )

    notification = SettleNotification(
        settlement_id=settlement_id,
        request_id=request.id,
        card_id=request.card_id,
        requester_id=request.requester_id,
        owner_id=request.card_owner_id,
        coin_amount=cost,
    )

    settlement = Settlement(
        settlement_id=settlement_id,
        request=accepted,
        requester_balance=new_requester,
        owner_balance=new_owner,
        requester_collection=collection,
        coin_transactions=transactions,
        notification=notification,
    )

    if on_settle is not None:
        on_settle(notification)
    return settlement
