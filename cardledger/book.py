"""
book.py - Stateful Exchange Book

The ExchangeBook is the caller that owns state for the pure exchange
functions. It is the only module that mutates anything.

Key responsibilities:
    - Holds balances, collections, cards, requests and the audit trail
    - Hands consistent snapshots to the pure functions and commits their results
    - Serializes every mutating operation behind one lock, so two concurrent
      accepts of one request yield exactly one Settlement and one NotPending
    - Stamps audit records with its logical clock
    - Delivers on-settle notifications to subscribers after commit
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional, Set
import threading

from .core import (
    Card, ExchangeRequest, ExchangeStatus, CoinTransaction, CoinReason, UserBalance,
    LedgerError, RequestExpired, UnauthorizedAction, UnknownEntity,
    compute_content_id,
)
from .balance import credit
from .config import ExchangeConfig, DEFAULT_CONFIG
from .exchange import create_exchange_request, reject as reject_request, cancel as cancel_request, expire as expire_request
from .history import ExchangeRecord, ExchangeRecordView, record_settlement
from .settlement import Settlement, SettleListener, complete_exchange
from .visibility import Visibility, resolve_visibility


@dataclass(frozen=True, slots=True)
class ExpirationReport:
    """Outcome of one process_expired() sweep."""
    total_found: int
    processed_count: int
    failed_count: int
    expired_ids: tuple = ()

    @property
    def all_successful(self) -> bool:
        return self.failed_count == 0

    @property
    def has_processed(self) -> bool:
        return self.processed_count > 0


class ExchangeBook:
    """
    Coin balances, card collections and exchange requests for a set of users.

    Every mutating method takes the book's lock for its whole
    check-then-commit sequence. Reads return copies or frozen values.

    Example:
        book = ExchangeBook("main", verbose=False)
        book.register_user("alice")
        book.register_user("bob")
        book.grant_coins("alice", 200, CoinReason.DAILY_LOGIN)
        book.register_card(Card("card_1", "bob", 150))

        request = book.request_exchange("alice", "card_1")
        settlement = book.accept(request.id, "bob")
        book.get_balance("alice")   # 50
        book.get_balance("bob")     # 150
    """

    def __init__(
        self,
        name: str,
        initial_time: Optional[datetime] = None,
        config: Optional[ExchangeConfig] = None,
        verbose: Optional[bool] = None,
        test_mode: bool = False,
    ):
        """
        Create an exchange book.

        Args:
            name: Book identifier (part of every generated request id)
            initial_time: Starting logical time (default: 1970-01-01)
            config: ExchangeConfig (default: DEFAULT_CONFIG)
            verbose: Print operation results; overrides config.verbose
            test_mode: Allow set_balance() calls (default: False)
        """
        self.name = name
        self.config = config or DEFAULT_CONFIG
        self.verbose = self.config.verbose if verbose is None else verbose
        self._test_mode = test_mode
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)

        self.balances: Dict[str, int] = {}
        self.collections: Dict[str, Set[str]] = {}
        self.cards: Dict[str, Card] = {}
        self.requests: Dict[str, ExchangeRequest] = {}
        self.transaction_log: List[CoinTransaction] = []
        self.exchange_records: List[ExchangeRecord] = []
        self.seen_settlement_ids: Set[str] = set()
        self.total_issued: int = 0

        self._next_sequence: int = 0
        self._lock = threading.RLock()
        self._listeners: List[SettleListener] = []

    # ========================================================================
    # READ METHODS
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time of the book."""
        return self._current_time

    def list_users(self) -> Set[str]:
        return set(self.balances.keys())

    def is_registered(self, user_id: str) -> bool:
        return user_id in self.balances

    def get_balance(self, user_id: str) -> int:
        """
        Raises:
            UnknownEntity: If the user is not registered
        """
        self._require_user(user_id)
        return self.balances[user_id]

    def get_account(self, user_id: str) -> UserBalance:
        return UserBalance(user_id, self.get_balance(user_id))

    def get_collection(self, user_id: str) -> FrozenSet[str]:
        self._require_user(user_id)
        return frozenset(self.collections[user_id])

    def has_collected(self, user_id: str, card_id: str) -> bool:
        return card_id in self.get_collection(user_id)

    def get_card(self, card_id: str) -> Card:
        if card_id not in self.cards:
            raise UnknownEntity(f"Card {card_id} not registered")
        return self.cards[card_id]

    def get_request(self, request_id: str) -> ExchangeRequest:
        if request_id not in self.requests:
            raise UnknownEntity(f"Exchange request {request_id} not found")
        return self.requests[request_id]

    def visibility(self, card_id: str, viewer_id: Optional[str]) -> Visibility:
        """Resolve a viewer's permissions on a card from the book's current state."""
        card = self.get_card(card_id)
        collected = viewer_id is not None and self.is_registered(viewer_id) and self.has_collected(viewer_id, card_id)
        return resolve_visibility(card.creator_id, viewer_id, collected)

    def pending_requests_for(self, owner_id: str) -> List[ExchangeRequest]:
        """Pending requests received by a card owner, oldest first."""
        return [r for r in self.requests.values() if r.card_owner_id == owner_id and r.is_pending]

    def sent_requests(self, requester_id: str, status: Optional[ExchangeStatus] = None) -> List[ExchangeRequest]:
        """Requests filed by a user, optionally filtered by status."""
        return [
            r for r in self.requests.values()
            if r.requester_id == requester_id and (status is None or r.status is status)
        ]

    def has_pending_request(self, requester_id: str, card_id: str) -> bool:
        return any(
            r.card_id == card_id and r.is_pending
            for r in self.sent_requests(requester_id)
        )

    def exchange_history(self, user_id: str) -> List[ExchangeRecordView]:
        """Completed exchanges involving a user, from that user's perspective."""
        return [rec.view_for(user_id) for rec in self.exchange_records if rec.involves(user_id)]

    def coin_transactions_for(self, user_id: str) -> List[CoinTransaction]:
        return [tx for tx in self.transaction_log if tx.user_id == user_id]

    def total_supply(self) -> int:
        """Sum of all balances, summed in sorted user order."""
        return sum(self.balances[u] for u in sorted(self.balances))

    def verify_conservation(self) -> Dict[str, object]:
        """
        Verify that no coins were created or destroyed outside grant_coins().

        Returns:
            Dict with keys:
            - 'valid': bool - supply matches issuance and no balance is negative
            - 'total_supply': int - sum of all balances
            - 'total_issued': int - coins issued through grant_coins()
            - 'negative_balances': Dict[str, int] - any user below zero

        Example:
            result = book.verify_conservation()
            assert result['valid'], result
        """
        supply = self.total_supply()
        negative = {u: b for u, b in self.balances.items() if b < 0}
        return {
            'valid': supply == self.total_issued and not negative,
            'total_supply': supply,
            'total_issued': self.total_issued,
            'negative_balances': negative,
        }

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the logical clock. Time only moves forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(f"Cannot move time backwards: {new_time} < {self._current_time}")
        self._current_time = new_time

    # ========================================================================
    # REGISTRATION (Mutating)
    # ========================================================================

    def register_user(self, user_id: str) -> str:
        """
        Register a user with a zero balance and an empty collection.

        Raises:
            ValueError: If the user is already registered
        """
        with self._lock:
            if user_id in self.balances:
                raise ValueError(f"User {user_id} already registered")
            UserBalance(user_id, 0)
            self.balances[user_id] = 0
            self.collections[user_id] = set()
            return user_id

    def register_card(self, card: Card) -> None:
        """
        Register a card. Its creator must be a registered user.

        Raises:
            ValueError: If the card id is already registered
            UnknownEntity: If the creator is not registered
        """
        with self._lock:
            if card.id in self.cards:
                raise ValueError(f"Card {card.id} already registered")
            self._require_user(card.creator_id)
            self.cards[card.id] = card
            if self.verbose:
                print(f"📝 Registered card: {card.id} by {card.creator_id} [{card.exchange_price} coins]")

    def sync_card(self, card: Card) -> None:
        """
        Replace a card with the latest snapshot from the remote store.

        Pending requests keep their snapshotted owner and price; a changed
        creator surfaces as OwnerMismatch when the request is accepted.
        """
        with self._lock:
            self._require_user(card.creator_id)
            self.cards[card.id] = card

    def set_balance(self, user_id: str, coin_balance: int) -> None:
        """
        Set a user's balance directly.

        WARNING: Bypasses the audit trail and issuance tracking. Only
        available in test mode; use grant_coins() otherwise.

        Raises:
            LedgerError: If called when test_mode is False
        """
        if not self._test_mode:
            raise LedgerError(
                "set_balance() is disabled in production mode. "
                "Use grant_coins() to issue coins. "
                "Set test_mode=True when creating ExchangeBook for testing."
            )
        with self._lock:
            self._require_user(user_id)
            UserBalance(user_id, coin_balance)
            self.total_issued += coin_balance - self.balances[user_id]
            self.balances[user_id] = coin_balance

    # ========================================================================
    # COIN ISSUANCE (Mutating)
    # ========================================================================

    def grant_coins(
        self,
        user_id: str,
        amount: int,
        reason: CoinReason = CoinReason.DAILY_LOGIN,
        reference_id: Optional[str] = None,
    ) -> Optional[CoinTransaction]:
        """
        Issue new coins to a user (rewards, sign-up bonuses).

        Returns:
            The committed CoinTransaction, or None for a zero amount.

        Raises:
            InvalidAmount: If amount is negative or not an int
        """
        with self._lock:
            self._require_user(user_id)
            new_balance = credit(self.balances[user_id], amount)
            if amount == 0:
                return None
            self.balances[user_id] = new_balance
            self.total_issued += amount
            tx = CoinTransaction(
                user_id=user_id,
                amount=amount,
                reason=reason,
                reference_id=reference_id,
                balance_after=new_balance,
                executed_at=self._current_time,
            )
            self.transaction_log.append(tx)
            if self.verbose:
                print(f"✓ GRANTED: {tx}")
            return tx

    # ========================================================================
    # EXCHANGE OPERATIONS (Mutating)
    # ========================================================================

    def request_exchange(self, requester_id: str, card_id: str) -> ExchangeRequest:
        """
        File a PENDING exchange request for a card on behalf of requester_id.

        Raises:
            UnknownEntity: Unknown requester or card
            ExchangeNotAllowed: Own card, already collected, duplicate pending
            InsufficientFunds: Balance below the card's price
        """
        with self._lock:
            self._require_user(requester_id)
            card = self.get_card(card_id)
            request_id = compute_content_id(
                "req",
                book=self.name,
                sequence=self._next_sequence,
                requester_id=requester_id,
                card_id=card_id,
            )
            try:
                request = create_exchange_request(
                    requester_id=requester_id,
                    card=card,
                    requester_balance=self.balances[requester_id],
                    is_already_collected=card_id in self.collections[requester_id],
                    has_pending_request=self.has_pending_request(requester_id, card_id),
                    created_at=self._current_time,
                    expiry=self.config.request_expiration,
                    request_id=request_id,
                )
            except LedgerError as e:
                self._report_rejected("request", e)
                raise
            self._next_sequence += 1
            self.requests[request.id] = request
            if self.verbose:
                print(f"✓ REQUESTED: {request!r}")
            return request

    def accept(self, request_id: str, owner_id: str) -> Settlement:
        """
        Accept a pending request and settle it atomically.

        Subscribers are notified after commit. A failing subscriber is
        reported and skipped; the committed Settlement is still returned.

        Raises:
            UnknownEntity: Unknown request
            UnauthorizedAction: owner_id is not the request's card owner
            RequestExpired: The decision deadline has passed (the request is
                marked EXPIRED)
            NotPending, InsufficientFunds, OwnerMismatch: From settlement
        """
        with self._lock:
            request = self.get_request(request_id)
            if owner_id != request.card_owner_id:
                raise UnauthorizedAction(
                    f"Only the card owner can accept exchange request {request_id}"
                )
            if request.is_pending and request.is_expired(self._current_time):
                self.requests[request_id] = expire_request(request)
                if self.verbose:
                    print(f"⌛ EXPIRED: {request_id}")
                raise RequestExpired(f"Exchange request {request_id} has expired")

            card = self.get_card(request.card_id)
            try:
                settlement = complete_exchange(
                    request,
                    requester_balance=self.balances[request.requester_id],
                    owner_balance=self.balances[request.card_owner_id],
                    card_creator_id=card.creator_id,
                    requester_collection=self.collections[request.requester_id],
                )
            except LedgerError as e:
                self._report_rejected("accept", e)
                raise

            self._commit_settlement(settlement)
            listeners = list(self._listeners)

        self._notify(listeners, settlement)
        return settlement

    def reject(self, request_id: str, owner_id: str) -> ExchangeRequest:
        """
        Decline a pending request. No coins move.

        Raises:
            UnauthorizedAction: owner_id is not the request's card owner
            NotPending: The request is already terminal
        """
        with self._lock:
            request = self.get_request(request_id)
            if owner_id != request.card_owner_id:
                raise UnauthorizedAction(
                    f"Only the card owner can reject exchange request {request_id}"
                )
            return self._apply_transition("reject", request, reject_request)

    def cancel(self, request_id: str, requester_id: str) -> ExchangeRequest:
        """
        Withdraw a pending request. No coins move.

        Raises:
            UnauthorizedAction: requester_id did not file the request
            NotPending: The request is already terminal
        """
        with self._lock:
            request = self.get_request(request_id)
            if requester_id != request.requester_id:
                raise UnauthorizedAction(
                    f"Only the requester can cancel exchange request {request_id}"
                )
            return self._apply_transition("cancel", request, cancel_request)

    def process_expired(self, as_of: Optional[datetime] = None) -> ExpirationReport:
        """
        Move every pending request past its deadline to EXPIRED.

        Args:
            as_of: Cut-off time (default: current logical time)
        """
        as_of = as_of or self._current_time
        with self._lock:
            due = [r for r in self.requests.values() if r.is_pending and r.is_expired(as_of)]
            processed: List[str] = []
            for request in due:
                self.requests[request.id] = expire_request(request)
                processed.append(request.id)
            if self.verbose and processed:
                print(f"⌛ EXPIRED: {len(processed)} request(s)")
            return ExpirationReport(
                total_found=len(due),
                processed_count=len(processed),
                failed_count=len(due) - len(processed),
                expired_ids=tuple(processed),
            )

    # ========================================================================
    # NOTIFICATIONS
    # ========================================================================

    def subscribe(self, listener: SettleListener) -> None:
        """Register a callback for every committed settlement."""
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: SettleListener) -> None:
        with self._lock:
            self._listeners.remove(listener)

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _require_user(self, user_id: str) -> None:
        if user_id not in self.balances:
            raise UnknownEntity(f"User {user_id} not registered")

    def _apply_transition(self, action: str, request: ExchangeRequest, fn) -> ExchangeRequest:
        try:
            updated = fn(request)
        except LedgerError as e:
            self._report_rejected(action, e)
            raise
        self.requests[updated.id] = updated
        if self.verbose:
            print(f"✓ {updated.status.value.upper()}: {updated.id}")
        return updated

    def _commit_settlement(self, settlement: Settlement) -> None:
        """Write every fact of a settlement. Caller holds the lock."""
        request = settlement.request
        self.balances[request.requester_id] = settlement.requester_balance
        self.balances[request.card_owner_id] = settlement.owner_balance
        self.collections[request.requester_id] = set(settlement.requester_collection)
        self.requests[request.id] = request
        for tx in settlement.coin_transactions:
            self.transaction_log.append(tx.stamped(self._current_time))
        self.exchange_records.append(record_settlement(settlement, self._current_time))
        self.seen_settlement_ids.add(settlement.settlement_id)
        if self.verbose:
            print(f"✓ APPLIED: {settlement!r}")

    def _notify(self, listeners: List[SettleListener], settlement: Settlement) -> None:
        """
        Deliver a committed settlement to every listener.

        The settlement is already applied, so a failing listener is reported
        and skipped; the remaining listeners still run.
        """
        for listener in listeners:
            try:
                listener(settlement.notification)
            except Exception as e:
                if self.verbose:
                    print(f"✗ LISTENER FAILED ({settlement.settlement_id}): {type(e).__name__}: {e}")

    def _report_rejected(self, action: str, error: LedgerError) -> None:
        if self.verbose:
            print(f"✗ REJECTED ({action}, {error.code}): {error}")

    def __repr__(self) -> str:
        pending = sum(1 for r in self.requests.values() if r.is_pending)
        return (
            f"ExchangeBook({self.name}: {len(self.balances)} users, {len(self.cards)} cards, "
            f"{pending} pending, supply={self.total_supply()})"
        )
