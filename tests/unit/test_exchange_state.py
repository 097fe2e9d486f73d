"""
test_exchange_state.py - Unit tests for the exchange request state machine

Tests:
- can_transition: the full transition table
- transition / reject / cancel / expire: legal moves and terminal refusal
- create_exchange_request: validation order, snapshots, expiry, ids
"""

import pytest
from datetime import datetime, timedelta

from cardledger import (
    Card, ExchangeStatus, ALLOWED_TRANSITIONS,
    NotPending, InvalidStateTransition, ExchangeNotAllowed, InsufficientFunds,
    can_transition, transition, reject, cancel, expire, create_exchange_request,
)

from tests.helpers import make_request


TERMINAL = [
    ExchangeStatus.ACCEPTED,
    ExchangeStatus.REJECTED,
    ExchangeStatus.CANCELLED,
    ExchangeStatus.EXPIRED,
]


class TestTransitionTable:
    """Tests for the allowed-transition table."""

    @pytest.mark.parametrize("target", TERMINAL)
    def test_pending_reaches_every_terminal(self, target):
        assert can_transition(ExchangeStatus.PENDING, target)

    def test_pending_to_pending_not_allowed(self):
        assert not can_transition(ExchangeStatus.PENDING, ExchangeStatus.PENDING)

    @pytest.mark.parametrize("current", TERMINAL)
    def test_terminal_states_have_no_exits(self, current):
        assert ALLOWED_TRANSITIONS[current] == frozenset()
        for target in ExchangeStatus:
            assert not can_transition(current, target)

    def test_every_status_in_table(self):
        assert set(ALLOWED_TRANSITIONS) == set(ExchangeStatus)


class TestTransitions:
    """Tests for transition() and its wrappers."""

    def test_reject(self):
        request = make_request()
        rejected = reject(request)
        assert rejected.status is ExchangeStatus.REJECTED
        assert request.status is ExchangeStatus.PENDING

    def test_cancel(self):
        assert cancel(make_request()).status is ExchangeStatus.CANCELLED

    def test_expire(self):
        assert expire(make_request()).status is ExchangeStatus.EXPIRED

    def test_transition_preserves_snapshot_fields(self):
        request = make_request(coin_cost=42)
        rejected = reject(request)
        assert rejected.coin_cost == 42
        assert rejected.card_owner_id == request.card_owner_id

    @pytest.mark.parametrize("status", TERMINAL)
    @pytest.mark.parametrize("action", [reject, cancel, expire])
    def test_terminal_request_refuses(self, status, action):
        request = make_request(status=status)
        with pytest.raises(NotPending):
            action(request)

    def test_pending_to_pending_is_invalid(self):
        with pytest.raises(InvalidStateTransition) as exc_info:
            transition(make_request(), ExchangeStatus.PENDING)
        assert not isinstance(exc_info.value, NotPending)

    def test_accept_after_reject_refused(self):
        rejected = reject(make_request())
        with pytest.raises(NotPending, match="rejected"):
            transition(rejected, ExchangeStatus.ACCEPTED)


class TestCreateExchangeRequest:
    """Tests for create_exchange_request()."""

    def test_snapshots_price_and_owner(self, card):
        request = create_exchange_request("alice", card, 200, False)
        assert request.status is ExchangeStatus.PENDING
        assert request.coin_cost == 150
        assert request.card_owner_id == "bob"
        assert request.requester_id == "alice"
        assert request.card_id == "card_1"

    def test_exact_balance_allowed(self, card):
        assert create_exchange_request("alice", card, 150, False).coin_cost == 150

    def test_own_card_refused(self, card):
        with pytest.raises(ExchangeNotAllowed, match="their own card"):
            create_exchange_request("bob", card, 1000, False)

    def test_already_collected_refused(self, card):
        with pytest.raises(ExchangeNotAllowed, match="already collected"):
            create_exchange_request("alice", card, 1000, True)

    def test_duplicate_pending_refused(self, card):
        with pytest.raises(ExchangeNotAllowed, match="pending"):
            create_exchange_request("alice", card, 1000, False, has_pending_request=True)

    def test_insufficient_balance_refused(self, card):
        with pytest.raises(InsufficientFunds):
            create_exchange_request("alice", card, 149, False)

    def test_permission_checked_before_balance(self, card):
        """An owner with no coins gets ExchangeNotAllowed, not InsufficientFunds."""
        with pytest.raises(ExchangeNotAllowed):
            create_exchange_request("bob", card, 0, False)

    def test_zero_price_card_with_empty_wallet(self):
        free = Card("free", "bob", 0)
        assert create_exchange_request("alice", free, 0, False).coin_cost == 0

    def test_expiry_sets_deadline(self, card):
        created = datetime(2025, 1, 1)
        request = create_exchange_request(
            "alice", card, 200, False,
            created_at=created, expiry=timedelta(hours=72),
        )
        assert request.created_at == created
        assert request.expires_at == datetime(2025, 1, 4)

    def test_expiry_without_created_at_raises(self, card):
        with pytest.raises(ValueError, match="created_at"):
            create_exchange_request("alice", card, 200, False, expiry=timedelta(hours=1))

    def test_default_id_is_deterministic(self, card):
        a = create_exchange_request("alice", card, 200, False, created_at=datetime(2025, 1, 1))
        b = create_exchange_request("alice", card, 999, False, created_at=datetime(2025, 1, 1))
        assert a.id == b.id
        assert a.id.startswith("req_")

    def test_explicit_id(self, card):
        assert create_exchange_request("alice", card, 200, False, request_id="r-9").id == "r-9"
