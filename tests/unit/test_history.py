"""
test_history.py - Unit tests for completed exchange records
"""

import pytest
from datetime import datetime

from cardledger import ExchangeDirection, complete_exchange, record_settlement

from tests.helpers import make_request


WHEN = datetime(2025, 3, 1, 12, 0)


@pytest.fixture
def record():
    settlement = complete_exchange(make_request(coin_cost=150), 200, 20, "bob")
    return record_settlement(settlement, WHEN)


class TestExchangeRecord:
    """Tests for record_settlement() and view_for()."""

    def test_record_fields(self, record):
        assert record.request_id == "req_001"
        assert record.card_id == "card_1"
        assert record.from_user_id == "bob"
        assert record.to_user_id == "alice"
        assert record.coin_amount == 150
        assert record.completed_at == WHEN
        assert record.id.startswith("rec_")

    def test_owner_sent(self, record):
        view = record.view_for("bob")
        assert view.direction is ExchangeDirection.SENT
        assert view.counterparty_id == "alice"

    def test_requester_received(self, record):
        view = record.view_for("alice")
        assert view.direction is ExchangeDirection.RECEIVED
        assert view.counterparty_id == "bob"
        assert view.coin_amount == 150

    def test_outsider_rejected(self, record):
        assert not record.involves("carol")
        with pytest.raises(ValueError, match="not a party"):
            record.view_for("carol")
