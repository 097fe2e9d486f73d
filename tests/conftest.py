"""
conftest.py - Shared pytest fixtures for exchange ledger tests

Provides common fixtures used across unit, conformance and functional tests:
- Books (empty, populated, funded)
- Card and request snapshots for the pure functions
- A controllable clock for the local store
"""

import pytest

from cardledger import ExchangeBook, ExchangeConfig, Card, CoinReason, TTLStore

from tests.helpers import START, FakeClock


# =============================================================================
# BASIC FIXTURES
# =============================================================================

@pytest.fixture
def empty_book():
    """Fresh book with no registrations."""
    return ExchangeBook("test", START, verbose=False, test_mode=True)


@pytest.fixture
def basic_book():
    """Book with alice, bob and carol, and one card of bob's priced at 150."""
    book = ExchangeBook("test", START, verbose=False, test_mode=True)
    for user in ("alice", "bob", "carol"):
        book.register_user(user)
    book.register_card(Card("card_1", "bob", 150))
    return book


@pytest.fixture
def funded_book(basic_book):
    """Basic book with alice holding 200 coins and bob 20."""
    basic_book.grant_coins("alice", 200, CoinReason.DAILY_LOGIN)
    basic_book.grant_coins("bob", 20, CoinReason.CARD_CREATED)
    return basic_book


@pytest.fixture
def no_expiry_book():
    """Book whose requests never expire."""
    config = ExchangeConfig(request_expiration=None, verbose=False)
    book = ExchangeBook("no_expiry", START, config=config)
    book.register_user("alice")
    book.register_user("bob")
    book.grant_coins("alice", 500)
    book.register_card(Card("card_1", "bob", 100))
    return book


@pytest.fixture
def card():
    return Card("card_1", creator_id="bob", exchange_price=150)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return TTLStore(clock=clock)
