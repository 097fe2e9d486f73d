"""
helpers.py - Test doubles and snapshot helpers

- make_request: ExchangeRequest snapshots with sensible defaults
- book_state: every observable fact of an ExchangeBook, for before/after checks
- FakeClock: manually advanced clock for TTLStore
- seeded_book / apply_operation: random operation sequences for property tests
"""

from datetime import datetime, timedelta

from cardledger import ExchangeBook, ExchangeRequest, ExchangeStatus, Card, LedgerError


START = datetime(2025, 1, 1, 9, 0)


def make_request(
    request_id: str = "req_001",
    requester_id: str = "alice",
    card_id: str = "card_1",
    card_owner_id: str = "bob",
    coin_cost: int = 100,
    status: ExchangeStatus = ExchangeStatus.PENDING,
) -> ExchangeRequest:
    """Create an exchange request snapshot for testing."""
    return ExchangeRequest(
        id=request_id,
        requester_id=requester_id,
        card_id=card_id,
        card_owner_id=card_owner_id,
        coin_cost=coin_cost,
        status=status,
    )


def book_state(book: ExchangeBook) -> dict:
    """Snapshot every observable fact of a book."""
    return {
        "balances": dict(book.balances),
        "collections": {u: frozenset(c) for u, c in book.collections.items()},
        "requests": dict(book.requests),
        "transactions": list(book.transaction_log),
        "records": list(book.exchange_records),
        "total_issued": book.total_issued,
    }


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# =============================================================================
# RANDOM OPERATION DRIVER
# =============================================================================

USERS = ["alice", "bob", "carol", "dave"]

OPERATIONS = ["request", "accept", "reject", "cancel", "advance", "expire", "grant"]


def seeded_book(prices, grants, name: str = "prop") -> ExchangeBook:
    """
    Book with USERS registered, one card per user at the given prices and
    the given initial grants.
    """
    book = ExchangeBook(name, START, verbose=False)
    for user in USERS:
        book.register_user(user)
    for i, (user, price) in enumerate(zip(USERS, prices)):
        book.register_card(Card(f"card_{i}", user, price))
    for user, amount in zip(USERS, grants):
        book.grant_coins(user, amount)
    return book


def apply_operation(book: ExchangeBook, op: str, a: int, b: int, n: int) -> bool:
    """
    Apply one operation chosen by indices. Acts on behalf of the authorized
    party so failures come from ledger rules, not authorization.

    Returns True if the operation succeeded, False if it raised LedgerError.
    """
    requests = list(book.requests.values())
    try:
        if op == "request":
            book.request_exchange(USERS[a % len(USERS)], f"card_{b % len(USERS)}")
        elif op in ("accept", "reject", "cancel"):
            if not requests:
                return False
            request = requests[b % len(requests)]
            if op == "accept":
                book.accept(request.id, request.card_owner_id)
            elif op == "reject":
                book.reject(request.id, request.card_owner_id)
            else:
                book.cancel(request.id, request.requester_id)
        elif op == "advance":
            book.advance_time(book.current_time + timedelta(hours=n % 100))
        elif op == "expire":
            book.process_expired()
        elif op == "grant":
            book.grant_coins(USERS[a % len(USERS)], n)
    except LedgerError:
        return False
    return True
