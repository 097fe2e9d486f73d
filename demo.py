#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Exchange Ledger Step by Step

Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation   - The empty book, users and coins, cards and permissions
  4-6:  Exchanges    - Filing a request, accepting it, what a rejection does
  7-8:  Safety       - Double accepts, deadlines and expiry
  9:    Proof        - Conservation and the audit trail

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
import sys

from cardledger import (
    ExchangeBook, Card, CoinReason,
    LedgerError, NotPending, InsufficientFunds,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)
    alice_initial_coins: int = 200
    bob_initial_coins: int = 20
    card_price: int = 150


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    print(f"\n--- {text} ---\n")


# ============================================================================
# PHASE 1: FOUNDATION
# ============================================================================

def step_01_empty_book() -> ExchangeBook:
    step_header(1, "The Empty Book",
        "An exchange book holds balances, collections, cards and requests.")

    print(">>> book = ExchangeBook('tutorial', initial_time=datetime(2025, 1, 1, 9, 0))")
    book = ExchangeBook("tutorial", initial_time=CONFIG.start_time, verbose=True)

    section_header("Initial State")
    print(f"Book name:       {book.name}")
    print(f"Current time:    {book.current_time}")
    print(f"Users:           {sorted(book.list_users())}")
    print(f"Request expiry:  {book.config.request_expiration}")
    return book


def step_02_users_and_coins(book: ExchangeBook) -> ExchangeBook:
    step_header(2, "Users and Coins",
        "Coins enter the book only through grant_coins().")

    book.register_user("alice")
    book.register_user("bob")
    book.grant_coins("alice", CONFIG.alice_initial_coins, CoinReason.DAILY_LOGIN)
    book.grant_coins("bob", CONFIG.bob_initial_coins, CoinReason.CARD_CREATED)

    section_header("Balances")
    for user in sorted(book.list_users()):
        print(f"  {user:8s} {book.get_balance(user):>6d} coins")
    print(f"\nTotal issued: {book.total_issued}")
    return book


def step_03_cards_and_permissions(book: ExchangeBook) -> ExchangeBook:
    step_header(3, "Cards and Permissions",
        "The same card looks different to its creator and to everyone else.")

    book.register_card(Card("card_1", "bob", CONFIG.card_price))

    section_header("Who may do what with card_1")
    for viewer in ("bob", "alice", None):
        v = book.visibility("card_1", viewer)
        print(f"  {str(viewer):8s} edit={v.can_edit!s:5s} delete={v.can_delete!s:5s} "
              f"request={v.can_request_exchange!s:5s} price={v.shows_price}")
    return book


# ============================================================================
# PHASE 2: EXCHANGES
# ============================================================================

def step_04_file_request(book: ExchangeBook):
    step_header(4, "Filing a Request",
        "A request snapshots the price and owner. No coins move yet.")

    request = book.request_exchange("alice", "card_1")
    print(f"\nStatus:     {request.status}")
    print(f"Coin cost:  {request.coin_cost}")
    print(f"Expires at: {request.expires_at}")
    print(f"Alice still has {book.get_balance('alice')} coins")
    return book, request


def step_05_accept(book: ExchangeBook, request):
    step_header(5, "Accepting",
        "One call debits, credits, collects and closes the request together.")

    book.advance_time(CONFIG.start_time + timedelta(hours=2))
    settlement = book.accept(request.id, "bob")

    section_header("After settlement")
    print(f"Alice:       {book.get_balance('alice')} coins, collection {sorted(book.get_collection('alice'))}")
    print(f"Bob:         {book.get_balance('bob')} coins")
    print(f"Request:     {book.get_request(request.id).status}")
    print(f"Settlement:  {settlement.settlement_id}")
    return book


def step_06_rejection(book: ExchangeBook) -> ExchangeBook:
    step_header(6, "Rejections",
        "A rejected request changes status only.")

    book.register_user("carol")
    book.grant_coins("carol", 100)
    book.register_card(Card("card_2", "bob", 80))
    request = book.request_exchange("carol", "card_2")
    book.reject(request.id, "bob")
    print(f"\nCarol still has {book.get_balance('carol')} coins")

    section_header("Not enough coins")
    try:
        book.request_exchange("carol", "card_1")
    except InsufficientFunds as e:
        print(f"Caught {type(e).__name__}: {e}")
    return book


# ============================================================================
# PHASE 3: SAFETY
# ============================================================================

def step_07_double_accept(book: ExchangeBook, request) -> ExchangeBook:
    step_header(7, "Double Accepts",
        "Accepting twice raises NotPending and moves nothing.")

    before = book.get_balance("alice")
    try:
        book.accept(request.id, "bob")
    except NotPending as e:
        print(f"Caught {type(e).__name__} [{e.code}]")
    print(f"Alice balance unchanged: {before} -> {book.get_balance('alice')}")
    return book


def step_08_expiry(book: ExchangeBook) -> ExchangeBook:
    step_header(8, "Deadlines",
        "Undecided requests expire after the configured window.")

    book.register_card(Card("card_3", "bob", 10))
    request = book.request_exchange("carol", "card_3")
    book.advance_time(book.current_time + timedelta(days=4))
    report = book.process_expired()
    print(f"\nFound {report.total_found}, expired {report.processed_count}, failed {report.failed_count}")
    print(f"Request status: {book.get_request(request.id).status}")
    return book


# ============================================================================
# PHASE 4: PROOF
# ============================================================================

def step_09_conservation(book: ExchangeBook) -> ExchangeBook:
    step_header(9, "Conservation",
        "Every coin in the book was granted; exchanges only move them.")

    result = book.verify_conservation()
    print(f"\nTotal supply: {result['total_supply']}")
    print(f"Total issued: {result['total_issued']}")
    print(f"Valid:        {result['valid']}")

    section_header("Audit trail")
    for tx in book.transaction_log:
        print(f"  {tx.executed_at}  {tx!r}")
    return book


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       CARD EXCHANGE LEDGER - INTERACTIVE TUTORIAL")
    print("=" * 70)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")
    wait_for_enter()

    try:
        book = step_01_empty_book()
        wait_for_enter()
        book = step_02_users_and_coins(book)
        wait_for_enter()
        book = step_03_cards_and_permissions(book)
        wait_for_enter()
        book, request = step_04_file_request(book)
        wait_for_enter()
        book = step_05_accept(book, request)
        wait_for_enter()
        book = step_06_rejection(book)
        wait_for_enter()
        book = step_07_double_accept(book, request)
        wait_for_enter()
        book = step_08_expiry(book)
        wait_for_enter()
        step_09_conservation(book)
    except LedgerError as e:
        print(f"\nTutorial stopped: {type(e).__name__}: {e}")
        sys.exit(1)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See cardledger/settlement.py for the completion engine
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
