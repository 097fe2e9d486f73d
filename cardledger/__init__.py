"""
cardledger - Life Card Exchange & Balance Ledger

Coin balances, card-for-coins exchange requests, atomic settlement and
per-viewer card permissions.

Usage:
    from cardledger import ExchangeBook, Card, CoinReason

    book = ExchangeBook("main", verbose=False)
    book.register_user("alice")
    book.register_user("bob")
    book.grant_coins("alice", 200, CoinReason.DAILY_LOGIN)
    book.register_card(Card("card_1", creator_id="bob", exchange_price=150))

    # Alice asks for Bob's card, Bob accepts
    request = book.request_exchange("alice", "card_1")
    settlement = book.accept(request.id, "bob")

    book.get_balance("alice")                # 50
    book.has_collected("alice", "card_1")    # True
    book.verify_conservation()['valid']      # True

The pure functions (complete_exchange, transition, resolve_visibility,
debit/credit/transfer) can be used without a book by callers that keep
their own state.
"""

# Core types
from .core import (
    ExchangeStatus,
    CoinReason,
    UserBalance,
    Card,
    ExchangeRequest,
    CoinTransaction,
    LedgerError,
    InsufficientFunds,
    InvalidAmount,
    InvalidStateTransition,
    NotPending,
    RequestExpired,
    OwnerMismatch,
    ExchangeNotAllowed,
    UnauthorizedAction,
    UnknownEntity,
    compute_content_id,
    transactions_total,
    EXCHANGE_REQUEST_EXPIRATION_HOURS,
)

# Balance ledger
from .balance import (
    has_sufficient_balance,
    debit,
    credit,
    transfer,
    debit_account,
    credit_account,
)

# State machine
from .exchange import (
    ALLOWED_TRANSITIONS,
    can_transition,
    transition,
    reject,
    cancel,
    expire,
    create_exchange_request,
)

# Settlement
from .settlement import (
    Settlement,
    SettleNotification,
    SettleListener,
    check_preconditions,
    complete_exchange,
)

# Visibility
from .visibility import (
    Visibility,
    resolve_visibility,
)

# History
from .history import (
    ExchangeDirection,
    ExchangeRecord,
    ExchangeRecordView,
    record_settlement,
)

# Configuration
from .config import (
    ExchangeConfig,
    DEFAULT_CONFIG,
)

# Local storage
from .kv_store import (
    KeyValueStore,
    TTLStore,
    StoredValue,
    SearchHistoryItem,
    TOKEN_KEY,
    SEARCH_HISTORY_KEY,
)

# Stateful book
from .book import (
    ExchangeBook,
    ExpirationReport,
)


__all__ = [
    # Core
    'ExchangeStatus',
    'CoinReason',
    'UserBalance',
    'Card',
    'ExchangeRequest',
    'CoinTransaction',
    'LedgerError',
    'InsufficientFunds',
    'InvalidAmount',
    'InvalidStateTransition',
    'NotPending',
    'RequestExpired',
    'OwnerMismatch',
    'ExchangeNotAllowed',
    'UnauthorizedAction',
    'UnknownEntity',
    'compute_content_id',
    'transactions_total',
    'EXCHANGE_REQUEST_EXPIRATION_HOURS',
    # Balance
    'has_sufficient_balance',
    'debit',
    'credit',
    'transfer',
    'debit_account',
    'credit_account',
    # State machine
    'ALLOWED_TRANSITIONS',
    'can_transition',
    'transition',
    'reject',
    'cancel',
    'expire',
    'create_exchange_request',
    # Settlement
    'Settlement',
    'SettleNotification',
    'SettleListener',
    'check_preconditions',
    'complete_exchange',
    # Visibility
    'Visibility',
    'resolve_visibility',
    # History
    'ExchangeDirection',
    'ExchangeRecord',
    'ExchangeRecordView',
    'record_settlement',
    # Config
    'ExchangeConfig',
    'DEFAULT_CONFIG',
    # Storage
    'KeyValueStore',
    'TTLStore',
    'StoredValue',
    'SearchHistoryItem',
    'TOKEN_KEY',
    'SEARCH_HISTORY_KEY',
    # Book
    'ExchangeBook',
    'ExpirationReport',
]

__version__ = '1.0.0'
