"""
config.py - Exchange Configuration

A single frozen dataclass with the tunable parameters of the exchange book.
Modify a copy with dataclasses.replace() to experiment.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from .core import EXCHANGE_REQUEST_EXPIRATION_HOURS


@dataclass(frozen=True, slots=True)
class ExchangeConfig:
    """
    Configuration for an ExchangeBook.

    Attributes:
        request_expiration: How long a pending request waits for a decision.
            None disables expiry.
        token_ttl: Default lifetime of a stored session token. None keeps
            tokens until they are cleared.
        search_history_limit: Most recent search keywords kept in the
            local store.
        verbose: Print one line per applied or rejected operation.
    """
    request_expiration: Optional[timedelta] = timedelta(hours=EXCHANGE_REQUEST_EXPIRATION_HOURS)
    token_ttl: Optional[timedelta] = timedelta(days=7)
    search_history_limit: int = 10
    verbose: bool = True

    def __post_init__(self):
        if self.request_expiration is not None and self.request_expiration <= timedelta(0):
            raise ValueError(f"request_expiration must be positive, got {self.request_expiration}")
        if self.token_ttl is not None and self.token_ttl <= timedelta(0):
            raise ValueError(f"token_ttl must be positive, got {self.token_ttl}")
        if self.search_history_limit < 1:
            raise ValueError(f"search_history_limit must be >= 1, got {self.search_history_limit}")


DEFAULT_CONFIG = ExchangeConfig()
