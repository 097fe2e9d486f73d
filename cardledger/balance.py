"""
balance.py - Balance Ledger for Coin Accounts

Pure debit/credit arithmetic over plain integer balances:
1. has_sufficient_balance() - total predicate, never raises
2. debit() / credit() - validated single-sided changes
3. transfer() - paired debit and credit that conserves the sum
4. debit_account() / credit_account() - the same over UserBalance snapshots

Balances are never mutated in place. Each function returns the new value and
the caller decides where to store it.

Conservation:
    payer_before + payee_before == payer_after + payee_after
for every successful transfer().
"""

from __future__ import annotations
from typing import Any, Optional, Tuple

from .core import (
    UserBalance, CoinTransaction, CoinReason,
    InsufficientFunds, InvalidAmount,
    _is_coin_amount,
)


def _validate_amount(amount: Any) -> None:
    if not _is_coin_amount(amount):
        raise InvalidAmount(f"amount must be an integer number of coins, got {amount!r}")
    if amount < 0:
        raise InvalidAmount(f"amount cannot be negative, got {amount}")


def _validate_balance(balance: Any) -> None:
    if not _is_coin_amount(balance):
        raise InvalidAmount(f"balance must be an integer number of coins, got {balance!r}")
    if balance < 0:
        raise InvalidAmount(f"balance cannot be negative, got {balance}")


def has_sufficient_balance(balance: int, amount: int) -> bool:
    """
    Return True if a balance can cover an amount.

    A zero amount is always covered, including by a zero balance.
    """
    if amount == 0:
        return True
    return balance >= amount


def debit(balance: int, amount: int) -> int:
    """
    Subtract coins from a balance.

    Raises:
        InvalidAmount: If amount or balance is negative or not an int.
        InsufficientFunds: If balance < amount.
    """
    _validate_balance(balance)
    _validate_amount(amount)
    if not has_sufficient_balance(balance, amount):
        raise InsufficientFunds(
            f"Insufficient coin balance. Required: {amount}, Available: {balance}"
        )
    return balance - amount


def credit(balance: int, amount: int) -> int:
    """
    Add coins to a balance.

    Raises:
        InvalidAmount: If amount or balance is negative or not an int.
    """
    _validate_balance(balance)
    _validate_amount(amount)
    return balance + amount


def transfer(payer_balance: int, payee_balance: int, amount: int) -> Tuple[int, int]:
    """
    Move coins from payer to payee in one step.

    Both sides are computed before either is returned, so a failing debit
    leaves nothing half-applied.

    Returns:
        (new_payer_balance, new_payee_balance)
    """
    new_payer = debit(payer_balance, amount)
    new_payee = credit(payee_balance, amount)
    return new_payer, new_payee


# ============================================================================
# SNAPSHOT HELPERS
# ============================================================================

def debit_account(
    account: UserBalance,
    amount: int,
    reason: CoinReason,
    reference_id: Optional[str] = None,
) -> Tuple[UserBalance, Tuple[CoinTransaction, ...]]:
    """
    Debit a UserBalance snapshot.

    Returns the new snapshot and the audit transactions it produced (empty
    for a zero amount).
    """
    new_balance = debit(account.coin_balance, amount)
    return _changed(account, new_balance, -amount, reason, reference_id)


def credit_account(
    account: UserBalance,
    amount: int,
    reason: CoinReason,
    reference_id: Optional[str] = None,
) -> Tuple[UserBalance, Tuple[CoinTransaction, ...]]:
    """Credit a UserBalance snapshot. See debit_account()."""
    new_balance = credit(account.coin_balance, amount)
    return _changed(account, new_balance, amount, reason, reference_id)


def _changed(
    account: UserBalance,
    new_balance: int,
    signed_amount: int,
    reason: CoinReason,
    reference_id: Optional[str],
) -> Tuple[UserBalance, Tuple[CoinTransaction, ...]]:
    if signed_amount == 0:
        return account, ()
    tx = CoinTransaction(
        user_id=account.user_id,
        amount=signed_amount,
        reason=reason,
        reference_id=reference_id,
        balance_after=new_balance,
    )
    return UserBalance(account.user_id, new_balance), (tx,)
