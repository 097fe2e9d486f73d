"""
history.py - Completed Exchange Records

An ExchangeRecord is written once per settlement and never changes. The same
record reads differently for each party: the owner "sent" the card, the
requester "received" it. view_for() produces that perspective.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from .core import compute_content_id
from .settlement import Settlement


class ExchangeDirection(Enum):
    SENT = "sent"
    RECEIVED = "received"


@dataclass(frozen=True, slots=True)
class ExchangeRecordView:
    """An ExchangeRecord from one participant's point of view."""
    record_id: str
    card_id: str
    counterparty_id: str
    direction: ExchangeDirection
    coin_amount: int
    completed_at: datetime


@dataclass(frozen=True, slots=True)
class ExchangeRecord:
    """
    History entry for a completed exchange.

    The card travels from_user_id (owner) -> to_user_id (requester); coins
    travel the other way.
    """
    id: str
    request_id: str
    card_id: str
    from_user_id: str
    to_user_id: str
    coin_amount: int
    completed_at: datetime

    def involves(self, user_id: str) -> bool:
        return user_id in (self.from_user_id, self.to_user_id)

    def view_for(self, viewer_id: str) -> ExchangeRecordView:
        """
        Return this record as seen by viewer_id.

        Raises:
            ValueError: If the viewer took no part in the exchange.
        """
        if not self.involves(viewer_id):
            raise ValueError(f"{viewer_id} is not a party to exchange record {self.id}")
        if viewer_id == self.from_user_id:
            direction, counterparty = ExchangeDirection.SENT, self.to_user_id
        else:
            direction, counterparty = ExchangeDirection.RECEIVED, self.from_user_id
        return ExchangeRecordView(
            record_id=self.id,
            card_id=self.card_id,
            counterparty_id=counterparty,
            direction=direction,
            coin_amount=self.coin_amount,
            completed_at=self.completed_at,
        )


def record_settlement(settlement: Settlement, completed_at: datetime) -> ExchangeRecord:
    """Build the history record for a committed settlement."""
    request = settlement.request
    return ExchangeRecord(
        id=compute_content_id("rec", settlement_id=settlement.settlement_id),
        request_id=request.id,
        card_id=request.card_id,
        from_user_id=request.card_owner_id,
        to_user_id=request.requester_id,
        coin_amount=request.coin_cost,
        completed_at=completed_at,
    )
