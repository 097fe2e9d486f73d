"""
visibility.py - Ownership-Visibility Resolver

Derives a viewer's permissions on a card purely from identity comparison
and collection membership. No I/O, no failure modes: every input
combination yields a defined Visibility.

Rules:
    is_owner             = card_creator_id == viewer_id
    can_edit             = is_owner
    can_delete           = is_owner
    can_request_exchange = not is_owner and not is_already_collected
    shows_price          = not is_owner
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True, slots=True)
class Visibility:
    """
    UI permission flags for one (card, viewer) pair.

    can_edit and can_delete always agree, and neither is ever true together
    with can_request_exchange.
    """
    can_edit: bool
    can_delete: bool
    can_request_exchange: bool
    shows_price: bool

    @property
    def is_owner_view(self) -> bool:
        return self.can_edit


def resolve_visibility(
    card_creator_id: str,
    viewer_id: Optional[str],
    is_already_collected: bool,
) -> Visibility:
    """
    Resolve what a viewer may do with a card.

    Args:
        card_creator_id: The card's recorded creator.
        viewer_id: The viewing user (None for an anonymous viewer, who is
            never the owner).
        is_already_collected: Whether the viewer already holds the card.

    Returns:
        Visibility flags.

    Example:
        >>> resolve_visibility("alice", "alice", False)
        Visibility(can_edit=True, can_delete=True, can_request_exchange=False, shows_price=False)
    """
    is_owner = viewer_id is not None and card_creator_id == viewer_id
    return Visibility(
        can_edit=is_owner,
        can_delete=is_owner,
        can_request_exchange=not is_owner and not is_already_collected,
        shows_price=not is_owner,
    )
