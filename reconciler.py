"""Card limit bookkeeping driven by credit-card expenses.

A card's ``limit_used_cents`` is the sum of the live credit expenses that
reference it and ``available_limit_cents`` is always ``limit - used``. The
transaction service calls :func:`apply_transaction_effect` explicitly on every
create, update, delete and restore; nothing here touches the transaction
collection.
"""

import logging
from enum import Enum
from typing import Optional, Protocol

from models import Card, PaymentMethod, TransactionType

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    apply = "apply"
    reverse = "reverse"


class CardEffect(Protocol):
    type: TransactionType
    payment_method: PaymentMethod
    card_id: Optional[str]
    amount_cents: int


def is_credit_expense(txn: CardEffect) -> bool:
    return (
        txn.type == TransactionType.expense
        and txn.payment_method == PaymentMethod.credit
        and bool(txn.card_id)
    )


def apply_transaction_effect(
    card: Optional[Card], amount_cents: int, direction: Direction
) -> Optional[Card]:
    """Move ``amount_cents`` into (apply) or out of (reverse) the card's used limit.

    Reversal never takes ``limit_used_cents`` below zero. A missing card is a
    no-op: the amount is simply not tracked anywhere.
    """
    if card is None:
        logger.warning(
            f"card_effect_skipped: direction={direction.value} amount_cents={amount_cents}"
        )
        return None
    used = card.limit_used_cents or 0
    if direction == Direction.apply:
        used += amount_cents
    else:
        used = max(0, used - amount_cents)
    card.limit_used_cents = used
    card.available_limit_cents = card.limit_cents - used
    return card


def recompute_available(card: Card) -> Card:
    card.limit_used_cents = max(0, card.limit_used_cents or 0)
    card.available_limit_cents = card.limit_cents - card.limit_used_cents
    return card
