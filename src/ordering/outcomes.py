"""Typed results returned by placement, checkout and status handlers."""

from dataclasses import dataclass
from enum import Enum


@dataclass(frozen=True)
class PlacementSucceeded:
    order_id: str
    order_number: str
    total: float


@dataclass(frozen=True)
class InsufficientStock:
    """A line could not be reserved; nothing was written for the attempt."""

    product_id: str
    requested: int
    available: int


@dataclass(frozen=True)
class CheckoutStarted:
    order_number: str
    session_id: str
    session_url: str
    total: float


class TransitionOutcome(Enum):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    ILLEGAL_TRANSITION = "illegal_transition"
    ORDER_NOT_FOUND = "order_not_found"
    AMOUNT_MISMATCH = "amount_mismatch"
