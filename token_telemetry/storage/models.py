"""
Data models for storage layer.

Defines the ledger transaction record and the page/filter shapes used to query it.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


class TokenType(Enum):
    """Classification of a ledger transaction."""
    PROMPT = "prompt"
    COMPLETION = "completion"
    CREDITS = "credits"


def to_utc(value: datetime) -> datetime:
    """Normalize a datetime to aware UTC. Naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Transaction:
    """Immutable usage record from the append-only ledger.

    ``raw_amount`` is signed (usage rows are written negative); only its
    magnitude matters for reporting. ``token_value`` is an internal credit
    unit, not a currency amount.
    """
    user: str
    token_type: TokenType
    raw_amount: int
    created_at: datetime
    id: Optional[int] = None
    conversation_id: Optional[str] = None
    model: Optional[str] = None
    context: Optional[str] = None
    input_tokens: Optional[int] = None
    write_tokens: Optional[int] = None
    read_tokens: Optional[int] = None
    token_value: Optional[float] = None
    rate: Optional[float] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class TransactionFilters:
    """Optional conjunctive filters for ledger queries. Date bounds are inclusive."""
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    model: Optional[str] = None
    conversation_id: Optional[str] = None


@dataclass(frozen=True)
class TransactionPage:
    """One page of ledger records plus the unpaginated match count."""
    records: List[Transaction] = field(default_factory=list)
    total: int = 0
    limit: int = 100
    offset: int = 0
