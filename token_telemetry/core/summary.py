"""
Usage summary aggregation.

Turns a user's ledger transactions into period totals, a per-model breakdown
and a daily series.

Token accounting is tiered: prompt rows written after the structured token
breakdown was introduced carry ``input_tokens``/``write_tokens``/``read_tokens``,
older rows only ``raw_amount``. The choice is made per record, never for the
whole result set.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Union

from token_telemetry.storage.models import TokenType, Transaction
from token_telemetry.storage.repository import TransactionRepository

from .periods import Period, resolve_window
from .token_counter import TokenUsage

DEFAULT_TOP_MODELS = 10


@dataclass(frozen=True)
class ModelUsage:
    """Token and cost totals for one model. ``model_id`` is None for unlabeled rows."""
    model_id: Optional[str]
    tokens: int
    cost: float
    count: int


@dataclass(frozen=True)
class DailyUsage:
    """Totals for one UTC calendar day, keyed ``YYYY-MM-DD``."""
    date_key: str
    tokens: int
    cost: float


@dataclass(frozen=True)
class UsageSummary:
    """Aggregated usage for one user over one period.

    ``total_cost`` sums the ledger's internal credit field and is not a
    currency amount.
    """
    total_tokens: int
    total_cost: float
    prompt_tokens: int
    completion_tokens: int
    transaction_count: int
    period: Period
    model_breakdown: List[ModelUsage] = field(default_factory=list)
    daily_usage: List[DailyUsage] = field(default_factory=list)


def _magnitude(value: Optional[Union[int, float]]) -> Union[int, float]:
    return abs(value) if value else 0


def structured_prompt_tokens(record: Transaction) -> int:
    """Sum of the structured prompt breakdown, each term as ``|value|`` or 0."""
    return (
        _magnitude(record.input_tokens)
        + _magnitude(record.write_tokens)
        + _magnitude(record.read_tokens)
    )


def prompt_tokens_for(record: Transaction) -> int:
    """Prompt tokens of a single prompt record.

    Prefers the structured breakdown when it sums above zero, otherwise falls
    back to ``|raw_amount|``.
    """
    structured = structured_prompt_tokens(record)
    if structured > 0:
        return structured
    return _magnitude(record.raw_amount)


def tokens_for(record: Transaction) -> int:
    """Tokens a record contributes to prompt/completion and per-model totals.

    Credit rows carry no token usage and contribute 0.
    """
    if record.token_type is TokenType.PROMPT:
        return prompt_tokens_for(record)
    if record.token_type is TokenType.COMPLETION:
        return _magnitude(record.raw_amount)
    return 0


def _day_key(moment: datetime) -> str:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%d")


def token_usage(records: Iterable[Transaction]) -> TokenUsage:
    """Prompt/completion split over ``records``."""
    prompt = 0
    completion = 0
    for record in records:
        if record.token_type is TokenType.PROMPT:
            prompt += prompt_tokens_for(record)
        elif record.token_type is TokenType.COMPLETION:
            completion += _magnitude(record.raw_amount)
    return TokenUsage(prompt_tokens=prompt, completion_tokens=completion)


def model_breakdown(
    records: Iterable[Transaction], top_n: int = DEFAULT_TOP_MODELS
) -> List[ModelUsage]:
    """Per-model totals, heaviest first, truncated to ``top_n``.

    Rows without a model form their own bucket. Ties keep the order in which
    the models first appear in ``records``.
    """
    groups: Dict[Optional[str], Dict[str, float]] = {}
    for record in records:
        group = groups.setdefault(record.model, {"tokens": 0, "cost": 0.0, "count": 0})
        group["tokens"] += tokens_for(record)
        group["cost"] += _magnitude(record.token_value)
        group["count"] += 1

    breakdown = [
        ModelUsage(
            model_id=model,
            tokens=int(totals["tokens"]),
            cost=float(totals["cost"]),
            count=int(totals["count"]),
        )
        for model, totals in groups.items()
    ]
    breakdown.sort(key=lambda entry: entry.tokens, reverse=True)
    return breakdown[:top_n]


def daily_usage(records: Iterable[Transaction]) -> List[DailyUsage]:
    """Per-day raw-amount and cost totals, oldest day first (UTC days)."""
    days: Dict[str, Dict[str, float]] = {}
    for record in records:
        day = days.setdefault(_day_key(record.created_at), {"tokens": 0, "cost": 0.0})
        day["tokens"] += _magnitude(record.raw_amount)
        day["cost"] += _magnitude(record.token_value)

    return [
        DailyUsage(date_key=key, tokens=int(totals["tokens"]), cost=float(totals["cost"]))
        for key, totals in sorted(days.items())
    ]


def aggregate(
    records: List[Transaction],
    period: Period,
    top_n: int = DEFAULT_TOP_MODELS,
) -> UsageSummary:
    """Build a summary from an already-filtered list of records."""
    usage = token_usage(records)
    total_cost = sum(_magnitude(record.token_value) for record in records)

    return UsageSummary(
        total_tokens=usage.total_tokens,
        total_cost=float(total_cost),
        prompt_tokens=usage.prompt_tokens,
        completion_tokens=usage.completion_tokens,
        transaction_count=len(records),
        period=period,
        model_breakdown=model_breakdown(records, top_n),
        daily_usage=daily_usage(records),
    )


def summarize(
    user_id: str,
    period: Union[Period, str, None],
    repository: TransactionRepository,
    now: Optional[datetime] = None,
    top_n: int = DEFAULT_TOP_MODELS,
) -> UsageSummary:
    """Summarize a user's usage over a named period.

    Unknown period names fall back to ``month``; the summary reports the
    period actually applied.

    Args:
        user_id: User whose ledger slice is summarized
        period: ``day``, ``week``, ``month`` or ``all``
        repository: Ledger to read from
        now: Reference time (defaults to the current UTC time)
        top_n: Number of models kept in the breakdown

    Returns:
        UsageSummary for the resolved window

    Raises:
        QueryFailure: If the ledger cannot be read; no partial summary is built
    """
    resolved = Period.parse(period)
    now = now or datetime.now(timezone.utc)
    window = resolve_window(resolved, now)

    records = repository.fetch_window(user_id, start=window.start, end=window.end)
    return aggregate(records, resolved, top_n)
