"""Response schemas. JSON field names are camelCase for the web client."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from token_telemetry.core.summary import UsageSummary
from token_telemetry.storage.models import Transaction, TransactionPage


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, protected_namespaces=()
    )


class TransactionOut(CamelModel):
    id: int
    user: str
    conversation_id: Optional[str] = None
    token_type: str
    raw_amount: int
    input_tokens: Optional[int] = None
    write_tokens: Optional[int] = None
    read_tokens: Optional[int] = None
    token_value: Optional[float] = None
    rate: Optional[float] = None
    model: Optional[str] = None
    context: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: Transaction) -> "TransactionOut":
        return cls(
            id=record.id,
            user=record.user,
            conversation_id=record.conversation_id,
            token_type=record.token_type.value,
            raw_amount=record.raw_amount,
            input_tokens=record.input_tokens,
            write_tokens=record.write_tokens,
            read_tokens=record.read_tokens,
            token_value=record.token_value,
            rate=record.rate,
            model=record.model,
            context=record.context,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )


class TransactionsOut(CamelModel):
    transactions: List[TransactionOut]
    total: int
    limit: int
    offset: int

    @classmethod
    def from_page(cls, page: TransactionPage) -> "TransactionsOut":
        return cls(
            transactions=[TransactionOut.from_record(r) for r in page.records],
            total=page.total,
            limit=page.limit,
            offset=page.offset,
        )


class ModelUsageOut(CamelModel):
    model_id: Optional[str] = None
    tokens: int
    cost: float
    count: int


class DailyUsageOut(CamelModel):
    date_key: str
    tokens: int
    cost: float


class SummaryOut(CamelModel):
    total_tokens: int
    total_cost: float
    prompt_tokens: int
    completion_tokens: int
    transaction_count: int
    period: str
    model_breakdown: List[ModelUsageOut]
    daily_usage: List[DailyUsageOut]

    @classmethod
    def from_summary(cls, summary: UsageSummary) -> "SummaryOut":
        return cls(
            total_tokens=summary.total_tokens,
            total_cost=summary.total_cost,
            prompt_tokens=summary.prompt_tokens,
            completion_tokens=summary.completion_tokens,
            transaction_count=summary.transaction_count,
            period=summary.period.value,
            model_breakdown=[
                ModelUsageOut(
                    model_id=m.model_id, tokens=m.tokens, cost=m.cost, count=m.count
                )
                for m in summary.model_breakdown
            ],
            daily_usage=[
                DailyUsageOut(date_key=d.date_key, tokens=d.tokens, cost=d.cost)
                for d in summary.daily_usage
            ],
        )


class ErrorOut(BaseModel):
    error: str
