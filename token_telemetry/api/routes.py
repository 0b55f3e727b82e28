"""Transaction endpoints: GET /api/user/transactions and its summary."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from token_telemetry.api.deps import get_current_user_id, get_repository, get_settings
from token_telemetry.api.schemas import ErrorOut, SummaryOut, TransactionsOut
from token_telemetry.config.loader import Settings
from token_telemetry.core.summary import summarize
from token_telemetry.storage.models import TransactionFilters
from token_telemetry.storage.repository import QueryFailure, TransactionRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user/transactions", tags=["transactions"])

_ERROR_RESPONSES = {
    status.HTTP_401_UNAUTHORIZED: {"description": "Not authenticated"},
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorOut},
}


def _server_error(message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": message},
    )


@router.get("", response_model=TransactionsOut, responses=_ERROR_RESPONSES)
def list_transactions(
    limit: Optional[int] = Query(None),
    offset: int = Query(0),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    model: Optional[str] = Query(None),
    conversation_id: Optional[str] = Query(None, alias="conversationId"),
    user_id: str = Depends(get_current_user_id),
    repository: TransactionRepository = Depends(get_repository),
):
    filters = TransactionFilters(
        start_date=start_date,
        end_date=end_date,
        model=model,
        conversation_id=conversation_id,
    )
    try:
        page = repository.list_transactions(user_id, filters, limit=limit, offset=offset)
    except QueryFailure:
        logger.exception("Error fetching transactions for user %s", user_id)
        return _server_error("Failed to fetch transactions")
    return TransactionsOut.from_page(page)


@router.get("/summary", response_model=SummaryOut, responses=_ERROR_RESPONSES)
def get_summary(
    period: str = Query("month"),
    user_id: str = Depends(get_current_user_id),
    repository: TransactionRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
):
    try:
        summary = summarize(
            user_id, period, repository, top_n=settings.summary.top_models
        )
    except QueryFailure:
        logger.exception("Error fetching usage summary for user %s", user_id)
        return _server_error("Failed to fetch usage summary")
    return SummaryOut.from_summary(summary)
