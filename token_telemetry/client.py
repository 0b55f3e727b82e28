"""
HTTP client for the transactions API.

Thin wrapper over httpx; responses are returned as decoded JSON.
"""

from datetime import datetime
from typing import Any, Dict, Optional

import httpx

from token_telemetry.api.deps import USER_HEADER

TRANSACTIONS_PATH = "/api/user/transactions"
SUMMARY_PATH = "/api/user/transactions/summary"


def _query_params(params: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unset parameters and serialize datetimes as ISO strings."""
    query = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, datetime):
            value = value.isoformat()
        query[key] = value
    return query


class TransactionsClient:
    """Client for one authenticated user."""

    def __init__(
        self,
        base_url: str,
        user_id: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Root URL of the API
            user_id: Identity forwarded in the gateway user header
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used in tests)
        """
        self._client = httpx.Client(
            base_url=base_url,
            headers={USER_HEADER: user_id},
            timeout=timeout,
            transport=transport,
        )

    def get_transactions(
        self,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        model: Optional[str] = None,
        conversation_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Fetch one page of transactions.

        Raises:
            httpx.HTTPStatusError: On a non-2xx response
        """
        params = _query_params({
            "limit": limit,
            "offset": offset,
            "startDate": start_date,
            "endDate": end_date,
            "model": model,
            "conversationId": conversation_id,
        })
        response = self._client.get(TRANSACTIONS_PATH, params=params)
        response.raise_for_status()
        return response.json()

    def get_summary(self, period: str = "month") -> Dict[str, Any]:
        """Fetch the usage summary for ``period``.

        Raises:
            httpx.HTTPStatusError: On a non-2xx response
        """
        response = self._client.get(SUMMARY_PATH, params={"period": period})
        response.raise_for_status()
        return response.json()

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "TransactionsClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
