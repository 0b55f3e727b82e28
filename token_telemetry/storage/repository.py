"""
Repository pattern for data access.

Read-side queries over the transaction ledger, plus the schema and append
helpers used to seed it.
"""

import logging
import re
import sqlite3
from datetime import datetime
from typing import Any, Iterable, List, Optional, Sequence, Tuple, Union

from .db import DEFAULT_DB_PATH, get_connection
from .models import TokenType, Transaction, TransactionFilters, TransactionPage, to_utc

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 100
MAX_LIMIT = 1000

_COLUMNS = (
    "id, user, conversation_id, token_type, raw_amount, input_tokens, "
    "write_tokens, read_tokens, token_value, rate, model, context, "
    "created_at, updated_at"
)
_OBJECT_ID = re.compile(r"^[0-9a-fA-F]{24}$")


class QueryFailure(Exception):
    """Raised when the ledger cannot be read. Never masked as an empty result."""


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC ISO text, so lexical order matches time order."""
    return to_utc(value).isoformat(timespec="microseconds")


def user_id_variants(user_id: str) -> List[Union[str, bytes]]:
    """All stored representations a user id may have.

    Older rows keep the owner as a 12-byte binary object id, newer ones as its
    24-hex-digit string. Both must match.
    """
    variants: List[Union[str, bytes]] = [user_id]
    if _OBJECT_ID.match(user_id):
        variants.append(bytes.fromhex(user_id))
    return variants


def clamp_limit(limit: Optional[int], max_limit: int = MAX_LIMIT) -> int:
    if limit is None:
        return min(DEFAULT_LIMIT, max_limit)
    return max(1, min(int(limit), max_limit))


def clamp_offset(offset: Optional[int]) -> int:
    if offset is None:
        return 0
    return max(0, int(offset))


def _user_condition(user_id: str) -> Tuple[str, List[Any]]:
    variants = user_id_variants(user_id)
    placeholders = ", ".join("?" for _ in variants)
    return f"user IN ({placeholders})", list(variants)


def _row_to_transaction(row: sqlite3.Row) -> Transaction:
    user = row["user"]
    if isinstance(user, bytes):
        user = user.hex()
    updated_at = row["updated_at"]
    return Transaction(
        id=row["id"],
        user=user,
        conversation_id=row["conversation_id"],
        token_type=TokenType(row["token_type"]),
        raw_amount=row["raw_amount"],
        input_tokens=row["input_tokens"],
        write_tokens=row["write_tokens"],
        read_tokens=row["read_tokens"],
        token_value=row["token_value"],
        rate=row["rate"],
        model=row["model"],
        context=row["context"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(updated_at) if updated_at else None,
    )


class TransactionRepository:
    """Read-only access to one user's slice of the transaction ledger.

    Every call opens its own connection, so a single instance can serve
    concurrent requests.
    """

    def __init__(
        self,
        db_path: str = DEFAULT_DB_PATH,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
    ):
        """Initialize the repository.

        Args:
            db_path: Path to SQLite database file
            default_limit: Page size used when the caller gives none
            max_limit: Upper bound applied to any requested page size
        """
        self.db_path = db_path
        self.default_limit = default_limit
        self.max_limit = max_limit

    def list_transactions(
        self,
        user_id: str,
        filters: Optional[TransactionFilters] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = 0,
    ) -> TransactionPage:
        """Get one page of a user's transactions, newest first.

        Args:
            user_id: Owning user, as string id
            filters: Optional date, model and conversation filters
            limit: Page size, clamped to [1, max_limit]
            offset: Records to skip, clamped to >= 0

        Returns:
            TransactionPage with the records and the total match count

        Raises:
            QueryFailure: If the ledger cannot be read
        """
        filters = filters or TransactionFilters()
        page_limit = clamp_limit(
            self.default_limit if limit is None else limit, self.max_limit
        )
        page_offset = clamp_offset(offset)

        conditions, params = self._filter_conditions(user_id, filters)
        where = " WHERE " + " AND ".join(conditions)

        rows = self._execute(
            f"SELECT {_COLUMNS} FROM transactions{where} "
            "ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
            params + [page_limit, page_offset],
        )
        total = self._execute(
            f"SELECT COUNT(*) FROM transactions{where}", params
        )[0][0]

        return TransactionPage(
            records=[_row_to_transaction(row) for row in rows],
            total=total,
            limit=page_limit,
            offset=page_offset,
        )

    def fetch_window(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[Transaction]:
        """Get every transaction of a user in ``[start, end)``, oldest first.

        Either bound may be omitted. Used by the summary aggregator, which
        does its own grouping.

        Raises:
            QueryFailure: If the ledger cannot be read
        """
        user_clause, params = _user_condition(user_id)
        conditions = [user_clause]
        if start is not None:
            conditions.append("created_at >= ?")
            params.append(format_timestamp(start))
        if end is not None:
            conditions.append("created_at < ?")
            params.append(format_timestamp(end))

        rows = self._execute(
            f"SELECT {_COLUMNS} FROM transactions WHERE "
            + " AND ".join(conditions)
            + " ORDER BY created_at ASC, id ASC",
            params,
        )
        return [_row_to_transaction(row) for row in rows]

    @staticmethod
    def _filter_conditions(
        user_id: str, filters: TransactionFilters
    ) -> Tuple[List[str], List[Any]]:
        user_clause, params = _user_condition(user_id)
        conditions = [user_clause]
        if filters.start_date is not None:
            conditions.append("created_at >= ?")
            params.append(format_timestamp(filters.start_date))
        if filters.end_date is not None:
            conditions.append("created_at <= ?")
            params.append(format_timestamp(filters.end_date))
        if filters.model:
            conditions.append("model = ?")
            params.append(filters.model)
        if filters.conversation_id:
            conditions.append("conversation_id = ?")
            params.append(filters.conversation_id)
        return conditions, params

    def _execute(self, query: str, params: Sequence[Any]) -> List[sqlite3.Row]:
        try:
            conn = get_connection(self.db_path)
        except sqlite3.Error as e:
            raise QueryFailure(f"Cannot open ledger at {self.db_path}: {e}") from e
        try:
            return conn.execute(query, list(params)).fetchall()
        except sqlite3.Error as e:
            raise QueryFailure(f"Ledger query failed: {e}") from e
        finally:
            conn.close()


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the transactions table and its indexes if they don't exist.

    The ``user`` column is left untyped: historical rows hold either the
    string id or its binary form.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS transactions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user NOT NULL,
                conversation_id TEXT,
                token_type TEXT NOT NULL
                    CHECK (token_type IN ('prompt', 'completion', 'credits')),
                raw_amount INTEGER NOT NULL DEFAULT 0,
                input_tokens INTEGER,
                write_tokens INTEGER,
                read_tokens INTEGER,
                token_value REAL,
                rate REAL,
                model TEXT,
                context TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS ix_transactions_user_created "
            "ON transactions (user, created_at)"
        )
        conn.commit()
    finally:
        conn.close()


def _insert_params(tx: Transaction, user: Union[str, bytes]) -> Tuple[Any, ...]:
    updated_at = tx.updated_at or tx.created_at
    return (
        user,
        tx.conversation_id,
        tx.token_type.value,
        tx.raw_amount,
        tx.input_tokens,
        tx.write_tokens,
        tx.read_tokens,
        tx.token_value,
        tx.rate,
        tx.model,
        tx.context,
        format_timestamp(tx.created_at),
        format_timestamp(updated_at),
    )


_INSERT = """
    INSERT INTO transactions
    (user, conversation_id, token_type, raw_amount, input_tokens, write_tokens,
     read_tokens, token_value, rate, model, context, created_at, updated_at)
    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""


def insert_transactions(
    transactions: Iterable[Transaction],
    db_path: str = DEFAULT_DB_PATH,
    binary_user: bool = False,
) -> None:
    """Append transactions atomically to the ledger.

    The write path belongs to the billing subsystem; this helper exists to
    seed demo and test ledgers. ``binary_user`` stores the owner the way
    legacy rows did, as raw object id bytes.

    Args:
        transactions: Records to append
        db_path: Path to SQLite database file
        binary_user: Store user ids as bytes instead of text
    """
    rows = []
    for tx in transactions:
        user: Union[str, bytes] = tx.user
        if binary_user and _OBJECT_ID.match(tx.user):
            user = bytes.fromhex(tx.user)
        rows.append(_insert_params(tx, user))
    if not rows:
        return

    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN TRANSACTION")
        conn.executemany(_INSERT, rows)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
    logger.debug("Appended %d transactions to %s", len(rows), db_path)


def insert_transaction(
    transaction: Transaction, db_path: str = DEFAULT_DB_PATH, binary_user: bool = False
) -> None:
    """Append a single transaction to the ledger."""
    insert_transactions([transaction], db_path, binary_user=binary_user)
