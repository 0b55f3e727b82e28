# token_telemetry/demo/seed_demo_data.py

import random
from datetime import datetime, timedelta, timezone
from typing import List

from token_telemetry.storage.db import DEFAULT_DB_PATH
from token_telemetry.storage.models import TokenType, Transaction
from token_telemetry.storage.repository import initialize_schema, insert_transactions

DEMO_USER = "65f1c0ffee0ddba11cafe001"
DEMO_MODELS = ["gpt-4o", "gpt-4o-mini", "claude-3-5-sonnet"]


def build_demo_transactions(
    user_id: str = DEMO_USER, days: int = 14, seed: int = 7
) -> List[Transaction]:
    """One prompt/completion pair per simulated request over the last ``days`` days.

    Requests older than a week are written the legacy way, with only the raw
    amount and no structured prompt breakdown.
    """
    rng = random.Random(seed)
    now = datetime.now(timezone.utc)
    transactions = []
    for day in range(days):
        for _ in range(rng.randint(1, 4)):
            created_at = now - timedelta(days=day, minutes=rng.randint(0, 600))
            model = rng.choice(DEMO_MODELS)
            conversation_id = f"conv-{rng.randint(1, 5)}"
            prompt = rng.randint(200, 4000)
            completion = rng.randint(50, 1500)
            legacy = day >= 7

            transactions.append(Transaction(
                user=user_id,
                conversation_id=conversation_id,
                token_type=TokenType.PROMPT,
                raw_amount=-prompt,
                input_tokens=None if legacy else prompt - prompt // 4,
                read_tokens=None if legacy else prompt // 4,
                token_value=-prompt * 2.5,
                rate=2.5,
                model=model,
                context="message",
                created_at=created_at,
            ))
            transactions.append(Transaction(
                user=user_id,
                conversation_id=conversation_id,
                token_type=TokenType.COMPLETION,
                raw_amount=-completion,
                token_value=-completion * 10.0,
                rate=10.0,
                model=model,
                context="message",
                created_at=created_at + timedelta(seconds=rng.randint(1, 30)),
            ))
    return transactions


def seed(db_path: str = DEFAULT_DB_PATH, user_id: str = DEMO_USER) -> int:
    """Create the schema and append a demo ledger. Returns the row count."""
    initialize_schema(db_path)
    transactions = build_demo_transactions(user_id)
    insert_transactions(transactions, db_path)
    return len(transactions)


if __name__ == "__main__":
    count = seed()
    print(f"Inserted {count} demo transactions for user {DEMO_USER}")
