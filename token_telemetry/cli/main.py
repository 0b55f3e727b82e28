"""
CLI interface for token telemetry.

Provides command-line access to the ledger, usage summaries, the display
preference and the API server.
"""

import asyncio
import logging
import sys
from datetime import datetime
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from token_telemetry.config.loader import Settings, load_settings
from token_telemetry.core.rate_estimator import StreamingRateEstimator
from token_telemetry.core.summary import UsageSummary, summarize
from token_telemetry.demo.seed_demo_data import DEMO_USER, seed
from token_telemetry.display.preferences import PreferenceStore, TelemetryPreference
from token_telemetry.display.streaming_stats import StreamingStats
from token_telemetry.storage.models import TransactionFilters, TransactionPage
from token_telemetry.storage.repository import (
    QueryFailure,
    TransactionRepository,
    initialize_schema,
)

app = typer.Typer()
console = Console()

EXIT_CODE_OK = 0
EXIT_CODE_FAIL = 1


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj


def _repository(settings: Settings) -> TransactionRepository:
    return TransactionRepository(
        settings.database.path,
        default_limit=settings.api.default_limit,
        max_limit=settings.api.max_limit,
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None, "--config", "-c", help="Path to YAML settings file"
    ),
):
    """Token telemetry CLI."""
    try:
        settings = load_settings(config)
    except Exception as e:
        console.print(f"[red]Invalid configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    logging.basicConfig(level=settings.log_level)
    ctx.obj = settings
    if ctx.invoked_subcommand is None:
        console.print("Token telemetry - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the transaction ledger database."""
    settings = _settings(ctx)
    try:
        initialize_schema(settings.database.path)
        console.print("[green]✓[/] Database initialized successfully")
        sys.exit(EXIT_CODE_OK)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command("seed-demo")
def seed_demo(
    ctx: typer.Context,
    user: str = typer.Option(DEMO_USER, "--user", "-u", help="Owner of the demo rows"),
):
    """Fill the ledger with two weeks of demo transactions."""
    settings = _settings(ctx)
    count = seed(settings.database.path, user)
    console.print(f"[green]✓[/] Inserted {count} demo transactions for {user}")


@app.command()
def transactions(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", "-u", help="User whose ledger to list"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Page size"),
    offset: int = typer.Option(0, "--offset", help="Rows to skip"),
    model: Optional[str] = typer.Option(None, "--model", "-m", help="Only this model"),
    conversation: Optional[str] = typer.Option(
        None, "--conversation", help="Only this conversation"
    ),
    start: Optional[datetime] = typer.Option(None, "--start", help="Earliest timestamp"),
    end: Optional[datetime] = typer.Option(None, "--end", help="Latest timestamp"),
):
    """List a user's transactions, newest first."""
    repository = _repository(_settings(ctx))
    filters = TransactionFilters(
        start_date=start, end_date=end, model=model, conversation_id=conversation
    )
    try:
        page = repository.list_transactions(user, filters, limit=limit, offset=offset)
    except QueryFailure as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    _display_transactions(page)


@app.command()
def summary(
    ctx: typer.Context,
    user: str = typer.Option(..., "--user", "-u", help="User to summarize"),
    period: str = typer.Option(
        "month", "--period", "-p", help="day, week, month or all"
    ),
):
    """Show aggregated token usage for a period."""
    settings = _settings(ctx)
    try:
        result = summarize(
            user, period, _repository(settings), top_n=settings.summary.top_models
        )
    except QueryFailure as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    _display_summary(result)


@app.command()
def telemetry(
    ctx: typer.Context,
    state: Optional[str] = typer.Argument(None, help="on, off or toggle; omit to show"),
):
    """Show or change whether token telemetry badges are displayed."""
    store = PreferenceStore(_settings(ctx).preferences.path)
    preference = TelemetryPreference.load(store)

    if state is not None:
        choice = state.lower()
        if choice == "toggle":
            preference.toggle()
        elif choice in ("on", "off"):
            preference.set(choice == "on")
        else:
            console.print(f"[red]Unknown state:[/] {state} (expected on, off or toggle)")
            sys.exit(EXIT_CODE_FAIL)

    label = "[green]on[/]" if preference.value else "[yellow]off[/]"
    console.print(f"Token telemetry display: {label}")


@app.command()
def serve(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Bind port"),
):
    """Run the transactions HTTP API."""
    import uvicorn

    from token_telemetry.api.app import create_app

    uvicorn.run(create_app(_settings(ctx)), host=host, port=port)


@app.command()
def chat(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="Message to send"),
    model: str = typer.Option("gpt-4o-mini", "--model", "-m", help="OpenAI model"),
):
    """Stream one chat completion and report its token rate."""
    from token_telemetry.sdk.openai_client import TelemetryOpenAI

    settings = _settings(ctx)
    preference = TelemetryPreference.load(PreferenceStore(settings.preferences.path))
    streaming = settings.streaming
    stats = StreamingStats(
        preference,
        StreamingRateEstimator(
            window_ms=streaming.window_ms,
            sample_interval_ms=streaming.sample_interval_ms,
            chars_per_token=streaming.chars_per_token,
            min_final_duration=streaming.min_final_duration,
        ),
        auto_tick=True,
    )
    stats.mount()

    async def run():
        client = TelemetryOpenAI(model, stats=stats)
        async for delta in client.stream([{"role": "user", "content": prompt}]):
            console.print(delta, end="", markup=False, highlight=False)
        console.print()

    try:
        asyncio.run(run())
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    finally:
        stats.unmount()

    badge = stats.render()
    if badge:
        console.print(f"[dim]⚡ {badge}[/]")


def _format_tokens(count: int) -> str:
    return f"{count:,}"


def _display_transactions(page: TransactionPage):
    """Display one page of transactions as a table."""
    if not page.records:
        console.print("\n[dim]No transactions found.[/]")
        return

    table = Table(title=f"Transactions {page.offset + 1}-{page.offset + len(page.records)} of {page.total}")
    table.add_column("Date")
    table.add_column("Type")
    table.add_column("Model")
    table.add_column("Tokens", justify="right")
    table.add_column("Credits", justify="right")
    for record in page.records:
        table.add_row(
            record.created_at.strftime("%Y-%m-%d %H:%M"),
            record.token_type.value,
            record.model or "unknown",
            _format_tokens(abs(record.raw_amount)),
            f"{abs(record.token_value or 0):,.2f}",
        )
    console.print(table)


def _display_summary(result: UsageSummary):
    """Display a usage summary with model and daily breakdowns."""
    console.print(f"\n[bold]Token Usage ({result.period.value})[/bold]")
    console.print("-" * 40)
    console.print(f"Total tokens: {_format_tokens(result.total_tokens)}")
    console.print(f"Prompt tokens: {_format_tokens(result.prompt_tokens)}")
    console.print(f"Completion tokens: {_format_tokens(result.completion_tokens)}")
    console.print(f"Transactions: {_format_tokens(result.transaction_count)}")
    # Internal credit units, not a currency amount
    console.print(f"Credits used: {result.total_cost:,.2f}")

    if result.model_breakdown:
        models = Table(title="By model")
        models.add_column("Model")
        models.add_column("Tokens", justify="right")
        models.add_column("Share", justify="right")
        models.add_column("Requests", justify="right")
        for entry in result.model_breakdown:
            share = entry.tokens / result.total_tokens * 100 if result.total_tokens else 0
            models.add_row(
                entry.model_id or "unknown",
                _format_tokens(entry.tokens),
                f"{share:.1f}%",
                str(entry.count),
            )
        console.print(models)

    if result.daily_usage:
        days = Table(title="By day")
        days.add_column("Date")
        days.add_column("Tokens", justify="right")
        days.add_column("Credits", justify="right")
        for day in result.daily_usage:
            days.add_row(day.date_key, _format_tokens(day.tokens), f"{day.cost:,.2f}")
        console.print(days)


if __name__ == "__main__":
    app()
