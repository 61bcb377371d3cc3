"""Command-line interface for dashboard generation."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import typer

from .config import GeneratorSettings
from .db import database_connection
from .errors import GenerationError
from .paths import get_db_path

app = typer.Typer(help="Generate activity dashboards.")


@app.callback(no_args_is_help=True)
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs.")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@app.command("init-db")
def init_db(
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the activity SQLite database.",
    ),
) -> None:
    """Create the database schema if it does not exist."""
    resolved = db_path or get_db_path()
    with database_connection(resolved):
        pass
    typer.echo(f"Database ready at {resolved}")


@app.command()
def generate(
    dashboard_id: str = typer.Argument(..., help="Identifier of the dashboard."),
    user_id: str = typer.Option(..., "--user", help="User generating the dashboard."),
    start: Optional[str] = typer.Option(
        None,
        "--start",
        help="Range start (ISO date or datetime, UTC). Unbounded when omitted.",
    ),
    end: Optional[str] = typer.Option(
        None,
        "--end",
        help="Range end (ISO date or datetime, UTC). Unbounded when omitted.",
    ),
    tags: Optional[List[str]] = typer.Option(
        None,
        "--tag",
        help="Only count activities carrying any of these tags.",
    ),
    db_path: Optional[Path] = typer.Option(
        None,
        "--db",
        path_type=Path,
        help="Location of the activity SQLite database.",
    ),
    page_size: int = typer.Option(
        500,
        "--page-size",
        min=1,
        help="Activities fetched per page.",
    ),
    places: int = typer.Option(
        2,
        "--places",
        min=0,
        help="Decimal places kept in percentages.",
    ),
    deadline: Optional[float] = typer.Option(
        None,
        "--deadline",
        min=0.0,
        help="Abort when fetching activities takes longer than this many seconds.",
    ),
) -> None:
    """Print a generated dashboard for a time range."""
    from .datasource import SqliteActivityDataSource, SqliteDashboardStore
    from .engine import DashboardGenerationEngine
    from .reporting import DashboardPrinter
    from .service import DashboardGenerationService

    resolved = db_path or get_db_path()
    settings = GeneratorSettings.from_options(
        page_size=page_size, percentage_places=places, deadline_seconds=deadline
    )
    service = DashboardGenerationService(
        SqliteDashboardStore(resolved),
        DashboardGenerationEngine(SqliteActivityDataSource(resolved), settings),
    )
    try:
        result = service.generate(
            dashboard_id,
            user_id,
            time_range_start=_parse_instant(start),
            time_range_end=_parse_instant(end),
            required_tags=tags or (),
        )
    except (GenerationError, ValueError) as exc:
        typer.echo(f"Generation failed: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    DashboardPrinter().print_result(result)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the activity SQLite database."
    ),
    page_size: int = typer.Option(
        500,
        "--page-size",
        min=1,
        help="Activities fetched per page.",
    ),
    places: int = typer.Option(
        2,
        "--places",
        min=0,
        help="Decimal places kept in percentages.",
    ),
    deadline: Optional[float] = typer.Option(
        None,
        "--deadline",
        min=0.0,
        help="Per-request activity fetch deadline in seconds.",
    ),
) -> None:
    """Serve the dashboard generation API."""
    from .server_runner import run_server

    settings = GeneratorSettings.from_options(
        page_size=page_size, percentage_places=places, deadline_seconds=deadline
    )
    run_server(host=host, port=port, db_path=db_path or get_db_path(), settings=settings)


def _parse_instant(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid date: {value}") from exc
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


if __name__ == "__main__":
    app()
