"""Command-line runner: load a record snapshot, derive the KPI views and print the tiles."""

import argparse
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from qos_report import kpi
from qos_report.config import get_env_config, load_engine_config
from qos_report.kpi.metrics import MetricTiles, TrendData
from qos_report.utils.io import read_filter_state, read_records, write_output
from qos_report.utils.types import Side, Trend

console = Console()

TREND_MARKERS = {
    Trend.UP: "[red]▲[/red]",
    Trend.DOWN: "[green]▼[/green]",
    Trend.STABLE: "[dim]■[/dim]",
}

EXPORT_FORMATS = {".csv": "csv", ".xlsx": "excel", ".json": "json", ".parquet": "parquet"}


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def parse_anchor(value: str) -> tuple[int, int]:
    try:
        year, month = value.split("-")
        return int(year), int(month)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Anchor must be YYYY-MM, got {value!r}") from None


def _format_trend(trend: TrendData) -> str:
    return f"{TREND_MARKERS[trend.trend]} {trend.change_percent:+.1f}%"


def render_tiles(tiles: MetricTiles, previous_key: str | None) -> Table:
    table = Table(title=f"Quality KPIs (trend vs. YTD through {previous_key or 'n/a'})")
    table.add_column("Side")
    table.add_column("Complaints", justify="right")
    table.add_column("Defective parts", justify="right")
    table.add_column("Deliveries", justify="right")
    table.add_column("PPM", justify="right")
    table.add_column("PPM trend", justify="right")

    for side in Side:
        family = tiles.for_side(side)
        table.add_row(
            side.capitalize(),
            f"{family.complaints.value:,.0f}",
            f"{family.defective.value:,.0f}",
            f"{family.deliveries.value:,.0f}",
            f"{family.ppm.value:,.2f}",
            _format_trend(family.ppm),
        )
    return table


def render_validation(result: dict) -> None:
    match result:
        case {"valid": True}:
            console.print("[green]✓ Records passed schema and key checks[/green]")
        case {"valid": False, "errors": errors}:
            console.print(f"[red]✗ {len(errors)} validation issue(s)[/red]")
            for error in errors:
                console.print(f"  [red]- {error}[/red]")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Compute quality KPI views from monthly site records")
    parser.add_argument("records", type=Path, help="Record snapshot (.json or .csv)")
    parser.add_argument("--anchor", type=parse_anchor, help="Anchor month YYYY-MM (default: latest in data)")
    parser.add_argument("--filters", type=Path, help="Persisted filter state JSON")
    parser.add_argument("--plants", type=Path, help="Plant metadata JSON list")
    parser.add_argument("--side", choices=[s.value for s in Side], default=Side.CUSTOMER.value)
    parser.add_argument("--export-contribution", type=Path, help="Write the contribution sheet (.csv/.xlsx/.json/.parquet)")
    parser.add_argument("--validate", action="store_true", help="Only validate, don't run")
    parser.add_argument("--env", type=str, default=None, help="production, staging or development")
    args = parser.parse_args(argv)

    env = args.env or get_env_config().get("env", "production")
    config = load_engine_config(env)
    configure_logging(config.log_level)

    records = read_records(args.records)

    if args.validate:
        result = kpi.validate(records)
        render_validation(result)
        if not result["valid"]:
            sys.exit(1)
        return

    plants = []
    if args.plants:
        with open(args.plants) as f:
            plants = json.load(f)

    output = kpi.run(
        records,
        filters=read_filter_state(args.filters),
        anchor=args.anchor,
        plants=plants,
        average_period=config.ppm_average_period,
    )

    window = output["window"]
    console.print(f"[bold]Lookback {window.start_key} .. {window.end_key}[/bold]")
    console.print(render_tiles(output["metrics"], output["previous_month_key"]))

    side = Side(args.side)
    conversions = output["conversions"][side]
    if conversions.has_conversions:
        console.print(
            f"[yellow]{conversions.total_converted} {side} notification(s) converted to pieces "
            f"from {', '.join(conversions.units)}[/yellow]"
        )

    if output["rejected"]:
        console.print(f"[yellow]{len(output['rejected'])} record(s) skipped for malformed month[/yellow]")

    if args.export_contribution:
        fmt = EXPORT_FORMATS.get(args.export_contribution.suffix.lower())
        if fmt is None:
            console.print(f"[red]Unsupported export format: {args.export_contribution.suffix}[/red]")
            sys.exit(1)
        sheet = output["contribution"][side].to_sheet_frame(output["site_labels"])
        write_output(sheet, args.export_contribution, fmt)


if __name__ == "__main__":
    main()
