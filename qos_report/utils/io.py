"""File I/O utilities for reading record snapshots and writing derived tables."""

import json
import tomllib
from pathlib import Path

import pandas as pd
from rich.console import Console

from qos_report.kpi.models import FilterState, MonthlySiteKpi

type FilePath = str | Path

console = Console()

_TEXT_COLUMNS = {"month": str, "site_code": str, "siteCode": str, "site_name": str, "siteName": str}


def read_records(path: FilePath) -> list[MonthlySiteKpi]:
    """Load a complete monthly site KPI snapshot from JSON or CSV."""
    path = Path(path)

    match path.suffix.lower():
        case ".json":
            with open(path) as f:
                payload = json.load(f)
            rows = payload.get("monthlySiteKpis", []) if isinstance(payload, dict) else payload
        case ".csv":
            df = pd.read_csv(path, dtype=_TEXT_COLUMNS)
            df = df.astype(object).where(df.notna(), None)
            rows = [_unflatten(row) for row in df.to_dict(orient="records")]
        case ext:
            raise ValueError(f"Unsupported record format: {ext}")

    records = [MonthlySiteKpi.from_dict(row) for row in rows]
    console.print(f"  Read {len(records)} records from {path.name}")
    return records


def _unflatten(row: dict) -> dict:
    """Fold flattened CSV PPAP columns back into the nested shape."""
    in_progress = row.pop("ppap_in_progress", None)
    completed = row.pop("ppap_completed", None)
    if in_progress is not None or completed is not None:
        row["ppapP"] = {"inProgress": in_progress, "completed": completed}
    return row


def read_filter_state(path: FilePath | None) -> FilterState:
    """Restore a persisted filter state; a missing path means no filters."""
    if path is None:
        return FilterState()
    with open(path) as f:
        return FilterState.from_dict(json.load(f))


def write_output(df: pd.DataFrame, path: FilePath, fmt: str = "csv") -> None:
    """Write a DataFrame to the specified format."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    match fmt:
        case "csv":
            df.to_csv(path, index=False)
        case "parquet":
            df.to_parquet(path, index=False)
        case "excel":
            df.to_excel(path, index=False, engine="openpyxl")
        case "json":
            df.to_json(path, orient="records", indent=2)
        case other:
            raise ValueError(f"Unsupported output format: {other}")

    console.print(f"  Wrote {len(df)} rows to {path}")


def load_toml_config(path: FilePath) -> dict:
    """Load a TOML configuration file using Python 3.11+ stdlib."""
    with open(path, "rb") as f:
        return tomllib.load(f)
