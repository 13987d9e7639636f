"""Snapshot diagnostics: pandera schema failures and duplicate site/month keys."""

import pandera as pa
import pandas as pd
from pandera import DataFrameSchema

type ValidationResult = dict[str, str | bool | list[str]]


def _ok() -> ValidationResult:
    return {"valid": True, "status": "ok", "errors": []}


def _describe_failure(failure: dict) -> str:
    match failure:
        case {"column": None, "check": check}:
            return f"Snapshot failed {check}"
        case {"column": col, "check": check, "failure_case": val, "index": index} if pd.notna(index):
            return f"Row {index}: '{col}' failed {check} (got {val!r})"
        case {"column": col, "check": check, "failure_case": val}:
            return f"'{col}' failed {check} (got {val!r})"
        case _:
            return f"Validation failure: {failure}"


def validate_dataframe(df: pd.DataFrame, schema: DataFrameSchema) -> ValidationResult:
    """Run ``schema`` lazily and report every failing cell, never raising."""
    try:
        schema.validate(df, lazy=True)
    except pa.errors.SchemaErrors as e:
        errors = [_describe_failure(row) for row in e.failure_cases.to_dict(orient="records")]
        return {"valid": False, "status": "error", "errors": errors}
    return _ok()


def validate_unique(df: pd.DataFrame, columns: list[str]) -> ValidationResult:
    """Report each key in ``columns`` that appears on more than one row."""
    counts = df.groupby(columns, dropna=False).size()
    repeated = counts[counts > 1]
    if repeated.empty:
        return _ok()

    errors = []
    for key, n in repeated.items():
        key = key if isinstance(key, tuple) else (key,)
        label = "/".join(str(part) for part in key)
        errors.append(f"Duplicate {'/'.join(columns)} {label}: {n} rows will be summed")
    return {"valid": False, "status": "error", "errors": errors}


def merge_results(*results: ValidationResult) -> ValidationResult:
    """Combine several validation results into one."""
    errors = [error for result in results for error in result["errors"]]
    match errors:
        case []:
            return _ok()
        case _:
            return {"valid": False, "status": "error", "errors": errors}
