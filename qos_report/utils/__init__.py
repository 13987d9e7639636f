"""Shared utilities for the KPI engine."""

from qos_report.utils.types import MonthKey, SeriesRow, SheetRow, Side, Trend
from qos_report.utils.validators import merge_results, validate_dataframe, validate_unique
