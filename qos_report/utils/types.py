"""Shared type definitions for the KPI engine."""

from enum import StrEnum


type MonthKey = str  # "YYYY-MM"
type SeriesRow = dict[str, str | float]
type SheetRow = list[str | float]


class Side(StrEnum):
    CUSTOMER = "customer"
    SUPPLIER = "supplier"


class ComplaintType(StrEnum):
    CUSTOMER = "Customer"
    SUPPLIER = "Supplier"
    INTERNAL = "Internal"


class NotificationType(StrEnum):
    Q1 = "Q1"
    Q2 = "Q2"
    Q3 = "Q3"
    D1 = "D1"
    D2 = "D2"
    D3 = "D3"
    P1 = "P1"
    P2 = "P2"
    P3 = "P3"
    OTHER = "Other"


class NotificationCategory(StrEnum):
    CUSTOMER_COMPLAINT = "CustomerComplaint"
    SUPPLIER_COMPLAINT = "SupplierComplaint"
    INTERNAL_COMPLAINT = "InternalComplaint"
    DEVIATION = "Deviation"
    PPAP = "PPAP"


class Trend(StrEnum):
    UP = "up"
    DOWN = "down"
    STABLE = "stable"


class SeriesDimension(StrEnum):
    SITE = "site"
    NOTIFICATION_TYPE = "notification_type"


class SeriesMeasure(StrEnum):
    NOTIFICATIONS = "notifications"
    DEFECTS = "defects"


class DefectSide(StrEnum):
    CUSTOMER = "Customer"
    SUPPLIER = "Supplier"
    BOTH = "Both"


class AverageComparison(StrEnum):
    AT_OR_BELOW = "at_or_below"
    ABOVE = "above"


def classify_trend(change_percent: float) -> Trend:
    match change_percent:
        case p if p > 0:
            return Trend.UP
        case p if p < 0:
            return Trend.DOWN
        case _:
            return Trend.STABLE
