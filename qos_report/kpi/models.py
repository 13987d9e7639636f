"""Record model for monthly site KPIs, the filter state, and their pandera schema."""

import calendar
import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime

import pandas as pd
import pandera as pa
from pandera import Check, Column

from qos_report.utils.types import ComplaintType, MonthKey, NotificationType

logger = logging.getLogger(__name__)

MONTH_KEY_REGEX = r"^\d{4}-(0[1-9]|1[0-2])$"
_MONTH_KEY = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")

COUNT_FIELDS = (
    "customer_complaints_q1",
    "supplier_complaints_q2",
    "internal_complaints_q3",
    "deviations_d",
)
QUANTITY_FIELDS = (
    "customer_defective_parts",
    "supplier_defective_parts",
    "internal_defective_parts",
    "customer_deliveries",
    "supplier_deliveries",
)
PPAP_FIELDS = ("ppap_in_progress", "ppap_completed")
CONVERSION_FIELDS = ("customer_conversions", "supplier_conversions")

FRAME_COLUMNS = [
    "month",
    "site_code",
    "site_name",
    *COUNT_FIELDS,
    *QUANTITY_FIELDS,
    *PPAP_FIELDS,
    "customer_ppm",
    "supplier_ppm",
]

# collaborator JSON keys -> record attributes
CAMEL_FIELD_MAP: dict[str, str] = {
    "month": "month",
    "siteCode": "site_code",
    "siteName": "site_name",
    "customerComplaintsQ1": "customer_complaints_q1",
    "supplierComplaintsQ2": "supplier_complaints_q2",
    "internalComplaintsQ3": "internal_complaints_q3",
    "deviationsD": "deviations_d",
    "customerDefectiveParts": "customer_defective_parts",
    "supplierDefectiveParts": "supplier_defective_parts",
    "internalDefectiveParts": "internal_defective_parts",
    "customerDeliveries": "customer_deliveries",
    "supplierDeliveries": "supplier_deliveries",
    "customerPpm": "customer_ppm",
    "supplierPpm": "supplier_ppm",
}


# ---------------------------------------------------------------------------
# Month keys
# ---------------------------------------------------------------------------

def parse_month_key(key: object) -> date | None:
    """Return the first day of a ``YYYY-MM`` month, or None if it does not parse."""
    if not isinstance(key, str):
        return None
    match = _MONTH_KEY.match(key)
    if match is None:
        return None
    return date(int(match.group(1)), int(match.group(2)), 1)


def format_month_key(day: date) -> MonthKey:
    return f"{day.year:04d}-{day.month:02d}"


def shift_month(day: date, months: int) -> date:
    """First day of the month ``months`` calendar months away from ``day``."""
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def month_end(day: date) -> date:
    return date(day.year, day.month, calendar.monthrange(day.year, day.month)[1])


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PpapCounts:
    in_progress: int = 0
    completed: int = 0


@dataclass(frozen=True)
class ConversionEntry:
    """One notification whose defective quantity was converted to pieces.

    ``original_ml`` keeps its historical name but holds the quantity in
    whatever unit the notification used (ML, M, M2, ...).
    """

    notification_number: str
    original_ml: float
    converted_pc: float
    original_unit: str | None = None
    bottle_size: float | None = None
    material_description: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping) -> "ConversionEntry":
        return cls(
            notification_number=str(data.get("notificationNumber", "")),
            original_ml=_as_number(data.get("originalML")),
            converted_pc=_as_number(data.get("convertedPC")),
            original_unit=data.get("originalUnit"),
            bottle_size=data.get("bottleSize"),
            material_description=data.get("materialDescription"),
        )

    def to_dict(self) -> dict:
        return {
            "notificationNumber": self.notification_number,
            "originalML": self.original_ml,
            "originalUnit": self.original_unit,
            "convertedPC": self.converted_pc,
            "bottleSize": self.bottle_size,
            "materialDescription": self.material_description,
        }


@dataclass(frozen=True)
class ConversionBlock:
    conversions: tuple[ConversionEntry, ...] = ()
    total_ml: float = 0.0
    total_pc: float = 0.0

    @property
    def total_converted(self) -> int:
        return len(self.conversions)

    @classmethod
    def from_dict(cls, data: Mapping | None) -> "ConversionBlock | None":
        if not data:
            return None
        return cls(
            conversions=tuple(ConversionEntry.from_dict(c) for c in data.get("conversions", [])),
            total_ml=_as_number(data.get("totalML")),
            total_pc=_as_number(data.get("totalPC")),
        )

    def to_dict(self) -> dict:
        return {
            "totalConverted": self.total_converted,
            "totalML": self.total_ml,
            "totalPC": self.total_pc,
            "conversions": [c.to_dict() for c in self.conversions],
        }


@dataclass(frozen=True)
class MonthlySiteKpi:
    """Quality figures for one site in one calendar month."""

    month: MonthKey
    site_code: str
    site_name: str | None = None
    customer_complaints_q1: int = 0
    supplier_complaints_q2: int = 0
    internal_complaints_q3: int = 0
    deviations_d: int = 0
    customer_defective_parts: float = 0
    supplier_defective_parts: float = 0
    internal_defective_parts: float = 0
    customer_deliveries: float = 0
    supplier_deliveries: float = 0
    customer_ppm: float | None = None
    supplier_ppm: float | None = None
    ppap: PpapCounts = field(default_factory=PpapCounts)
    customer_conversions: ConversionBlock | None = None
    supplier_conversions: ConversionBlock | None = None

    @property
    def month_start(self) -> date | None:
        return parse_month_key(self.month)

    @classmethod
    def from_dict(cls, data: Mapping) -> "MonthlySiteKpi":
        """Build a record from the ingestion collaborator's camelCase JSON.

        Snake-case keys are accepted as well; missing or null quantities
        read as zero, the stored PPM ratios stay nullable.
        """
        values = {}
        for key, value in data.items():
            name = CAMEL_FIELD_MAP.get(key, key)
            if name in COUNT_FIELDS or name in QUANTITY_FIELDS:
                values[name] = _as_number(value)
            elif name in ("month", "site_code", "site_name", "customer_ppm", "supplier_ppm"):
                values[name] = value

        ppap = data.get("ppapP") or data.get("ppap") or {}
        if isinstance(ppap, PpapCounts):
            values["ppap"] = ppap
        else:
            values["ppap"] = PpapCounts(
                in_progress=_as_number(ppap.get("inProgress", ppap.get("in_progress"))),
                completed=_as_number(ppap.get("completed")),
            )

        values["customer_conversions"] = ConversionBlock.from_dict(data.get("customerConversions"))
        values["supplier_conversions"] = ConversionBlock.from_dict(data.get("supplierConversions"))
        values.setdefault("month", None)
        values["site_code"] = str(values.get("site_code", ""))
        return cls(**values)

    def to_dict(self) -> dict:
        out = {camel: getattr(self, name) for camel, name in CAMEL_FIELD_MAP.items()}
        out["ppapP"] = {"inProgress": self.ppap.in_progress, "completed": self.ppap.completed}
        if self.customer_conversions is not None:
            out["customerConversions"] = self.customer_conversions.to_dict()
        if self.supplier_conversions is not None:
            out["supplierConversions"] = self.supplier_conversions.to_dict()
        return out


def _as_number(value) -> float | int:
    if value is None:
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0
    return int(number) if number.is_integer() else number


def with_fields_zeroed(record: MonthlySiteKpi, field_names: Iterable[str]) -> MonthlySiteKpi:
    """Return a copy of ``record`` with the named figures set to zero.

    PPAP sub-counts are addressed as ``ppap_in_progress``/``ppap_completed``;
    conversion blocks are cleared to None. The input record is never touched.
    """
    names = set(field_names)
    if not names:
        return record

    changes: dict[str, object] = {}
    ppap = record.ppap
    for name in names:
        match name:
            case "ppap_in_progress":
                ppap = replace(ppap, in_progress=0)
            case "ppap_completed":
                ppap = replace(ppap, completed=0)
            case n if n in CONVERSION_FIELDS:
                changes[n] = None
            case n if n in COUNT_FIELDS or n in QUANTITY_FIELDS:
                changes[n] = 0
            case unknown:
                raise ValueError(f"Field cannot be zeroed: {unknown}")

    if ppap is not record.ppap:
        changes["ppap"] = ppap
    return replace(record, **changes)


def split_malformed(
    records: Iterable[MonthlySiteKpi],
) -> tuple[list[MonthlySiteKpi], list[MonthlySiteKpi]]:
    """Separate records with a parseable month key from those without one."""
    valid, malformed = [], []
    for record in records:
        if parse_month_key(record.month) is None:
            malformed.append(record)
        else:
            valid.append(record)
    if malformed:
        logger.warning(
            f"Excluded {len(malformed)} record(s) with malformed month keys: "
            f"{sorted({str(r.month) for r in malformed})[:5]}"
        )
    return valid, malformed


def records_to_frame(
    records: Iterable[MonthlySiteKpi],
    drop_malformed: bool = True,
) -> pd.DataFrame:
    """Flatten records into one DataFrame row each, in input order."""
    records = list(records)
    if drop_malformed:
        records, _ = split_malformed(records)

    rows = []
    for record in records:
        row = {name: getattr(record, name) for name in ("month", "site_code", "site_name")}
        for name in COUNT_FIELDS + QUANTITY_FIELDS:
            row[name] = getattr(record, name)
        row["ppap_in_progress"] = record.ppap.in_progress
        row["ppap_completed"] = record.ppap.completed
        row["customer_ppm"] = record.customer_ppm
        row["supplier_ppm"] = record.supplier_ppm
        rows.append(row)

    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    numeric = list(COUNT_FIELDS + QUANTITY_FIELDS + PPAP_FIELDS)
    df[numeric] = df[numeric].astype(float)
    return df


# ---------------------------------------------------------------------------
# Filter state
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FilterState:
    """User filter selections. Empty selections restrict nothing."""

    selected_plants: tuple[str, ...] = ()
    selected_complaint_types: tuple[ComplaintType, ...] = ()
    selected_notification_types: tuple[NotificationType, ...] = ()
    date_from: date | None = None
    date_to: date | None = None

    @classmethod
    def from_dict(cls, data: Mapping | None) -> "FilterState":
        if not data:
            return cls()
        return cls(
            selected_plants=tuple(str(p) for p in data.get("selectedPlants", [])),
            selected_complaint_types=tuple(
                ComplaintType(t) for t in data.get("selectedComplaintTypes", [])
            ),
            selected_notification_types=tuple(
                NotificationType(t) for t in data.get("selectedNotificationTypes", [])
            ),
            date_from=_parse_iso_date(data.get("dateFrom")),
            date_to=_parse_iso_date(data.get("dateTo")),
        )

    def to_dict(self) -> dict:
        return {
            "selectedPlants": list(self.selected_plants),
            "selectedComplaintTypes": [str(t) for t in self.selected_complaint_types],
            "selectedNotificationTypes": [str(t) for t in self.selected_notification_types],
            "dateFrom": self.date_from.isoformat() if self.date_from else None,
            "dateTo": self.date_to.isoformat() if self.date_to else None,
        }


def _parse_iso_date(value) -> date | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


@dataclass(frozen=True)
class PlantInfo:
    """Display metadata for a site. Never used as an aggregation key."""

    code: str
    city: str | None = None
    abbreviation: str | None = None
    abbreviation_city: str | None = None
    abbreviation_country: str | None = None
    country: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Pandera schema for the flattened frame
# ---------------------------------------------------------------------------

MonthlySiteKpiSchema = pa.DataFrameSchema(
    columns={
        "month": Column(str, Check.str_matches(MONTH_KEY_REGEX), nullable=False),
        "site_code": Column(str, Check.str_length(min_value=1), nullable=False),
        "site_name": Column(str, nullable=True),
        **{name: Column(float, Check.ge(0)) for name in COUNT_FIELDS},
        **{name: Column(float, Check.ge(0)) for name in QUANTITY_FIELDS},
        **{name: Column(float, Check.ge(0)) for name in PPAP_FIELDS},
        "customer_ppm": Column(float, Check.ge(0), nullable=True),
        "supplier_ppm": Column(float, Check.ge(0), nullable=True),
    },
    coerce=True,
    strict=False,
)
