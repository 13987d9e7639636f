"""Collect unit-conversion annotations (ML, M, M2 -> PC) for disclosure."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from qos_report.kpi.models import ConversionBlock, MonthlySiteKpi
from qos_report.utils.types import MonthKey, Side

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversionDetail:
    notification_number: str
    original_ml: float
    original_unit: str | None
    converted_pc: float
    bottle_size: float | None
    material_description: str | None
    site_code: str
    month: MonthKey


@dataclass(frozen=True)
class ConversionSummary:
    has_conversions: bool = False
    total_converted: int = 0
    total_original_units: float = 0.0
    total_pc: float = 0.0
    details: list[ConversionDetail] = field(default_factory=list)

    @property
    def units(self) -> list[str]:
        return sorted({d.original_unit for d in self.details if d.original_unit})


def _block_for(record: MonthlySiteKpi, side: Side) -> ConversionBlock | None:
    match side:
        case Side.CUSTOMER:
            return record.customer_conversions
        case Side.SUPPLIER:
            return record.supplier_conversions
        case other:
            raise ValueError(f"Unknown side: {other}")


def collect_conversions(records: Iterable[MonthlySiteKpi], side: Side) -> ConversionSummary:
    """Flatten one side's conversions into a single list tagged with site and month."""
    side = Side(side)
    details = []
    for record in records:
        block = _block_for(record, side)
        if block is None:
            continue
        for entry in block.conversions:
            details.append(
                ConversionDetail(
                    notification_number=entry.notification_number,
                    original_ml=entry.original_ml,
                    original_unit=entry.original_unit,
                    converted_pc=entry.converted_pc,
                    bottle_size=entry.bottle_size,
                    material_description=entry.material_description,
                    site_code=record.site_code,
                    month=record.month,
                )
            )

    if not details:
        return ConversionSummary()

    summary = ConversionSummary(
        has_conversions=True,
        total_converted=len(details),
        total_original_units=sum(d.original_ml for d in details),
        total_pc=sum(d.converted_pc for d in details),
        details=details,
    )
    logger.info(f"Collected {summary.total_converted} {side} unit conversions ({summary.units})")
    return summary
