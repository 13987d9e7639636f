"""Site contribution cross-tab: defective parts and deliveries by site and month."""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

import pandas as pd

from qos_report.kpi.metrics import SIDE_COLUMNS, compute_ppm
from qos_report.kpi.models import MonthlySiteKpi, records_to_frame
from qos_report.utils.types import AverageComparison, MonthKey, SheetRow, Side

logger = logging.getLogger(__name__)

SHEET_LABEL_COLUMN = "DATA"
SHEET_TOTAL_COLUMN = "TOTAL"


@dataclass(frozen=True)
class CellTotals:
    defective: float
    deliveries: float
    ppm: float


@dataclass(frozen=True)
class SiteShare:
    site_code: str
    site_name: str | None
    value: float
    percentage: float


@dataclass(frozen=True, eq=False)
class SiteContribution:
    """Cross-tab of one side's defective parts and deliveries.

    ``defective`` and ``deliveries`` are site-indexed, month-columned
    frames; months where a site has no record hold zero.
    """

    side: Side
    sites: list[str]
    months: list[MonthKey]
    defective: pd.DataFrame
    deliveries: pd.DataFrame

    def cell(self, site: str, month: MonthKey) -> CellTotals:
        if site not in self.defective.index or month not in self.defective.columns:
            return CellTotals(defective=0.0, deliveries=0.0, ppm=0.0)
        defective = float(self.defective.at[site, month])
        deliveries = float(self.deliveries.at[site, month])
        return CellTotals(defective, deliveries, compute_ppm(defective, deliveries))

    def month_total(self, month: MonthKey) -> CellTotals:
        if month not in self.defective.columns:
            return CellTotals(defective=0.0, deliveries=0.0, ppm=0.0)
        defective = float(self.defective[month].sum())
        deliveries = float(self.deliveries[month].sum())
        return CellTotals(defective, deliveries, compute_ppm(defective, deliveries))

    def site_total(self, site: str) -> CellTotals:
        if site not in self.defective.index:
            return CellTotals(defective=0.0, deliveries=0.0, ppm=0.0)
        defective = float(self.defective.loc[site].sum())
        deliveries = float(self.deliveries.loc[site].sum())
        return CellTotals(defective, deliveries, compute_ppm(defective, deliveries))

    @property
    def grand_total(self) -> CellTotals:
        defective = float(self.defective.to_numpy().sum())
        deliveries = float(self.deliveries.to_numpy().sum())
        return CellTotals(defective, deliveries, compute_ppm(defective, deliveries))

    @property
    def average_ppm(self) -> float | None:
        """Mean of the monthly PPM values, skipping months without deliveries."""
        values = [
            total.ppm
            for total in (self.month_total(m) for m in self.months)
            if total.deliveries > 0
        ]
        if not values:
            return None
        return sum(values) / len(values)

    def compare_to_average(self, month: MonthKey) -> AverageComparison | None:
        total = self.month_total(month)
        average = self.average_ppm
        if total.deliveries == 0 or average is None:
            return None
        if total.ppm <= average:
            return AverageComparison.AT_OR_BELOW
        return AverageComparison.ABOVE

    def to_frame(self) -> pd.DataFrame:
        """Long-format table with one row per site and month."""
        if not self.sites:
            return pd.DataFrame(columns=["site_code", "month", "defective", "deliveries", "ppm"])
        defective = self.defective.stack().rename("defective")
        deliveries = self.deliveries.stack().rename("deliveries")
        frame = pd.concat([defective, deliveries], axis=1).reset_index()
        frame.columns = ["site_code", "month", "defective", "deliveries"]
        frame["ppm"] = [
            compute_ppm(d, q) for d, q in zip(frame["defective"], frame["deliveries"])
        ]
        return frame

    def to_sheet(self, labels: Mapping[str, str] | None = None) -> list[SheetRow]:
        """Two-dimensional export: months plus TOTAL across, sites then aggregates down."""
        labels = labels or {}
        rows: list[SheetRow] = [[SHEET_LABEL_COLUMN, *self.months, SHEET_TOTAL_COLUMN]]

        for site in self.sites:
            values = [self.cell(site, m).defective for m in self.months]
            rows.append([labels.get(site, site), *values, sum(values)])

        month_totals = [self.month_total(m) for m in self.months]
        grand = self.grand_total
        rows.append(["Total Defective Parts", *(t.defective for t in month_totals), grand.defective])
        rows.append(["Total Deliveries", *(t.deliveries for t in month_totals), grand.deliveries])
        rows.append(["Calculated PPM", *(t.ppm for t in month_totals), grand.ppm])
        return rows

    def to_sheet_frame(self, labels: Mapping[str, str] | None = None) -> pd.DataFrame:
        header, *body = self.to_sheet(labels)
        return pd.DataFrame(body, columns=header)


def build_contribution(
    records: Iterable[MonthlySiteKpi],
    side: Side = Side.CUSTOMER,
    restrict_to_sites: Iterable[str] | None = None,
) -> SiteContribution:
    """Sum one side's defective parts and deliveries into a site x month table."""
    side = Side(side)
    df = records_to_frame(records)
    restrict = set(restrict_to_sites or ())
    if restrict:
        df = df[df["site_code"].isin(restrict)]

    columns = SIDE_COLUMNS[side]
    if df.empty:
        empty = pd.DataFrame(dtype=float)
        return SiteContribution(side=side, sites=[], months=[], defective=empty, deliveries=empty)

    grouped = df.groupby(["site_code", "month"])[[columns["defective"], columns["deliveries"]]].sum()
    defective = grouped[columns["defective"]].unstack(fill_value=0.0).sort_index().sort_index(axis=1)
    deliveries = grouped[columns["deliveries"]].unstack(fill_value=0.0).sort_index().sort_index(axis=1)

    contribution = SiteContribution(
        side=side,
        sites=[str(s) for s in defective.index],
        months=[str(m) for m in defective.columns],
        defective=defective,
        deliveries=deliveries,
    )
    logger.info(
        f"Built {side} contribution table: {len(contribution.sites)} sites x "
        f"{len(contribution.months)} months, PPM {contribution.grand_total.ppm:.2f}"
    )
    return contribution


def site_shares(
    records: Iterable[MonthlySiteKpi],
    side: Side = Side.CUSTOMER,
    value: str = "defective",
) -> list[SiteShare]:
    """Per-site totals of one side's figure with each site's share of the whole."""
    side = Side(side)
    if value not in SIDE_COLUMNS[side]:
        raise ValueError(f"Unknown site share value: {value}")
    column = SIDE_COLUMNS[side][value]

    df = records_to_frame(records)
    if df.empty:
        return []

    totals = df.groupby("site_code", sort=False)[column].sum()
    names = df.dropna(subset=["site_name"]).groupby("site_code")["site_name"].first()
    overall = float(totals.sum())

    return [
        SiteShare(
            site_code=str(site),
            site_name=names.get(site),
            value=float(total),
            percentage=(float(total) / overall * 100) if overall > 0 else 0.0,
        )
        for site, total in totals.items()
    ]
