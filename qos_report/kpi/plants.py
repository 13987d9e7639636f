"""Display labels for sites from optional plant metadata."""

import re
from collections.abc import Iterable, Mapping

from qos_report.kpi.models import MonthlySiteKpi, PlantInfo

_NAME_PREFIX = re.compile(r"^(Site|Plant|Werk|Location)\s+", re.IGNORECASE)
_NUMBERED_PREFIX = re.compile(r"^(Plant|Site|Werk)\s*\d+\s*", re.IGNORECASE)


def index_plants(plants: Iterable[PlantInfo | Mapping]) -> dict[str, PlantInfo]:
    indexed = {}
    for plant in plants:
        if isinstance(plant, Mapping):
            plant = PlantInfo(
                code=str(plant["code"]),
                city=plant.get("city"),
                abbreviation=plant.get("abbreviation"),
                abbreviation_city=plant.get("abbreviationCity"),
                abbreviation_country=plant.get("abbreviationCountry"),
                country=plant.get("country"),
            )
        indexed[plant.code] = plant
    return indexed


def _city_from_site_name(site_name: str) -> str | None:
    name = _NUMBERED_PREFIX.sub("", site_name.strip())
    name = _NAME_PREFIX.sub("", name)
    words = name.split()
    if words and len(words[0]) >= 3:
        return words[0].capitalize()
    return None


def format_site_label(
    site_code: str,
    plants: Mapping[str, PlantInfo] | None = None,
    site_name: str | None = None,
    prefix: str | None = None,
) -> str:
    """``"<code> <abbreviations>"``, else ``"<code> (<city>)"``, else the bare code."""
    plant = (plants or {}).get(site_code)
    head = f"{prefix} {site_code}" if prefix else site_code

    if plant is not None:
        parts = [p for p in (plant.abbreviation_city, plant.abbreviation_country) if p]
        abbreviation = ", ".join(parts) if parts else plant.abbreviation
        if abbreviation:
            return f"{head} {abbreviation}"
        if plant.city:
            return f"{head} ({plant.city})"

    if site_name:
        city = _city_from_site_name(site_name)
        if city:
            return f"{head} ({city})"
    return head


def site_labels(
    records: Iterable[MonthlySiteKpi],
    plants: Mapping[str, PlantInfo] | None = None,
) -> dict[str, str]:
    """Label every site present in ``records``, using the first non-empty site name seen."""
    names: dict[str, str | None] = {}
    for record in records:
        if not names.get(record.site_code):
            names[record.site_code] = record.site_name
    return {code: format_site_label(code, plants, name) for code, name in sorted(names.items())}
