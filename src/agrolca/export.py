"""Esportazione delle operazioni arricchite in formato tabellare."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

import pandas as pd

from .metrics import sort_categories
from .models import TOTAL_CATEGORY, Basis, EnrichedRecord

BASE_COLUMNS = (
    "season",
    "farmer_id",
    "dmu_id",
    "operation",
    "product",
    "equipment",
    "active_substance",
    "date",
    "area_ha",
    "tonnes",
    "dose_kg_ha",
    "dose_kg_t",
)


def records_to_frame(records: Iterable[EnrichedRecord], basis: Basis) -> pd.DataFrame:
    """Una riga per operazione con intensità per categoria sulla base richiesta.

    I valori mancanti restano vuoti (``NaN``) e non vengono mai sostituiti da
    zero.
    """

    records_list = list(records)
    categories = sort_categories(
        category
        for record in records_list
        for category in record.intensities(basis)
        if category != TOTAL_CATEGORY
    )
    suffix = basis.suffix
    rows = []
    for enriched in records_list:
        record = enriched.record
        row: dict[str, object] = {
            "season": record.season,
            "farmer_id": record.farmer_id,
            "dmu_id": record.dmu_id,
            "operation": record.operation,
            "product": record.product,
            "equipment": record.equipment,
            "active_substance": record.active_substance,
            "date": record.date,
            "area_ha": record.area_ha,
            "tonnes": record.tonnes,
            "dose_kg_ha": record.dose_kg_ha,
            "dose_kg_t": record.dose_kg_t,
            "factor_key": enriched.factor_key,
            f"total_impact{suffix}": enriched.total_intensity(basis),
            "field_impact": enriched.field_impact,
        }
        intensities = enriched.intensities(basis)
        for category in categories:
            row[f"{category}{suffix}"] = intensities.get(category)
        rows.append(row)

    columns: Sequence[str] = [
        *BASE_COLUMNS,
        "factor_key",
        f"total_impact{suffix}",
        "field_impact",
        *(f"{category}{suffix}" for category in categories),
    ]
    return pd.DataFrame(rows, columns=columns)


def export_csv(records: Iterable[EnrichedRecord], path: str | Path, basis: Basis) -> Path:
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)
    records_to_frame(records, basis).to_csv(destination, index=False)
    return destination
