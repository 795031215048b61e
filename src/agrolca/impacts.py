"""Calcolo degli impatti ambientali per singola operazione."""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from .domains import DomainConfig
from .factors import FactorTable
from .models import (
    TOTAL_CATEGORY,
    Basis,
    EnrichedRecord,
    FactorEntry,
    OperationRecord,
    ScoreKind,
)


def total_from_map(values: Mapping[str, float | None]) -> float | None:
    """Totale di una mappa categoria -> intensità.

    Si usa la voce ``Total`` quando presente, altrimenti la somma delle altre
    categorie non nulle; ``None`` se non c'è alcun valore.
    """

    explicit = values.get(TOTAL_CATEGORY)
    if explicit is not None:
        return explicit
    present = [
        value
        for category, value in values.items()
        if category != TOTAL_CATEGORY and value is not None
    ]
    if not present:
        return None
    return sum(present)


def compute_impacts(
    record: OperationRecord,
    table: FactorTable,
    score_kind: ScoreKind,
    domain: DomainConfig,
) -> EnrichedRecord:
    """Arricchisce un'operazione con le intensità per ettaro e per tonnellata.

    Una dose mancante produce impatti ``None`` e non zero: una dose nulla è
    una misura legittima, una dose assente è un valore sconosciuto.
    """

    factor_key = domain.classify(record)

    if domain.nutrients:
        impact_ha, nutrients_ha = _nutrient_impacts(record, table, score_kind, domain, Basis.HA)
        impact_t, nutrients_t = _nutrient_impacts(
            record, table, score_kind, domain, Basis.TONNE
        )
    else:
        factors = table.lookup(factor_key, score_kind)
        impact_ha = _scale(factors, domain.dose(record, Basis.HA))
        impact_t = _scale(factors, domain.dose(record, Basis.TONNE))
        nutrients_ha, nutrients_t = {}, {}

    return EnrichedRecord(
        record=record,
        factor_key=factor_key,
        score_kind=score_kind,
        impact_ha=impact_ha,
        impact_tonne=impact_t,
        total_impact_ha=total_from_map(impact_ha),
        total_impact_tonne=total_from_map(impact_t),
        nutrient_impact_ha=nutrients_ha,
        nutrient_impact_tonne=nutrients_t,
    )


def enrich_records(
    records: Iterable[OperationRecord],
    table: FactorTable,
    score_kind: ScoreKind,
    domain: DomainConfig,
) -> list[EnrichedRecord]:
    return [compute_impacts(record, table, score_kind, domain) for record in records]


def _scale(factors: Mapping[str, FactorEntry], dose: float | None) -> dict[str, float | None]:
    return {
        category: None if dose is None else entry.coefficient * dose
        for category, entry in factors.items()
    }


def _nutrient_impacts(
    record: OperationRecord,
    table: FactorTable,
    score_kind: ScoreKind,
    domain: DomainConfig,
    basis: Basis,
) -> tuple[dict[str, float | None], dict[str, dict[str, float]]]:
    # una stessa applicazione porta più nutrienti sulla stessa categoria
    combined: dict[str, float | None] = {}
    by_nutrient: dict[str, dict[str, float]] = {}
    for nutrient, factor_key in domain.nutrients.items():
        factors = table.lookup(factor_key, score_kind)
        load = record.nutrient_load(nutrient, basis)
        for category, entry in factors.items():
            combined.setdefault(category, None)
            if load is None:
                continue
            value = entry.coefficient * load
            combined[category] = (combined[category] or 0.0) + value
            by_nutrient.setdefault(nutrient, {})[category] = value
    return combined, by_nutrient
