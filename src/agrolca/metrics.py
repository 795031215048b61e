"""Aggregazione pesata degli impatti e indicatori di sintesi."""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Sequence

from .models import TOTAL_CATEGORY, AggregateResult, Basis, EnrichedRecord

CATEGORY_ORDER = (
    "Climate change",
    "Ozone depletion",
    "Ionising radiation",
    "Photochemical ozone formation",
    "Particulate matter",
    "Human toxicity, non-cancer",
    "Human toxicity, cancer",
    "Acidification",
    "Eutrophication, freshwater",
    "Eutrophication, marine",
    "Eutrophication, terrestrial",
    "Ecotoxicity, freshwater",
    "Land use",
    "Water use",
    "Resource use, fossils",
    "Resource use, minerals and metals",
    "Climate change - Fossil",
    "Climate change - Biogenic",
    "Climate change - Land use and LU change",
    "Human toxicity, non-cancer - organics",
    "Human toxicity, non-cancer - inorganics",
    "Human toxicity, non-cancer - metals",
    "Human toxicity, cancer - organics",
    "Human toxicity, cancer - inorganics",
    "Human toxicity, cancer - metals",
    "Ecotoxicity, freshwater - organics",
    "Ecotoxicity, freshwater - inorganics",
    "Ecotoxicity, freshwater - metals",
)
_ORDER_INDEX = {name: index for index, name in enumerate(CATEGORY_ORDER)}


@dataclass(frozen=True, slots=True)
class ImpactSummary:
    """Panoramica complessiva delle operazioni filtrate."""

    operations: int
    farmers: int
    seasons: int
    total_area: float
    total_production: float | None
    avg_impact_ha: float | None
    avg_impact_tonne: float | None
    total_field_impact: float | None


def sort_categories(categories: Iterable[str]) -> list[str]:
    """Ordina le categorie secondo la sequenza LCA canonica.

    Le categorie non previste seguono quelle note, in ordine alfabetico.
    """

    return sorted(
        set(categories),
        key=lambda name: (_ORDER_INDEX.get(name, len(_ORDER_INDEX)), name),
    )


def aggregate(records: Iterable[EnrichedRecord], basis: Basis) -> AggregateResult:
    """Intensità medie per categoria, pesate per area o per produzione.

    Per ogni categoria il numeratore è ``Σ intensità × peso`` sulle operazioni
    con intensità nota e peso positivo, il denominatore è la somma dei pesi di
    tutte le operazioni. Se nessuna operazione ha un peso utilizzabile si
    restituisce la somma grezza delle intensità (``normalized=False``).
    """

    records_list = list(records)
    weighted = _weighted_sums(
        records_list, basis, lambda record: record.intensities(basis)
    )
    totals = _weighted_sums(
        records_list,
        basis,
        lambda record: {TOTAL_CATEGORY: record.total_intensity(basis)},
    )

    intensity = {
        category: weighted.normalize(category)
        for category in sort_categories(weighted.categories)
        if category != TOTAL_CATEGORY
    }
    return AggregateResult(
        basis=basis,
        category_intensity=intensity,
        total_intensity=(
            totals.normalize(TOTAL_CATEGORY) if TOTAL_CATEGORY in totals.categories else None
        ),
        total_weight=weighted.denominator,
        normalized=weighted.denominator > 0,
    )


def aggregate_by(
    records: Iterable[EnrichedRecord],
    basis: Basis,
    *,
    key: Callable[[EnrichedRecord], object],
) -> dict[object, AggregateResult]:
    """Aggrega separatamente ciascun gruppo; le chiavi vuote vengono scartate."""

    groups: dict[object, list[EnrichedRecord]] = defaultdict(list)
    for record in records:
        group = key(record)
        if group is None or group == "":
            continue
        groups[group].append(record)
    return {
        group: aggregate(members, basis)
        for group, members in sorted(groups.items(), key=lambda item: str(item[0]))
    }


def aggregate_by_operation(
    records: Iterable[EnrichedRecord], basis: Basis
) -> dict[object, AggregateResult]:
    return aggregate_by(records, basis, key=lambda record: record.record.operation_normalized)


def aggregate_by_farmer(
    records: Iterable[EnrichedRecord], basis: Basis
) -> dict[object, AggregateResult]:
    return aggregate_by(records, basis, key=lambda record: record.record.farmer_id)


def aggregate_by_season(
    records: Iterable[EnrichedRecord], basis: Basis
) -> dict[object, AggregateResult]:
    return aggregate_by(records, basis, key=lambda record: record.record.season)


def aggregate_nutrients(
    records: Iterable[EnrichedRecord], basis: Basis
) -> dict[str, dict[str, float]]:
    """Intensità per nutriente e categoria con la stessa pesatura di :func:`aggregate`."""

    records_list = list(records)
    nutrients = sorted(
        {
            nutrient
            for record in records_list
            for nutrient in record.nutrient_intensities(basis)
        }
    )
    result: dict[str, dict[str, float]] = {}
    for nutrient in nutrients:
        sums = _weighted_sums(
            records_list,
            basis,
            lambda record: record.nutrient_intensities(basis).get(nutrient, {}),
        )
        result[nutrient] = {
            category: sums.normalize(category) for category in sort_categories(sums.categories)
        }
    return result


def summarize_impacts(records: Iterable[EnrichedRecord]) -> ImpactSummary:
    """Ritorna gli indicatori di sintesi per le operazioni fornite."""

    records_list = list(records)
    total_area = sum(record.record.area_ha or 0.0 for record in records_list)
    total_production = sum(record.record.tonnes or 0.0 for record in records_list)
    field_impacts = [
        record.field_impact for record in records_list if record.field_impact is not None
    ]
    by_area = aggregate(records_list, Basis.HA)
    by_tonne = aggregate(records_list, Basis.TONNE)
    return ImpactSummary(
        operations=len(records_list),
        farmers=len({record.record.farmer_id for record in records_list if record.record.farmer_id}),
        seasons=len({record.record.season for record in records_list if record.record.season}),
        total_area=total_area,
        total_production=total_production or None,
        avg_impact_ha=by_area.total_intensity if by_area.normalized else None,
        avg_impact_tonne=by_tonne.total_intensity if by_tonne.normalized else None,
        total_field_impact=sum(field_impacts) if field_impacts else None,
    )


class _WeightedSums:
    def __init__(self) -> None:
        self.weighted: dict[str, float] = defaultdict(float)
        self.raw: dict[str, float] = defaultdict(float)
        self.denominator = 0.0

    @property
    def categories(self) -> Sequence[str]:
        return list(self.raw)

    def normalize(self, category: str) -> float:
        if self.denominator > 0:
            return self.weighted[category] / self.denominator
        return self.raw[category]


def _weighted_sums(
    records: Sequence[EnrichedRecord],
    basis: Basis,
    values: Callable[[EnrichedRecord], Mapping[str, float | None]],
) -> _WeightedSums:
    sums = _WeightedSums()
    for record in records:
        weight = record.weight(basis)
        usable = weight is not None and weight > 0
        if usable:
            sums.denominator += weight
        for category, value in values(record).items():
            if value is None:
                continue
            sums.raw[category] += value
            if usable:
                sums.weighted[category] += value * weight
    return sums


@dataclass(frozen=True, slots=True)
class CategoryBurden:
    """Intensità di una categoria confrontata con quella del gruppo di riferimento."""

    category: str
    subject: float | None
    reference: float | None
    ratio: float | None
    diff_percent: float | None


@dataclass(frozen=True, slots=True)
class BurdenComparison:
    """Carico relativo per categoria con indicatori di sintesi."""

    categories: tuple[CategoryBurden, ...]
    total: CategoryBurden
    mean_ratio: float | None
    mean_diff_percent: float | None
    highest: CategoryBurden | None
    lowest: CategoryBurden | None


def ratio(value: float | None, reference: float | None) -> float | None:
    if value is None or reference is None or reference == 0:
        return None
    if not (math.isfinite(value) and math.isfinite(reference)):
        return None
    return value / reference


def diff_percent(value: float | None, reference: float | None) -> float | None:
    """Scarto percentuale rispetto al riferimento, ``None`` se non definito."""

    relative = ratio(value, reference)
    return None if relative is None else (relative - 1.0) * 100.0


def _burden(category: str, subject: float | None, reference: float | None) -> CategoryBurden:
    return CategoryBurden(
        category=category,
        subject=subject,
        reference=reference,
        ratio=ratio(subject, reference),
        diff_percent=diff_percent(subject, reference),
    )


def compare_aggregates(subject: AggregateResult, reference: AggregateResult) -> BurdenComparison:
    """Confronta due aggregati categoria per categoria.

    Le categorie sono quelle del soggetto; una categoria assente nel
    riferimento ha rapporto e scarto ``None``. Il carico più alto e quello più
    basso sono le categorie con lo scarto percentuale massimo e minimo.
    """

    if subject.basis is not reference.basis:
        raise ValueError("Gli aggregati da confrontare devono avere la stessa base")

    rows = tuple(
        _burden(category, value, reference.category_intensity.get(category))
        for category, value in subject.category_intensity.items()
    )
    comparable = [row for row in rows if row.diff_percent is not None]
    ratios = [row.ratio for row in comparable if row.ratio is not None]
    return BurdenComparison(
        categories=rows,
        total=_burden(TOTAL_CATEGORY, subject.total_intensity, reference.total_intensity),
        mean_ratio=sum(ratios) / len(ratios) if ratios else None,
        mean_diff_percent=(
            sum(row.diff_percent for row in comparable) / len(comparable) if comparable else None
        ),
        highest=max(comparable, key=lambda row: row.diff_percent, default=None),
        lowest=min(comparable, key=lambda row: row.diff_percent, default=None),
    )


def impacts_by_source(
    records_by_source: Mapping[str, Iterable[EnrichedRecord]], basis: Basis
) -> dict[str, dict[str, float]]:
    """Intensità per categoria scomposte per fonte (dominio operativo).

    Ogni fonte è aggregata separatamente con la propria pesatura; il risultato
    è indicizzato per categoria, nell'ordine canonico, e poi per fonte.
    """

    by_category: dict[str, dict[str, float]] = defaultdict(dict)
    for source, records in records_by_source.items():
        result = aggregate(records, basis)
        for category, value in result.category_intensity.items():
            by_category[category][source] = value
    return {category: by_category[category] for category in sort_categories(by_category)}
