"""Configurazione dei cinque domini operativi sul motore di calcolo generico.

Ogni dominio descrive come si chiamano le colonne nel foglio di origine, quali
``product_id`` dei dataset di fattori gli appartengono, come una riga viene
classificata in una chiave della :class:`~agrolca.factors.FactorTable` e
quale dose moltiplica i coefficienti. La fertilizzazione dichiara inoltre la
scomposizione per nutriente.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Sequence

from .models import Basis, OperationRecord, ScoreKind


class UnknownDomainError(KeyError):
    """Errore sollevato per un dominio non configurato."""


Classifier = Callable[[OperationRecord], "str | None"]
DoseSelector = Callable[[OperationRecord, Basis], "float | None"]


@dataclass(frozen=True, slots=True)
class DomainConfig:
    name: str
    label: str
    source_file: str
    aliases: Mapping[str, tuple[str, ...]]
    factor_ids: Mapping[ScoreKind, Mapping[str, Sequence[Sequence[str]]]]
    classify: Classifier
    dose: DoseSelector
    nutrients: Mapping[str, str] = field(default_factory=dict)
    filters: tuple[str, ...] = ("season", "farmer", "group", "operation")
    dose_unit: str = "kg"


_COMMON_ALIASES: dict[str, tuple[str, ...]] = {
    "dmu_id": ("dmu_id", "DMU_ID", "dmuId", "dmu"),
    "operation": ("operation", "Operation"),
    "product": ("product", "Product"),
    "equipment": ("equipment", "Equipment"),
    "active_substance": ("active_substance",),
    "variety": ("variety",),
    "year": ("year", "Year"),
    "month": ("month", "Month"),
    "day": ("day", "Day"),
    "area_ha": ("covered_area", "area_ha"),
    "dose_kg_ha": ("dose_kg_ha",),
    "dose_kg_t": ("dose_kg/t", "dose_kg_per_t", "dose_kg_t"),
    "area_per_tonne": ("area_per_tonne",),
    "productivity": ("productivity", "productivity_weighted"),
}

_NUTRIENT_ALIASES: dict[str, tuple[str, ...]] = {
    "n_kg_ha": ("n_kg_ha_weight", "n_kg_ha"),
    "p_kg_ha": ("p_kg_ha_weight", "p_kg_ha"),
    "k_kg_ha": ("k_kg_ha_weight", "k_kg_ha"),
    "so4_kg_ha": ("so4_kg_ha_weight", "so4_kg_ha"),
    "n_kg_t": ("n_kg_t",),
    "p_kg_t": ("p_kg_t",),
    "k_kg_t": ("k_kg_t",),
    "so4_kg_t": ("so4_kg_t",),
}

EQUIPMENT_FACTORS: dict[str, tuple[str, str]] = {
    "disk_harrow": ("singlescore_11_1", "11_chara"),
    "laser_leveler": ("singlescore_12_1", "12_chara"),
    "centrifugal_spreader": ("singlescore_13_1", "13_chara"),
    "rotary_tiller": ("singlescore_14_1", "14_chara"),
    "sprayer": ("singlescore_15_1", "15_chara"),
    "combine_harvester": ("singlescore_16_1", "16_chara"),
    "seeder": ("singlescore_17_1", "17_chara"),
}


def _aliases(**overrides: tuple[str, ...]) -> dict[str, tuple[str, ...]]:
    return _COMMON_ALIASES | overrides


def dose_per_mass(record: OperationRecord, basis: Basis) -> float | None:
    """Dose di prodotto in kg/ha o kg/t."""

    return record.dose_kg_ha if basis is Basis.HA else record.dose_kg_t


def dose_per_water(record: OperationRecord, basis: Basis) -> float | None:
    """Volume d'acqua in m³/ha o m³/t."""

    return record.water_m3_ha if basis is Basis.HA else record.water_m3_t


def dose_per_area_worked(record: OperationRecord, basis: Basis) -> float | None:
    """Ettari lavorati per unità: i fattori delle macchine sono già per ettaro."""

    if basis is Basis.HA:
        return 1.0 if record.area_ha is not None else None
    if record.area_per_tonne is not None and record.area_per_tonne > 0:
        return record.area_per_tonne
    return None


def classify_crop_protection(record: OperationRecord) -> str | None:
    if "seed" in record.product.lower():
        return "seeds"
    operation = record.operation_normalized
    if "herbicide" in operation:
        return "herbicide"
    if "fungicide" in operation:
        return "fungicide"
    if "insecticide" in operation or "pesticide" in operation:
        return "insecticide"
    return None


def classify_equipment(record: OperationRecord) -> str | None:
    key = record.equipment.strip().lower().replace(" ", "_")
    return key if key in EQUIPMENT_FACTORS else None


_SEEDS = {
    ScoreKind.SINGLE: {"seeds": (("singlescore_1_1",),)},
    ScoreKind.CHARACTERISATION: {"seeds": (("1_chara",),)},
}

CROP_PROTECTION = DomainConfig(
    name="crop_protection",
    label="Protezione delle colture",
    source_file="operations_mastersheet - CROP_PROTECTION.csv",
    aliases=_aliases(),
    factor_ids={
        ScoreKind.SINGLE: {
            "herbicide": (("singlescore_2_1", "singlescore_3_1"), ("Herbicide",)),
            "insecticide": (("singlescore_4_1", "singlescore_5_1"), ("Insecticide",)),
            "fungicide": (("singlescore_6_1", "singlescore_7_1"), ("Fungicide",)),
            **_SEEDS[ScoreKind.SINGLE],
        },
        ScoreKind.CHARACTERISATION: {
            "herbicide": (("2_chara", "3_chara"),),
            "insecticide": (("4_chara", "5_chara"),),
            "fungicide": (("6_chara", "7_chara"),),
            **_SEEDS[ScoreKind.CHARACTERISATION],
        },
    },
    classify=classify_crop_protection,
    dose=dose_per_mass,
    filters=("season", "farmer", "group", "operation", "substance", "product"),
)

FERTILISATION = DomainConfig(
    name="fertilisation",
    label="Fertilizzazione",
    source_file="operations_mastersheet - FERTILISATION.csv",
    aliases=_aliases(area_ha=("area_TOTAL", "covered_area", "area_ha"), **_NUTRIENT_ALIASES),
    factor_ids={
        ScoreKind.SINGLE: {
            "fertiliser_n": (("singlescore_8_1",),),
            "fertiliser_p": (("singlescore_9_1",),),
            "fertiliser_k": (("singlescore_10_1",),),
        },
        ScoreKind.CHARACTERISATION: {
            "fertiliser_n": (("8_chara",),),
            "fertiliser_p": (("9_chara",),),
            "fertiliser_k": (("10_chara",),),
        },
    },
    classify=lambda record: "fertiliser",
    dose=dose_per_mass,
    nutrients={
        "N": "fertiliser_n",
        "P": "fertiliser_p",
        "K": "fertiliser_k",
        "SO4": "fertiliser_so4",
    },
    filters=("season", "farmer", "group", "operation", "product"),
)

SOWING = DomainConfig(
    name="sowing",
    label="Semina",
    source_file="operations_mastersheet - SOWING.csv",
    aliases=_aliases(),
    factor_ids=_SEEDS,
    classify=lambda record: "seeds",
    dose=dose_per_mass,
)

MACHINERY = DomainConfig(
    name="machinery",
    label="Macchine",
    source_file="operations_mastersheet - Machines_No_Inputs.csv",
    aliases=_aliases(area_ha=("total_area_worked", "Area", "area_ha")),
    factor_ids={
        ScoreKind.SINGLE: {key: ((ids[0],),) for key, ids in EQUIPMENT_FACTORS.items()},
        ScoreKind.CHARACTERISATION: {
            key: ((ids[1],),) for key, ids in EQUIPMENT_FACTORS.items()
        },
    },
    classify=classify_equipment,
    dose=dose_per_area_worked,
    filters=("season", "farmer", "group", "operation", "equipment"),
    dose_unit="ha",
)

WATER = DomainConfig(
    name="water",
    label="Acqua",
    source_file="water.csv",
    aliases=_aliases(
        dmu_id=("DMU_ID", "dmu_id"),
        area_ha=("SUM of area_ha", "area_ha"),
        productivity=("Productivity (t/ha)", "productivity"),
        water_m3_ha=("Water m3/ha", "water_m3_ha"),
        water_m3_t=("Water M3/t", "Water m3/t", "water_m3_t"),
    ),
    factor_ids={
        ScoreKind.SINGLE: {"water": (("singlescore_18_1",),)},
        ScoreKind.CHARACTERISATION: {"water": (("18_chara",),)},
    },
    classify=lambda record: "water",
    dose=dose_per_water,
    filters=("season", "farmer", "group"),
    dose_unit="m³",
)

DOMAINS: dict[str, DomainConfig] = {
    domain.name: domain
    for domain in (CROP_PROTECTION, FERTILISATION, SOWING, MACHINERY, WATER)
}


def get_domain(name: str) -> DomainConfig:
    try:
        return DOMAINS[name]
    except KeyError:
        available = ", ".join(DOMAINS)
        raise UnknownDomainError(
            f"Dominio sconosciuto: {name!r}. Domini disponibili: {available}"
        ) from None


def build_key_map(
    domains: Iterable[DomainConfig] | None = None,
) -> dict[ScoreKind, dict[str, Sequence[Sequence[str]]]]:
    """Unisce le mappe chiave -> product_id di tutti i domini."""

    merged: dict[ScoreKind, dict[str, Sequence[Sequence[str]]]] = {
        kind: {} for kind in ScoreKind
    }
    for domain in domains if domains is not None else DOMAINS.values():
        for kind, by_key in domain.factor_ids.items():
            merged[kind].update(by_key)
    return merged


def domain_factor_keys(domain: DomainConfig, score_kind: ScoreKind) -> list[str]:
    """Chiavi della tabella dei fattori usate da un dominio."""

    keys = list(domain.factor_ids.get(score_kind, {}))
    keys.extend(key for key in domain.nutrients.values() if key not in keys)
    return keys
