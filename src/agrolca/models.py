"""Modelli di dominio per operazioni agronomiche, fattori e impatti LCA."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping

TOTAL_CATEGORY = "Total"
NUTRIENTS = ("N", "P", "K", "SO4")


class Basis(str, Enum):
    """Base di normalizzazione delle intensità: per ettaro o per tonnellata."""

    HA = "ha"
    TONNE = "tonne"

    @property
    def suffix(self) -> str:
        return "/ha" if self is Basis.HA else "/t"


class ScoreKind(str, Enum):
    """Universo di fattori: punteggio singolo o caratterizzazione."""

    SINGLE = "single"
    CHARACTERISATION = "chara"


def compute_tonnes(
    area: float | None,
    area_per_tonne: float | None,
    productivity: float | None,
) -> float | None:
    """Stima la produzione in tonnellate a partire dall'area lavorata.

    Si usa ``area / area_per_tonne`` se disponibile, altrimenti
    ``area * productivity``; senza nessuno dei due valori il risultato è
    ``None``.
    """

    if area is None:
        return None
    if area_per_tonne is not None and area_per_tonne > 0:
        return area / area_per_tonne
    if productivity is not None and productivity > 0:
        return area * productivity
    return None


@dataclass(frozen=True, slots=True)
class OperationRecord:
    """Rappresenta una singola operazione agronomica registrata."""

    domain: str
    dmu_id: str
    farmer_id: str
    season: int | None
    operation: str
    operation_normalized: str
    product: str = ""
    equipment: str = ""
    active_substance: str = ""
    variety: str = ""
    date: str = ""
    area_ha: float | None = None
    dose_kg_ha: float | None = None
    dose_kg_t: float | None = None
    n_kg_ha: float | None = None
    p_kg_ha: float | None = None
    k_kg_ha: float | None = None
    so4_kg_ha: float | None = None
    n_kg_t: float | None = None
    p_kg_t: float | None = None
    k_kg_t: float | None = None
    so4_kg_t: float | None = None
    water_m3_ha: float | None = None
    water_m3_t: float | None = None
    area_per_tonne: float | None = None
    productivity: float | None = None
    extra: Mapping[str, object] = field(default_factory=dict)

    @property
    def tonnes(self) -> float | None:
        """Produzione stimata in tonnellate, ``None`` se non calcolabile."""

        return compute_tonnes(self.area_ha, self.area_per_tonne, self.productivity)

    def nutrient_load(self, nutrient: str, basis: Basis) -> float | None:
        """Carico di un nutriente (kg/ha o kg/t) per la base richiesta."""

        suffix = "ha" if basis is Basis.HA else "t"
        return getattr(self, f"{nutrient.lower()}_kg_{suffix}")


@dataclass(frozen=True, slots=True)
class FactorEntry:
    """Coefficiente di impatto per una categoria e un'unità di misura."""

    impact_category: str
    coefficient: float
    unit: str


@dataclass(frozen=True, slots=True)
class EnrichedRecord:
    """Operazione arricchita con gli impatti calcolati."""

    record: OperationRecord
    factor_key: str | None
    score_kind: ScoreKind
    impact_ha: Mapping[str, float | None]
    impact_tonne: Mapping[str, float | None]
    total_impact_ha: float | None
    total_impact_tonne: float | None
    nutrient_impact_ha: Mapping[str, Mapping[str, float]] = field(default_factory=dict)
    nutrient_impact_tonne: Mapping[str, Mapping[str, float]] = field(default_factory=dict)

    @property
    def field_impact(self) -> float | None:
        """Impatto assoluto dell'operazione (intensità per ettaro × area)."""

        if self.total_impact_ha is None or self.record.area_ha is None:
            return None
        return self.total_impact_ha * self.record.area_ha

    @property
    def production_impact(self) -> float | None:
        """Impatto assoluto riferito alla produzione (intensità per t × t)."""

        tonnes = self.record.tonnes
        if self.total_impact_tonne is None or tonnes is None:
            return None
        return self.total_impact_tonne * tonnes

    def intensities(self, basis: Basis) -> Mapping[str, float | None]:
        return self.impact_ha if basis is Basis.HA else self.impact_tonne

    def total_intensity(self, basis: Basis) -> float | None:
        return self.total_impact_ha if basis is Basis.HA else self.total_impact_tonne

    def nutrient_intensities(self, basis: Basis) -> Mapping[str, Mapping[str, float]]:
        return self.nutrient_impact_ha if basis is Basis.HA else self.nutrient_impact_tonne

    def weight(self, basis: Basis) -> float | None:
        """Peso dell'operazione: area per la base ha, tonnellate per la base t."""

        return self.record.area_ha if basis is Basis.HA else self.record.tonnes


@dataclass(frozen=True, slots=True)
class AggregateResult:
    """Intensità medie pesate per categoria su un insieme di operazioni."""

    basis: Basis
    category_intensity: Mapping[str, float]
    total_intensity: float | None
    total_weight: float
    normalized: bool
