"""Stato immutabile dei filtri e selezione delle operazioni."""

from __future__ import annotations

import re
from dataclasses import dataclass, fields, replace
from typing import Iterable

from .models import Basis, OperationRecord, ScoreKind

ALL = "all"
FARMER_GROUPS = ("C", "D", "NT")

_GROUP_RE = re.compile(r"^[A-Z]+")


def farmer_group(farmer_id: str | None) -> str | None:
    """Gruppo sperimentale di un agricoltore (prefisso alfabetico dell'id)."""

    if not farmer_id:
        return None
    identifier = str(farmer_id).upper()
    if identifier.startswith("NT"):
        return "NT"
    match = _GROUP_RE.match(identifier)
    return match.group(0) if match else None


@dataclass(frozen=True, slots=True)
class FilterState:
    """Selezione corrente; ogni transizione produce un nuovo stato."""

    season: str = ALL
    farmer: str = ALL
    group: str = ALL
    operation: str = ALL
    substance: str = ALL
    product: str = ALL
    equipment: str = ALL
    basis: Basis = Basis.HA
    score: ScoreKind = ScoreKind.SINGLE

    def with_changes(self, **changes: object) -> "FilterState":
        if "basis" in changes:
            changes["basis"] = Basis(changes["basis"])
        if "score" in changes:
            changes["score"] = ScoreKind(changes["score"])
        for name in ("season", "farmer", "group", "operation", "substance", "product", "equipment"):
            if name in changes:
                value = changes[name]
                changes[name] = ALL if value in (None, "") else str(value)
        return replace(self, **changes)

    def reset(self) -> "FilterState":
        """Azzera i filtri mantenendo base e tipo di punteggio."""

        return FilterState(basis=self.basis, score=self.score)

    def active(self) -> dict[str, str]:
        """Filtri diversi da ``all``, nell'ordine di dichiarazione."""

        return {
            item.name: getattr(self, item.name)
            for item in fields(self)
            if item.name not in ("basis", "score") and getattr(self, item.name) != ALL
        }

    def matches(self, record: OperationRecord) -> bool:
        if self.season != ALL and str(record.season or "") != self.season:
            return False
        if self.farmer != ALL and record.farmer_id != self.farmer:
            return False
        if self.group != ALL and farmer_group(record.farmer_id) != self.group:
            return False
        if self.operation != ALL and record.operation_normalized != self.operation.lower():
            return False
        if self.substance != ALL and record.active_substance != self.substance:
            return False
        if self.product != ALL and record.product != self.product:
            return False
        if self.equipment != ALL and record.equipment != self.equipment:
            return False
        return True


def apply_filters(records: Iterable[OperationRecord], state: FilterState) -> list[OperationRecord]:
    return [record for record in records if state.matches(record)]


def filter_options(records: Iterable[OperationRecord]) -> dict[str, list[str]]:
    """Valori disponibili per ciascun filtro, già ordinati per la visualizzazione."""

    records_list = list(records)

    def unique(values: Iterable[object]) -> set[str]:
        return {str(value) for value in values if value not in (None, "")}

    return {
        "season": sorted(unique(record.season for record in records_list), reverse=True),
        "farmer": sorted(unique(record.farmer_id for record in records_list)),
        "group": list(FARMER_GROUPS),
        "operation": sorted(unique(record.operation_normalized for record in records_list)),
        "substance": sorted(unique(record.active_substance for record in records_list)),
        "product": sorted(unique(record.product for record in records_list)),
        "equipment": sorted(unique(record.equipment for record in records_list)),
    }
