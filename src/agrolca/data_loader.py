"""Funzioni per importare i fogli delle operazioni agronomiche da file CSV."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from pathlib import Path

import pandas as pd

from .domains import DomainConfig
from .models import OperationRecord
from .parsing import (
    build_date,
    derive_farmer_id,
    extract_season,
    extract_season_from_id,
    parse_csv_text,
    parse_number,
)

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("dmu_id", "operation", "product", "equipment", "active_substance", "variety")
_NUMERIC_FIELDS = (
    "area_ha",
    "dose_kg_ha",
    "dose_kg_t",
    "n_kg_ha",
    "p_kg_ha",
    "k_kg_ha",
    "so4_kg_ha",
    "n_kg_t",
    "p_kg_t",
    "k_kg_t",
    "so4_kg_t",
    "water_m3_ha",
    "water_m3_t",
    "area_per_tonne",
    "productivity",
)


@dataclass(frozen=True, slots=True)
class SeedRate:
    """Dose di semina dichiarata per agricoltore e stagione."""

    farmer_id: str
    season: int | None
    kg_per_ha: float | None
    kg_per_t: float | None
    operation: str = ""


def _coerce_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        text = value.strip()
        return "" if text.casefold() == "nan" else text
    if pd.isna(value):  # type: ignore[arg-type]
        return ""
    return str(value).strip()


def _first_value(row: Mapping[str, object], aliases: Sequence[str]) -> object | None:
    for alias in aliases:
        value = row.get(alias)
        if value is not None and _coerce_text(value) != "":
            return value
    return None


def normalize(raw_row: Mapping[str, object], domain: DomainConfig) -> OperationRecord:
    """Converte una riga grezza in un :class:`OperationRecord` canonico.

    Le varianti di nome delle colonne vengono risolte qui, una volta sola,
    tramite la tabella di alias del dominio: per ogni campo vince il primo alias
    con un valore non vuoto. I valori numerici non interpretabili diventano
    ``None``.
    """

    aliases = domain.aliases

    def text(field: str) -> str:
        return _coerce_text(_first_value(raw_row, aliases.get(field, ())))

    def number(field: str) -> float | None:
        return parse_number(_first_value(raw_row, aliases.get(field, ())))

    texts = {field: text(field) for field in _TEXT_FIELDS}
    numbers = {field: number(field) for field in _NUMERIC_FIELDS}
    dmu_id = texts.pop("dmu_id")

    known_columns = {alias for names in aliases.values() for alias in names}
    extras = {
        str(column): _coerce_text(value)
        for column, value in raw_row.items()
        if column not in known_columns
    }

    return OperationRecord(
        domain=domain.name,
        dmu_id=dmu_id,
        farmer_id=derive_farmer_id(dmu_id),
        season=extract_season(raw_row),
        operation_normalized=texts["operation"].lower().strip(),
        date=build_date(
            _first_value(raw_row, aliases.get("year", ())),
            _first_value(raw_row, aliases.get("month", ())),
            _first_value(raw_row, aliases.get("day", ())),
        ),
        extra=extras,
        **texts,
        **numbers,
    )


def normalize_rows(
    rows: Iterable[Mapping[str, object]], domain: DomainConfig
) -> list[OperationRecord]:
    return [normalize(row, domain) for row in rows]


def load_operations_from_csv(path: str | Path, domain: DomainConfig) -> list[OperationRecord]:
    """Carica le operazioni di un dominio da un file CSV.

    Args:
        path: Percorso del file CSV da leggere.
        domain: Configurazione del dominio a cui appartengono le righe.

    Returns:
        Una lista di :class:`OperationRecord` ordinata come il file di origine.

    Raises:
        FileNotFoundError: se il file non esiste.
    """

    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Il file {csv_path} non esiste")

    rows = parse_csv_text(csv_path.read_text(encoding="utf-8"))
    if rows:
        _, missing = suggest_column_mapping(list(rows[0]), domain)
        if missing:
            logger.debug(
                "%s: nessuna colonna per i campi %s", csv_path.name, ", ".join(missing)
            )
    logger.debug("Lette %d righe da %s", len(rows), csv_path)
    return normalize_rows(rows, domain)


def suggest_column_mapping(
    columns: Sequence[str], domain: DomainConfig
) -> tuple[dict[str, str], tuple[str, ...]]:
    """Suggerisce la mappatura tra i campi canonici e le colonne disponibili.

    Returns:
        Una tupla contenente il dizionario di colonne risolte e i campi non
        assegnati.
    """

    available = {_normalize_token(column): column for column in columns}
    resolved: dict[str, str] = {}
    missing: list[str] = []
    for field, aliases in domain.aliases.items():
        for alias in aliases:
            token = _normalize_token(alias)
            if token in available:
                resolved[field] = available[token]
                break
        else:
            missing.append(field)
    return resolved, tuple(missing)


def _normalize_token(value: str) -> str:
    return value.strip().casefold()


def load_seed_rates(path: str | Path) -> dict[tuple[str, int | None], SeedRate]:
    """Legge la tabella delle dosi di semina indicizzata per (agricoltore, stagione)."""

    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Il file {csv_path} non esiste")
    return seed_rates_from_rows(parse_csv_text(csv_path.read_text(encoding="utf-8")))


def seed_rates_from_rows(
    rows: Iterable[Mapping[str, object]],
) -> dict[tuple[str, int | None], SeedRate]:
    rates: dict[tuple[str, int | None], SeedRate] = {}
    for row in rows:
        dmu_id = _coerce_text(_first_value(row, ("dmu_id", "DMU_ID")))
        season = extract_season_from_id(dmu_id)
        if not dmu_id or season is None:
            continue
        rate = SeedRate(
            farmer_id=derive_farmer_id(dmu_id),
            season=season,
            kg_per_ha=parse_number(row.get("kg_per_ha")),
            kg_per_t=parse_number(row.get("kg_per_t")),
            operation=_coerce_text(row.get("operations")).lower(),
        )
        rates[(rate.farmer_id, rate.season)] = rate
    return rates


def apply_seed_rates(
    records: Iterable[OperationRecord],
    rates: Mapping[tuple[str, int | None], SeedRate],
) -> list[OperationRecord]:
    """Sostituisce le dosi di semina con quelle dichiarate, quando presenti.

    I record originali non vengono modificati: per ogni corrispondenza si
    produce una copia con le dosi aggiornate.
    """

    updated: list[OperationRecord] = []
    for record in records:
        rate = rates.get((record.farmer_id, record.season))
        if rate is None:
            updated.append(record)
            continue
        updated.append(
            replace(
                record,
                dose_kg_ha=rate.kg_per_ha if rate.kg_per_ha is not None else record.dose_kg_ha,
                dose_kg_t=rate.kg_per_t if rate.kg_per_t is not None else record.dose_kg_t,
            )
        )
    return updated


CLUSTER_COLUMNS = ("cluster", "Cluster", "cluster_hcpc_full", "cluster_id")


def load_cluster_assignments(path: str | Path) -> dict[tuple[str, int | None], str]:
    """Legge l'assegnazione dei cluster indicizzata per (agricoltore, stagione)."""

    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Il file {csv_path} non esiste")
    return cluster_assignments_from_rows(parse_csv_text(csv_path.read_text(encoding="utf-8")))


def cluster_assignments_from_rows(
    rows: Iterable[Mapping[str, object]],
) -> dict[tuple[str, int | None], str]:
    assignments: dict[tuple[str, int | None], str] = {}
    for row in rows:
        dmu_id = _coerce_text(_first_value(row, ("dmu_id", "DMU_ID", "farmer_id")))
        label = _coerce_text(_first_value(row, CLUSTER_COLUMNS))
        farmer_id = derive_farmer_id(dmu_id)
        if not farmer_id or not label:
            continue
        numeric = parse_number(label)
        if numeric is not None and numeric.is_integer():
            label = str(int(numeric))
        assignments[(farmer_id, extract_season(row))] = label
    logger.debug("Assegnati %d cluster", len(assignments))
    return assignments
