"""Tabella dei fattori di impatto costruita dai dataset single score e caratterizzazione."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from types import MappingProxyType

from .models import FactorEntry, ScoreKind
from .parsing import parse_number

logger = logging.getLogger(__name__)

FactorDataset = Sequence[Mapping[str, object]]
# chiave -> gruppi alternativi di product_id; vince il primo gruppo presente
KeyMap = Mapping[ScoreKind, Mapping[str, Sequence[Sequence[str]]]]

_EMPTY: Mapping[str, FactorEntry] = MappingProxyType({})


class FactorDatasetError(ValueError):
    """Errore sollevato quando un dataset di fattori non ha la forma attesa."""


def load_factor_dataset(path: str | Path) -> list[dict[str, object]]:
    """Legge un dataset JSON di fattori (lista di prodotti con categorie)."""

    json_path = Path(path)
    if not json_path.exists():
        raise FileNotFoundError(f"Il file {json_path} non esiste")

    data = json.loads(json_path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise FactorDatasetError(
            f"Il file {json_path.name} deve contenere una lista di prodotti"
        )
    for position, product in enumerate(data):
        if not isinstance(product, dict):
            raise FactorDatasetError(
                f"Il file {json_path.name} contiene un prodotto non valido in posizione {position}"
            )
        categories = product.get("categories")
        if categories is not None and not (
            isinstance(categories, list) and all(isinstance(item, dict) for item in categories)
        ):
            raise FactorDatasetError(
                f"Il file {json_path.name}: categorie non valide per {product.get('product_id')!r}"
            )
    logger.debug("Caricati %d prodotti da %s", len(data), json_path)
    return data


class FactorTable:
    """Lookup in sola lettura ``(chiave, tipo di punteggio) -> categorie``.

    I coefficienti di più ``product_id`` associati alla stessa chiave vengono
    sommati una sola volta in fase di costruzione; l'unità conservata è quella
    del primo contributo.
    """

    def __init__(self, factors: Mapping[ScoreKind, Mapping[str, Mapping[str, FactorEntry]]]):
        self._factors = {
            kind: {
                key: MappingProxyType(dict(categories))
                for key, categories in by_key.items()
            }
            for kind, by_key in factors.items()
        }

    @classmethod
    def build(
        cls,
        single_dataset: FactorDataset,
        characterisation_dataset: FactorDataset,
        key_map: KeyMap,
    ) -> "FactorTable":
        datasets = {
            ScoreKind.SINGLE: single_dataset,
            ScoreKind.CHARACTERISATION: characterisation_dataset,
        }
        factors: dict[ScoreKind, dict[str, dict[str, FactorEntry]]] = {}
        for kind, dataset in datasets.items():
            by_id = _index_products(dataset)
            factors[kind] = {
                key: _sum_products(by_id, key, groups)
                for key, groups in key_map.get(kind, {}).items()
            }
        return cls(factors)

    def lookup(self, key: str | None, score_kind: ScoreKind) -> Mapping[str, FactorEntry]:
        """Categorie e coefficienti per una chiave; mappa vuota se sconosciuta."""

        if key is None:
            return _EMPTY
        return self._factors.get(score_kind, {}).get(key, _EMPTY)

    def keys(self, score_kind: ScoreKind) -> list[str]:
        return sorted(
            key for key, categories in self._factors.get(score_kind, {}).items() if categories
        )

    def units(
        self, score_kind: ScoreKind, keys: Iterable[str] | None = None
    ) -> dict[str, str]:
        """Prima unità incontrata per ciascuna categoria di impatto."""

        by_key = self._factors.get(score_kind, {})
        selected = by_key if keys is None else {key: by_key[key] for key in keys if key in by_key}
        units: dict[str, str] = {}
        for categories in selected.values():
            for name, entry in categories.items():
                if name not in units or not units[name]:
                    units[name] = entry.unit
        return units


def _index_products(dataset: Iterable[Mapping[str, object]]) -> dict[str, Mapping[str, object]]:
    index: dict[str, Mapping[str, object]] = {}
    for product in dataset:
        product_id = product.get("product_id")
        if product_id:
            index[str(product_id)] = product
    return index


def _sum_products(
    by_id: Mapping[str, Mapping[str, object]],
    key: str,
    groups: Sequence[Sequence[str]],
) -> dict[str, FactorEntry]:
    for ids in groups:
        products = [by_id[product_id] for product_id in ids if product_id in by_id]
        if products:
            break
    else:
        logger.warning("Nessun fattore trovato per la chiave %r", key)
        return {}

    totals: dict[str, float] = {}
    units: dict[str, str] = {}
    for product in products:
        for category in product.get("categories") or ():
            name = str(category.get("impact_category") or "").strip()
            coefficient = parse_number(category.get("total"))
            if not name or coefficient is None:
                continue
            totals[name] = totals.get(name, 0.0) + coefficient
            units.setdefault(name, str(category.get("unit") or ""))

    logger.debug("Chiave %r: %d categorie da %d prodotti", key, len(totals), len(products))
    return {
        name: FactorEntry(impact_category=name, coefficient=total, unit=units[name])
        for name, total in totals.items()
    }
