"""Caricamento dei dataset e costruzione delle viste filtrate."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .data_loader import (
    apply_seed_rates,
    load_cluster_assignments,
    load_operations_from_csv,
    load_seed_rates,
)
from .domains import (
    DOMAINS,
    SOWING,
    DomainConfig,
    build_key_map,
    domain_factor_keys,
    get_domain,
)
from .factors import FactorTable, load_factor_dataset
from .filters import FilterState, apply_filters, farmer_group
from .impacts import enrich_records
from .metrics import (
    BurdenComparison,
    ImpactSummary,
    aggregate,
    aggregate_by_operation,
    aggregate_nutrients,
    compare_aggregates,
    impacts_by_source,
    summarize_impacts,
)
from .models import AggregateResult, EnrichedRecord, OperationRecord

logger = logging.getLogger(__name__)

SINGLE_SCORE_FILE = "singlescore.json"
CHARACTERISATION_FILE = "characterisation.json"
SEED_RATES_FILE = "seed_rates.csv"
CLUSTERS_FILE = "clusters.csv"


class DatasetLoadError(RuntimeError):
    """Errore sollevato quando uno dei dataset richiesti non può essere caricato."""


@dataclass(frozen=True)
class Workspace:
    """Dataset completamente caricati e tabella dei fattori condivisa."""

    operations: Mapping[str, list[OperationRecord]]
    factors: FactorTable
    clusters: Mapping[tuple[str, int | None], str] = field(default_factory=dict)

    def records(self, domain: str) -> list[OperationRecord]:
        get_domain(domain)
        return list(self.operations.get(domain, []))

    def peer_group(self, farmer_id: str, season: int | None = None) -> str | None:
        """Gruppo di confronto di un agricoltore.

        Con un'assegnazione dei cluster caricata si usa il cluster della
        stagione (o quello senza stagione); altrimenti il gruppo C/D/NT
        ricavato dall'identificativo.
        """

        if not self.clusters:
            return farmer_group(farmer_id)
        cluster = self.clusters.get((farmer_id, season))
        if cluster is None:
            cluster = self.clusters.get((farmer_id, None))
        return cluster


@dataclass(frozen=True)
class ImpactView:
    """Risultato completo di una vista: dettaglio, aggregati e indicatori."""

    domain: DomainConfig
    filters: FilterState
    records: list[EnrichedRecord]
    aggregate: AggregateResult
    summary: ImpactSummary
    units: Mapping[str, str]
    by_operation: Mapping[object, AggregateResult] = field(default_factory=dict)
    nutrients: Mapping[str, Mapping[str, float]] = field(default_factory=dict)


async def load_workspace(
    data_dir: str | Path,
    domains: Iterable[str] | None = None,
) -> Workspace:
    """Carica in parallelo tutti i dataset necessari.

    La funzione ritorna solo quando ogni lettura è andata a buon fine: un
    errore su uno qualsiasi dei file interrompe il caricamento con
    :class:`DatasetLoadError` e nessun dato parziale viene esposto.
    """

    data_path = Path(data_dir)
    selected = [get_domain(name) for name in domains] if domains else list(DOMAINS.values())
    seed_path = data_path / SEED_RATES_FILE
    with_seed_rates = SOWING in selected and seed_path.exists()
    cluster_path = data_path / CLUSTERS_FILE
    with_clusters = cluster_path.exists()

    reads = [
        asyncio.to_thread(load_factor_dataset, data_path / SINGLE_SCORE_FILE),
        asyncio.to_thread(load_factor_dataset, data_path / CHARACTERISATION_FILE),
        *(
            asyncio.to_thread(load_operations_from_csv, data_path / domain.source_file, domain)
            for domain in selected
        ),
    ]
    if with_seed_rates:
        reads.append(asyncio.to_thread(load_seed_rates, seed_path))
    if with_clusters:
        reads.append(asyncio.to_thread(load_cluster_assignments, cluster_path))

    try:
        results = list(await asyncio.gather(*reads))
    except (OSError, ValueError) as exc:
        raise DatasetLoadError(f"Impossibile caricare i dati da {data_path}: {exc}") from exc

    clusters = results.pop() if with_clusters else {}
    if with_seed_rates:
        seed_rates = results.pop()
    single, characterisation = results[0], results[1]
    operations = dict(zip((domain.name for domain in selected), results[2:]))
    if with_seed_rates:
        operations[SOWING.name] = apply_seed_rates(operations[SOWING.name], seed_rates)

    table = FactorTable.build(single, characterisation, build_key_map(selected))
    logger.info(
        "Workspace caricato: %s",
        ", ".join(f"{name}={len(rows)}" for name, rows in operations.items()),
    )
    return Workspace(operations=operations, factors=table, clusters=clusters)


def load_workspace_sync(
    data_dir: str | Path,
    domains: Iterable[str] | None = None,
) -> Workspace:
    return asyncio.run(load_workspace(data_dir, domains))


def build_view(workspace: Workspace, domain_name: str, filters: FilterState) -> ImpactView:
    """Applica i filtri, calcola gli impatti e aggrega sulla base selezionata.

    Dati gli stessi filtri e gli stessi dataset il risultato è deterministico.
    """

    domain = get_domain(domain_name)
    selected = apply_filters(workspace.records(domain.name), filters)
    enriched = enrich_records(selected, workspace.factors, filters.score, domain)
    return ImpactView(
        domain=domain,
        filters=filters,
        records=enriched,
        aggregate=aggregate(enriched, filters.basis),
        summary=summarize_impacts(enriched),
        units=_units(workspace, domain, filters),
        by_operation=aggregate_by_operation(enriched, filters.basis),
        nutrients=aggregate_nutrients(enriched, filters.basis) if domain.nutrients else {},
    )


def load_factor_table(data_dir: str | Path) -> FactorTable:
    """Costruisce la tabella dei fattori di tutti i domini senza leggere le operazioni."""

    data_path = Path(data_dir)
    try:
        single = load_factor_dataset(data_path / SINGLE_SCORE_FILE)
        characterisation = load_factor_dataset(data_path / CHARACTERISATION_FILE)
    except (OSError, ValueError) as exc:
        raise DatasetLoadError(f"Impossibile caricare i fattori da {data_path}: {exc}") from exc
    return FactorTable.build(single, characterisation, build_key_map())


@dataclass(frozen=True)
class ComparisonView:
    """Carico relativo di un agricoltore (o del suo gruppo) rispetto a un riferimento."""

    domain: DomainConfig
    filters: FilterState
    view_mode: str
    subject_label: str
    reference_label: str
    subject: AggregateResult
    reference: AggregateResult
    burden: BurdenComparison
    subject_operations: int
    reference_operations: int
    units: Mapping[str, str]


def build_comparison(
    workspace: Workspace,
    domain_name: str,
    filters: FilterState,
    farmer_id: str,
    *,
    view_mode: str = "farmer",
    against: str | None = None,
) -> ComparisonView:
    """Confronta un agricoltore, o il suo gruppo, con un gruppo di riferimento.

    I filtri su agricoltore e gruppo vengono ignorati: la popolazione è
    definita dagli altri filtri. In modalità ``farmer`` il soggetto sono le
    operazioni dell'agricoltore e il riferimento, se ``against`` non è
    indicato, gli altri agricoltori del suo gruppo. In modalità ``cluster`` il
    soggetto è l'intero gruppo dell'agricoltore e il riferimento, se non
    indicato, tutte le operazioni fuori dal gruppo.
    """

    if view_mode not in ("farmer", "cluster"):
        raise ValueError(f"Modalità di vista non valida: {view_mode!r}")

    domain = get_domain(domain_name)
    population = apply_filters(
        workspace.records(domain.name), filters.with_changes(farmer=None, group=None)
    )
    groups = [workspace.peer_group(record.farmer_id, record.season) for record in population]
    own_group = next(
        (
            group
            for record, group in zip(population, groups)
            if record.farmer_id == farmer_id and group is not None
        ),
        None,
    )

    if view_mode == "farmer":
        subject = [record for record in population if record.farmer_id == farmer_id]
        subject_label = farmer_id
        reference_group = against if against is not None else own_group
        reference = [
            record
            for record, group in zip(population, groups)
            if group is not None
            and group == reference_group
            and record.farmer_id != farmer_id
        ]
    else:
        subject = [
            record
            for record, group in zip(population, groups)
            if own_group is not None and group == own_group
        ]
        subject_label = f"gruppo {own_group}" if own_group is not None else farmer_id
        reference_group = against
        reference = [
            record
            for record, group in zip(population, groups)
            if (group == against if against is not None else group != own_group)
        ]
    reference_label = f"gruppo {reference_group}" if reference_group is not None else "altri"

    subject_enriched = enrich_records(subject, workspace.factors, filters.score, domain)
    reference_enriched = enrich_records(reference, workspace.factors, filters.score, domain)
    subject_result = aggregate(subject_enriched, filters.basis)
    reference_result = aggregate(reference_enriched, filters.basis)
    logger.debug(
        "Confronto %s (%d) contro %s (%d)",
        subject_label,
        len(subject),
        reference_label,
        len(reference),
    )
    return ComparisonView(
        domain=domain,
        filters=filters,
        view_mode=view_mode,
        subject_label=subject_label,
        reference_label=reference_label,
        subject=subject_result,
        reference=reference_result,
        burden=compare_aggregates(subject_result, reference_result),
        subject_operations=len(subject),
        reference_operations=len(reference),
        units=_units(workspace, domain, filters),
    )


def build_source_breakdown(
    workspace: Workspace, filters: FilterState
) -> dict[str, dict[str, float]]:
    """Intensità per categoria e per fonte su tutti i domini caricati."""

    records_by_source = {}
    for name in workspace.operations:
        domain = get_domain(name)
        selected = apply_filters(workspace.records(name), filters)
        records_by_source[name] = enrich_records(
            selected, workspace.factors, filters.score, domain
        )
    return impacts_by_source(records_by_source, filters.basis)


def _units(workspace: Workspace, domain: DomainConfig, filters: FilterState) -> dict[str, str]:
    return {
        category: f"{unit or 'Pt'}{filters.basis.suffix}"
        for category, unit in workspace.factors.units(
            filters.score, domain_factor_keys(domain, filters.score)
        ).items()
    }
