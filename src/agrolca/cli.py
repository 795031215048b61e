"""Interfaccia a riga di comando per analizzare gli impatti LCA delle operazioni."""

from __future__ import annotations

import logging
import math
from pathlib import Path

import click

from .domains import DOMAINS, domain_factor_keys
from .export import export_csv
from .filters import FilterState
from .models import Basis, ScoreKind
from .pipeline import (
    DatasetLoadError,
    ComparisonView,
    ImpactView,
    Workspace,
    build_comparison,
    build_source_breakdown,
    build_view,
    load_factor_table,
    load_workspace_sync,
)
from .preferences import (
    VIEW_MODES,
    JsonFileStore,
    save_selection,
    selected_farmer,
    view_mode,
)

WELCOME_BANNER = r"""
╔══════════════════════════════════════╗
║             AgroLCA Suite            ║
╚══════════════════════════════════════╝
"""

DEFAULT_PREFS = Path.home() / ".agrolca" / "preferences.json"

_data_dir_argument = click.argument(
    "data_dir",
    envvar="AGROLCA_DATA_DIR",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
)
_prefs_option = click.option(
    "--prefs",
    "prefs_path",
    envvar="AGROLCA_PREFS",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_PREFS,
    show_default=True,
    help="File JSON con l'agricoltore selezionato",
)
_domain_option = click.option(
    "--domain",
    type=click.Choice(sorted(DOMAINS)),
    default="crop_protection",
    show_default=True,
    help="Dominio operativo da analizzare",
)
_basis_option = click.option(
    "--basis",
    type=click.Choice([basis.value for basis in Basis]),
    default=Basis.HA.value,
    show_default=True,
    help="Normalizzazione per ettaro o per tonnellata",
)
_score_option = click.option(
    "--score",
    type=click.Choice([kind.value for kind in ScoreKind]),
    default=ScoreKind.SINGLE.value,
    show_default=True,
    help="Punteggio singolo o caratterizzazione",
)


@click.group(invoke_without_command=True)
@click.option(
    "--interactive/--no-interactive",
    default=True,
    help="Mostra il menu interattivo di benvenuto (attivo di default)",
)
@click.option("--verbose", "-v", is_flag=True, help="Abilita i messaggi di debug")
@click.pass_context
def main(ctx: click.Context, interactive: bool, verbose: bool) -> None:
    """Entrypoint principale della CLI."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if ctx.invoked_subcommand is not None:
        return

    _show_welcome(interactive)


@main.command()
@_data_dir_argument
@_domain_option
@_basis_option
@_score_option
@click.option("--season", default=None, help="Stagione (es. 2023)")
@click.option("--farmer", default=None, help="Identificativo dell'agricoltore")
@click.option("--group", default=None, help="Gruppo di agricoltori (C, D, NT)")
@click.option("--operation", default=None, help="Operazione (testo normalizzato)")
@click.option("--substance", default=None, help="Principio attivo")
@click.option("--product", default=None, help="Prodotto")
@click.option("--equipment", default=None, help="Macchina")
@click.option(
    "--saved-farmer",
    is_flag=True,
    help="Filtra sull'agricoltore memorizzato con il comando 'farmer'",
)
@_prefs_option
@click.option(
    "--export",
    "export_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Esporta il dettaglio delle operazioni in CSV",
)
@click.option("--details/--no-details", default=True, help="Mostra il dettaglio delle operazioni")
def report(
    data_dir: Path,
    domain: str,
    basis: str,
    score: str,
    season: str | None,
    farmer: str | None,
    group: str | None,
    operation: str | None,
    substance: str | None,
    product: str | None,
    equipment: str | None,
    saved_farmer: bool,
    prefs_path: Path,
    export_path: Path | None,
    details: bool,
) -> None:
    """Genera il riepilogo degli impatti per un dominio operativo."""

    if saved_farmer and not farmer:
        farmer = selected_farmer(JsonFileStore(prefs_path)) or None

    filters = FilterState().with_changes(
        basis=basis,
        score=score,
        season=season,
        farmer=farmer,
        group=group,
        operation=operation,
        substance=substance,
        product=product,
        equipment=equipment,
    )
    supported = DOMAINS[domain].filters
    for name in filters.active():
        if name not in supported:
            click.secho(
                f"Il filtro '{name}' non si applica al dominio {DOMAINS[domain].label}.",
                fg="yellow",
            )
    workspace = _load_workspace(data_dir, [domain])
    view = build_view(workspace, domain, filters)
    _render_report(view, details=details)

    if export_path is not None:
        destination = export_csv(view.records, export_path, filters.basis)
        click.secho(f"Dettaglio esportato in: {destination}", fg="green")


@main.command()
@_data_dir_argument
@_score_option
def factors(data_dir: Path, score: str) -> None:
    """Elenca i fattori di impatto disponibili per ciascun dominio."""

    kind = ScoreKind(score)
    try:
        table = load_factor_table(data_dir)
    except DatasetLoadError as error:
        raise click.ClickException(str(error))
    for domain in DOMAINS.values():
        click.echo(f"=== {domain.label} ===")
        for key in domain_factor_keys(domain, kind):
            entries = table.lookup(key, kind)
            if not entries:
                click.echo(f"- {key}: nessun fattore")
                continue
            total = entries.get("Total")
            total_label = (
                f"{format_number(total.coefficient, 4)} {total.unit}" if total else "—"
            )
            click.echo(f"- {key}: {len(entries)} categorie, totale {total_label}")
        click.echo()


@main.command()
@click.argument("farmer_id", required=False)
@click.option("--view", "mode", type=click.Choice(VIEW_MODES), default=None)
@_prefs_option
def farmer(farmer_id: str | None, mode: str | None, prefs_path: Path) -> None:
    """Mostra o memorizza l'agricoltore selezionato."""

    store = JsonFileStore(prefs_path)
    if farmer_id:
        save_selection(store, farmer_id, mode)
        click.secho(f"Agricoltore memorizzato: {farmer_id}", fg="green")
        return

    current = selected_farmer(store)
    if not current:
        click.echo("Nessun agricoltore selezionato.")
        return
    click.echo(f"Agricoltore selezionato: {current} (vista: {view_mode(store)})")


@main.command()
@_data_dir_argument
@_domain_option
@_basis_option
@_score_option
@click.option("--season", default=None, help="Stagione (es. 2023)")
@click.option(
    "--farmer",
    default=None,
    help="Agricoltore da confrontare (default: quello memorizzato)",
)
@click.option("--against", default=None, help="Gruppo o cluster di riferimento")
@click.option(
    "--view",
    "mode",
    type=click.Choice(VIEW_MODES),
    default=None,
    help="farmer: agricoltore contro i pari; cluster: gruppo contro gli altri",
)
@_prefs_option
def compare(
    data_dir: Path,
    domain: str,
    basis: str,
    score: str,
    season: str | None,
    farmer: str | None,
    against: str | None,
    mode: str | None,
    prefs_path: Path,
) -> None:
    """Confronta il carico dell'agricoltore con quello del gruppo di riferimento."""

    store = JsonFileStore(prefs_path)
    farmer = farmer or selected_farmer(store)
    if not farmer:
        raise click.ClickException(
            "Nessun agricoltore indicato: usare --farmer o memorizzarne uno con 'farmer'."
        )

    filters = FilterState().with_changes(basis=basis, score=score, season=season)
    workspace = _load_workspace(data_dir, [domain])
    comparison = build_comparison(
        workspace,
        domain,
        filters,
        farmer,
        view_mode=mode or view_mode(store),
        against=against,
    )
    _render_comparison(comparison)


@main.command()
@_data_dir_argument
@_basis_option
@_score_option
@click.option("--season", default=None, help="Stagione (es. 2023)")
@click.option("--farmer", default=None, help="Identificativo dell'agricoltore")
@click.option("--group", default=None, help="Gruppo di agricoltori (C, D, NT)")
@click.option(
    "--saved-farmer",
    is_flag=True,
    help="Filtra sull'agricoltore memorizzato con il comando 'farmer'",
)
@_prefs_option
def sources(
    data_dir: Path,
    basis: str,
    score: str,
    season: str | None,
    farmer: str | None,
    group: str | None,
    saved_farmer: bool,
    prefs_path: Path,
) -> None:
    """Scompone gli impatti per categoria tra le fonti operative."""

    if saved_farmer and not farmer:
        farmer = selected_farmer(JsonFileStore(prefs_path)) or None

    filters = FilterState().with_changes(
        basis=basis, score=score, season=season, farmer=farmer, group=group
    )
    workspace = _load_workspace(data_dir, None)
    breakdown = build_source_breakdown(workspace, filters)
    if not breakdown:
        click.echo("Nessun impatto da mostrare: verificare i filtri o le dosi disponibili.")
        return

    unit = f"Pt{filters.basis.suffix}"
    click.echo("=== Impatti per fonte ===")
    for category, by_source in breakdown.items():
        click.echo(f"{category}: {format_number(sum(by_source.values()))} {unit}")
        for name, value in by_source.items():
            click.echo(f"  - {DOMAINS[name].label}: {format_number(value)}")


def format_number(value: float | None, digits: int = 2) -> str:
    """Formatta un numero per la visualizzazione; i valori mancanti diventano "—"."""

    if value is None or not math.isfinite(value):
        return "—"
    magnitude = abs(value)
    if magnitude >= 1e6 or 0 < magnitude < 1e-3:
        return f"{value:.2e}"
    return f"{value:,.{digits}f}"


def format_percent(value: float | None) -> str:
    if value is None or not math.isfinite(value):
        return "—"
    return f"{value:+.1f}%"


def _show_welcome(interactive: bool) -> None:
    click.echo(WELCOME_BANNER)
    click.echo("Benvenuto in AgroLCA!")
    click.echo("Calcola gli impatti ambientali delle operazioni agronomiche per ettaro e per tonnellata.")
    click.echo()
    click.echo("Opzioni disponibili:")
    click.echo("  [1] Genera un report degli impatti")
    click.echo("  [2] Seleziona l'agricoltore")
    click.echo("  [0] Esci")

    if not interactive:
        return

    while True:
        choice = click.prompt("Seleziona un'opzione", type=int, default=1)
        if choice == 1:
            _interactive_report()
        elif choice == 2:
            _interactive_farmer()
        elif choice == 0:
            click.echo("A presto!")
            return
        else:
            click.secho("Scelta non valida, riprova.", fg="yellow")


def _interactive_report() -> None:
    data_input = click.prompt("Cartella dei dati")
    data_dir = Path(data_input).expanduser()
    domain = click.prompt(
        "Dominio", type=click.Choice(sorted(DOMAINS)), default="crop_protection"
    )
    basis = click.prompt(
        "Base", type=click.Choice([item.value for item in Basis]), default=Basis.HA.value
    )
    season = click.prompt("Stagione (lascia vuoto per tutte)", default="").strip()

    try:
        workspace = _load_workspace(data_dir, [domain])
    except click.ClickException as error:
        click.secho(error.format_message(), fg="red")
        return

    filters = FilterState().with_changes(basis=basis, season=season)
    _render_report(build_view(workspace, domain, filters), details=False)


def _interactive_farmer() -> None:
    farmer_id = click.prompt("Identificativo dell'agricoltore").strip()
    if not farmer_id:
        return
    save_selection(JsonFileStore(DEFAULT_PREFS), farmer_id)
    click.secho(f"Agricoltore memorizzato: {farmer_id}", fg="green")


def _load_workspace(data_dir: Path, domains: list[str] | None) -> Workspace:
    try:
        return load_workspace_sync(data_dir, domains)
    except DatasetLoadError as error:
        raise click.ClickException(str(error))


def _render_report(view: ImpactView, *, details: bool) -> None:
    filters = view.filters
    if not view.records:
        click.echo("Nessuna operazione corrisponde ai filtri indicati.")
        return

    active = " • ".join(f"{name}: {value}" for name, value in filters.active().items())
    click.echo(f"=== {view.domain.label} ===")
    click.echo(f"Filtri: {active or 'nessuno'}")
    click.echo(
        "Base: impatto/ha" if filters.basis is Basis.HA else "Base: impatto/t",
    )
    click.echo(
        "Impatto: caratterizzazione"
        if filters.score is ScoreKind.CHARACTERISATION
        else "Impatto: punteggio singolo"
    )
    click.echo()

    summary = view.summary
    click.echo("=== Riepilogo generale ===")
    click.echo(f"Operazioni: {summary.operations}")
    click.echo(f"Agricoltori: {summary.farmers}")
    click.echo(f"Area (ha): {format_number(summary.total_area)}")
    click.echo(f"Produzione (t): {format_number(summary.total_production)}")
    click.echo(f"Impatto medio (Pt/ha): {format_number(summary.avg_impact_ha)}")
    click.echo(f"Impatto medio (Pt/t): {format_number(summary.avg_impact_tonne)}")
    click.echo(f"Impatto di campo (Pt): {format_number(summary.total_field_impact)}\n")

    aggregate = view.aggregate
    default_unit = f"Pt{filters.basis.suffix}"
    click.echo("=== Impatti per categoria ===")
    if not aggregate.category_intensity:
        click.echo("Nessun impatto da mostrare: verificare i filtri o le dosi disponibili.")
    elif not aggregate.normalized:
        click.secho(
            "Nessuna operazione ha un peso utilizzabile: valori non normalizzati.",
            fg="yellow",
        )
    for category, value in aggregate.category_intensity.items():
        unit = view.units.get(category, default_unit)
        click.echo(f"- {category}: {format_number(value)} {unit}")
    click.echo()

    if view.nutrients:
        click.echo("=== Impatti per nutriente ===")
        for nutrient, categories in view.nutrients.items():
            total = sum(categories.values())
            click.echo(f"- {nutrient}: {format_number(total)} ({len(categories)} categorie)")
        click.echo()

    if view.by_operation:
        click.echo("=== Impatti per operazione ===")
        for operation, result in view.by_operation.items():
            click.echo(
                f"- {str(operation).title()}: {format_number(result.total_intensity)} {default_unit}"
            )
        click.echo()

    if details:
        dose_unit = f"{view.domain.dose_unit}{filters.basis.suffix}"
        click.echo("=== Dettaglio operazioni ===")
        for enriched in view.records:
            record = enriched.record
            dose = view.domain.dose(record, filters.basis)
            click.echo(
                f"- {record.season or '—'} | {record.farmer_id or record.dmu_id or '—'} | "
                f"{record.operation.title() or '—'} | "
                f"dose {format_number(dose)} {dose_unit} | "
                f"{format_number(enriched.total_intensity(filters.basis))} {default_unit} | "
                f"campo {format_number(enriched.field_impact)} Pt"
            )


def _render_comparison(comparison: ComparisonView) -> None:
    click.echo(f"=== Confronto: {comparison.subject_label} vs {comparison.reference_label} ===")
    click.echo(f"Dominio: {comparison.domain.label} | vista: {comparison.view_mode}")
    click.echo(
        f"Operazioni: {comparison.subject_operations} vs {comparison.reference_operations}"
    )
    click.echo()
    if not comparison.subject_operations:
        click.echo("Nessuna operazione per il soggetto del confronto.")
        return

    burden = comparison.burden
    default_unit = f"Pt{comparison.filters.basis.suffix}"
    click.echo("=== Carico relativo per categoria ===")
    for row in (*burden.categories, burden.total):
        unit = comparison.units.get(row.category, default_unit)
        click.echo(
            f"- {row.category}: {format_number(row.subject)} vs "
            f"{format_number(row.reference)} {unit} | "
            f"{format_number(row.ratio)}x | {format_percent(row.diff_percent)}"
        )
    click.echo()
    click.echo(f"Rapporto medio: {format_number(burden.mean_ratio)}x")
    click.echo(f"Differenza media: {format_percent(burden.mean_diff_percent)}")
    if burden.highest is not None:
        click.echo(
            f"Carico più alto: {burden.highest.category} "
            f"({format_percent(burden.highest.diff_percent)})"
        )
    if burden.lowest is not None:
        click.echo(
            f"Carico più basso: {burden.lowest.category} "
            f"({format_percent(burden.lowest.diff_percent)})"
        )


if __name__ == "__main__":
    main()
