import asyncio

import pytest

from agrolca.domains import UnknownDomainError
from agrolca.filters import FilterState
from agrolca.models import Basis, ScoreKind
from agrolca.pipeline import (
    DatasetLoadError,
    Workspace,
    build_comparison,
    build_source_breakdown,
    build_view,
    load_factor_table,
    load_workspace,
    load_workspace_sync,
)


def test_load_workspace_reads_every_domain(data_dir):
    workspace = asyncio.run(load_workspace(data_dir))

    assert {name: len(rows) for name, rows in workspace.operations.items()} == {
        "crop_protection": 3,
        "fertilisation": 2,
        "sowing": 1,
        "machinery": 2,
        "water": 2,
    }
    # dose di semina sostituita dalla tabella dedicata
    assert workspace.records("sowing")[0].dose_kg_ha == pytest.approx(180.0)


def test_load_workspace_only_selected_domains(data_dir):
    (data_dir / "water.csv").unlink()

    workspace = load_workspace_sync(data_dir, ["fertilisation"])

    assert list(workspace.operations) == ["fertilisation"]
    assert workspace.records("crop_protection") == []


def test_missing_dataset_aborts_loading(data_dir):
    (data_dir / "characterisation.json").unlink()

    with pytest.raises(DatasetLoadError):
        load_workspace_sync(data_dir, ["crop_protection"])


def test_unknown_domain(data_dir):
    with pytest.raises(UnknownDomainError):
        load_workspace_sync(data_dir, ["irrigation"])


def test_build_view_crop_protection(data_dir):
    workspace = load_workspace_sync(data_dir, ["crop_protection"])

    view = build_view(workspace, "crop_protection", FilterState())

    assert len(view.records) == 3
    assert view.aggregate.category_intensity["Climate change"] == pytest.approx(
        (10 * 6.0 + 90 * 12.0) / 105
    )
    assert view.units["Climate change"] == "µPt/ha"
    assert view.summary.farmers == 3
    assert set(view.by_operation) == {"herbicide application", "fungicide spray"}
    assert view.nutrients == {}


def test_build_view_is_filtered_and_deterministic(data_dir):
    workspace = load_workspace_sync(data_dir, ["crop_protection"])
    filters = FilterState().with_changes(season="2023", basis="tonne")

    first = build_view(workspace, "crop_protection", filters)
    second = build_view(workspace, "crop_protection", filters)

    assert len(first.records) == 2
    assert first.aggregate == second.aggregate
    # solo la prima operazione ha dose per tonnellata e produzione nota
    assert first.aggregate.category_intensity["Climate change"] == pytest.approx(1.5)
    assert first.units["Climate change"] == "µPt/t"


def test_build_view_fertilisation_nutrients(data_dir):
    workspace = load_workspace_sync(data_dir, ["fertilisation"])

    view = build_view(workspace, "fertilisation", FilterState())

    assert view.aggregate.category_intensity == {"Climate change": pytest.approx(7.0)}
    assert view.nutrients["N"]["Climate change"] == pytest.approx(7.0)
    assert view.units["Climate change"] == "Pt/ha"


def test_build_view_characterisation(data_dir):
    workspace = load_workspace_sync(data_dir, ["crop_protection"])

    view = build_view(
        workspace, "crop_protection", FilterState(score=ScoreKind.CHARACTERISATION)
    )

    assert view.aggregate.category_intensity["Climate change"] == pytest.approx(
        (10 * 8.0 + 90 * 16.0) / 105
    )
    assert view.units["Climate change"] == "kg CO2 eq/ha"


def test_machinery_view_by_tonne(data_dir):
    workspace = load_workspace_sync(data_dir, ["machinery"])

    view = build_view(workspace, "machinery", FilterState(basis=Basis.TONNE))

    assert view.aggregate.category_intensity["Climate change"] == pytest.approx(0.375)
    assert view.summary.total_area == pytest.approx(20.0)


def test_load_factor_table(data_dir):
    table = load_factor_table(data_dir)

    assert table.lookup("water", ScoreKind.SINGLE)["Water use"].coefficient == 0.01

    (data_dir / "singlescore.json").unlink()
    with pytest.raises(DatasetLoadError):
        load_factor_table(data_dir)


def test_malformed_factor_dataset_aborts_loading(data_dir):
    (data_dir / "singlescore.json").write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(DatasetLoadError):
        load_workspace_sync(data_dir, ["crop_protection"])


def _write_clusters(data_dir):
    (data_dir / "clusters.csv").write_text(
        "dmu_id,cluster_hcpc_full\nF001_2023,1\nF002_2023,2\nNT01_2024,1\n",
        encoding="utf-8",
    )


def test_peer_group_uses_clusters_when_available(factor_table):
    plain = Workspace(operations={}, factors=factor_table)
    clustered = Workspace(
        operations={},
        factors=factor_table,
        clusters={("F001", 2023): "1", ("F002", None): "3"},
    )

    assert plain.peer_group("C12") == "C"
    assert plain.peer_group("NT04", 2023) == "NT"
    assert clustered.peer_group("F001", 2023) == "1"
    assert clustered.peer_group("F001", 2024) is None
    assert clustered.peer_group("F002", 2024) == "3"


def test_load_workspace_reads_optional_clusters(data_dir):
    assert load_workspace_sync(data_dir, ["crop_protection"]).clusters == {}

    _write_clusters(data_dir)
    workspace = load_workspace_sync(data_dir, ["crop_protection"])

    assert workspace.clusters[("F002", 2023)] == "2"


def test_compare_farmer_with_peers(data_dir):
    workspace = load_workspace_sync(data_dir, ["crop_protection"])
    # i filtri su agricoltore e gruppo non restringono la popolazione
    filters = FilterState().with_changes(farmer="F001", group="NT")

    comparison = build_comparison(workspace, "crop_protection", filters, "F001")

    assert comparison.subject_label == "F001"
    assert comparison.reference_label == "gruppo F"
    assert (comparison.subject_operations, comparison.reference_operations) == (1, 1)
    rows = {row.category: row for row in comparison.burden.categories}
    assert rows["Climate change"].subject == pytest.approx(6.0)
    assert rows["Climate change"].reference == pytest.approx(12.0)
    assert rows["Climate change"].ratio == pytest.approx(0.5)
    assert rows["Water use"].diff_percent == pytest.approx(-50.0)
    assert comparison.burden.total.subject == pytest.approx(7.0)
    assert comparison.burden.total.reference == pytest.approx(14.0)
    assert comparison.burden.mean_diff_percent == pytest.approx(-50.0)
    assert comparison.units["Climate change"] == "µPt/ha"


def test_compare_cluster_against_other_clusters(data_dir):
    _write_clusters(data_dir)
    workspace = load_workspace_sync(data_dir, ["crop_protection"])

    comparison = build_comparison(
        workspace, "crop_protection", FilterState(), "F001", view_mode="cluster"
    )

    assert comparison.subject_label == "gruppo 1"
    assert comparison.reference_label == "altri"
    assert (comparison.subject_operations, comparison.reference_operations) == (2, 1)
    # il fungicida senza fattori conta nel peso del cluster
    assert comparison.subject.category_intensity["Climate change"] == pytest.approx(60.0 / 15)
    assert comparison.reference.category_intensity["Climate change"] == pytest.approx(12.0)


def test_compare_farmer_against_named_cluster(data_dir):
    _write_clusters(data_dir)
    workspace = load_workspace_sync(data_dir, ["crop_protection"])

    comparison = build_comparison(
        workspace, "crop_protection", FilterState(), "F001", against="2"
    )

    assert comparison.reference_label == "gruppo 2"
    assert comparison.burden.total.ratio == pytest.approx(0.5)


def test_compare_unknown_farmer_and_invalid_mode(data_dir):
    workspace = load_workspace_sync(data_dir, ["crop_protection"])

    comparison = build_comparison(workspace, "crop_protection", FilterState(), "X999")

    assert comparison.subject_operations == 0
    assert comparison.reference_operations == 0
    assert comparison.burden.categories == ()
    with pytest.raises(ValueError):
        build_comparison(workspace, "crop_protection", FilterState(), "F001", view_mode="map")


def test_build_source_breakdown(data_dir):
    workspace = load_workspace_sync(data_dir)
    filters = FilterState().with_changes(farmer="F001", season="2023")

    breakdown = build_source_breakdown(workspace, filters)

    assert breakdown["Climate change"] == {
        "crop_protection": pytest.approx(6.0),
        "fertilisation": pytest.approx(10.0),
        "sowing": pytest.approx(72.0),
        "machinery": pytest.approx(3.0 * 12 / 20),
    }
    assert breakdown["Land use"] == {"sowing": pytest.approx(108.0)}
    assert breakdown["Water use"] == {
        "crop_protection": pytest.approx(1.0),
        "water": pytest.approx(120.005),
    }
