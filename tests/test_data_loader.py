import pandas as pd
import pytest

from agrolca.data_loader import (
    SeedRate,
    apply_seed_rates,
    cluster_assignments_from_rows,
    load_cluster_assignments,
    load_operations_from_csv,
    load_seed_rates,
    normalize,
    seed_rates_from_rows,
    suggest_column_mapping,
)
from agrolca.domains import CROP_PROTECTION, MACHINERY, SOWING, WATER


def test_load_operations_from_csv(data_dir):
    records = load_operations_from_csv(
        data_dir / CROP_PROTECTION.source_file, CROP_PROTECTION
    )

    assert len(records) == 3
    first = records[0]
    assert first.domain == "crop_protection"
    assert first.dmu_id == "F001_2023"
    assert first.farmer_id == "F001"
    assert first.season == 2023
    assert first.operation == "Herbicide application"
    assert first.operation_normalized == "herbicide application"
    assert first.active_substance == "glyphosate"
    assert first.area_ha == pytest.approx(10.0)
    assert first.dose_kg_ha == pytest.approx(2.0)
    assert first.dose_kg_t == pytest.approx(0.5)
    assert first.tonnes == pytest.approx(80.0)
    assert first.date == "2023-05-01"
    assert records[1].dose_kg_t is None
    assert records[1].tonnes is None
    assert records[2].farmer_id == "NT01"


def test_load_operations_with_pandas_written_file(tmp_path):
    frame = pd.DataFrame(
        [
            {"dmu_id": "D004_2022", "operation": "Tillage", "Equipment": "Rotary Tiller",
             "Area": 3.5, "area_per_tonne": 0.5, "Note": "campo nord"},
        ]
    )
    csv_path = tmp_path / "machines.csv"
    frame.to_csv(csv_path, index=False)

    records = load_operations_from_csv(csv_path, MACHINERY)

    assert records[0].equipment == "Rotary Tiller"
    assert records[0].area_ha == pytest.approx(3.5)
    assert records[0].tonnes == pytest.approx(7.0)
    assert records[0].extra == {"Note": "campo nord"}


def test_load_water_file_uses_its_own_headers(data_dir):
    records = load_operations_from_csv(data_dir / WATER.source_file, WATER)

    assert [record.season for record in records] == [2023, 2024]
    assert records[0].water_m3_ha == pytest.approx(12000.5)
    assert records[0].water_m3_t == pytest.approx(1500.0)
    assert records[0].productivity == pytest.approx(8.0)
    assert records[1].area_ha == pytest.approx(20.0)
    assert records[1].water_m3_t is None


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_operations_from_csv(tmp_path / "missing.csv", CROP_PROTECTION)


def test_normalize_first_non_empty_alias_wins():
    record = normalize(
        {"DMU_ID": "", "dmu_id": "C002_2024", "covered_area": "", "area_ha": "4,5",
         "dose_kg_ha": "n/a"},
        CROP_PROTECTION,
    )

    assert record.dmu_id == "C002_2024"
    assert record.area_ha == pytest.approx(4.5)
    assert record.dose_kg_ha is None


def test_normalize_without_identifier():
    record = normalize({"operation": "Sowing", "year": "2022"}, SOWING)

    assert record.dmu_id == ""
    assert record.farmer_id == ""
    assert record.season == 2022
    assert record.date == "2022"


def test_suggest_column_mapping_reports_missing_fields():
    resolved, missing = suggest_column_mapping(
        [" DMU_ID ", "Operation", "dose_kg/t"], CROP_PROTECTION
    )

    assert resolved["dmu_id"] == " DMU_ID "
    assert resolved["operation"] == "Operation"
    assert resolved["dose_kg_t"] == "dose_kg/t"
    assert "area_ha" in missing
    assert "dose_kg_ha" in missing


def test_seed_rates_override_sowing_doses(data_dir):
    rates = load_seed_rates(data_dir / "seed_rates.csv")
    records = load_operations_from_csv(data_dir / SOWING.source_file, SOWING)

    updated = apply_seed_rates(records, rates)

    assert rates[("F001", 2023)] == SeedRate("F001", 2023, 180.0, None, "sowing")
    assert updated[0].dose_kg_ha == pytest.approx(180.0)
    assert updated[0].dose_kg_t == pytest.approx(20.0)
    assert records[0].dose_kg_ha == pytest.approx(150.0)


def test_seed_rates_skip_rows_without_season():
    rates = seed_rates_from_rows(
        [{"dmu_id": "F001", "kg_per_ha": "100"}, {"dmu_id": "", "kg_per_ha": "1"}]
    )

    assert rates == {}


def test_load_cluster_assignments(tmp_path):
    path = tmp_path / "clusters.csv"
    path.write_text(
        "dmu_id,cluster_hcpc_full\nF001_2023,2.0\nF001_2024,1\nNT01_2023,\n",
        encoding="utf-8",
    )

    assignments = load_cluster_assignments(path)

    assert assignments == {("F001", 2023): "2", ("F001", 2024): "1"}

    with pytest.raises(FileNotFoundError):
        load_cluster_assignments(tmp_path / "missing.csv")


def test_cluster_assignments_without_season():
    assignments = cluster_assignments_from_rows(
        [{"farmer_id": "C07", "cluster": "A"}, {"dmu_id": "", "cluster": "B"}]
    )

    assert assignments == {("C07", None): "A"}
