"""Pytest configuration to ensure the project package is importable.

This mirrors installing the package in editable mode by adding the
``src`` directory to ``sys.path`` when tests run directly from the
repository checkout. It also provides small factor datasets and a data
directory laid out like the exported mastersheets.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
SRC_STR = str(SRC)

if SRC.exists() and SRC_STR not in sys.path:
    sys.path.insert(0, SRC_STR)


def _category(name, unit, total):
    return {"impact_category": name, "unit": unit, "total": total}


SINGLE_SCORE = [
    {
        "product_id": "singlescore_1_1",
        "functional_unit": "1 kg seed",
        "categories": [
            _category("Climate change", "µPt", 0.4),
            _category("Land use", "µPt", 0.6),
        ],
    },
    {
        "product_id": "singlescore_2_1",
        "functional_unit": "1 kg",
        "categories": [
            _category("Climate change", "µPt", 1.0),
            _category("Water use", "µPt", 0.5),
            _category("Total", "µPt", 1.5),
        ],
    },
    {
        "product_id": "singlescore_3_1",
        "functional_unit": "1 kg",
        "categories": [
            _category("Climate change", "Pt", 2.0),
            _category("Total", "Pt", 2.0),
        ],
    },
    {
        "product_id": "singlescore_8_1",
        "functional_unit": "1 kg N",
        "categories": [_category("Climate change", "Pt", 0.2)],
    },
    {
        "product_id": "singlescore_9_1",
        "functional_unit": "1 kg P",
        "categories": [
            _category("Climate change", "Pt", 0.1),
            _category("Acidification", "Pt", 0.05),
        ],
    },
    {
        "product_id": "singlescore_11_1",
        "functional_unit": "1 ha",
        "categories": [_category("Climate change", "Pt", 3.0)],
    },
    {
        "product_id": "singlescore_18_1",
        "functional_unit": "1 m3",
        "categories": [_category("Water use", "Pt", 0.01)],
    },
]

CHARACTERISATION = [
    {
        "product_id": "2_chara",
        "functional_unit": "1 kg",
        "categories": [
            _category("Climate change", "kg CO2 eq", 2.5),
            _category("Water use", "m3 depriv.", None),
        ],
    },
    {
        "product_id": "3_chara",
        "functional_unit": "1 kg",
        "categories": [_category("Climate change", "kg CO2 eq", 1.5)],
    },
    {
        "product_id": "8_chara",
        "functional_unit": "1 kg N",
        "categories": [_category("Climate change", "kg CO2 eq", 4.0)],
    },
]

CSV_FILES = {
    "operations_mastersheet - CROP_PROTECTION.csv": (
        "dmu_id,operation,product,active_substance,covered_area,area_ha,dose_kg_ha,dose_kg/t,"
        "productivity,year,month,day\n"
        "F001_2023,Herbicide application,Prod A,glyphosate,10,,2,\"0,5\",8,2023,5,1\n"
        "F002_2023,Herbicide application,Prod B,glyphosate,90,,4,,,2023,5,3\n"
        "NT01_2024,Fungicide spray,Prod C,azoxystrobin,5,,1,,,2024,6,1\n"
    ),
    "operations_mastersheet - FERTILISATION.csv": (
        "dmu_id,operation,product,area_TOTAL,covered_area,n_kg_ha_weight,p_kg_ha_weight,"
        "n_kg_t,productivity_weighted,year\n"
        "F001_2023,Top dressing,Urea,5,,50,,\"6,25\",8,2023\n"
        "F002_2023,Top dressing,Urea,15,,30,,3.75,8,2023\n"
    ),
    "operations_mastersheet - SOWING.csv": (
        "dmu_id,operation,product,area_ha,dose_kg_ha,dose_kg/t,year\n"
        "F001_2023,Sowing,Seeds,10,150,20,2023\n"
    ),
    "operations_mastersheet - Machines_No_Inputs.csv": (
        "dmu_id,operation,equipment,total_area_worked,area_per_tonne,year\n"
        "F001_2023,Tillage,disk_harrow,12,0.125,2023\n"
        "F001_2023,Levelling,laser_leveler,8,,2023\n"
    ),
    "water.csv": (
        "DMU_ID,SUM of area_ha,Productivity (t/ha),Water m3/ha,Water M3/t\n"
        "F001_2023,10,8,\"12,000.5\",1500\n"
        "F002_2024,20,,10000,\n"
    ),
    "seed_rates.csv": "dmu_id,kg_per_ha,kg_per_t,operations\nF001_2023,180,,Sowing\n",
}


@pytest.fixture
def single_dataset():
    return json.loads(json.dumps(SINGLE_SCORE))


@pytest.fixture
def chara_dataset():
    return json.loads(json.dumps(CHARACTERISATION))


@pytest.fixture
def factor_table(single_dataset, chara_dataset):
    from agrolca.domains import build_key_map
    from agrolca.factors import FactorTable

    return FactorTable.build(single_dataset, chara_dataset, build_key_map())


@pytest.fixture
def data_dir(tmp_path):
    directory = tmp_path / "data"
    directory.mkdir()
    (directory / "singlescore.json").write_text(json.dumps(SINGLE_SCORE), encoding="utf-8")
    (directory / "characterisation.json").write_text(
        json.dumps(CHARACTERISATION), encoding="utf-8"
    )
    for name, content in CSV_FILES.items():
        (directory / name).write_text(content, encoding="utf-8")
    return directory
