import pytest

from agrolca.parsing import (
    build_date,
    derive_farmer_id,
    extract_season,
    parse_csv_text,
    parse_number,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("1,234.56", 1234.56),
        ("12,5", 12.5),
        (" 7 ", 7.0),
        ("1 000", 1000.0),
        (3, 3.0),
    ],
)
def test_parse_number_accepts_both_separators(raw, expected):
    assert parse_number(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", "   ", "abc", None, "nan", "inf", "1_000", float("nan")])
def test_parse_number_returns_none_for_invalid_input(raw):
    assert parse_number(raw) is None


def test_derive_farmer_id():
    assert derive_farmer_id("F001_2023") == "F001"
    assert derive_farmer_id("F001") == "F001"
    assert derive_farmer_id("NT_03_2024") == "NT_03"
    assert derive_farmer_id("F001_23") == "F001_23"
    assert derive_farmer_id("") == ""
    assert derive_farmer_id(None) == ""


def test_extract_season_prefers_explicit_field():
    assert extract_season({"year": "2022", "dmu_id": "F001_2023"}) == 2022
    assert extract_season({"Season": "2021/2022"}) == 2022


def test_extract_season_falls_back_to_identifier():
    assert extract_season({"dmu_id": "F001_2023"}) == 2023
    assert extract_season({"DMU_ID": "F002_2024"}) == 2024
    assert extract_season({"dmu_id": "F001"}) is None
    assert extract_season({}) is None


def test_build_date():
    assert build_date("2023", "5", "1") == "2023-05-01"
    assert build_date(2023, 5) == "2023-05"
    assert build_date("2023") == "2023"
    assert build_date("") == ""


def test_parse_csv_text_handles_quoted_fields():
    text = (
        "name,notes,value\n"
        '"Smith, J.","line one\nline two",1\n'
        'plain,"says ""hi""",2\n'
        '"x","",3\n'
    )

    rows = parse_csv_text(text)

    assert len(rows) == 3
    assert rows[0] == {"name": "Smith, J.", "notes": "line one\nline two", "value": "1"}
    assert rows[1]["notes"] == 'says "hi"'
    assert rows[2]["notes"] == ""
    assert rows[2]["value"] == "3"


def test_parse_csv_text_strips_bom_and_blank_rows():
    text = "\ufeff dmu_id ,area\r\nF001_2023,10\r\n,\r\n\r\nF002_2023,\r\n"

    rows = parse_csv_text(text)

    assert [row["dmu_id"] for row in rows] == ["F001_2023", "F002_2023"]
    assert rows[1]["area"] == ""


def test_parse_csv_text_empty_input():
    assert parse_csv_text("") == []
    assert parse_csv_text("a,b\n") == []


def test_parse_csv_text_ignores_trailing_comma():
    rows = parse_csv_text("dmu_id,area_ha\nF001_2023,10,\nF002_2023,20,\n")

    assert rows == [
        {"dmu_id": "F001_2023", "area_ha": "10"},
        {"dmu_id": "F002_2023", "area_ha": "20"},
    ]
