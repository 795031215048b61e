"""Funzioni di parsing tolleranti per i fogli delle operazioni agronomiche."""

from __future__ import annotations

import io
import math
import re
import warnings
from collections.abc import Mapping

import pandas as pd

_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_SEASON_RE = re.compile(r"(\d{4})$")
_FARMER_SUFFIX_RE = re.compile(r"^\d{4}$")

SEASON_FIELDS = (
    "season",
    "Season",
    "year",
    "Year",
    "SEASON",
    "YEAR",
    "season_id",
    "Season_ID",
)
ID_FIELDS = ("dmu_id", "DMU_ID", "dmuId", "farmer_id", "FARMER_ID", "farmerId", "dmu")


def parse_number(value: object) -> float | None:
    """Converte un valore testuale in numero senza mai sollevare eccezioni.

    Sono accettati sia ``,`` sia ``.`` come separatori: se il valore li
    contiene entrambi le virgole sono separatori delle migliaia, se contiene
    solo virgole la virgola è il separatore decimale. Valori vuoti, non
    numerici o non finiti diventano ``None``.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None

    text = _WHITESPACE_RE.sub("", str(value))
    if not text or "_" in text:
        return None
    if "," in text and "." in text:
        text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".")

    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def derive_farmer_id(dmu_id: str | None) -> str:
    """Rimuove il suffisso ``_NNNN`` della stagione da un identificativo DMU."""

    if not dmu_id:
        return ""
    text = str(dmu_id)
    parts = text.split("_")
    if len(parts) >= 2 and _FARMER_SUFFIX_RE.match(parts[-1]):
        return "_".join(parts[:-1])
    return text


def extract_season_from_id(value: str | None) -> int | None:
    if not value:
        return None
    match = _TRAILING_SEASON_RE.search(str(value).strip())
    return int(match.group(1)) if match else None


def extract_season(row: Mapping[str, object]) -> int | None:
    """Ricava la stagione da un campo esplicito o dal suffisso dell'identificativo."""

    for field in SEASON_FIELDS:
        direct = row.get(field)
        if direct is None or str(direct).strip() == "":
            continue
        numeric = parse_number(direct)
        if numeric is not None and numeric.is_integer():
            return int(numeric)
        return extract_season_from_id(str(direct))

    for field in ID_FIELDS:
        candidate = row.get(field)
        if candidate:
            return extract_season_from_id(str(candidate))
    return None


def build_date(year: object, month: object = None, day: object = None) -> str:
    """Compone una data ISO parziale (``YYYY-MM-DD``, ``YYYY-MM`` o ``YYYY``)."""

    year_value = parse_number(year)
    if not year_value:
        return ""
    parts = [f"{int(year_value):04d}"]
    month_value = parse_number(month)
    if month_value:
        parts.append(f"{int(month_value):02d}")
        day_value = parse_number(day)
        if day_value:
            parts.append(f"{int(day_value):02d}")
    return "-".join(parts)


def parse_csv_text(text: str) -> list[dict[str, str]]:
    """Interpreta un CSV con intestazione restituendo righe di sole stringhe.

    I campi tra virgolette possono contenere virgole, a capo e virgolette
    raddoppiate. Le righe completamente vuote vengono scartate e i campi in
    eccesso rispetto all'intestazione (virgola finale) vengono ignorati.
    """

    if text.startswith("\ufeff"):
        text = text[1:]
    if not text.strip():
        return []

    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", pd.errors.ParserWarning)
            frame = pd.read_csv(
                io.StringIO(text),
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                index_col=False,
            )
    except pd.errors.EmptyDataError:
        return []

    frame = frame.fillna("")
    frame.columns = [str(column).strip() for column in frame.columns]
    rows: list[dict[str, str]] = []
    for row in frame.to_dict(orient="records"):
        if any(str(cell).strip() for cell in row.values()):
            rows.append({key: str(cell) for key, cell in row.items()})
    return rows
