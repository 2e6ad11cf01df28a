"""Source that reads prospects from a CSV or Excel export."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence, Union

import pandas as pd

from .sample import matches_query

PathLike = Union[str, Path]

_FIELD_SYNONYMS: Mapping[str, Sequence[str]] = {
    "external_id": ("external_id", "id", "place_id", "record_id"),
    "name": ("name", "business_name", "full_name"),
    "company": ("company", "organisation", "organization", "employer"),
    "sector": ("sector", "category", "industry"),
    "address": ("address", "street", "street_address"),
    "city": ("city", "town"),
    "postal_code": ("postal_code", "postcode", "zip", "zip_code"),
    "phone": ("phone", "phone_number", "telephone"),
    "email": ("email", "email_address"),
    "website": ("website", "url", "site"),
    "description": ("description", "notes"),
    "lat": ("lat", "latitude"),
    "lng": ("lng", "lon", "longitude"),
}


class UnsupportedFileTypeError(ValueError):
    """Raised when an unsupported file format is passed to the loader."""


def load_records(
    path: PathLike,
    *,
    column_mapping: Optional[Mapping[str, str]] = None,
    sheet_name: Union[str, int, None] = 0,
    loader_kwargs: Optional[MutableMapping[str, Any]] = None,
) -> List[Dict[str, Any]]:
    """Load prospect records from a spreadsheet.

    Parameters
    ----------
    path:
        Path to the CSV/XLSX file to be loaded.
    column_mapping:
        Optional mapping of record field names to column names, overriding the
        built-in synonyms.
    sheet_name:
        Sheet selector passed to :func:`pandas.read_excel` when loading an Excel
        file. Ignored for CSV files.
    loader_kwargs:
        Extra keyword arguments forwarded to :func:`pandas.read_csv` or
        :func:`pandas.read_excel`.
    """

    dataframe = _read_dataframe(path, sheet_name=sheet_name, loader_kwargs=loader_kwargs)
    mapping = dict(column_mapping or {})
    resolved = {field: _resolve_column(field, dataframe.columns, mapping) for field in _FIELD_SYNONYMS}

    records: List[Dict[str, Any]] = []
    for _, row in dataframe.iterrows():
        if _row_is_empty(row):
            continue
        records.append(_row_to_record(row, resolved))
    return records


def _read_dataframe(
    path: PathLike,
    *,
    sheet_name: Union[str, int, None] = 0,
    loader_kwargs: Optional[MutableMapping[str, Any]] = None,
) -> pd.DataFrame:
    loader_kwargs = dict(loader_kwargs or {})
    path_obj = Path(path)
    suffix = path_obj.suffix.lower()

    if suffix in {".csv", ".tsv"}:
        if suffix == ".tsv":
            loader_kwargs.setdefault("sep", "\t")
        # Keep postal codes and phone numbers as text.
        loader_kwargs.setdefault("dtype", str)
        return pd.read_csv(path_obj, **loader_kwargs)

    if suffix in {".xls", ".xlsx", ".xlsm", ".xlsb"}:
        loader_kwargs.setdefault("dtype", str)
        return pd.read_excel(path_obj, sheet_name=sheet_name, engine=loader_kwargs.pop("engine", None) or "openpyxl", **loader_kwargs)

    raise UnsupportedFileTypeError(f"Unsupported file extension: {path_obj.suffix}")


def _row_is_empty(row: pd.Series) -> bool:
    return all(pd.isna(value) or (isinstance(value, str) and not value.strip()) for value in row.values)


def _resolve_column(field: str, available_columns: Iterable[str], mapping: Mapping[str, str]) -> Optional[str]:
    if field in mapping:
        return mapping[field]

    columns = list(available_columns)
    for synonym in _FIELD_SYNONYMS.get(field, (field,)):
        for column in columns:
            if str(column).strip().lower() == synonym:
                return column
    return None


def _row_to_record(row: pd.Series, resolved: Mapping[str, Optional[str]]) -> Dict[str, Any]:
    record: Dict[str, Any] = {}
    used = {column for column in resolved.values() if column is not None}

    for field, column in resolved.items():
        if field in {"lat", "lng"} or column is None or column not in row:
            continue
        text = _clean_text(row[column])
        if text is not None:
            record[field] = text

    lat = _clean_text(row[resolved["lat"]]) if resolved["lat"] in row else None
    lng = _clean_text(row[resolved["lng"]]) if resolved["lng"] in row else None
    if lat is not None or lng is not None:
        record["coordinates"] = {"lat": lat, "lng": lng}

    for column, value in row.items():
        if column in used:
            continue
        text = _clean_text(value)
        if text is not None:
            record.setdefault(str(column), text)
    return record


def _clean_text(value: Any) -> Optional[str]:
    if pd.isna(value):
        return None
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    text = str(value).strip()
    return text or None


class SpreadsheetSource:
    """Searches a spreadsheet loaded once on first use."""

    description = "Prospects imported from a spreadsheet"
    source_type = "file"

    def __init__(
        self,
        path: PathLike,
        *,
        name: str = "spreadsheet",
        column_mapping: Optional[Mapping[str, str]] = None,
        sheet_name: Union[str, int, None] = 0,
    ) -> None:
        self.name = name
        self._path = Path(path)
        self._column_mapping = dict(column_mapping or {})
        self._sheet_name = sheet_name
        self._records: Optional[List[Dict[str, Any]]] = None

    def is_configured(self) -> bool:
        return self._path.exists()

    def fetch(self, query: str, filters: Mapping[str, Any]) -> List[Dict[str, Any]]:
        if self._records is None:
            self._records = load_records(self._path, column_mapping=self._column_mapping, sheet_name=self._sheet_name)
        city = str(filters.get("city") or "").strip().lower()
        return [
            dict(record)
            for record in self._records
            if matches_query(record, query) and (not city or city in str(record.get("city") or "").lower())
        ]


__all__ = ["SpreadsheetSource", "UnsupportedFileTypeError", "load_records"]
