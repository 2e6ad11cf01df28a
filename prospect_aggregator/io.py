"""Export helpers for aggregated search responses."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, List, Mapping, MutableMapping, Optional, Union

import pandas as pd

from .models import SearchResponse

PathLike = Union[str, Path]

_JSON_SUFFIXES = {".json"}
_CSV_SUFFIXES = {".csv", ".tsv"}
_EXCEL_SUFFIXES = {".xlsx", ".xlsm"}

_LEADING_COLUMNS = [
    "name",
    "company",
    "sector",
    "address",
    "city",
    "postal_code",
    "phone",
    "email",
    "website",
    "source",
    "merged_from_sources",
    "confidence",
]


def results_to_dataframe(records: Iterable[Mapping[str, Any]]) -> pd.DataFrame:
    """Flatten aggregated records into one row each, known columns first."""

    rows = [_record_to_row(record) for record in records]
    dataframe = pd.DataFrame(rows)
    leading = [column for column in _LEADING_COLUMNS if column in dataframe.columns]
    trailing = [column for column in dataframe.columns if column not in leading]
    return dataframe[leading + trailing]


def _record_to_row(record: Mapping[str, Any]) -> MutableMapping[str, object]:
    row: MutableMapping[str, object] = {}
    for key, value in record.items():
        if key == "address":
            row["address"] = _format_address(value)
        elif key == "coordinates":
            coordinates = value or {}
            row["lat"] = coordinates.get("lat")
            row["lng"] = coordinates.get("lng")
        elif key == "confidence_score":
            row["confidence"] = (value or {}).get("total")
        elif key == "_merged_from_sources":
            row["merged_from_sources"] = _join_list(value or [])
        elif key == "_is_merged":
            continue
        elif isinstance(value, (dict, list)):
            row[key] = json.dumps(value, ensure_ascii=False, default=str)
        else:
            row[key] = value
    return row


def _format_address(value: Any) -> Optional[str]:
    if not value:
        return None
    if isinstance(value, Mapping):
        if value.get("full"):
            return str(value["full"])
        return ", ".join(str(value[key]) for key in ("street", "postal_code", "city", "country") if value.get(key)) or None
    return str(value)


def _join_list(values: Iterable[Optional[str]]) -> str:
    cleaned: List[str] = []
    for value in values:
        if not value:
            continue
        text = str(value).strip()
        if text:
            cleaned.append(text)
    return "; ".join(cleaned)


def write_response(
    path: PathLike,
    response: Union[SearchResponse, Mapping[str, Any]],
    *,
    sheet_name: str = "Results",
    exporter_kwargs: Optional[MutableMapping[str, object]] = None,
) -> Path:
    """Write a search response: JSON keeps the full payload, CSV/Excel the ranked records."""

    payload = response.as_dict() if isinstance(response, SearchResponse) else dict(response)
    output_path = Path(path)
    suffix = output_path.suffix.lower()

    if suffix in _JSON_SUFFIXES:
        output_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2, default=str), encoding="utf-8")
        return output_path

    dataframe = results_to_dataframe(payload.get("aggregated_results") or [])
    _write_dataframe(dataframe, output_path, sheet_name=sheet_name, exporter_kwargs=exporter_kwargs)
    return output_path


def _write_dataframe(
    dataframe: pd.DataFrame,
    path: Path,
    *,
    sheet_name: str,
    exporter_kwargs: Optional[MutableMapping[str, object]],
) -> None:
    exporter_kwargs = dict(exporter_kwargs or {})
    suffix = path.suffix.lower()

    if suffix in _CSV_SUFFIXES:
        if suffix == ".tsv":
            exporter_kwargs.setdefault("sep", "\t")
        dataframe.to_csv(path, index=False, **exporter_kwargs)
        return

    if suffix in _EXCEL_SUFFIXES:
        engine = exporter_kwargs.pop("engine", None) or "openpyxl"
        dataframe.to_excel(path, index=False, sheet_name=sheet_name, engine=engine, **exporter_kwargs)
        return

    raise ValueError(f"Unsupported export file extension: {suffix}")


__all__ = ["results_to_dataframe", "write_response"]
