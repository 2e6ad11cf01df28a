import pandas as pd
import pytest

from prospect_aggregator.sources.spreadsheet import SpreadsheetSource, UnsupportedFileTypeError, load_records


def test_load_records_resolves_column_synonyms(tmp_path) -> None:
    csv_path = tmp_path / "prospects.csv"
    csv_path.write_text(
        "Business_Name,Category,Town,Zip,Telephone,Latitude,Longitude,Owner\n"
        "Cafe Central,Restauration,Paris,07500,01 42 97 48 23,48.8566,2.3522,Ada\n"
        ",,,,,,,\n"
        "Garage Leroy,Automobile,Lyon,69001,,,,\n",
        encoding="utf-8",
    )

    records = load_records(csv_path)

    assert len(records) == 2
    assert records[0] == {
        "name": "Cafe Central",
        "sector": "Restauration",
        "city": "Paris",
        "postal_code": "07500",
        "phone": "01 42 97 48 23",
        "coordinates": {"lat": "48.8566", "lng": "2.3522"},
        "Owner": "Ada",
    }
    assert "coordinates" not in records[1]


def test_load_records_honours_explicit_column_mapping(tmp_path) -> None:
    csv_path = tmp_path / "prospects.csv"
    csv_path.write_text("Raison sociale,Ville\nBoulangerie Dupont,Nice\n", encoding="utf-8")

    records = load_records(csv_path, column_mapping={"name": "Raison sociale", "city": "Ville"})

    assert records == [{"name": "Boulangerie Dupont", "city": "Nice"}]


def test_load_records_reads_excel(tmp_path) -> None:
    excel_path = tmp_path / "prospects.xlsx"
    pd.DataFrame([{"name": "Cafe Central", "email": "hello@central.fr"}]).to_excel(excel_path, index=False, engine="openpyxl")

    assert load_records(excel_path) == [{"name": "Cafe Central", "email": "hello@central.fr"}]


def test_unsupported_extension(tmp_path) -> None:
    with pytest.raises(UnsupportedFileTypeError):
        load_records(tmp_path / "prospects.txt")


def test_spreadsheet_source_filters_by_query_and_city(tmp_path) -> None:
    csv_path = tmp_path / "prospects.csv"
    csv_path.write_text("name,city\nCafe Central,Paris\nCafe du Port,Marseille\nGarage,Paris\n", encoding="utf-8")
    source = SpreadsheetSource(csv_path, name="crm")

    assert source.is_configured()
    assert [record["name"] for record in source.fetch("cafe", {})] == ["Cafe Central", "Cafe du Port"]
    assert [record["name"] for record in source.fetch("cafe", {"city": "paris"})] == ["Cafe Central"]
    assert not SpreadsheetSource(tmp_path / "missing.csv").is_configured()
