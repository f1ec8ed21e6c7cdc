from __future__ import annotations

import csv
import io
from datetime import datetime

import pytest

from bioid.models.entities import ResultRecord
from bioid.services import exporter


def _rows(text: str) -> list[list[str]]:
    return list(csv.reader(io.StringIO(text)))


def test_headers_without_ontology():
    headers = exporter.export_headers([ResultRecord(input_entity="TP53")])
    assert headers[0] == "Input Entity"
    assert "Synonyms" in headers
    assert "Ontology ID" not in headers
    assert headers[-1] == "Processing Time (s)"


def test_headers_include_ontology_when_any_row_has_it():
    records = [
        ResultRecord(input_entity="TP53"),
        ResultRecord(input_entity="glucose", ontology_id="CHEBI:17234"),
    ]
    headers = exporter.export_headers(records)
    assert headers.index("Ontology ID") == headers.index("Cellular Component") + 1
    assert "Ontology Term" in headers


def test_to_csv_quotes_every_field_and_blanks_missing_values():
    records = [
        ResultRecord(
            input_entity='5" cap',
            resolved_name="TP53",
            synonyms="p53; LFS1",
            uniprot="P04637",
            processing_time=1.25,
        )
    ]
    body = exporter.to_csv(records)

    lines = body.split("\n")
    assert lines[0].startswith('"Input Entity","Refined Entity Name"')
    assert lines[1].startswith('"5"" cap",""')

    header, row = _rows(body)
    values = dict(zip(header, row))
    assert values["Synonyms"] == "p53; LFS1"
    assert values["UniProt"] == "P04637"
    assert values["KEGG"] == ""
    assert values["Processing Time (s)"] == "1.25"


def test_to_csv_rejects_empty_results():
    with pytest.raises(ValueError, match="No results to export."):
        exporter.to_csv([])


def test_export_filename():
    name = exporter.export_filename(now=datetime(2026, 3, 4, 5, 6, 7))
    assert name == "bioid-manual-export-2026-03-04-05-06-07.csv"


def test_write_csv_creates_parent_dirs(tmp_path):
    path = exporter.write_csv([ResultRecord(input_entity="TP53")], tmp_path / "out" / "r.csv")
    assert path.exists()
    assert _rows(path.read_text(encoding="utf-8"))[1][0] == "TP53"
