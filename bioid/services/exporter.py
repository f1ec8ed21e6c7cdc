from __future__ import annotations

import csv
import io
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Sequence

from bioid.models.entities import IDENTIFIER_KEYS, LINK_KEYS, ResultRecord

LEADING_COLUMNS = (
    "Input Entity",
    "Refined Entity Name",
    "Entity Type",
    "Resolved Name",
    "Synonyms",
    "Validation Issues",
    "Pathways",
    "Function",
    "Cellular Component",
)
ONTOLOGY_COLUMNS = ("Ontology ID", "Ontology Term")
TRAILING_COLUMNS = (*IDENTIFIER_KEYS, *LINK_KEYS, "Processing Time (s)")


def export_headers(records: Sequence[ResultRecord]) -> list[str]:
    """Column order for an export; ontology columns only when some row has them."""
    has_ontology = any(record.has_ontology for record in records)
    return [
        *LEADING_COLUMNS,
        *(ONTOLOGY_COLUMNS if has_ontology else ()),
        *TRAILING_COLUMNS,
    ]


def to_csv(records: Iterable[ResultRecord]) -> str:
    rows = list(records)
    if not rows:
        raise ValueError("No results to export.")

    headers = export_headers(rows)
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    for record in rows:
        values = record.to_row()
        writer.writerow(["" if values.get(h) is None else values[h] for h in headers])
    return buffer.getvalue()


def export_filename(prefix: str = "bioid-manual-export", *, now: datetime | None = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y-%m-%d-%H-%M-%S")
    return f"{prefix}-{stamp}.csv"


def write_csv(records: Iterable[ResultRecord], path: str | Path) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(to_csv(records), encoding="utf-8")
    return target
