from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Iterable, Iterator

from loguru import logger

from bioid.models.entities import ResolutionOutcome, ResultRecord


def _join(values: list[str]) -> str:
    return "; ".join(values)


def record_from_outcome(outcome: ResolutionOutcome) -> ResultRecord:
    """Flatten a resolution outcome into an exportable row."""
    if not outcome.success or outcome.payload is None:
        return ResultRecord(
            input_entity=outcome.input_entity,
            validation_issues=f"Resolution error: {outcome.error_message}",
            processing_time=outcome.elapsed_seconds,
        )

    payload = outcome.payload
    ids = payload.identifiers
    links = payload.links
    return ResultRecord(
        input_entity=outcome.input_entity,
        refined_entity_name=(
            payload.corrected_name if payload.corrected_name != outcome.input_entity else ""
        ),
        entity_type=payload.entity_type,
        resolved_name=payload.resolved_name,
        synonyms=_join(payload.synonyms),
        validation_issues=_join(payload.validation_issues),
        pathways=_join(payload.pathways),
        function=_join(payload.biological_function),
        cellular_component=_join(payload.cellular_component),
        ontology_id=payload.ontology_id or ids.get("Ontology ID"),
        ontology_term=payload.ontology_term or ids.get("Ontology Term"),
        pubchem_cid=ids.get("PubChem CID"),
        chembl_id=ids.get("ChEMBL ID"),
        kegg=ids.get("KEGG"),
        uniprot=ids.get("UniProt"),
        refseq=ids.get("RefSeq"),
        ensembl=ids.get("Ensembl"),
        interpro=ids.get("InterPro"),
        inchikey=ids.get("InChIKey"),
        smiles=ids.get("SMILES"),
        pubchem_link=links.get("PubChem Link"),
        chembl_link=links.get("ChEMBL Link"),
        kegg_link=links.get("KEGG Link"),
        uniprot_link=links.get("UniProt Link"),
        refseq_link=links.get("RefSeq Link"),
        ensembl_link=links.get("Ensembl Link"),
        interpro_link=links.get("InterPro Link"),
        processing_time=outcome.elapsed_seconds,
    )


class ResultSet:
    """Ordered result rows keyed by a synthetic row id.

    Rows keep their insertion position when replaced. An index from input
    entity to row ids gives the first matching row without scanning.
    """

    def __init__(self, records: Iterable[ResultRecord] = ()):
        self._rows: dict[int, ResultRecord] = {}
        self._by_entity: dict[str, list[int]] = {}
        self._next_id = 0
        for record in records:
            self.append(record)

    def append(self, record: ResultRecord) -> int:
        row_id = self._next_id
        self._next_id += 1
        self._rows[row_id] = record
        self._by_entity.setdefault(record.input_entity, []).append(row_id)
        return row_id

    def first_row_for(self, entity: str) -> int | None:
        row_ids = self._by_entity.get(entity)
        return row_ids[0] if row_ids else None

    def replace(self, row_id: int, record: ResultRecord) -> None:
        previous = self._rows[row_id]
        self._rows[row_id] = record
        if previous.input_entity != record.input_entity:
            self._by_entity[previous.input_entity].remove(row_id)
            if not self._by_entity[previous.input_entity]:
                del self._by_entity[previous.input_entity]
            bucket = self._by_entity.setdefault(record.input_entity, [])
            bucket.append(row_id)
            bucket.sort()

    def snapshot(self) -> tuple[ResultRecord, ...]:
        return tuple(self._rows.values())

    def deep_search_candidates(self) -> list[str]:
        return [record.input_entity for record in self._rows.values() if record.needs_deep_search]

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[ResultRecord]:
        return iter(tuple(self._rows.values()))

    def __getitem__(self, index: int) -> ResultRecord:
        return self.snapshot()[index]


def merge(
    existing: ResultSet,
    outcomes: Iterable[ResolutionOutcome],
    *,
    is_deep_search: bool,
) -> ResultSet:
    """Merge outcomes into ``existing`` in the order given.

    The initial phase appends. Deep search overwrites the first row whose
    input entity matches, failed outcomes included. A deep-search outcome
    with no matching row is appended and logged.
    """
    for outcome in outcomes:
        record = record_from_outcome(outcome)
        if not is_deep_search:
            existing.append(record)
            continue

        row_id = existing.first_row_for(outcome.input_entity)
        if row_id is None:
            logger.warning(
                f"Deep search result for '{outcome.input_entity}' has no matching row; appending"
            )
            existing.append(record)
            continue
        existing.replace(row_id, record)
    return existing


@dataclass(frozen=True)
class PhaseMetrics:
    total: int
    resolved: int
    failed: int
    average_seconds: float

    @property
    def resolved_percent(self) -> float:
        return (self.resolved / self.total * 100) if self.total else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "resolved_percent": round(self.resolved_percent, 1)}


def compute_metrics(records: Iterable[ResultRecord]) -> PhaseMetrics:
    rows = list(records)
    resolved = sum(1 for record in rows if not record.needs_deep_search)
    times = [record.processing_time for record in rows if record.processing_time is not None]
    return PhaseMetrics(
        total=len(rows),
        resolved=resolved,
        failed=len(rows) - resolved,
        average_seconds=(sum(times) / len(times)) if times else 0.0,
    )
