"""
Persistent store for resolved drugs and interaction verdicts.

Every method opens its own short-lived session, so one DrugStore can be
shared by the worker threads of an analysis batch.
"""

import uuid
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from .database import Drug as DrugRow, DrugDetails, InteractionPair, init_database, get_session
from .logger import get_logger
from .schema import Drug, InteractionVerdict, RawDrugAttributes, Rating, ResolutionSource, VerdictPayload

logger = get_logger()


def _to_drug(row: DrugRow, source: ResolutionSource = ResolutionSource.CACHED) -> Drug:
    details = row.details
    return Drug(
        id=row.id,
        name=row.name,
        category=row.category or "",
        indications=list(details.indications or []) if details else [],
        warnings=list(details.warnings or []) if details else [],
        mechanism_of_action=(details.mechanism_of_action or "") if details else "",
        dosage=(details.dosage or "") if details else "",
        contraindications=list(details.contraindications or []) if details else [],
        source=source,
        last_resolved_at=row.last_resolved_at,
    )


def _to_verdict(row: InteractionPair) -> InteractionVerdict:
    return InteractionVerdict(
        pair_key=(row.drug1_id, row.drug2_id),
        summary=row.summary or "",
        details=row.details or "",
        rating=Rating.parse(row.risk_rating),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class DrugStore:
    """SQLite-backed store keyed by drug id and canonical pair key."""

    def __init__(self, db_path: Path, create: bool = True):
        self.db_path = Path(db_path)
        if create:
            init_database(self.db_path)

    def _session(self):
        return get_session(self.db_path)

    # Drugs

    def find_drug_by_name_fragment(self, normalized: str) -> Optional[Drug]:
        """
        First stored drug whose lowercased, trimmed name contains the fragment.

        Ties go to the earliest inserted row. The fragment is expected to be
        normalized already (see normalize_drug_name).
        """
        with self._session() as session:
            row = (
                session.query(DrugRow)
                .options(selectinload(DrugRow.details))
                .filter(func.lower(func.trim(DrugRow.name)).contains(normalized, autoescape=True))
                .order_by(DrugRow.created_at, DrugRow.id)
                .first()
            )
            return _to_drug(row) if row is not None else None

    def upsert_drug(self, drug: Drug, details: Optional[RawDrugAttributes] = None, origin: str = "external") -> str:
        """
        Write a drug and its details in one transaction.

        An existing id keeps its row and has its attributes replaced.
        """
        now = datetime.now()
        with self._session() as session:
            row = session.get(DrugRow, drug.id)
            if row is None:
                row = DrugRow(id=drug.id, origin=origin, created_at=now)
                session.add(row)
            row.name = drug.name
            row.category = drug.category
            row.updated_at = now
            row.last_resolved_at = drug.last_resolved_at or now

            if row.details is None:
                row.details = DrugDetails(drug_id=drug.id)
            row.details.indications = list(drug.indications)
            row.details.warnings = list(drug.warnings)
            row.details.mechanism_of_action = drug.mechanism_of_action
            row.details.dosage = drug.dosage
            row.details.contraindications = list(drug.contraindications)
            row.details.raw_data = details.raw if details is not None else None

            session.commit()
        logger.debug("Drug stored", drug_id=drug.id, name=drug.name, origin=origin)
        return drug.id

    def touch_last_resolved(self, drug_id: str) -> Optional[datetime]:
        """Refresh last_resolved_at. Returns the new timestamp, or None if the id is unknown."""
        now = datetime.now()
        with self._session() as session:
            updated = (
                session.query(DrugRow)
                .filter(DrugRow.id == drug_id)
                .update({DrugRow.last_resolved_at: now}, synchronize_session=False)
            )
            session.commit()
        return now if updated else None

    def get_drugs(self, ids: Iterable[str]) -> Dict[str, Drug]:
        ids = list(ids)
        if not ids:
            return {}
        with self._session() as session:
            rows = (
                session.query(DrugRow)
                .options(selectinload(DrugRow.details))
                .filter(DrugRow.id.in_(ids))
                .all()
            )
            return {row.id: _to_drug(row) for row in rows}

    def names_by_ids(self, ids: Iterable[str]) -> Dict[str, str]:
        ids = list(ids)
        if not ids:
            return {}
        with self._session() as session:
            rows = session.query(DrugRow.id, DrugRow.name).filter(DrugRow.id.in_(ids)).all()
            return {row.id: row.name for row in rows}

    def list_drugs(self) -> List[Drug]:
        with self._session() as session:
            rows = (
                session.query(DrugRow)
                .options(selectinload(DrugRow.details))
                .order_by(DrugRow.name, DrugRow.created_at)
                .all()
            )
            return [_to_drug(row) for row in rows]

    # Interaction verdicts

    def find_verdict(self, pair_key: Tuple[str, str]) -> Optional[InteractionVerdict]:
        drug1_id, drug2_id = pair_key
        with self._session() as session:
            row = (
                session.query(InteractionPair)
                .filter_by(drug1_id=drug1_id, drug2_id=drug2_id)
                .first()
            )
            return _to_verdict(row) if row is not None else None

    def upsert_verdict(
        self,
        pair_key: Tuple[str, str],
        verdict: VerdictPayload,
        overwrite: bool = False,
    ) -> InteractionVerdict:
        """
        Store the verdict for a canonical pair key.

        Without overwrite this is insert-if-absent: when another writer got there
        first, its row is kept and returned. With overwrite the stored content is
        replaced and updated_at advances.
        """
        drug1_id, drug2_id = pair_key
        if not drug1_id < drug2_id:
            raise ValueError(f"Pair key is not canonical: {pair_key}")

        now = datetime.now()
        with self._session() as session:
            row = (
                session.query(InteractionPair)
                .filter_by(drug1_id=drug1_id, drug2_id=drug2_id)
                .first()
            )
            if row is not None and not overwrite:
                return _to_verdict(row)
            if row is None:
                row = InteractionPair(
                    id=str(uuid.uuid4()),
                    drug1_id=drug1_id,
                    drug2_id=drug2_id,
                    created_at=now,
                )
                session.add(row)
            row.summary = verdict.summary
            row.details = verdict.details
            row.risk_rating = verdict.rating.value
            row.updated_at = now
            try:
                session.commit()
            except IntegrityError:
                # Lost a race with a concurrent writer for the same pair.
                session.rollback()
                logger.debug("Verdict already stored by another writer", pair=list(pair_key))
                existing = (
                    session.query(InteractionPair)
                    .filter_by(drug1_id=drug1_id, drug2_id=drug2_id)
                    .one()
                )
                return _to_verdict(existing)
            return _to_verdict(row)
