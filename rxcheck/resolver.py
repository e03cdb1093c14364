"""
Cache-aside drug resolution.

Looks a name up in the local store first and only asks the upstream source
on a miss. Successful upstream answers are stored; not-found answers and
upstream failures are not, so a later retry can still succeed.
"""

import time
import uuid
from datetime import datetime

from .errors import DrugNotFoundError, ValidationError
from .logger import get_logger
from .normalize import normalize_drug_name
from .schema import Drug, RawDrugAttributes, ResolutionSource, validate_drug_name
from .sources.base import DrugSource
from .storage import DrugStore

logger = get_logger()


def drug_from_attributes(drug_id: str, attrs: RawDrugAttributes, resolved_at: datetime) -> Drug:
    return Drug(
        id=drug_id,
        name=attrs.name,
        category=attrs.category or "",
        indications=list(attrs.indications or ()),
        warnings=list(attrs.warnings or ()),
        mechanism_of_action=attrs.mechanism_of_action or "",
        dosage=attrs.dosage or "",
        contraindications=list(attrs.contraindications or ()),
        source=ResolutionSource.EXTERNAL,
        last_resolved_at=resolved_at,
    )


class DrugResolver:
    """Resolve a free-text drug name to one canonical Drug."""

    def __init__(self, store: DrugStore, source: DrugSource):
        self.store = store
        self.source = source

    def resolve(self, name: str) -> Drug:
        """
        Resolve a drug by name.

        Matching is a relaxed substring match on the normalized name, so
        'aspirin' also finds a stored 'Bayer Aspirin'. The first stored match
        wins.

        Raises:
            ValidationError: name is empty or whitespace
            DrugNotFoundError: neither the store nor the source knows the name
            TransientError / UpstreamError: the source could not be queried
        """
        errors = validate_drug_name(name)
        if errors:
            raise ValidationError("; ".join(errors))

        started = time.monotonic()
        query = normalize_drug_name(name)

        cached = self.store.find_drug_by_name_fragment(query)
        if cached is not None:
            logger.record_cache_lookup("drug", hit=True)
            cached.last_resolved_at = self.store.touch_last_resolved(cached.id) or cached.last_resolved_at
            logger.info(
                "Drug resolved from cache",
                query=query,
                drug_id=cached.id,
                name=cached.name,
                elapsed_ms=round((time.monotonic() - started) * 1000, 1),
            )
            return cached

        logger.record_cache_lookup("drug", hit=False)
        attrs = self.source.lookup(query)
        if attrs is None:
            logger.info("Drug not found", query=query, source=self.source.name)
            raise DrugNotFoundError(name.strip())

        drug = drug_from_attributes(str(uuid.uuid4()), attrs, datetime.now())
        self.store.upsert_drug(drug, attrs, origin=self.source.name)
        logger.info(
            "Drug resolved from source",
            query=query,
            drug_id=drug.id,
            name=drug.name,
            source=self.source.name,
            elapsed_ms=round((time.monotonic() - started) * 1000, 1),
        )
        return drug
