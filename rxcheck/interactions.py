"""
Pairwise interaction analysis.

Every unordered pair of drugs gets one verdict. Verdicts are cached under a
canonical pair key (the two drug ids in sorted order), so (A, B) and (B, A)
share a single stored row. A failing pair is reported as Unknown and never
aborts the rest of the batch.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence, Tuple, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from .errors import UpstreamError, ValidationError
from .logger import get_logger
from .normalize import canonical_pair, display_key
from .schema import Drug, InteractionVerdict, PairReport, Rating, VerdictPayload, validate_drug_ids
from .reasoning.base import ReasoningService
from .storage import DrugStore

logger = get_logger()

T = TypeVar("T")


def generate_pairs(items: Sequence[T]) -> List[Tuple[T, T]]:
    """All (items[i], items[j]) with i < j, in traversal order."""
    return [
        (items[i], items[j])
        for i in range(len(items))
        for j in range(i + 1, len(items))
    ]


def _distinct(drugs: Sequence[Drug]) -> List[Drug]:
    seen = set()
    out = []
    for drug in drugs:
        if drug.id not in seen:
            seen.add(drug.id)
            out.append(drug)
    return out


class InteractionEngine:
    """Computes and caches interaction verdicts for every pair in a drug set."""

    def __init__(self, store: DrugStore, reasoner: ReasoningService, max_workers: int = 1):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.store = store
        self.reasoner = reasoner
        self.max_workers = max_workers

    def analyze(self, drugs: Sequence[Drug], refresh: bool = False) -> List[PairReport]:
        """
        Report on every unordered pair of the given drugs.

        Args:
            drugs: Resolved drugs; repeated ids are counted once
            refresh: Skip the cache and overwrite stored verdicts

        Returns:
            One PairReport per pair, ordered by traversal (i < j) regardless of
            the order in which concurrent evaluations finish.

        Raises:
            ValidationError: fewer than two distinct drugs
        """
        unique = _distinct(drugs)
        if len(unique) < 2:
            raise ValidationError("At least two distinct drugs are required for interaction analysis")

        pairs = generate_pairs(unique)
        logger.info(
            "Analyzing interactions",
            drugs=len(unique),
            pairs=len(pairs),
            provider=self.reasoner.name,
            refresh=refresh,
        )

        if self.max_workers == 1 or len(pairs) == 1:
            reports = [self._report_for_pair(a, b, refresh) for a, b in pairs]
        else:
            # Already-dispatched pairs run to completion and persist even if the
            # caller stops waiting for the batch.
            with ThreadPoolExecutor(
                max_workers=min(self.max_workers, len(pairs)),
                thread_name_prefix="rxcheck-pair",
            ) as executor:
                futures = [executor.submit(self._report_for_pair, a, b, refresh) for a, b in pairs]
                reports = [f.result() for f in futures]

        unknown = sum(1 for r in reports if r.rating is Rating.UNKNOWN)
        if unknown:
            logger.warning("Some pairs have no verdict", pairs=len(reports), unknown=unknown)
        return reports

    def analyze_ids(self, drug_ids: Sequence[str], refresh: bool = False) -> List[PairReport]:
        """
        Analyze previously resolved drugs by id.

        Raises:
            ValidationError: fewer than two distinct ids, or ids not in the store
        """
        errors = validate_drug_ids(drug_ids)
        if errors:
            raise ValidationError("; ".join(errors))

        ordered = list(dict.fromkeys(drug_ids))
        found = self.store.get_drugs(ordered)
        missing = [i for i in ordered if i not in found]
        if missing:
            raise ValidationError(f"Unknown drug ids: {', '.join(missing)}")
        return self.analyze([found[i] for i in ordered], refresh=refresh)

    def _report_for_pair(self, first: Drug, second: Drug, refresh: bool) -> PairReport:
        key = canonical_pair(first.id, second.id)
        label = display_key(first.name, second.name)

        if not refresh:
            stored = self._cached_verdict(key, label)
            if stored is not None:
                logger.record_cache_lookup("interaction", hit=True)
                logger.debug("Interaction verdict from cache", pair=label)
                return PairReport(
                    display_key=label,
                    drug1_name=first.name,
                    drug2_name=second.name,
                    summary=stored.summary,
                    details=stored.details,
                    rating=stored.rating,
                    cached=True,
                )
            logger.record_cache_lookup("interaction", hit=False)

        # Describe the pair in canonical order so (A, B) and (B, A) send the same request.
        by_id = {first.id: first, second.id: second}
        low, high = by_id[key[0]], by_id[key[1]]
        try:
            payload = self.reasoner.evaluate(low.describe(), high.describe())
        except UpstreamError as e:
            logger.warning("Interaction analysis failed", pair=label, provider=self.reasoner.name, error=str(e))
            return self._failure_report(first, second, label, e)
        except Exception as e:
            logger.error(
                "Unexpected error during interaction analysis",
                pair=label,
                provider=self.reasoner.name,
                error_type=type(e).__name__,
                error=str(e),
            )
            return self._failure_report(first, second, label, e)

        stored_payload = self._persist(key, payload, refresh, label)
        return PairReport(
            display_key=label,
            drug1_name=first.name,
            drug2_name=second.name,
            summary=stored_payload.summary,
            details=stored_payload.details,
            rating=stored_payload.rating,
        )

    def _cached_verdict(self, key: Tuple[str, str], label: str) -> Optional[InteractionVerdict]:
        """Stored verdict for the key; a failed read counts as a miss."""
        try:
            return self.store.find_verdict(key)
        except SQLAlchemyError as e:
            logger.error("Failed to read interaction verdict", pair=label, error=str(e))
            return None

    @staticmethod
    def _failure_report(first: Drug, second: Drug, label: str, error: Exception) -> PairReport:
        return PairReport(
            display_key=label,
            drug1_name=first.name,
            drug2_name=second.name,
            summary=f"Interaction analysis unavailable for {first.name} and {second.name}: {error}",
            details="",
            rating=Rating.UNKNOWN,
        )

    def _persist(self, key: Tuple[str, str], payload: VerdictPayload, refresh: bool, label: str) -> VerdictPayload:
        """Store the verdict; returns whatever is stored for the key afterwards."""
        try:
            verdict = self.store.upsert_verdict(key, payload, overwrite=refresh)
        except SQLAlchemyError as e:
            logger.error("Failed to store interaction verdict", pair=label, error=str(e))
            return payload
        return VerdictPayload(summary=verdict.summary, details=verdict.details, rating=verdict.rating)
