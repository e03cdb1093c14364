from typing import Any, Dict, List, Optional

import requests

from ..errors import UpstreamError
from ..logger import get_logger
from ..schema import RawDrugAttributes
from ..transport import request_with_error_handling
from .base import DrugSource

logger = get_logger()


def _texts(value: Any) -> List[str]:
    """openFDA label sections are lists of strings; tolerate bare strings and junk."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        return []
    return [v.strip() for v in value if isinstance(v, str) and v.strip()]


def _first(value: Any) -> str:
    texts = _texts(value)
    return texts[0] if texts else ""


def parse_label(label: Dict[str, Any], fallback_name: str) -> RawDrugAttributes:
    """Map one openFDA drug label onto RawDrugAttributes.

    Missing sections become empty strings or empty tuples. PLR-format labels
    carry 'warnings_and_cautions' instead of 'warnings', and older labels have
    no 'mechanism_of_action', only 'clinical_pharmacology'.
    """
    openfda = label.get("openfda") or {}
    name = _first(openfda.get("brand_name")) or _first(openfda.get("generic_name")) or fallback_name

    warnings = _texts(label.get("warnings")) or _texts(label.get("warnings_and_cautions"))
    mechanism = _texts(label.get("mechanism_of_action")) or _texts(label.get("clinical_pharmacology"))

    return RawDrugAttributes(
        name=name,
        category=_first(openfda.get("product_type")),
        indications=tuple(_texts(label.get("indications_and_usage"))),
        warnings=tuple(warnings),
        mechanism_of_action="\n".join(mechanism),
        dosage="\n".join(_texts(label.get("dosage_and_administration"))),
        contraindications=tuple(_texts(label.get("contraindications"))),
        raw=label,
    )


class OpenFDASource(DrugSource):
    """Drug labels from the openFDA /drug/label endpoint, matched on brand name."""

    name = "openfda"

    def __init__(
        self,
        base_url: str = "https://api.fda.gov",
        api_key: Optional[str] = None,
        timeout: float = 15.0,
        max_retries: int = 3,
        base_delay: float = 1.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.session = session or requests.Session()

    @staticmethod
    def search_term(name: str) -> str:
        """Name as it goes inside the quoted search phrase: no quotes or backslashes."""
        return " ".join(name.replace('"', " ").replace("\\", " ").split())

    def build_params(self, name: str) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "search": f'openfda.brand_name:"{self.search_term(name)}"',
            "limit": 1,
        }
        if self.api_key:
            params["api_key"] = self.api_key
        return params

    def lookup(self, name: str) -> Optional[RawDrugAttributes]:
        url = f"{self.base_url}/drug/label.json"
        logger.debug("Looking up drug label", source=self.name, name=name)
        if not self.search_term(name):
            return None
        # openFDA answers 404 when a search matches nothing
        resp = request_with_error_handling(
            "GET",
            url,
            service=self.name,
            session=self.session,
            timeout=self.timeout,
            max_retries=self.max_retries,
            base_delay=self.base_delay,
            not_found_ok=True,
            params=self.build_params(name),
        )
        if resp is None:
            return None

        try:
            payload = resp.json()
        except ValueError as e:
            logger.warning("openFDA returned a non-JSON body", name=name)
            raise UpstreamError("openfda returned a non-JSON body") from e

        results = payload.get("results") if isinstance(payload, dict) else None
        if not results or not isinstance(results[0], dict):
            return None
        return parse_label(results[0], fallback_name=name)
