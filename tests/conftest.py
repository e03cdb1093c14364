"""
Pytest configuration and shared fixtures.
"""

import json
import threading
import uuid
from pathlib import Path
from typing import Dict, Iterable, Optional

import pytest
import requests

from rxcheck.errors import TransientError
from rxcheck.reasoning.base import ReasoningService
from rxcheck.schema import Drug, RawDrugAttributes, Rating, VerdictPayload
from rxcheck.sources.base import DrugSource
from rxcheck.storage import DrugStore


def name_from_description(description: str) -> str:
    """Descriptions start with 'Name: <drug name>'."""
    first = description.splitlines()[0]
    return first.split(":", 1)[1].strip()


class FakeSource(DrugSource):
    """In-memory drug source keyed by lowercased name."""

    name = "fake-fda"

    def __init__(self, catalog: Optional[Dict[str, RawDrugAttributes]] = None):
        self.catalog = {k.lower(): v for k, v in (catalog or {}).items()}
        self.calls = []
        self.failing = False

    def lookup(self, name: str) -> Optional[RawDrugAttributes]:
        self.calls.append(name)
        if self.failing:
            raise TransientError("fake-fda is unavailable: read timed out")
        return self.catalog.get(name)


class FakeReasoner(ReasoningService):
    """Reasoning service that answers from a table and can fail chosen pairs."""

    name = "fake-llm"

    def __init__(self, verdicts=None, fail_pairs: Iterable = ()):
        self.verdicts = {frozenset(k): v for k, v in (verdicts or {}).items()}
        self.fail_pairs = {frozenset(p) for p in fail_pairs}
        self.calls = []
        self._lock = threading.Lock()

    def evaluate(self, description_a: str, description_b: str) -> VerdictPayload:
        names = frozenset({name_from_description(description_a), name_from_description(description_b)})
        with self._lock:
            self.calls.append((description_a, description_b))
        if names in self.fail_pairs:
            raise TransientError("fake-llm quota exceeded (429)")
        if names in self.verdicts:
            return self.verdicts[names]
        return VerdictPayload(
            summary=f"{' and '.join(sorted(names))}: no significant interaction",
            details="Monitor as usual.",
            rating=Rating.SAFE,
        )


class StubSession:
    """Stands in for requests.Session; replays queued responses or exceptions."""

    def __init__(self, responses=()):
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, timeout=None, **kwargs):
        self.requests.append({"method": method, "url": url, "timeout": timeout, **kwargs})
        if not self.responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def make_response(status: int = 200, payload=None, text: Optional[str] = None) -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    body = json.dumps(payload) if payload is not None else (text or "")
    resp._content = body.encode("utf-8")
    resp.url = "https://upstream.test/"
    resp.headers["Content-Type"] = "application/json"
    return resp


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "rxcheck.db"


@pytest.fixture
def store(db_path) -> DrugStore:
    return DrugStore(db_path)


@pytest.fixture
def aspirin_attrs() -> RawDrugAttributes:
    return RawDrugAttributes(
        name="AspirinX",
        category="HUMAN OTC DRUG",
        indications=("Temporary relief of minor aches and pains",),
        warnings=("Reye's syndrome", "Stomach bleeding warning"),
        mechanism_of_action="Irreversible COX-1 and COX-2 inhibition",
        dosage="325 mg every 4 hours as needed",
        contraindications=("Allergy to NSAIDs",),
        raw={"openfda": {"brand_name": ["AspirinX"]}},
    )


@pytest.fixture
def warfarin_attrs() -> RawDrugAttributes:
    return RawDrugAttributes(
        name="WarfarinY",
        category="HUMAN PRESCRIPTION DRUG",
        indications=("Prophylaxis of venous thrombosis",),
        warnings=("Bleeding risk",),
        mechanism_of_action="Vitamin K epoxide reductase inhibition",
        dosage="2 to 5 mg daily, adjusted to INR",
        contraindications=("Pregnancy", "Hemorrhagic tendencies"),
    )


@pytest.fixture
def fake_source(aspirin_attrs, warfarin_attrs) -> FakeSource:
    return FakeSource({"aspirinx": aspirin_attrs, "warfariny": warfarin_attrs})


@pytest.fixture
def fake_reasoner() -> FakeReasoner:
    return FakeReasoner()


@pytest.fixture
def make_drug(store):
    """Persist a drug directly and return it."""

    def _make(name: str, drug_id: Optional[str] = None, **fields) -> Drug:
        drug = Drug(id=drug_id or str(uuid.uuid4()), name=name, **fields)
        store.upsert_drug(drug, origin="test")
        return drug

    return _make
