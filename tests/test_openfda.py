"""
Tests for sources/openfda.py - label lookup and mapping.
"""

import pytest
import requests

from rxcheck.errors import TransientError, UpstreamError
from rxcheck.sources.openfda import OpenFDASource, parse_label

from conftest import StubSession, make_response

LABEL = {
    "openfda": {
        "brand_name": ["Bayer Aspirin"],
        "generic_name": ["ASPIRIN"],
        "product_type": ["HUMAN OTC DRUG"],
    },
    "indications_and_usage": ["For temporary relief of minor aches"],
    "warnings": ["Reye's syndrome", "Allergy alert"],
    "clinical_pharmacology": ["Aspirin inhibits", "prostaglandin synthesis"],
    "dosage_and_administration": ["Adults: 1 to 2 tablets", "every 4 hours"],
    "contraindications": ["Hemophilia"],
}


class TestParseLabel:
    """Mapping of openFDA label sections."""

    def test_full_label(self):
        attrs = parse_label(LABEL, fallback_name="aspirin")

        assert attrs.name == "Bayer Aspirin"
        assert attrs.category == "HUMAN OTC DRUG"
        assert attrs.indications == ("For temporary relief of minor aches",)
        assert attrs.warnings == ("Reye's syndrome", "Allergy alert")
        assert attrs.mechanism_of_action == "Aspirin inhibits\nprostaglandin synthesis"
        assert attrs.dosage == "Adults: 1 to 2 tablets\nevery 4 hours"
        assert attrs.contraindications == ("Hemophilia",)
        assert attrs.raw is LABEL

    def test_empty_label_uses_fallback_and_defaults(self):
        attrs = parse_label({}, fallback_name="aspirin")

        assert attrs.name == "aspirin"
        assert attrs.category == ""
        assert attrs.indications == ()
        assert attrs.warnings == ()
        assert attrs.mechanism_of_action == ""
        assert attrs.dosage == ""
        assert attrs.contraindications == ()

    def test_plr_sections(self):
        label = {
            "openfda": {"generic_name": ["warfarin sodium"]},
            "warnings_and_cautions": ["Tissue necrosis"],
            "mechanism_of_action": ["Inhibits vitamin K dependent factors"],
            "clinical_pharmacology": ["ignored when mechanism_of_action exists"],
        }

        attrs = parse_label(label, fallback_name="warfarin")

        assert attrs.name == "warfarin sodium"
        assert attrs.warnings == ("Tissue necrosis",)
        assert attrs.mechanism_of_action == "Inhibits vitamin K dependent factors"

    def test_tolerates_odd_types(self):
        attrs = parse_label({"warnings": "single string", "contraindications": [None, 3, " x "]}, "n")

        assert attrs.warnings == ("single string",)
        assert attrs.contraindications == ("x",)


class TestLookup:
    """HTTP behaviour of OpenFDASource.lookup."""

    def test_hit(self):
        session = StubSession([make_response(200, {"results": [LABEL]})])
        source = OpenFDASource(base_url="https://fda.test", session=session, max_retries=0)

        attrs = source.lookup("aspirin")

        assert attrs.name == "Bayer Aspirin"
        sent = session.requests[0]
        assert sent["url"] == "https://fda.test/drug/label.json"
        assert sent["params"]["search"] == 'openfda.brand_name:"aspirin"'
        assert sent["params"]["limit"] == 1
        assert "api_key" not in sent["params"]

    def test_api_key_sent_when_configured(self):
        session = StubSession([make_response(200, {"results": [LABEL]})])
        source = OpenFDASource(base_url="https://fda.test", api_key="k", session=session, max_retries=0)

        source.lookup("aspirin")

        assert session.requests[0]["params"]["api_key"] == "k"

    def test_404_is_not_found(self):
        session = StubSession([make_response(404, {"error": {"code": "NOT_FOUND"}})])
        source = OpenFDASource(session=session, max_retries=0)

        assert source.lookup("nosuchdrug") is None

    def test_empty_results_is_not_found(self):
        session = StubSession([make_response(200, {"results": []})])
        source = OpenFDASource(session=session, max_retries=0)

        assert source.lookup("nosuchdrug") is None

    def test_timeout_after_retries_is_transient(self):
        session = StubSession([requests.exceptions.Timeout("read timed out")] * 3)
        source = OpenFDASource(session=session, max_retries=2, base_delay=0)

        with pytest.raises(TransientError):
            source.lookup("aspirin")
        assert len(session.requests) == 3

    def test_recovers_after_connection_error(self):
        session = StubSession([
            requests.exceptions.ConnectionError("connection reset"),
            make_response(200, {"results": [LABEL]}),
        ])
        source = OpenFDASource(session=session, max_retries=1, base_delay=0)

        assert source.lookup("aspirin").name == "Bayer Aspirin"

    def test_server_error_is_transient(self):
        session = StubSession([make_response(500, {})])
        source = OpenFDASource(session=session, max_retries=0)

        with pytest.raises(TransientError):
            source.lookup("aspirin")

    def test_non_json_body(self):
        session = StubSession([make_response(200, text="<html>maintenance</html>")])
        source = OpenFDASource(session=session, max_retries=0)

        with pytest.raises(UpstreamError):
            source.lookup("aspirin")

    def test_quotes_removed_from_search(self):
        session = StubSession([make_response(200, {"results": [LABEL]})])
        source = OpenFDASource(session=session, max_retries=0)

        source.lookup('tylenol "extra" strength\\')

        assert session.requests[0]["params"]["search"] == 'openfda.brand_name:"tylenol extra strength"'

    def test_only_quotes_is_not_found_without_request(self):
        session = StubSession([])
        source = OpenFDASource(session=session, max_retries=0)

        assert source.lookup('""') is None
        assert session.requests == []
