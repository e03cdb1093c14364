"""
Tests for database.py - SQLite schema and sessions.
"""

import pytest
from datetime import datetime
from sqlalchemy.exc import IntegrityError

from rxcheck.database import Drug, DrugDetails, InteractionPair, init_database, get_session


@pytest.fixture
def db_session(tmp_path):
    """Create a temporary database and return a session."""
    db_path = tmp_path / "test.db"
    init_database(db_path)
    session = get_session(db_path)
    yield session
    session.close()


def _drug(drug_id, name="aspirin"):
    return Drug(id=drug_id, name=name, category="HUMAN OTC DRUG", origin="openfda")


class TestDatabaseInit:
    """Test database initialization."""

    def test_init_creates_database_file(self, tmp_path):
        db_path = tmp_path / "test.db"
        assert not db_path.exists()

        init_database(db_path)

        assert db_path.exists()

    def test_init_creates_tables(self, db_session):
        assert db_session.query(Drug).count() == 0
        assert db_session.query(DrugDetails).count() == 0
        assert db_session.query(InteractionPair).count() == 0

    def test_init_is_idempotent(self, tmp_path):
        db_path = tmp_path / "test.db"
        init_database(db_path)
        init_database(db_path)

        assert db_path.exists()


class TestDrugModel:
    """Drug and DrugDetails rows."""

    def test_details_relationship(self, db_session):
        drug = _drug("d1")
        drug.details = DrugDetails(
            drug_id="d1",
            indications=["pain"],
            warnings=[],
            mechanism_of_action="",
            dosage="",
            contraindications=["ulcer"],
            raw_data={"openfda": {}},
        )
        db_session.add(drug)
        db_session.commit()

        loaded = db_session.get(Drug, "d1")
        assert loaded.details.indications == ["pain"]
        assert loaded.details.contraindications == ["ulcer"]
        assert loaded.details.raw_data == {"openfda": {}}

    def test_timestamps_set_on_insert(self, db_session):
        before = datetime.now()
        db_session.add(_drug("d1"))
        db_session.commit()
        after = datetime.now()

        saved = db_session.get(Drug, "d1")
        assert before <= saved.created_at <= after
        assert before <= saved.last_resolved_at <= after

    def test_duplicate_names_allowed(self, db_session):
        db_session.add(_drug("d1", "aspirin"))
        db_session.add(_drug("d2", "aspirin"))
        db_session.commit()

        assert db_session.query(Drug).filter_by(name="aspirin").count() == 2

    def test_missing_required_fields_fail(self, db_session):
        db_session.add(Drug(id="d1"))

        with pytest.raises(IntegrityError):
            db_session.commit()


class TestInteractionPairModel:
    """Uniqueness and ordering of stored pairs."""

    def test_duplicate_pair_rejected(self, db_session):
        db_session.add(InteractionPair(id="p1", drug1_id="a", drug2_id="b", risk_rating="Safe"))
        db_session.commit()

        db_session.add(InteractionPair(id="p2", drug1_id="a", drug2_id="b", risk_rating="Warning"))
        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_reversed_pair_rejected(self, db_session):
        db_session.add(InteractionPair(id="p1", drug1_id="b", drug2_id="a"))

        with pytest.raises(IntegrityError):
            db_session.commit()

    def test_defaults(self, db_session):
        db_session.add(InteractionPair(id="p1", drug1_id="a", drug2_id="b"))
        db_session.commit()

        row = db_session.get(InteractionPair, "p1")
        assert row.risk_rating == "Unknown"
        assert row.summary == ""
        assert row.created_at is not None
