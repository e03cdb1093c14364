"""
Database schema and connection management.

Uses SQLite with SQLAlchemy for resolved drugs and cached interaction verdicts.
"""

from datetime import datetime
from functools import lru_cache
from pathlib import Path
from sqlalchemy import (
    create_engine,
    Column,
    String,
    Text,
    DateTime,
    JSON,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

Base = declarative_base()


class Drug(Base):
    """Resolved drug. Name is not unique: concurrent first lookups may duplicate it."""

    __tablename__ = "drugs"

    id = Column(String, primary_key=True)  # uuid4, assigned once
    name = Column(String, nullable=False, index=True)
    category = Column(String, nullable=False, default="")
    origin = Column(String, nullable=False)  # upstream that produced the record, e.g. openfda
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)
    last_resolved_at = Column(DateTime, nullable=False, default=datetime.now)

    details = relationship(
        "DrugDetails",
        back_populates="drug",
        uselist=False,
        cascade="all, delete-orphan",
    )


class DrugDetails(Base):
    """Label attributes for a drug, plus the raw upstream payload."""

    __tablename__ = "drug_details"

    drug_id = Column(String, ForeignKey("drugs.id"), primary_key=True)
    indications = Column(JSON, nullable=False, default=list)
    warnings = Column(JSON, nullable=False, default=list)
    mechanism_of_action = Column(Text, nullable=False, default="")
    dosage = Column(Text, nullable=False, default="")
    contraindications = Column(JSON, nullable=False, default=list)
    raw_data = Column(JSON, nullable=True)

    drug = relationship("Drug", back_populates="details")


class InteractionPair(Base):
    """Cached verdict for an unordered drug pair, stored as (lower id, higher id)."""

    __tablename__ = "interaction_pairs"
    __table_args__ = (
        UniqueConstraint("drug1_id", "drug2_id", name="uq_interaction_pair"),
        CheckConstraint("drug1_id < drug2_id", name="ck_interaction_pair_order"),
    )

    id = Column(String, primary_key=True)
    drug1_id = Column(String, ForeignKey("drugs.id"), nullable=False)
    drug2_id = Column(String, ForeignKey("drugs.id"), nullable=False)
    summary = Column(Text, nullable=False, default="")
    details = Column(Text, nullable=False, default="")
    risk_rating = Column(String, nullable=False, default="Unknown")
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    updated_at = Column(DateTime, nullable=False, default=datetime.now, onupdate=datetime.now)


@lru_cache(maxsize=None)
def get_engine(db_path: Path):
    """
    Get the process-wide engine for a database file.

    One engine (and so one connection pool) per path, shared by every
    session opened against it.
    """
    return create_engine(f"sqlite:///{db_path}")


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(get_engine(db_path))


def get_session(db_path: Path):
    """
    Get database session.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLAlchemy session
    """
    Session = sessionmaker(bind=get_engine(db_path), expire_on_commit=False)
    return Session()
