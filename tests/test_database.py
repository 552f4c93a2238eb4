"""
Transactional scope: commit on success, rollback on error, store failures
surfaced as PersistenceError.
"""
import pytest

from database import build_engine, check_connection, session_scope
from exceptions import NotFoundError, PersistenceError
from models import Company, CompanyType


def count_companies(session_factory):
    with session_scope(session_factory) as db:
        return db.query(Company).count()


def test_check_connection(engine, tmp_path):
    assert check_connection(engine)
    assert not check_connection(build_engine(f"sqlite:///{tmp_path / 'missing' / 'x.db'}"))


def test_commit_on_success(session_factory, seed):
    before = count_companies(session_factory)
    with session_scope(session_factory) as db:
        db.add(Company(name="Nuevo Cliente", company_type=CompanyType.CLIENT, tax_id="800999999"))
    assert count_companies(session_factory) == before + 1


def test_business_error_rolls_back_and_propagates(session_factory, seed):
    before = count_companies(session_factory)
    with pytest.raises(NotFoundError):
        with session_scope(session_factory) as db:
            db.add(Company(name="Temporal", company_type=CompanyType.CLIENT))
            db.flush()
            raise NotFoundError("Error: rental 1 not found")
    assert count_companies(session_factory) == before


def test_store_failure_becomes_persistence_error(session_factory, seed):
    before = count_companies(session_factory)
    with pytest.raises(PersistenceError):
        with session_scope(session_factory) as db:
            # duplicate tax id
            db.add(Company(name="Copia", company_type=CompanyType.CLIENT, tax_id="800200100"))
    assert count_companies(session_factory) == before
