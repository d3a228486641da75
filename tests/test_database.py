"""
Unit tests for the shared engine and session helpers.
"""
import pytest
from sqlalchemy import inspect

from formd_scout.core.database import (
    create_tables,
    get_db,
    get_engine,
    get_session_factory,
    reset_engine,
)


@pytest.fixture
def sqlite_url(clean_env, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    reset_engine()
    yield
    reset_engine()


@pytest.mark.unit
class TestDatabase:

    def test_engine_is_singleton(self, sqlite_url):
        engine = get_engine()

        assert get_engine() is engine
        assert engine.dialect.name == "sqlite"

    def test_reset_engine_builds_new_engine(self, sqlite_url):
        engine = get_engine()
        factory = get_session_factory()

        reset_engine()

        assert get_engine() is not engine
        assert get_session_factory() is not factory

    def test_create_tables(self, sqlite_url):
        create_tables()

        assert "form_d_filings" in inspect(get_engine()).get_table_names()

    def test_get_db_closes_session(self, sqlite_url):
        gen = get_db()
        db = next(gen)
        assert db.get_bind() is get_engine()

        with pytest.raises(StopIteration):
            next(gen)
