"""
Database fixtures for the SQL repository tests.

Each test gets a fresh in-memory SQLite database with every planning table
created.  The module-level engine is reset afterwards so no state leaks
into the in-memory suites.
"""

import pytest

from mfg_kernel.db import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)


@pytest.fixture
def engine():
    engine = init_engine_from_url("sqlite://")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


@pytest.fixture
def session(engine):
    session = get_session()
    yield session
    session.rollback()
    session.close()
