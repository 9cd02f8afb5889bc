"""Shared test fixtures: temp-file databases and seeded random sources."""

from __future__ import annotations

import os
import random
import tempfile

import pytest
import pytest_asyncio

from cryptoagency.storage.database import AgenticDatabase
from cryptoagency.types import make_rng


@pytest.fixture
def rng() -> random.Random:
    return make_rng(1234)


@pytest.fixture
def db_path():
    with tempfile.TemporaryDirectory() as tmp:
        yield os.path.join(tmp, "agency.db")


@pytest_asyncio.fixture
async def db(db_path):
    database = AgenticDatabase(db_path)
    await database.initialize()
    yield database
    await database.close()
