"""Shared fixtures: every test gets its own copy of the seed data."""

import shutil
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from database import JsonDatabase
from main import app, get_db

SEED_DIR = Path(__file__).resolve().parent.parent / "data"


@pytest.fixture
def data_dir(tmp_path):
    target = tmp_path / "data"
    shutil.copytree(SEED_DIR, target)
    return target


@pytest.fixture
def database(data_dir):
    return JsonDatabase(data_dir)


@pytest.fixture
def client(database):
    app.dependency_overrides[get_db] = lambda: database
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
