# Shared pytest fixtures
from __future__ import annotations
import tempfile
from pathlib import Path
import pytest

from roster_import.logging.init import reset_logging
from roster_import.store.gateway import BatchStoreGateway
from roster_import.store.memory import InMemoryStore

@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "BATCH_SIZE", "BATCH_GET_LIMIT", "MAX_RECORDS", "MAX_WORKERS", "WRITE_MAX_ATTEMPTS",
        "RETRY_BASE_DELAY", "STUDENTS_TABLE", "TEACHERS_TABLE", "GAMES_TABLE",
        "DYNAMODB_ENDPOINT",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    reset_logging()


@pytest.fixture()
def sample_config_yaml() -> str:
    return """batch_size: 25
batch_get_limit: 100
max_records: 4000
max_workers: 2
write_max_attempts: 3
retry_base_delay: 0
tables:
  students: test-students
  teachers: test-teachers
  games: test-games
aws:
  region: ap-east-1
  endpoint_url: http://localhost:8000
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "upload.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture()
def sleeps() -> list[float]:
    return []


@pytest.fixture()
def gateway(store: InMemoryStore, sleeps: list[float]) -> BatchStoreGateway:
    # sequential + no real sleeping so call order is deterministic
    return BatchStoreGateway(store, max_workers=1, sleep=sleeps.append)


