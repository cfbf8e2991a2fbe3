from datetime import datetime, timezone

import pytest

from zam.models import Alias
from zam.storage import AliasStorage

CREATED = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)
UPDATED = datetime(2024, 2, 1, 8, 0, 5, 250000, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("ZAM_DATABASE_FILE", raising=False)
    return home


@pytest.fixture
def alias() -> Alias:
    return Alias(
        alias="ll",
        command="ls -la",
        description="List files",
        shell="zsh",
        date_created=CREATED,
        date_updated=UPDATED,
    )


@pytest.fixture
def alias_min() -> Alias:
    return Alias(
        alias="gs",
        command="git status",
        date_created=CREATED,
        date_updated=CREATED,
    )


@pytest.fixture
def storage(tmp_path):
    store = AliasStorage(tmp_path / "zam.db")
    yield store
    store.close()


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "cli" / "zam.db"
