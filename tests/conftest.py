"""Common test fixtures."""

import pytest

import config
from db_prepare import ensure_schema, get_conn


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    """Point the app at a throwaway SQLite file."""
    path = str(tmp_path / "boilerroom_test.db")
    monkeypatch.setattr(config, "DB_PATH", path)
    return path


@pytest.fixture
def conn(db_path):
    """Connection to a freshly prepared database."""
    c = get_conn()
    ensure_schema(c)
    yield c
    c.close()


@pytest.fixture(autouse=True)
def no_steam_delay(monkeypatch):
    """Tests never wait on the Steam politeness pause."""
    monkeypatch.setattr(config, "STEAM_DELAY", 0)


def add_game(conn, game_id, name, metacritic_score=None, hltb_score=None, boil_score=None):
    conn.execute(
        """INSERT INTO games (game_id, name, metacritic_score, hltb_score, boil_score)
           VALUES (?, ?, ?, ?, ?)""",
        (game_id, name, metacritic_score, hltb_score, boil_score),
    )
    conn.commit()
