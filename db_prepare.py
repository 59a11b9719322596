import logging
import sqlite3
from typing import Optional

import config

logger = logging.getLogger(__name__)


def get_conn(db_path: Optional[str] = None) -> sqlite3.Connection:
    conn = sqlite3.connect(db_path or config.DB_PATH)
    conn.row_factory = sqlite3.Row
    return conn


def ensure_schema(conn: sqlite3.Connection):
    cur = conn.cursor()

    # queues filled by the frontend
    cur.executescript("""
    CREATE TABLE IF NOT EXISTS buffer_games (
        game_id TEXT PRIMARY KEY
    );
    CREATE TABLE IF NOT EXISTS buffer_profiles (
        steam_id TEXT PRIMARY KEY
    );
    CREATE TABLE IF NOT EXISTS profiles (
        steam_id TEXT PRIMARY KEY,
        name TEXT,
        avatar TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    );
    """)

    cur.executescript("""
    CREATE TABLE IF NOT EXISTS games (
        game_id INTEGER PRIMARY KEY,
        name TEXT,
        header_image TEXT,
        platform INTEGER,              -- bitmask: windows=4, mac=2, linux=1
        metacritic_score INTEGER,
        released TEXT,                 -- YYYY-MM-DD
        description TEXT,
        hltb_score REAL,               -- hours, one decimal
        boil_score REAL
    );
    CREATE TABLE IF NOT EXISTS developers (
        developer TEXT PRIMARY KEY
    );
    CREATE TABLE IF NOT EXISTS game_developers (
        game_id INTEGER NOT NULL,
        developer TEXT NOT NULL,
        PRIMARY KEY (game_id, developer)
    );
    CREATE TABLE IF NOT EXISTS publishers (
        publisher TEXT PRIMARY KEY
    );
    CREATE TABLE IF NOT EXISTS game_publishers (
        game_id INTEGER NOT NULL,
        publisher TEXT NOT NULL,
        PRIMARY KEY (game_id, publisher)
    );
    CREATE TABLE IF NOT EXISTS game_categories (
        game_id INTEGER NOT NULL,
        category INTEGER NOT NULL,
        PRIMARY KEY (game_id, category)
    );
    CREATE TABLE IF NOT EXISTS game_genres (
        game_id INTEGER NOT NULL,
        genre INTEGER NOT NULL,
        PRIMARY KEY (game_id, genre)
    );
    CREATE TABLE IF NOT EXISTS dlcs (
        dlc_id INTEGER NOT NULL,
        main_game INTEGER NOT NULL,
        PRIMARY KEY (dlc_id, main_game)
    );
    CREATE TABLE IF NOT EXISTS game_recommendations (
        game_id INTEGER PRIMARY KEY,
        total INTEGER,
        positive INTEGER,
        negative INTEGER,
        description TEXT
    );
    """)

    cur.executescript("""
    CREATE INDEX IF NOT EXISTS idx_games_boil ON games(boil_score);
    CREATE INDEX IF NOT EXISTS idx_dev_gid ON game_developers(game_id);
    CREATE INDEX IF NOT EXISTS idx_pub_gid ON game_publishers(game_id);
    CREATE INDEX IF NOT EXISTS idx_cat_gid ON game_categories(game_id);
    CREATE INDEX IF NOT EXISTS idx_genre_gid ON game_genres(game_id);
    CREATE INDEX IF NOT EXISTS idx_dlcs_main ON dlcs(main_game);
    """)
    conn.commit()


def main():
    conn = get_conn()
    ensure_schema(conn)
    conn.close()
    logger.info("DB prepared: %s", config.DB_PATH)


if __name__ == "__main__":
    from logging_config import setup_logging
    setup_logging()
    main()
