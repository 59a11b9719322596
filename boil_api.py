# backend/boil_api.py
from __future__ import annotations

import logging
import sqlite3
import time
from typing import Any, Dict, List

import requests
from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse, PlainTextResponse, Response

import config
from db_prepare import ensure_schema, get_conn
from fetch_games import load_games
from hltb_boil import get_hltb_and_boil

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------- Utilities ----------

def _connect() -> sqlite3.Connection:
    conn = get_conn()
    ensure_schema(conn)
    return conn

def _column(conn: sqlite3.Connection, sql: str, params: tuple) -> list:
    return [r[0] for r in conn.execute(sql, params).fetchall()]

def wait_for_render(url: str, retries: int, delay: float) -> bool:
    """Poll url until it answers 200 'online'. Spins up the sleeping Render worker as a side effect."""
    for attempt in range(1, retries + 1):
        try:
            r = requests.get(url, timeout=config.HTTP_TIMEOUT)
            if r.status_code == 200 and r.text.strip() == "online":
                return True
            logger.info("Attempt %d: got status %d, retrying...", attempt, r.status_code)
        except requests.RequestException as e:
            logger.info("Attempt %d failed: %s", attempt, e)
        if attempt < retries:
            time.sleep(delay)
    return False


# ---------- Service Endpoints ----------

@router.get("/")
def hello() -> dict:
    return {"message": "hello"}

@router.get("/status", response_class=PlainTextResponse)
def status() -> str:
    return "online"

@router.get("/renderStatus", response_class=PlainTextResponse)
def render_status():
    if wait_for_render(config.RENDER_STATUS_URL, config.RENDER_RETRIES, config.RENDER_DELAY):
        return PlainTextResponse("Render app is online", status_code=200)
    return PlainTextResponse("Render app did not respond in time", status_code=504)

@router.get("/cronjob")
def cronjob():
    """Drain both buffers: Steam metadata first, then HLTB times + boil scores."""
    conn = _connect()
    try:
        load_games(conn)
        get_hltb_and_boil(conn)
    except Exception:
        logger.exception("Cron run failed")
        return JSONResponse({"error": "Error fetching HLTB scores"}, status_code=500)
    finally:
        conn.close()
    return Response(status_code=201)


# ---------- Public Endpoints ----------

@router.get("/profiles")
@router.get("/supabase")
def get_profiles() -> List[Dict[str, Any]]:
    conn = _connect()
    try:
        rows = conn.execute("SELECT * FROM profiles").fetchall()
    finally:
        conn.close()
    return [dict(r) for r in rows]

@router.get("/games")
def get_games(limit: int = Query(60, ge=0), offset: int = Query(0, ge=0)) -> List[Dict[str, Any]]:
    """
    Page of games, best boil score first.
    - Never 404s; returns [] when there are no rows.
    - Games without a boil score sort last.
    """
    conn = _connect()
    try:
        rows = conn.execute(
            """
            SELECT game_id, name, header_image, platform, metacritic_score,
                   released, hltb_score, boil_score
            FROM games
            ORDER BY boil_score IS NULL, boil_score DESC, name COLLATE NOCASE ASC
            LIMIT ? OFFSET ?
            """,
            (limit, offset),
        ).fetchall()
    finally:
        conn.close()
    return [dict(r) for r in rows]

@router.get("/games/{game_id}")
def get_game(game_id: int) -> Dict[str, Any]:
    """
    Detail for a single game: the games row plus developers, publishers,
    genre/category ids, DLC ids and the Steam review summary.
    """
    conn = _connect()
    try:
        row = conn.execute("SELECT * FROM games WHERE game_id = ? LIMIT 1", (game_id,)).fetchone()
        if not row:
            raise HTTPException(status_code=404, detail="Game not found")

        out = dict(row)
        out["developers"] = _column(conn, "SELECT developer FROM game_developers WHERE game_id = ? ORDER BY developer", (game_id,))
        out["publishers"] = _column(conn, "SELECT publisher FROM game_publishers WHERE game_id = ? ORDER BY publisher", (game_id,))
        out["genres"] = _column(conn, "SELECT genre FROM game_genres WHERE game_id = ? ORDER BY genre", (game_id,))
        out["categories"] = _column(conn, "SELECT category FROM game_categories WHERE game_id = ? ORDER BY category", (game_id,))
        out["dlcs"] = _column(conn, "SELECT dlc_id FROM dlcs WHERE main_game = ? ORDER BY dlc_id", (game_id,))

        rec = conn.execute(
            "SELECT total, positive, negative, description FROM game_recommendations WHERE game_id = ?",
            (game_id,),
        ).fetchone()
        out["recommendations"] = dict(rec) if rec else None
    finally:
        conn.close()
    return out
