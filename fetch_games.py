# Steam loader: drains buffer_games, enriches each app id from the Steam store
# API (details + review summary) and writes the result into games & link tables.
#
# Notes:
#  - HTTP calls fan out on a thread pool; every DB write stays on the caller's thread.
#  - A 429 from Steam keeps the id in the buffer for the next run; any other
#    failure drops it.

import argparse
import logging
import sqlite3
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

import config
from db_prepare import ensure_schema, get_conn

logger = logging.getLogger(__name__)

STEAM_STORE = "https://store.steampowered.com"
APPDETAILS_URL = f"{STEAM_STORE}/api/appdetails"
APPREVIEWS_URL = STEAM_STORE + "/appreviews/{appid}"

RELEASE_DATE_FORMATS = (
    "%d %b %Y",   # 21 Aug 2012
    "%b %d %Y",   # Aug 21 2012
    "%d %B %Y",
    "%B %d %Y",
    "%Y %m %d",   # 2012-08-21
    "%b %Y",
    "%B %Y",
)


class SteamAPIError(Exception):
    """HTTP or transport failure talking to the Steam store."""

    def __init__(self, appid: int, status_code: Optional[int], message: str):
        super().__init__(message)
        self.appid = appid
        self.status_code = status_code

    @property
    def should_retry(self) -> bool:
        return self.status_code == 429


# --- Steam helpers ---

def _steam_get(appid: int, url: str, params: Dict[str, Any], max_retries: int = 3) -> Any:
    for attempt in range(1, max_retries + 1):
        try:
            r = requests.get(url, params=params, timeout=config.HTTP_TIMEOUT)
        except requests.RequestException as e:
            raise SteamAPIError(appid, None, str(e)) from e
        # politeness pause; Steam rate limits bursts hard
        if config.STEAM_DELAY:
            time.sleep(config.STEAM_DELAY)
        if r.status_code == 200:
            try:
                return r.json()
            except ValueError as e:
                raise SteamAPIError(appid, r.status_code, f"Invalid JSON from {url}") from e
        if r.status_code in (500, 502, 503, 504) and attempt < max_retries:
            time.sleep(2 * attempt)
            continue
        raise SteamAPIError(appid, r.status_code, f"HTTP {r.status_code} from {url}")


def parse_release_date(date_string: Optional[str]) -> Optional[str]:
    """Steam release dates come as free text ("21 Aug, 2012", "Aug 21, 2012"...); return YYYY-MM-DD."""
    if not date_string:
        return None
    cleaned = " ".join(date_string.replace(",", " ").replace("-", " ").split())
    for fmt in RELEASE_DATE_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).date().isoformat()
        except ValueError:
            continue
    logger.warning("Failed to parse release date: %r", date_string)
    return None


def platform_bitmask(platforms: Optional[Dict[str, Any]]) -> int:
    if not platforms:
        return 0
    value = 0
    value += 4 if platforms.get("windows") else 0
    value += 2 if platforms.get("mac") else 0
    value += 1 if platforms.get("linux") else 0
    return value


def process_game_data(appid: int, game_data: Dict[str, Any]) -> Dict[str, Any]:
    release = game_data.get("release_date") or {}
    released = None
    if release.get("date") and not release.get("coming_soon"):
        released = parse_release_date(release["date"])

    return {
        "appid": appid,
        "name": game_data.get("name") or "Unknown",
        "header_image": game_data.get("header_image") or None,
        "metacritic_score": (game_data.get("metacritic") or {}).get("score") or None,
        "platforms": platform_bitmask(game_data.get("platforms")),
        "categories": [c["id"] for c in (game_data.get("categories") or []) if c.get("id") is not None],
        "genres": [int(g["id"]) for g in (game_data.get("genres") or []) if g.get("id") is not None],
        "developers": [d.strip() for d in (game_data.get("developers") or []) if d and d.strip()],
        "publishers": [p.strip() for p in (game_data.get("publishers") or []) if p and p.strip()],
        "short_description": game_data.get("short_description") or None,
        "release_date": released,
        "dlcs": [int(d) for d in (game_data.get("dlc") or [])],
    }


def fetch_reviews(appid: int) -> Optional[Dict[str, Any]]:
    """Review summary for appid, None when Steam has none, {"error": ...} when the call failed."""
    try:
        j = _steam_get(
            appid,
            APPREVIEWS_URL.format(appid=appid),
            {"json": 1, "language": "english", "filter": "all", "purchase_type": "all"},
        )
    except SteamAPIError as e:
        logger.error("Failed to fetch reviews for appid %s: %s", appid, e)
        return {"error": str(e)}

    if not j or not j.get("success") or j["success"] <= 0:
        return None
    summary = j.get("query_summary") or {}
    return {
        "review_score_desc": summary.get("review_score_desc"),
        "total_positive": summary.get("total_positive"),
        "total_negative": summary.get("total_negative"),
        "total_reviews": summary.get("total_reviews"),
    }


def _failure(appid: int, error: str, status_code: Optional[int] = None, should_retry: bool = False) -> Dict[str, Any]:
    return {
        "appid": appid,
        "name": "Unknown",
        "error": error,
        "status_code": status_code,
        "should_retry": should_retry,
    }


def fetch_app(appid: int) -> Dict[str, Any]:
    """Fetch and normalize one app. Never raises; failures come back with an "error" key."""
    logger.info("Fetching data for appid: %s", appid)
    try:
        payload = _steam_get(appid, APPDETAILS_URL, {"appids": appid, "l": "english"})

        entry = payload.get(str(appid)) if isinstance(payload, dict) else None
        if not entry:
            logger.error("Invalid response structure for appid %s", appid)
            return _failure(appid, "Invalid API response structure", 200)
        if not entry.get("success"):
            logger.error("API reported failure for appid %s: %s", appid, entry)
            return _failure(appid, "Steam API reported failure", 200)
        game_data = entry.get("data")
        if not game_data:
            logger.error("No game data in response for appid %s", appid)
            return _failure(appid, "No game data in API response", 200)

        game = process_game_data(appid, game_data)
        game["review_data"] = fetch_reviews(appid)
        game["status"] = "success"
        return game
    except SteamAPIError as e:
        logger.error("Error processing appid %s: %s", appid, e)
        return _failure(appid, str(e), e.status_code, e.should_retry)
    except Exception as e:
        logger.exception("Unexpected error processing appid %s", appid)
        return _failure(appid, str(e))


# --- DB ops ---

def insert_game_data(conn: sqlite3.Connection, game: Dict[str, Any]):
    gid = game["appid"]
    cur = conn.cursor()

    # insert core, then refresh Steam-owned columns; hltb/boil stay untouched
    cur.execute("INSERT OR IGNORE INTO games (game_id) VALUES (?)", (gid,))
    cur.execute(
        """
        UPDATE games
           SET name             = ?,
               header_image     = ?,
               platform         = ?,
               metacritic_score = ?,
               released         = ?,
               description      = ?
         WHERE game_id = ?
        """,
        (game["name"], game["header_image"], game["platforms"], game["metacritic_score"],
         game["release_date"], game["short_description"], gid)
    )

    if game["developers"]:
        cur.executemany("INSERT OR IGNORE INTO developers (developer) VALUES (?)",
                        [(d,) for d in game["developers"]])
        cur.executemany("INSERT OR IGNORE INTO game_developers (game_id, developer) VALUES (?, ?)",
                        [(gid, d) for d in game["developers"]])
    if game["publishers"]:
        cur.executemany("INSERT OR IGNORE INTO publishers (publisher) VALUES (?)",
                        [(p,) for p in game["publishers"]])
        cur.executemany("INSERT OR IGNORE INTO game_publishers (game_id, publisher) VALUES (?, ?)",
                        [(gid, p) for p in game["publishers"]])
    if game["categories"]:
        cur.executemany("INSERT OR IGNORE INTO game_categories (game_id, category) VALUES (?, ?)",
                        [(gid, c) for c in game["categories"]])
    if game["genres"]:
        cur.executemany("INSERT OR IGNORE INTO game_genres (game_id, genre) VALUES (?, ?)",
                        [(gid, g) for g in game["genres"]])
    if game["dlcs"]:
        cur.executemany("INSERT OR IGNORE INTO dlcs (dlc_id, main_game) VALUES (?, ?)",
                        [(d, gid) for d in game["dlcs"]])
    logger.info("Inserted game data for %s", game["name"])


def upsert_recommendations(conn: sqlite3.Connection, gid: int, review: Dict[str, Any]):
    conn.execute(
        """
        INSERT INTO game_recommendations (game_id, total, positive, negative, description)
        VALUES (?, ?, ?, ?, ?)
        ON CONFLICT (game_id) DO UPDATE SET
            total       = excluded.total,
            positive    = excluded.positive,
            negative    = excluded.negative,
            description = excluded.description
        """,
        (gid, review["total_reviews"], review["total_positive"],
         review["total_negative"], review["review_score_desc"])
    )


def delete_from_buffer(conn: sqlite3.Connection, raw_ids: List[str]):
    conn.executemany("DELETE FROM buffer_games WHERE game_id = ?", [(r,) for r in raw_ids])


def store_result(conn: sqlite3.Connection, raw_ids: List[str], result: Dict[str, Any]) -> Dict[str, Any]:
    """Write one fetch result and settle every buffer row naming that app. Returns the (possibly updated) result."""
    if result.get("error"):
        if not result.get("should_retry"):
            delete_from_buffer(conn, raw_ids)
        conn.commit()
        return result

    try:
        insert_game_data(conn, result)
        review = result.get("review_data")
        if review and "error" not in review:
            upsert_recommendations(conn, result["appid"], review)
        delete_from_buffer(conn, raw_ids)
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        logger.error("Error inserting game data for %s: %s", result.get("name"), e)
        delete_from_buffer(conn, raw_ids)
        conn.commit()
        return _failure(result["appid"], str(e))
    return result


# --- Controller ---

def _empty_summary() -> Dict[str, Any]:
    return {"total": 0, "success": 0, "failed": 0, "successful": [], "failed_items": []}


def load_games(conn: sqlite3.Connection, limit: Optional[int] = None) -> Dict[str, Any]:
    if limit is None:
        limit = config.BUFFER_LIMIT
    rows = conn.execute("SELECT game_id FROM buffer_games LIMIT ?", (limit,)).fetchall()
    if not rows:
        logger.info("No games found in buffer_games")
        return _empty_summary()

    # "10", "010" and " 10" are distinct buffer keys for the same app
    raw_by_appid: Dict[int, List[str]] = {}
    invalid: List[str] = []
    for row in rows:
        raw = row["game_id"]
        try:
            raw_by_appid.setdefault(int(str(raw).strip()), []).append(raw)
        except ValueError:
            logger.warning("Invalid game_id format: %r", raw)
            invalid.append(raw)

    delete_from_buffer(conn, invalid)
    conn.commit()

    if not raw_by_appid:
        logger.info("No valid game_ids found in buffer_games (total=%d, invalid=%d)", len(rows), len(invalid))
        return _empty_summary()

    app_ids = list(raw_by_appid)
    logger.info("Attempting to fetch data for %d games from Steam API", len(app_ids))

    workers = max(1, min(config.STEAM_WORKERS, len(app_ids)))
    with ThreadPoolExecutor(max_workers=workers) as executor:
        fetched = list(executor.map(fetch_app, app_ids))

    results = [store_result(conn, raw_by_appid[r["appid"]], r) for r in fetched]

    successful = [r for r in results if not r.get("error")]
    failed = [r for r in results if r.get("error")]
    logger.info("Processed %d games: %d success, %d failed", len(results), len(successful), len(failed))
    return {
        "total": len(results),
        "success": len(successful),
        "failed": len(failed),
        "successful": successful,
        "failed_items": failed,
    }


def main():
    ap = argparse.ArgumentParser(description="Load buffered Steam app ids into the games table.")
    ap.add_argument("--limit", type=int, default=config.BUFFER_LIMIT)
    args = ap.parse_args()

    conn = get_conn()
    ensure_schema(conn)
    try:
        summary = load_games(conn, args.limit)
    finally:
        conn.close()
    print(f"Loaded {summary['success']}/{summary['total']} games ({summary['failed']} failed)")


if __name__ == "__main__":
    from logging_config import setup_logging
    setup_logging()
    main()
