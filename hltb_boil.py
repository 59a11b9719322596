"""HowLongToBeat pass: scrape a Steam library's completion times and recompute boil scores."""

import logging
import re
import sqlite3
import sys
from typing import Any, Dict, List, Tuple

from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

import config
from boil_rating import DEFAULT_QUALITY_WEIGHT, boil_rating, round_tenth
from db_prepare import ensure_schema, get_conn

logger = logging.getLogger(__name__)

HLTB_STEAM_URL = "https://howlongtobeat.com/steam?userName={steam_id}"

# HLTB answers 403 to the default headless user agent
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/111.0.0.0 Safari/537.36"

NAVIGATION_TIMEOUT_MS = 10 * 60 * 1000

STEAM_APP_PATTERN = re.compile(r"store\.steampowered\.com/app/(\d+)")
DURATION_PATTERN = re.compile(r"(?:(\d+)h)?\s*(?:(\d+)m)?")


class HLTBScrapeError(Exception):
    """The HLTB page for a profile could not be loaded."""

    def __init__(self, steam_id: str, message: str):
        super().__init__(f"{steam_id}: {message}")
        self.steam_id = steam_id


def fetch_hltb_page(steam_id: str) -> str:
    """Render the HLTB Steam-library page for steam_id and return its HTML.

    The table is filled client side, so a plain HTTP fetch only sees an empty shell.
    """
    url = HLTB_STEAM_URL.format(steam_id=steam_id)
    logger.info("Loading HLTB page: %s", url)
    try:
        with sync_playwright() as p:
            browser = p.chromium.launch(headless=config.HEADLESS)
            try:
                context = browser.new_context(
                    user_agent=USER_AGENT,
                    viewport={"width": 1080, "height": 1024},
                )
                page = context.new_page()
                page.set_default_navigation_timeout(NAVIGATION_TIMEOUT_MS)
                page.goto(url)
                page.wait_for_timeout(config.HLTB_WAIT_MS)
                return page.content()
            finally:
                browser.close()
    except PlaywrightError as e:
        raise HLTBScrapeError(steam_id, str(e)) from e


def parse_duration(text: str) -> float:
    """'12h 30m' -> 12.5 (one decimal). Either part may be missing; junk gives 0."""
    m = DURATION_PATTERN.match((text or "").strip())
    hours = int(m.group(1)) if m and m.group(1) else 0
    minutes = int(m.group(2)) if m and m.group(2) else 0
    return round_tenth(hours + minutes / 60)


def parse_hltb_times(html: str) -> List[Tuple[int, float]]:
    out: List[Tuple[int, float]] = []
    soup = BeautifulSoup(html, "html.parser")
    for row in soup.select("tr.spreadsheet"):
        link = row.select_one('a[href*="store.steampowered.com/app/"]')
        if not link:
            continue
        m = STEAM_APP_PATTERN.search(link.get("href") or "")
        if not m:
            continue
        cell = row.select_one("td.center")
        if not cell:
            continue
        hours = parse_duration(cell.get_text())
        if hours:
            out.append((int(m.group(1)), hours))
    return out


def update_game_scores(conn: sqlite3.Connection, times: List[Tuple[int, float]]) -> int:
    cur = conn.cursor()
    updated = 0
    for gid, hours in times:
        row = cur.execute("SELECT metacritic_score FROM games WHERE game_id = ?", (gid,)).fetchone()
        score = row["metacritic_score"] if row else None
        boil = boil_rating(hours, score, DEFAULT_QUALITY_WEIGHT) if score else None
        cur.execute(
            "UPDATE games SET hltb_score = ?, boil_score = ? WHERE game_id = ?",
            (hours, boil, gid)
        )
        updated += cur.rowcount
    conn.commit()
    return updated


def hltb_update(conn: sqlite3.Connection, steam_id: str) -> Dict[str, Any]:
    """Scrape one profile's library times and write hltb/boil scores for the games we know."""
    html = fetch_hltb_page(steam_id)
    times = parse_hltb_times(html)
    logger.info("Found %d timed games for %s", len(times), steam_id)

    try:
        updated = update_game_scores(conn, times)
    except sqlite3.Error as e:
        conn.rollback()
        logger.error("Error updating database: %s", e)
        return {"success": False, "message": "Games hltb not updated successfully", "updated": 0}

    logger.info("Database updated successfully (%d games)", updated)
    return {"success": True, "message": "Games hltb updated successfully", "updated": updated}


def get_hltb_and_boil(conn: sqlite3.Connection) -> List[Dict[str, Any]]:
    rows = conn.execute("SELECT steam_id FROM buffer_profiles").fetchall()
    results = []
    try:
        for row in rows:
            steam_id = row["steam_id"]
            try:
                results.append(hltb_update(conn, steam_id))
            except HLTBScrapeError as e:
                logger.error("HLTB scrape failed for %s: %s", steam_id, e)
                results.append({"success": False, "message": str(e), "updated": 0})
    finally:
        conn.execute("DELETE FROM buffer_profiles")
        conn.commit()
    return results


def main():
    conn = get_conn()
    ensure_schema(conn)
    try:
        # explicit ids: python hltb_boil.py 76561198000000000 someuser
        if len(sys.argv) > 1:
            for steam_id in sys.argv[1:]:
                res = hltb_update(conn, steam_id)
                print(f"[{steam_id}] {res['message']} ({res['updated']} games)")
        else:
            results = get_hltb_and_boil(conn)
            print(f"Processed {len(results)} buffered profiles")
    finally:
        conn.close()


if __name__ == "__main__":
    from logging_config import setup_logging
    setup_logging()
    main()
