"""Tests for the Steam loader."""

from unittest import mock

import pytest
import requests

from conftest import add_game
from fetch_games import (
    SteamAPIError,
    fetch_app,
    fetch_reviews,
    insert_game_data,
    load_games,
    parse_release_date,
    platform_bitmask,
    process_game_data,
)

TF2_DETAILS = {
    "name": "Team Fortress 2",
    "header_image": "https://cdn.example/440/header.jpg",
    "short_description": "Nine distinct classes.",
    "metacritic": {"score": 92},
    "platforms": {"windows": True, "mac": False, "linux": True},
    "categories": [{"id": 1, "description": "Multi-player"}, {"id": 22}],
    "genres": [{"id": "1", "description": "Action"}, {"id": "37"}],
    "developers": ["Valve"],
    "publishers": ["Valve", " "],
    "release_date": {"coming_soon": False, "date": "10 Oct, 2007"},
    "dlc": ["629330", 629331],
}

TF2_REVIEWS = {
    "success": 1,
    "query_summary": {
        "review_score_desc": "Very Positive",
        "total_positive": 900,
        "total_negative": 100,
        "total_reviews": 1000,
    },
}


def _response(status_code=200, payload=None):
    r = mock.Mock()
    r.status_code = status_code
    r.json.return_value = payload
    return r


def _fake_steam(details=None, reviews=None):
    """requests.get stand-in keyed on app id; entries are payloads or status codes."""
    details = details or {}
    reviews = reviews or {}

    def fake_get(url, params=None, timeout=None):
        if "appdetails" in url:
            appid = params["appids"]
            value = details.get(appid, 404)
        else:
            appid = int(url.rstrip("/").rsplit("/", 1)[-1])
            value = reviews.get(appid, {"success": 0})
        if isinstance(value, int):
            return _response(value)
        return _response(200, value)

    return fake_get


@pytest.fixture
def no_sleep():
    with mock.patch("fetch_games.time.sleep") as sleeper:
        yield sleeper


@pytest.mark.parametrize("text, expected", [
    ("10 Oct, 2007", "2007-10-10"),
    ("Oct 10, 2007", "2007-10-10"),
    ("10 Oct 2007", "2007-10-10"),
    ("2007-10-10", "2007-10-10"),
    ("October 2007", "2007-10-01"),
    ("Coming soon", None),
    ("", None),
    (None, None),
])
def test_parse_release_date(text, expected):
    assert parse_release_date(text) == expected


def test_platform_bitmask():
    assert platform_bitmask({"windows": True, "mac": True, "linux": True}) == 7
    assert platform_bitmask({"windows": True}) == 4
    assert platform_bitmask({"mac": True, "linux": False}) == 2
    assert platform_bitmask(None) == 0


def test_process_game_data():
    game = process_game_data(440, TF2_DETAILS)

    assert game["appid"] == 440
    assert game["name"] == "Team Fortress 2"
    assert game["metacritic_score"] == 92
    assert game["platforms"] == 5
    assert game["categories"] == [1, 22]
    assert game["genres"] == [1, 37]
    assert game["developers"] == ["Valve"]
    assert game["publishers"] == ["Valve"]
    assert game["release_date"] == "2007-10-10"
    assert game["dlcs"] == [629330, 629331]


def test_process_game_data_minimal():
    game = process_game_data(1, {"release_date": {"coming_soon": True, "date": "Q3 2030"}})

    assert game["name"] == "Unknown"
    assert game["metacritic_score"] is None
    assert game["release_date"] is None
    assert game["platforms"] == 0
    assert game["developers"] == [] and game["dlcs"] == []


def test_fetch_app_success(no_sleep):
    fake = _fake_steam(
        details={440: {"440": {"success": True, "data": TF2_DETAILS}}},
        reviews={440: TF2_REVIEWS},
    )
    with mock.patch("fetch_games.requests.get", side_effect=fake):
        result = fetch_app(440)

    assert result["status"] == "success"
    assert "error" not in result
    assert result["review_data"]["total_reviews"] == 1000


@pytest.mark.parametrize("payload, error", [
    ({}, "Invalid API response structure"),
    (None, "Invalid API response structure"),
    ({"620": {"success": False}}, "Steam API reported failure"),
    ({"620": {"success": True}}, "No game data in API response"),
])
def test_fetch_app_bad_payload(no_sleep, payload, error):
    with mock.patch("fetch_games.requests.get", return_value=_response(200, payload)):
        result = fetch_app(620)

    assert result["error"] == error
    assert result["should_retry"] is False


def test_fetch_app_rate_limited(no_sleep):
    with mock.patch("fetch_games.requests.get", return_value=_response(429)) as get:
        result = fetch_app(730)

    assert result["status_code"] == 429
    assert result["should_retry"] is True
    # 429 is not retried inside the run
    assert get.call_count == 1


def test_fetch_app_network_error(no_sleep):
    with mock.patch("fetch_games.requests.get", side_effect=requests.ConnectionError("boom")):
        result = fetch_app(730)

    assert "boom" in result["error"]
    assert result["status_code"] is None
    assert result["should_retry"] is False


def test_server_errors_are_retried(no_sleep):
    responses = [_response(503), _response(200, TF2_REVIEWS)]
    with mock.patch("fetch_games.requests.get", side_effect=responses) as get:
        review = fetch_reviews(440)

    assert get.call_count == 2
    assert review["review_score_desc"] == "Very Positive"


def test_fetch_reviews_failure_is_recorded(no_sleep):
    with mock.patch("fetch_games.requests.get", return_value=_response(403)):
        review = fetch_reviews(440)

    assert "HTTP 403" in review["error"]


def test_fetch_reviews_none_when_unsuccessful(no_sleep):
    with mock.patch("fetch_games.requests.get", return_value=_response(200, {"success": 0})):
        assert fetch_reviews(440) is None


def test_steam_api_error_retry_flag():
    assert SteamAPIError(1, 429, "slow down").should_retry
    assert not SteamAPIError(1, 500, "oops").should_retry
    assert not SteamAPIError(1, None, "offline").should_retry


def test_insert_game_data_keeps_hltb(conn):
    add_game(conn, 440, "old name", metacritic_score=80, hltb_score=12.5, boil_score=70.1)

    insert_game_data(conn, process_game_data(440, TF2_DETAILS))
    insert_game_data(conn, process_game_data(440, TF2_DETAILS))
    conn.commit()

    row = conn.execute("SELECT * FROM games WHERE game_id = 440").fetchone()
    assert row["name"] == "Team Fortress 2"
    assert row["metacritic_score"] == 92
    assert row["hltb_score"] == 12.5
    assert row["boil_score"] == 70.1
    devs = conn.execute("SELECT developer FROM game_developers WHERE game_id = 440").fetchall()
    assert [d[0] for d in devs] == ["Valve"]


def test_load_games_empty_buffer(conn):
    summary = load_games(conn)
    assert summary["total"] == 0
    assert summary["successful"] == [] and summary["failed_items"] == []


def test_load_games_drops_invalid_ids(conn):
    conn.execute("INSERT INTO buffer_games (game_id) VALUES ('not-a-number')")
    conn.commit()

    with mock.patch("fetch_games.requests.get") as get:
        summary = load_games(conn)

    get.assert_not_called()
    assert summary["total"] == 0
    assert conn.execute("SELECT COUNT(*) FROM buffer_games").fetchone()[0] == 0


def test_load_games(conn, no_sleep):
    conn.executemany(
        "INSERT INTO buffer_games (game_id) VALUES (?)",
        [("440",), ("abc",), ("620",), ("730",)],
    )
    conn.commit()
    fake = _fake_steam(
        details={
            440: {"440": {"success": True, "data": TF2_DETAILS}},
            620: {"620": {"success": False}},
            730: 429,
        },
        reviews={440: TF2_REVIEWS},
    )

    with mock.patch("fetch_games.requests.get", side_effect=fake):
        summary = load_games(conn)

    assert summary["total"] == 3
    assert summary["success"] == 1
    assert summary["failed"] == 2
    retry = [f for f in summary["failed_items"] if f["should_retry"]]
    assert [f["appid"] for f in retry] == [730]

    # only the rate-limited id stays queued
    buffer = [r[0] for r in conn.execute("SELECT game_id FROM buffer_games")]
    assert buffer == ["730"]

    game = conn.execute("SELECT * FROM games WHERE game_id = 440").fetchone()
    assert game["name"] == "Team Fortress 2"
    assert game["platform"] == 5
    assert game["released"] == "2007-10-10"
    assert conn.execute("SELECT COUNT(*) FROM games").fetchone()[0] == 1

    rec = conn.execute("SELECT * FROM game_recommendations WHERE game_id = 440").fetchone()
    assert (rec["total"], rec["positive"], rec["negative"]) == (1000, 900, 100)
    assert rec["description"] == "Very Positive"

    genres = {r[0] for r in conn.execute("SELECT genre FROM game_genres WHERE game_id = 440")}
    assert genres == {1, 37}
    dlcs = {r[0] for r in conn.execute("SELECT dlc_id FROM dlcs WHERE main_game = 440")}
    assert dlcs == {629330, 629331}


def test_load_games_respects_limit(conn, no_sleep):
    conn.executemany("INSERT INTO buffer_games (game_id) VALUES (?)", [("1",), ("2",), ("3",)])
    conn.commit()

    with mock.patch("fetch_games.requests.get", return_value=_response(200, {})):
        summary = load_games(conn, limit=2)

    assert summary["total"] == 2
    assert conn.execute("SELECT COUNT(*) FROM buffer_games").fetchone()[0] == 1


def test_load_games_settles_every_spelling_of_an_id(conn, no_sleep):
    """Buffer keys that parse to the same app id are fetched once and all removed."""
    conn.executemany("INSERT INTO buffer_games (game_id) VALUES (?)", [("10",), ("010",), (" 10",)])
    conn.commit()

    with mock.patch("fetch_games.requests.get", return_value=_response(200, {})) as get:
        summary = load_games(conn)

    assert get.call_count == 1
    assert summary["total"] == 1
    assert conn.execute("SELECT COUNT(*) FROM buffer_games").fetchone()[0] == 0


def test_load_games_keeps_every_spelling_when_rate_limited(conn, no_sleep):
    conn.executemany("INSERT INTO buffer_games (game_id) VALUES (?)", [("10",), ("010",)])
    conn.commit()

    with mock.patch("fetch_games.requests.get", return_value=_response(429)):
        load_games(conn)

    buffer = sorted(r[0] for r in conn.execute("SELECT game_id FROM buffer_games"))
    assert buffer == ["010", "10"]


def test_load_games_zero_limit_takes_nothing(conn):
    conn.execute("INSERT INTO buffer_games (game_id) VALUES ('440')")
    conn.commit()

    with mock.patch("fetch_games.requests.get") as get:
        summary = load_games(conn, limit=0)

    get.assert_not_called()
    assert summary["total"] == 0
    assert conn.execute("SELECT COUNT(*) FROM buffer_games").fetchone()[0] == 1
