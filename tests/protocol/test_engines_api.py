from __future__ import annotations

from fastapi.testclient import TestClient

from src.protocol.http.app import create_app


START_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"


def _client() -> TestClient:
    return TestClient(create_app())


def _engine(client: TestClient, **options) -> str:
    r = client.post("/api/engines", json={"options": options})
    assert r.status_code == 200
    engine_id = r.json()["engine_id"]
    assert isinstance(engine_id, str) and engine_id
    return engine_id


def test_parse_position() -> None:
    r = _client().post("/api/positions/parse", json={"fen": START_FEN})
    assert r.status_code == 200
    body = r.json()
    assert body["fen"] == START_FEN
    assert body["epd"] == START_FEN.rsplit(" ", 2)[0]
    assert body["polyglot_hash"] == "463b96181691fc9c"
    assert len(body["weak_hash"]) == 16


def test_replay_rewrites_to_san() -> None:
    r = _client().post(
        "/api/games/replay",
        json={"moves": ["e2e4", "e7e5", "d1h5", "b8c6", "f1c4", "g8f6", "h5f7"], "options": {"store_fen": True}},
    )
    assert r.status_code == 200
    body = r.json()
    assert body["moves_ok"]
    assert [m["san"] for m in body["moves"]] == ["e4", "e5", "Qh5", "Nc6", "Bc4", "Nf6", "Qxf7#"]
    assert body["moves"][-1]["check"] == "checkmate"
    assert body["moves"][0]["epd"] == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq e3"
    assert body["final_fen"].endswith(" b KQkq - 0 4")


def test_replay_reports_failure() -> None:
    r = _client().post("/api/games/replay", json={"moves": ["e4", "e5", "Ke3"]})
    body = r.json()
    assert not body["moves_ok"]
    assert body["error_ply"] == 3


def test_create_engine_without_body() -> None:
    r = _client().post("/api/engines")
    assert r.status_code == 200
    assert r.json()["engine_id"]


def test_unknown_engine_404() -> None:
    client = _client()
    r = client.post("/api/engines/does-not-exist/match", json={"moves": ["e4"]})
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_found"
    assert client.delete("/api/engines/does-not-exist").status_code == 404


def test_engine_with_pattern_and_positions() -> None:
    client = _client()
    engine_id = _engine(client, add_matchlabel_tag=True)

    r = client.post(
        f"/api/engines/{engine_id}/patterns",
        json={"lines": ["*/*/*/*/4P3/*/*/* e-pawn", "", "too/short"]},
    )
    assert r.json() == {"added": 1, "rejected": 1}

    r = client.post(
        f"/api/engines/{engine_id}/positions",
        json={"fens": ["no kings"], "hashcodes": ["0756b94461c50fb0", "zz"]},
    )
    assert r.json() == {"added": 1, "rejected": 2}

    r = client.post(f"/api/engines/{engine_id}/match", json={"moves": ["Nf3", "d5", "e4"]})
    body = r.json()
    assert body["matched"]
    assert body["label"] == "e-pawn"
    assert body["tags"]["MatchLabel"] == "e-pawn"

    r = client.post(f"/api/engines/{engine_id}/match", json={"moves": ["d4", "d5"]})
    assert not r.json()["matched"]


def test_engine_with_polyglot_position() -> None:
    client = _client()
    engine_id = _engine(client)
    # 1.e4 d5
    client.post(f"/api/engines/{engine_id}/positions", json={"hashcodes": ["0756b94461c50fb0"]})
    assert client.post(f"/api/engines/{engine_id}/match", json={"moves": ["e4", "d5", "exd5"]}).json()["matched"]
    assert not client.post(f"/api/engines/{engine_id}/match", json={"moves": ["e4", "e5"]}).json()["matched"]


def test_engine_with_endings_and_eco() -> None:
    client = _client()
    engine_id = _engine(client, add_ECO=True, add_match_tag=True)
    r = client.post(
        f"/api/engines/{engine_id}/eco",
        json={"lines": [{"tags": {"ECO": "B20", "Opening": "Sicilian"}, "moves": ["e4", "c5"]}]},
    )
    assert r.json() == {"added": 1, "rejected": 0}
    r = client.post(f"/api/engines/{engine_id}/endings", json={"lines": ["0 KP* K"]})
    assert r.json() == {"added": 1, "rejected": 0}

    r = client.post(f"/api/engines/{engine_id}/match", json={"moves": ["e4", "c5", "Nf3"], "result": "*"})
    body = r.json()
    assert not body["matched"]
    # Classification happens during replay, before the ending is checked.
    assert body["tags"] == {"ECO": "B20", "Opening": "Sicilian"}
    assert body["material_match"] is None
    assert body["moves"] == ["e4", "c5", "Nf3"]


def test_duplicates_through_the_api() -> None:
    client = _client()
    engine_id = _engine(client, check_for_duplicates=True)
    first = client.post(f"/api/engines/{engine_id}/match", json={"moves": ["e4", "e5"]}).json()
    second = client.post(f"/api/engines/{engine_id}/match", json={"moves": ["e4", "e5"]}).json()
    assert first["duplicate_of"] is None
    assert second["duplicate_of"] == 1


def test_delete_engine() -> None:
    client = _client()
    engine_id = _engine(client)
    assert client.delete(f"/api/engines/{engine_id}").json() == {"status": "deleted"}
    r = client.post(f"/api/engines/{engine_id}/match", json={"moves": []})
    assert r.status_code == 404


def test_pattern_match_endpoint() -> None:
    r = _client().post(
        "/api/patterns/match",
        json={
            "pattern": "*k*/*/*/*/*/*/4P3/4K3",
            "label": "KP",
            "add_reverse": True,
            "fen": "4k3/4p3/8/8/8/8/8/4K3 w - - 0 1",
        },
    )
    assert r.json() == {"matched": True, "label": "KPI"}


def test_ending_check_endpoint() -> None:
    r = _client().post(
        "/api/endings/check",
        json={"line": "0 KQ K", "moves": ["e8=Q"], "tags": {"FEN": "7k/4P3/8/8/8/8/8/4K3 w - - 0 1"}},
    )
    body = r.json()
    assert body["matched"]
    assert body["colour"] == "White"
    assert body["ply"] == 1
    assert body["move_depth"] == 0
    assert body["first_set"] == {"Q": "exactly 1", "K": "exactly 1"}
    assert body["second_set"] == {"K": "exactly 1"}


def test_ending_check_finds_black_unless_restricted() -> None:
    request = {
        "line": "0 KQ K",
        "moves": ["Kd2"],
        "tags": {"FEN": "4k3/q7/8/8/8/8/8/4K3 w - - 0 1"},
    }
    client = _client()
    body = client.post("/api/endings/check", json=request).json()
    assert body["matched"]
    assert body["colour"] == "Black"
    assert body["ply"] == 0

    body = client.post("/api/endings/check", json={**request, "both_colours": False}).json()
    assert not body["matched"]
