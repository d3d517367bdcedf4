"""
End-to-end API tests: a league from registration to champion, a seeded
bracket with a bye, and the error contract.
"""
from fastapi.testclient import TestClient

from courtside import main

ADMIN_HEADERS = {"X-User-Id": "admin-1", "X-User-Role": "admin"}


def _create(client: TestClient, **body):
    response = client.post("/api/competitions", json=body, headers=ADMIN_HEADERS)
    assert response.status_code == 201, response.text
    return response.json()


def _register(client: TestClient, cid: int, n: int):
    ids = []
    for i in range(1, n + 1):
        response = client.post(
            f"/api/competitions/{cid}/participants",
            json={"player_id": f"p{i}", "display_name": f"Player {i}"},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 201, response.text
        ids.append(response.json()["id"])
    return ids


def _matches(client: TestClient, cid: int):
    response = client.get(f"/api/competitions/{cid}/matches")
    assert response.status_code == 200
    return {m["code"]: m for m in response.json()}


def _report(client: TestClient, cid: int, match_id: int, score="6-2 6-2", headers=None, **extra):
    return client.post(
        f"/api/competitions/{cid}/matches/{match_id}/result",
        json={"score": score, **extra},
        headers=headers or ADMIN_HEADERS,
    )


def test_health(client: TestClient):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_league_to_champion(client: TestClient):
    competition = _create(client, name="Club League", kind="league")
    cid = competition["id"]
    assert competition["status"] == "preparing"
    ids = _register(client, cid, 4)

    response = client.post(f"/api/competitions/{cid}/round-robin", headers=ADMIN_HEADERS)
    assert response.status_code == 201
    assert response.json() == {"total_matches": 6, "total_rounds": 3}

    matches = _matches(client, cid)
    assert len(matches) == 6
    assert matches["RR1M1"]["round_name"] == "Round 1"
    for match in matches.values():
        response = _report(client, cid, match["id"])
        assert response.status_code == 200, response.text
        assert response.json()["winner_id"] == match["participant_a_id"]

    table = client.get(f"/api/competitions/{cid}/standings").json()
    assert [row["participant_id"] for row in table] == ids
    assert [row["points"] for row in table] == [9, 6, 3, 0]

    response = client.post(f"/api/competitions/{cid}/playoffs", headers=ADMIN_HEADERS)
    assert response.status_code == 201, response.text
    playoffs = response.json()
    assert playoffs["type"] == "semifinals"
    assert playoffs["qualified"] == ids

    matches = _matches(client, cid)
    assert matches["SF1"]["round_name"] == "Semifinals"
    assert matches["C"]["round_name"] == "Third place"
    assert _report(client, cid, matches["SF1"]["id"]).status_code == 200
    assert _report(client, cid, matches["SF2"]["id"]).status_code == 200

    final = _matches(client, cid)["F"]
    assert (final["participant_a_id"], final["participant_b_id"]) == (ids[0], ids[1])
    assert final["status"] == "scheduled"
    result = _report(client, cid, final["id"], score=[{"a": 6, "b": 4}, {"a": 6, "b": 4}]).json()
    assert result["competition_completed"] is True
    assert (result["champion_id"], result["runner_up_id"]) == (ids[0], ids[1])

    stored = client.get(f"/api/competitions/{cid}").json()
    assert stored["status"] == "completed"
    assert stored["champion_id"] == ids[0]
    assert stored["playoff"] == {"type": "semifinals", "qualified": ids}

    [profile] = client.get("/api/players/p1/ratings").json()
    assert profile["scope"] == "global"
    assert (profile["matches_played"], profile["wins"]) == (5, 5)
    assert profile["rating"] > 1200


def test_seeded_bracket_with_bye(client: TestClient):
    cid = _create(client, name="Cup", kind="bracket", club_id="c1")["id"]
    ids = _register(client, cid, 3)

    response = client.post(
        f"/api/competitions/{cid}/seeds",
        json={"seeds": [{"participant_id": "p3", "seed": 1}, {"participant_id": ids[0], "seed": 2}]},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 200, response.text
    assert response.json() == {"assigned": 2, "removed": 0}

    response = client.post(f"/api/competitions/{cid}/bracket", headers=ADMIN_HEADERS)
    assert response.status_code == 201
    assert response.json() == {"total_rounds": 2, "total_matches": 3, "bracket_size": 4, "byes": 1}

    matches = _matches(client, cid)
    bye = matches["R1M1"]
    assert bye["is_bye"] and bye["status"] == "completed"
    assert bye["winner_id"] == ids[2]
    assert bye["round_name"] == "Semifinals"
    assert matches["R2M1"]["round_name"] == "Final"
    assert matches["R2M1"]["participant_a_id"] == ids[2]

    # p2 reports their own semifinal (2 v 3 in a four-draw)
    player_headers = {"X-User-Id": "p2"}
    response = _report(client, cid, matches["R1M2"]["id"], score="3-6 2-6", headers=player_headers)
    assert response.status_code == 200, response.text
    assert response.json()["winner_id"] == ids[1]

    response = client.post(f"/api/competitions/{cid}/matches/{matches['R2M1']['id']}/start", headers=ADMIN_HEADERS)
    assert response.status_code == 200
    assert response.json()["status"] == "in_progress"

    response = _report(client, cid, matches["R2M1"]["id"], retired=True, winner_id=ids[1], score="6-7 1-0")
    result = response.json()
    assert result["competition_completed"] is True
    assert result["champion_id"] == ids[1]

    [profile] = client.get("/api/players/p2/ratings").json()
    assert profile["scope"] == "club:c1"
    assert profile["peak_rating"] == profile["rating"]

    history = client.get("/api/players/p2/rating-history", params={"scope": "club:c1"}).json()
    assert [entry["match_id"] for entry in history] == [matches["R1M2"]["id"], matches["R2M1"]["id"]]
    assert history[-1]["opponent_ids"] == ["p3"]
    assert history[-1]["won"] is True
    assert history[-1]["new_rating"] == profile["rating"]
    assert client.get("/api/players/p2/rating-history", params={"scope": "global"}).json() == []


class TestErrorContract:
    def test_missing_identity(self, client: TestClient):
        response = client.post("/api/competitions", json={"name": "x", "kind": "league"})
        assert response.status_code == 403
        assert response.json()["detail"]["kind"] == "permission_denied"

    def test_not_found(self, client: TestClient):
        response = client.get("/api/competitions/999")
        assert response.status_code == 404
        assert response.json() == {"detail": {"kind": "not_found", "message": "Competition 999 not found"}}

    def test_failed_precondition(self, client: TestClient):
        cid = _create(client, name="Cup", kind="bracket")["id"]
        _register(client, cid, 2)
        client.post(f"/api/competitions/{cid}/bracket", headers=ADMIN_HEADERS)
        match_id = _matches(client, cid)["R1M1"]["id"]
        assert _report(client, cid, match_id).status_code == 200

        response = _report(client, cid, match_id)
        assert response.status_code == 409
        assert response.json()["detail"]["kind"] == "failed_precondition"

    def test_already_exists(self, client: TestClient):
        cid = _create(client, name="Cup", kind="bracket")["id"]
        _register(client, cid, 2)
        assert client.post(f"/api/competitions/{cid}/bracket", headers=ADMIN_HEADERS).status_code == 201
        response = client.post(f"/api/competitions/{cid}/bracket", headers=ADMIN_HEADERS)
        assert response.status_code == 409
        assert response.json()["detail"]["kind"] == "already_exists"

    def test_invalid_argument(self, client: TestClient):
        cid = _create(client, name="Cup", kind="bracket")["id"]
        _register(client, cid, 2)
        client.post(f"/api/competitions/{cid}/bracket", headers=ADMIN_HEADERS)
        match_id = _matches(client, cid)["R1M1"]["id"]
        response = _report(client, cid, match_id, score="6-4 4-6")
        assert response.status_code == 422
        assert response.json()["detail"]["kind"] == "invalid_argument"

    def test_request_validation(self, client: TestClient):
        response = client.post(
            "/api/competitions",
            json={"name": "League", "kind": "league", "points_for_win": 1, "points_for_loss": 2},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 422

        response = client.post(
            "/api/competitions/1/matches/1/result",
            json={"walkover": True, "retired": True, "winner_id": 1},
            headers=ADMIN_HEADERS,
        )
        assert response.status_code == 422

    def test_permission_denied(self, client: TestClient):
        cid = _create(client, name="Cup", kind="bracket")["id"]
        response = client.post(f"/api/competitions/{cid}/bracket", headers={"X-User-Id": "someone"})
        assert response.status_code == 403

    def test_internal(self, client: TestClient):
        cid = _create(client, name="Cup", kind="bracket")["id"]
        _register(client, cid, 2)
        client.post(f"/api/competitions/{cid}/bracket", headers=ADMIN_HEADERS)
        match_id = _matches(client, cid)["R1M1"]["id"]
        response = _report(client, cid, match_id, score="6-4 6-4", winner_id=999)
        assert response.status_code == 500
        assert response.json()["detail"]["kind"] == "internal"
        assert _matches(client, cid)["R1M1"]["status"] == "scheduled"


def test_startup_creates_tables(monkeypatch):
    calls = []
    monkeypatch.setattr(main, "init_db", lambda: calls.append(1))
    with TestClient(main.app) as client:
        assert client.get("/api/health").status_code == 200
    assert calls == [1]
