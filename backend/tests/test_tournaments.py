from fastapi.testclient import TestClient


def _players(n):
    return [{"name": f"Player {k}", "seed": k, "club": "Edgbaston Priory"} for k in range(1, n + 1)]


def _create(client: TestClient, format_id="single_elimination", n=4, config=None):
    response = client.post(
        "/api/tournaments",
        json={
            "name": "Midlands Open",
            "format": format_id,
            "config": config or {},
            "participants": _players(n),
            "venue": "Edgbaston Priory Club",
        },
    )
    assert response.status_code == 201, response.text
    return response.json()


def _match(detail, match_number):
    return next(m for m in detail["matches"] if m["match_number"] == match_number)


def test_health(client: TestClient):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_list_formats(client: TestClient):
    response = client.get("/api/tournaments/formats")
    assert response.status_code == 200
    assert {f["id"] for f in response.json()} == {
        "single_elimination", "round_robin", "monrad", "pools_knockout",
    }


def test_create_single_elimination(client: TestClient):
    detail = _create(client)
    assert detail["status"] == "active"
    assert detail["state_version"] == 1
    assert len(detail["participants"]) == 4
    assert len(detail["matches"]) == 3
    assert detail["groups"] == []

    r1m1 = _match(detail, "R1M1")
    assert r1m1["status"] == "ready"
    assert r1m1["participant_a"]["participant_id"] == "1"
    assert r1m1["participant_b"]["participant_id"] == "4"
    assert r1m1["feeds_to_matches"] == ["R2M1"]

    listed = client.get("/api/tournaments").json()
    assert [t["id"] for t in listed] == [detail["id"]]


def test_create_round_robin_assigns_groups(client: TestClient):
    detail = _create(client, "round_robin", 4)
    assert [g["group_key"] for g in detail["groups"]] == ["group-a"]
    assert len(detail["groups"][0]["standings"]) == 4
    assert {p["group_key"] for p in detail["participants"]} == {"group-a"}
    assert len(detail["matches"]) == 6


def test_validation_errors_return_400(client: TestClient):
    response = client.post(
        "/api/tournaments",
        json={"name": "Too Small", "format": "monrad", "participants": _players(2)},
    )
    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["message"] == "Tournament validation failed"
    assert any("at least 4" in e for e in detail["details"])

    # Nothing persisted
    assert client.get("/api/tournaments").json() == []


def test_unknown_format_returns_400(client: TestClient):
    response = client.post(
        "/api/tournaments",
        json={"name": "Swiss", "format": "swiss", "participants": _players(4)},
    )
    assert response.status_code == 400


def test_blank_name_rejected(client: TestClient):
    response = client.post(
        "/api/tournaments",
        json={"name": "  ", "format": "single_elimination", "participants": _players(4)},
    )
    assert response.status_code == 422


def test_tournament_not_found(client: TestClient):
    assert client.get("/api/tournaments/999").status_code == 404
    assert client.get("/api/tournaments/999/standings").status_code == 404


def test_submit_result_advances_draw(client: TestClient):
    detail = _create(client)
    tid = detail["id"]
    r1m1 = _match(detail, "R1M1")

    response = client.post(
        f"/api/tournaments/{tid}/matches/{r1m1['id']}/result",
        json={"winner_id": "1", "score": "11-7 11-8 11-2", "state_version": 1},
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["state_version"] == 2
    assert body["match"]["status"] == "completed"
    assert body["match"]["completed_at"] is not None
    assert len(body["match"]["result"]["game_scores"]) == 3
    assert body["match"]["result"]["loser_participant_id"] == "4"

    [final] = body["updated_matches"]
    assert final["match_number"] == "R2M1"
    assert final["participant_a"]["participant_id"] == "1"
    assert final["status"] == "pending"
    assert not body["tournament_complete"]


def test_stale_version_rejected(client: TestClient):
    detail = _create(client)
    tid = detail["id"]
    r1m1 = _match(detail, "R1M1")
    r1m2 = _match(detail, "R1M2")

    first = client.post(f"/api/tournaments/{tid}/matches/{r1m1['id']}/result", json={"winner_id": "1", "state_version": 1})
    assert first.status_code == 200

    stale = client.post(f"/api/tournaments/{tid}/matches/{r1m2['id']}/result", json={"winner_id": "2", "state_version": 1})
    assert stale.status_code == 409

    fresh = client.post(f"/api/tournaments/{tid}/matches/{r1m2['id']}/result", json={"winner_id": "2", "state_version": 2})
    assert fresh.status_code == 200


def test_invalid_results_rejected(client: TestClient):
    detail = _create(client)
    tid = detail["id"]
    r1m1 = _match(detail, "R1M1")
    r2m1 = _match(detail, "R2M1")

    not_playing = client.post(f"/api/tournaments/{tid}/matches/{r1m1['id']}/result", json={"winner_id": "2"})
    assert not_playing.status_code == 422

    bad_score = client.post(f"/api/tournaments/{tid}/matches/{r1m1['id']}/result", json={"winner_id": "1", "score": "eleven-seven"})
    assert bad_score.status_code == 422

    pending = client.post(f"/api/tournaments/{tid}/matches/{r2m1['id']}/result", json={"winner_id": "1"})
    assert pending.status_code == 422

    missing = client.post(f"/api/tournaments/{tid}/matches/999/result", json={"winner_id": "1"})
    assert missing.status_code == 404

    first = client.post(f"/api/tournaments/{tid}/matches/{r1m1['id']}/result", json={"winner_id": "1"})
    assert first.status_code == 200
    again = client.post(f"/api/tournaments/{tid}/matches/{r1m1['id']}/result", json={"winner_id": "1"})
    assert again.status_code == 422


def test_start_match(client: TestClient):
    detail = _create(client)
    tid = detail["id"]
    r1m1 = _match(detail, "R1M1")
    r2m1 = _match(detail, "R2M1")

    started = client.post(f"/api/tournaments/{tid}/matches/{r1m1['id']}/start")
    assert started.status_code == 200
    assert started.json()["status"] == "live"
    assert started.json()["started_at"] is not None

    assert client.post(f"/api/tournaments/{tid}/matches/{r1m1['id']}/start").status_code == 409
    assert client.post(f"/api/tournaments/{tid}/matches/{r2m1['id']}/start").status_code == 409

    # A live match still takes a result
    done = client.post(f"/api/tournaments/{tid}/matches/{r1m1['id']}/result", json={"winner_id": "4"})
    assert done.status_code == 200
    assert done.json()["match"]["status"] == "completed"


def test_playable_standings_and_results(client: TestClient):
    detail = _create(client)
    tid = detail["id"]

    playable = client.get(f"/api/tournaments/{tid}/matches/playable").json()
    assert [m["match_number"] for m in playable] == ["R1M1", "R1M2"]

    for match in playable:
        winner = match["participant_a"]["participant_id"]
        assert client.post(f"/api/tournaments/{tid}/matches/{match['id']}/result", json={"winner_id": winner}).status_code == 200

    [final] = client.get(f"/api/tournaments/{tid}/matches/playable").json()
    assert final["match_number"] == "R2M1"
    done = client.post(f"/api/tournaments/{tid}/matches/{final['id']}/result", json={"winner_id": "1"})
    assert done.json()["tournament_complete"]

    standings = client.get(f"/api/tournaments/{tid}/standings").json()
    assert standings["type"] == "bracket"
    assert standings["current_round"] == 3

    results = client.get(f"/api/tournaments/{tid}/results").json()
    assert [(r["position"], r["participant_id"]) for r in results] == [(1, "1"), (2, "3"), (3, "2"), (3, "4")]

    tournament = client.get(f"/api/tournaments/{tid}").json()
    assert tournament["status"] == "completed"
    assert tournament["state_version"] == 4


def test_round_robin_result_updates_group(client: TestClient):
    detail = _create(client, "round_robin", 4)
    tid = detail["id"]
    g1m1 = _match(detail, "G1M1")

    response = client.post(
        f"/api/tournaments/{tid}/matches/{g1m1['id']}/result",
        json={"winner_id": "1", "game_scores": [{"player1": 11, "player2": 6}, {"player1": 11, "player2": 3}, {"player1": 11, "player2": 9}]},
    )
    assert response.status_code == 200
    update = response.json()["standings_updates"][0]
    assert update["group_id"] == "group-a"
    assert update["standings"][0]["participant_id"] == "1"

    group = client.get(f"/api/tournaments/{tid}").json()["groups"][0]
    assert group["standings"][0]["points_won"] == 33


def test_delete_tournament(client: TestClient):
    detail = _create(client)
    tid = detail["id"]
    assert client.delete(f"/api/tournaments/{tid}").status_code == 204
    assert client.get(f"/api/tournaments/{tid}").status_code == 404
    assert client.delete(f"/api/tournaments/{tid}").status_code == 404
