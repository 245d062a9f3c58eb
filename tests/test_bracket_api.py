"""Bracket endpoints: build, heat results, finals, DQ/DNS, standings, reset."""
import pytest
from fastapi.testclient import TestClient

BASE = "/api/events/1/classes/Novice"


@pytest.fixture
def roster(client: TestClient) -> list[int]:
    """Six racers seeded in registration order; returns their ids."""
    payload = [
        {"name": f"Racer {i}", "bib_number": str(100 + i), "seed_time": 30.0 + i}
        for i in range(1, 7)
    ]
    response = client.post(f"{BASE}/racers", json=payload)
    assert response.status_code == 201
    return [r["id"] for r in response.json()]


@pytest.fixture
def built(client: TestClient, roster: list[int]) -> list[int]:
    response = client.post(f"{BASE}/bracket")
    assert response.status_code == 201
    return roster


def _heat(bracket: dict, number: int) -> dict:
    for rnd in bracket["rounds"]:
        for heat in rnd["heats"]:
            if heat["number"] == number:
                return heat
    raise AssertionError(f"heat {number} not in bracket")


def _result(client: TestClient, number: int, round_number: int, lane: str, winners, losers=(), **extra):
    body = {"round": round_number, "lane": lane, "winners": list(winners), "losers": list(losers), **extra}
    return client.post(f"{BASE}/bracket/heats/{number}/result", json=body)


def _run_to_finals(client: TestClient, r: list[int]) -> dict:
    _result(client, 1, 1, "winners", [r[0], r[1]], [r[2]])
    _result(client, 2, 1, "winners", [r[3], r[4]], [r[5]])
    _result(client, 3, 2, "winners", [r[0], r[3]], [r[1], r[4]])
    response = _result(client, 4, 1, "losers", [r[2], r[5]])
    assert response.status_code == 200
    return response.json()


class TestBuild:
    def test_build_six_racers(self, client: TestClient, roster: list[int]):
        response = client.post(f"{BASE}/bracket")
        assert response.status_code == 201
        bracket = response.json()
        assert bracket["complete"] is False
        assert [(rnd["lane"], rnd["round_number"]) for rnd in bracket["rounds"]] == [
            ("winners", 1),
            ("winners", 2),
            ("losers", 1),
            ("final", 3),
        ]
        first = _heat(bracket, 1)
        assert [racer["id"] for racer in first["racers"]] == roster[:3]
        assert first["racers"][0]["name"] == "Racer 1"
        assert first["racers"][0]["starting_position"] == 1
        assert first["next_winners_heat"] == 3
        assert first["next_losers_heat"] == 4

    def test_build_twice_needs_replace(self, client: TestClient, built: list[int]):
        assert client.post(f"{BASE}/bracket").status_code == 409
        assert client.post(f"{BASE}/bracket", params={"replace": "true"}).status_code == 201

    def test_no_racers(self, client: TestClient):
        assert client.post(f"{BASE}/bracket").status_code == 404

    def test_no_seed_times(self, client: TestClient):
        client.post(
            f"{BASE}/racers",
            json=[{"name": "A", "bib_number": "1"}, {"name": "B", "bib_number": "2"}],
        )
        response = client.post(f"{BASE}/bracket")
        assert response.status_code == 422
        assert "seed times" in response.json()["detail"]

    def test_single_racer(self, client: TestClient):
        client.post(f"{BASE}/racers", json=[{"name": "A", "bib_number": "1", "seed_time": 30.0}])
        assert client.post(f"{BASE}/bracket").status_code == 422

    def test_failed_build_leaves_roster_unseeded(self, client: TestClient):
        client.post(f"{BASE}/racers", json=[{"name": "A", "bib_number": "1", "seed_time": 30.0}])
        client.post(f"{BASE}/bracket")
        racers = client.get(f"{BASE}/racers").json()
        assert [r["starting_position"] for r in racers] == [None]

    def test_get_missing_bracket(self, client: TestClient):
        assert client.get(f"{BASE}/bracket").status_code == 404

    def test_event_summary(self, client: TestClient, built: list[int]):
        summaries = client.get("/api/events/1/brackets").json()
        assert summaries == [{"race_class": "Novice", "heat_count": 5, "finals_heat": 5, "complete": False}]
        assert client.get("/api/events/2/brackets").json() == []


class TestResults:
    def test_result_routes_racers(self, client: TestClient, built: list[int]):
        r = built
        response = _result(client, 1, 1, "winners", [r[0], r[1]], [r[2]])
        assert response.status_code == 200
        bracket = response.json()
        assert _heat(bracket, 1)["status"] == "completed"
        assert [x["id"] for x in _heat(bracket, 3)["racers"]] == [r[0], r[1]]
        assert [x["id"] for x in _heat(bracket, 4)["racers"]] == [r[2]]

        stored = client.get(f"{BASE}/bracket").json()
        assert stored == bracket

    def test_lane_mismatch(self, client: TestClient, built: list[int]):
        r = built
        assert _result(client, 1, 1, "losers", [r[0]], [r[1]]).status_code == 404

    def test_racer_not_in_heat(self, client: TestClient, built: list[int]):
        r = built
        assert _result(client, 1, 1, "winners", [r[0], r[4]], [r[2]]).status_code == 422

    def test_conflicting_resubmission(self, client: TestClient, built: list[int]):
        r = built
        _result(client, 1, 1, "winners", [r[0], r[1]], [r[2]])
        assert _result(client, 1, 1, "winners", [r[0], r[1]], [r[2]]).status_code == 200
        assert _result(client, 1, 1, "winners", [r[0], r[2]], [r[1]]).status_code == 409

    def test_failed_result_leaves_bracket_unchanged(self, client: TestClient, built: list[int]):
        before = client.get(f"{BASE}/bracket").json()
        _result(client, 1, 1, "winners", [999], [])
        assert client.get(f"{BASE}/bracket").json() == before

    def test_invalid_round(self, client: TestClient, built: list[int]):
        assert _result(client, 1, 0, "winners", [built[0]]).status_code == 422

    def test_no_show_in_result(self, client: TestClient, built: list[int]):
        r = built
        bracket = _result(client, 1, 1, "winners", [r[0], r[1]], [r[2]], no_shows=[r[2]]).json()
        assert _heat(bracket, 1)["no_shows"] == [r[2]]
        assert _heat(bracket, 4)["racers"] == []


class TestStartHeat:
    def test_start(self, client: TestClient, built: list[int]):
        response = client.post(f"{BASE}/bracket/heats/1/start")
        assert response.status_code == 200
        assert _heat(response.json(), 1)["status"] == "in_progress"

    def test_start_empty_heat(self, client: TestClient, built: list[int]):
        assert client.post(f"{BASE}/bracket/heats/3/start").status_code == 409

    def test_start_unknown_heat(self, client: TestClient, built: list[int]):
        assert client.post(f"{BASE}/bracket/heats/99/start").status_code == 404


class TestFinalsAndStandings:
    def test_full_run(self, client: TestClient, built: list[int]):
        r = built
        bracket = _run_to_finals(client, r)
        assert [x["id"] for x in _heat(bracket, 5)["racers"]] == [r[0], r[3], r[2], r[5]]
        assert client.get(f"{BASE}/bracket/standings").json() == []

        response = client.post(
            f"{BASE}/bracket/finals",
            json={"first": r[3], "second": r[0], "third": r[5], "fourth": r[2]},
        )
        assert response.status_code == 200
        bracket = response.json()
        assert bracket["complete"] is True
        assert _heat(bracket, 5)["final_rankings"] == {
            "first": r[3],
            "second": r[0],
            "third": r[5],
            "fourth": r[2],
        }

        standings = client.get(f"{BASE}/bracket/standings").json()
        assert [(s["place"], s["racer"]["id"]) for s in standings] == [(1, r[3]), (2, r[0]), (3, r[5]), (4, r[2])]
        assert standings[0]["racer"]["name"] == "Racer 4"

    def test_incomplete_ranking(self, client: TestClient, built: list[int]):
        r = built
        _run_to_finals(client, r)
        response = client.post(f"{BASE}/bracket/finals", json={"first": r[3], "second": r[0]})
        assert response.status_code == 422

    def test_split_result_on_finals(self, client: TestClient, built: list[int]):
        r = built
        _run_to_finals(client, r)
        assert _result(client, 5, 3, "final", [r[0], r[3]], [r[2], r[5]]).status_code == 422


class TestDisqualify:
    def test_dq_after_completion(self, client: TestClient, built: list[int]):
        r = built
        _result(client, 1, 1, "winners", [r[0], r[1]], [r[2]])
        response = client.post(f"{BASE}/bracket/heats/1/disqualify", json={"racer_id": r[0]})
        assert response.status_code == 200
        bracket = response.json()
        assert _heat(bracket, 1)["winners"] == [r[1]]
        assert _heat(bracket, 1)["disqualified"] == [r[0]]
        assert [x["id"] for x in _heat(bracket, 3)["racers"]] == [r[1]]

    def test_dns_before_start(self, client: TestClient, built: list[int]):
        r = built
        response = client.post(f"{BASE}/bracket/heats/2/disqualify", json={"racer_id": r[5], "reason": "DNS"})
        assert response.status_code == 200
        assert _heat(response.json(), 2)["no_shows"] == [r[5]]

    def test_racer_not_in_heat(self, client: TestClient, built: list[int]):
        response = client.post(f"{BASE}/bracket/heats/1/disqualify", json={"racer_id": built[5]})
        assert response.status_code == 422


class TestReset:
    def test_reset_removes_all_brackets(self, client: TestClient, built: list[int]):
        response = client.delete("/api/brackets")
        assert response.status_code == 200
        assert response.json() == {"removed": 1}
        assert client.get(f"{BASE}/bracket").status_code == 404
        # roster survives a reset
        assert len(client.get(f"{BASE}/racers").json()) == 6


def test_health(client: TestClient):
    body = client.get("/api/health").json()
    assert body["status"] == "healthy"
