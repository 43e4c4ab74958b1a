"""HTTP tests for the /assignments routes."""

import pytest


def _cell(**overrides):
    body = {
        "seasonId": 1,
        "weekNumber": 1,
        "cellIndex": 0,
        "rowIndex": 0,
        "colIndex": 0,
        "league": "LVBP",
        "dayName": "Martes",
        "dateStr": "14/10",
        "stadiumCity": "Caracas",
        "stadiumName": "Monumental",
        "localTeam": "Leones",
        "visitorsTeam": "Tigres",
        "gameTime": "19:00",
        "gameStatus": "game",
        "isDoubleGame": False,
        "umpires": {"H": {"umpireId": "3", "name": "Ana"}},
    }
    body.update(overrides)
    return body


@pytest.mark.asyncio
async def test_upsert_returns_numbered_cell(api_client, schedule_store) -> None:
    schedule_store.add_season()
    resp = await api_client.post("/assignments/upsert", json=_cell())
    assert resp.status_code == 200
    data = resp.json()
    assert data["ok"] is True
    cell = data["assignment"]
    assert cell["gameNumber"] == "1"
    assert cell["gameNumber2"] is None
    assert cell["umpires"]["H"] == {"umpireId": 3, "name": "Ana", "double": ""}
    assert set(cell["umpires"]) == {"H", "R", "1B", "2B", "3B", "LF", "LR", "OR"}


@pytest.mark.asyncio
async def test_upsert_ignores_client_numbers(api_client, schedule_store) -> None:
    schedule_store.add_season()
    resp = await api_client.post(
        "/assignments/upsert", json=_cell(gameNumber="42", gameNumber2="43")
    )
    assert resp.status_code == 200
    assert resp.json()["assignment"]["gameNumber"] == "1"
    assert resp.json()["assignment"]["gameNumber2"] is None


@pytest.mark.asyncio
async def test_upsert_accepts_snake_case(api_client, schedule_store) -> None:
    schedule_store.add_season()
    resp = await api_client.post(
        "/assignments/upsert",
        json={
            "season_id": 1,
            "week_number": 2,
            "cell_index": 3,
            "local_team": "Caribes",
            "visitors_team": "Bravos",
            "is_double_game": True,
        },
    )
    assert resp.status_code == 200
    cell = resp.json()["assignment"]
    assert (cell["weekNumber"], cell["cellIndex"]) == (2, 3)
    assert (cell["gameNumber"], cell["gameNumber2"]) == ("1", "2")
    assert schedule_store.seasons[1].total_weeks == 2


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides",
    [{"seasonId": None}, {"weekNumber": 0}, {"cellIndex": -1}, {"weekNumber": "abc"}],
)
async def test_upsert_rejects_bad_keys(api_client, schedule_store, overrides) -> None:
    schedule_store.add_season()
    resp = await api_client.post("/assignments/upsert", json=_cell(**overrides))
    assert resp.status_code == 400
    assert resp.json()["detail"]


@pytest.mark.asyncio
async def test_upsert_unknown_season(api_client) -> None:
    resp = await api_client.post("/assignments/upsert", json=_cell(seasonId=5))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_upsert_move_conflict(api_client, schedule_store) -> None:
    schedule_store.add_season()
    await api_client.post("/assignments/upsert", json=_cell(cellIndex=0))
    second = await api_client.post("/assignments/upsert", json=_cell(cellIndex=1))
    moved = await api_client.post(
        "/assignments/upsert",
        json=_cell(id=second.json()["assignment"]["id"], cellIndex=0),
    )
    assert moved.status_code == 409


@pytest.mark.asyncio
async def test_list_assignments_in_canonical_order(api_client, schedule_store) -> None:
    schedule_store.add_season()
    await api_client.post("/assignments/upsert", json=_cell(weekNumber=2, cellIndex=0))
    await api_client.post(
        "/assignments/upsert", json=_cell(cellIndex=1, stadiumCity="Valencia")
    )
    await api_client.post("/assignments/upsert", json=_cell(cellIndex=0))

    resp = await api_client.get("/assignments", params={"seasonId": 1})
    assert resp.status_code == 200
    items = resp.json()["items"]
    assert [(i["weekNumber"], i["cellIndex"], i["gameNumber"]) for i in items] == [
        (1, 0, "1"),
        (1, 1, "2"),
        (2, 0, "3"),
    ]

    filtered = await api_client.get(
        "/assignments", params={"seasonId": 1, "city": "Valencia"}
    )
    assert [i["cellIndex"] for i in filtered.json()["items"]] == [1]

    week_two = await api_client.get("/assignments", params={"seasonId": 1, "week": 2})
    assert len(week_two.json()["items"]) == 1


@pytest.mark.asyncio
async def test_list_requires_season(api_client) -> None:
    resp = await api_client.get("/assignments")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_delete_renumbers(api_client, schedule_store) -> None:
    schedule_store.add_season()
    first = await api_client.post("/assignments/upsert", json=_cell(cellIndex=0))
    await api_client.post("/assignments/upsert", json=_cell(cellIndex=1))

    resp = await api_client.delete(f"/assignments/{first.json()['assignment']['id']}")
    assert resp.status_code == 200
    assert resp.json() == {"ok": True}
    assert schedule_store.numbers() == {(1, 1): ("1", None)}


@pytest.mark.asyncio
async def test_delete_unknown(api_client) -> None:
    resp = await api_client.delete("/assignments/999")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_finish_season(api_client, schedule_store) -> None:
    schedule_store.add_season(total_weeks=18)
    resp = await api_client.post(
        "/assignments/finish", json={"seasonId": 1, "totalWeeks": 15}
    )
    assert resp.status_code == 200
    season = schedule_store.seasons[1]
    assert season.status == "finished"
    assert season.total_weeks == 15


@pytest.mark.asyncio
async def test_finish_requires_season_id(api_client) -> None:
    resp = await api_client.post("/assignments/finish", json={})
    assert resp.status_code == 400
