import httpx
import pytest
import pytest_asyncio

from parking.database import get_db
from parking.main import app

PRICING = {
    "effective_from": "2024-01-01T00:00:00",
    "grace_minutes": 10,
    "initial_block_minutes": 60,
    "initial_block_value": "5.00",
    "increment_minutes": 30,
    "increment_value": "2.00",
}


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_entry_quote_departure_flow(client) -> None:
    assert (await client.post("/api/v1/pricing", json=PRICING)).status_code == 201

    response = await client.post("/api/v1/vehicles/entry", json={"plate": "abc123", "date": "2024-05-01T08:00:00"})
    assert response.status_code == 201
    assert response.json()["plate"] == "ABC123"
    assert response.json()["is_active"] is True

    response = await client.get("/api/v1/vehicles/ABC123/quote", params={"as_of": "2024-05-01T09:15:00"})
    assert response.status_code == 200
    body = response.json()
    assert body["departure_date"] == "-"
    assert body["duration"] == "01:15"
    assert body["billable_minutes"] == 90
    assert float(body["charge"]) == 7.0

    response = await client.post("/api/v1/vehicles/departure", json={"plate": "ABC123", "date": "2024-05-01T09:15:00"})
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    response = await client.get("/api/v1/vehicles", params={"as_of": "2024-05-02T00:00:00"})
    assert response.status_code == 200
    [status] = response.json()
    assert status["departure_date"] == "2024-05-01T09:15:00"
    assert status["elapsed_minutes"] == 75
    assert float(status["initial_block_value"]) == 5.0


@pytest.mark.asyncio
async def test_duplicate_entry_returns_conflict(client) -> None:
    payload = {"plate": "ABC123", "date": "2024-05-01T08:00:00"}
    assert (await client.post("/api/v1/vehicles/entry", json=payload)).status_code == 201

    response = await client.post("/api/v1/vehicles/entry", json=payload)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_departure_unknown_plate_returns_not_found(client) -> None:
    response = await client.post("/api/v1/vehicles/departure", json={"plate": "XYZ999", "date": "2024-05-01T08:00:00"})
    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"plate": "ABC123"}, {"plate": " ", "date": "2024-05-01T08:00:00"}, {"plate": "ABC123", "date": "soon"}])
async def test_invalid_entry_returns_bad_request(client, payload) -> None:
    response = await client.post("/api/v1/vehicles/entry", json=payload)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_listing_without_pricing_returns_not_found(client) -> None:
    await client.post("/api/v1/vehicles/entry", json={"plate": "ABC123", "date": "2024-05-01T08:00:00"})

    response = await client.get("/api/v1/vehicles", params={"as_of": "2024-05-01T09:00:00"})
    assert response.status_code == 404
    assert "No pricing" in response.json()["detail"]


@pytest.mark.asyncio
async def test_current_pricing(client) -> None:
    assert (await client.get("/api/v1/pricing/current")).status_code == 404

    await client.post("/api/v1/pricing", json=PRICING)
    response = await client.get("/api/v1/pricing/current", params={"as_of": "2024-06-01T00:00:00"})
    assert response.status_code == 200
    assert response.json()["increment_minutes"] == 30


@pytest.mark.asyncio
async def test_invalid_pricing_window_returns_bad_request(client) -> None:
    response = await client.post("/api/v1/pricing", json={**PRICING, "effective_to": "2023-01-01T00:00:00"})
    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [{}, {"plate": "", "date": "2024-05-01T09:00:00"}, {"plate": "ABC123"}, {"plate": "ABC123", "date": "soon"}])
async def test_invalid_departure_returns_bad_request(client, payload) -> None:
    await client.post("/api/v1/vehicles/entry", json={"plate": "ABC123", "date": "2024-05-01T08:00:00"})

    response = await client.post("/api/v1/vehicles/departure", json=payload)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_listing_in_the_past_shows_vehicles_as_they_were(client) -> None:
    await client.post("/api/v1/pricing", json={**PRICING, "grace_minutes": 0})
    await client.post("/api/v1/vehicles/entry", json={"plate": "OLD1", "date": "2024-05-01T08:00:00"})
    await client.post("/api/v1/vehicles/departure", json={"plate": "OLD1", "date": "2024-05-01T12:00:00"})
    await client.post("/api/v1/vehicles/entry", json={"plate": "NEW1", "date": "2024-05-01T10:00:00"})

    response = await client.get("/api/v1/vehicles", params={"as_of": "2024-05-01T09:05:00"})
    assert response.status_code == 200
    [status] = response.json()
    assert status["plate"] == "OLD1"
    assert status["departure_date"] == "-"
    assert status["elapsed_minutes"] == 65
    assert float(status["charge"]) == 7.0
