"""Integration tests for API endpoints."""

import pytest


async def create_flight(test_client, total_seats: int = 10) -> str:
    response = await test_client.post(
        "/v1/inventory/flights/create",
        json={
            "flight_number": "FB1234",
            "origin": "SOF",
            "destination": "HRG",
            "departure_at": "2031-07-01T06:30:00Z",
            "arrival_at": "2031-07-01T09:30:00Z",
            "total_seats": total_seats,
        },
    )
    assert response.status_code == 201
    return response.json()["id"]


async def create_hold(test_client, payload) -> dict:
    response = await test_client.post("/v1/booking/hold", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_flight_endpoint(test_client):
    flight_id = await create_flight(test_client, total_seats=120)

    response = await test_client.post("/v1/inventory/flights/get", json={"flight_id": flight_id})

    assert response.status_code == 200
    data = response.json()
    assert data["total_seats"] == 120
    assert data["available_seats"] == 120


@pytest.mark.asyncio
async def test_create_flight_invalid_times(test_client):
    response = await test_client.post(
        "/v1/inventory/flights/create",
        json={
            "flight_number": "FB1234",
            "origin": "SOF",
            "destination": "HRG",
            "departure_at": "2031-07-01T09:30:00Z",
            "arrival_at": "2031-07-01T06:30:00Z",
            "total_seats": 10,
        },
    )

    assert response.status_code == 422
    data = response.json()
    assert data["status"] == 422
    assert data["code"] == "VALIDATION_ERROR"
    assert "violations" in data


@pytest.mark.asyncio
async def test_get_unknown_flight(test_client):
    response = await test_client.post(
        "/v1/inventory/flights/get", json={"flight_id": "00000000-0000-0000-0000-000000000000"}
    )

    assert response.status_code == 404
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_room_endpoints(test_client):
    response = await test_client.post(
        "/v1/inventory/rooms/open",
        json={"room_id": "hotel-41-double", "start_date": "2031-07-01", "end_date": "2031-07-08", "total_rooms": 3},
    )
    assert response.status_code == 200
    assert response.json()["nights_created"] == 7

    response = await test_client.post(
        "/v1/inventory/rooms/calendar",
        json={"room_id": "hotel-41-double", "start_date": "2031-07-01", "end_date": "2031-07-04"},
    )
    assert response.status_code == 200
    nights = response.json()["nights"]
    assert [night["stay_date"] for night in nights] == ["2031-07-01", "2031-07-02", "2031-07-03"]
    assert all(night["available_rooms"] == 3 for night in nights)


@pytest.mark.asyncio
async def test_allocate_code_endpoint(test_client):
    first = await test_client.post("/v1/booking/allocate-code", json={})
    second = await test_client.post("/v1/booking/allocate-code", json={"prefix": "WEB"})

    assert first.status_code == 200
    assert first.json() == {"code": "MXi-0001"}
    assert second.json() == {"code": "WEB-0002"}


@pytest.mark.asyncio
async def test_booking_lifecycle_endpoints(test_client, hold_payload):
    """Hold, confirm, pay and read back a booking over HTTP."""
    flight_id = await create_flight(test_client, total_seats=10)

    hold = await create_hold(test_client, hold_payload([flight_id]))
    assert hold["status"] == "HOLD"
    assert hold["reservation_code"] == "MXi-0001"
    assert hold["expires_at"] is not None
    assert hold["flight_lines"][0]["passengers"] == 2

    flight = (await test_client.post("/v1/inventory/flights/get", json={"flight_id": flight_id})).json()
    assert flight["available_seats"] == 8

    code = hold["reservation_code"]
    response = await test_client.post("/v1/booking/confirm", json={"reservation_code": code})
    assert response.status_code == 200
    assert response.json()["status"] == "CONFIRMED"
    assert response.json()["expires_at"] is None

    response = await test_client.post(
        "/v1/booking/pay", json={"reservation_code": code, "payment_reference": "PAY-778"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "PAID"

    response = await test_client.post("/v1/booking/get", json={"reservation_code": code})
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "PAID"
    assert data["payment_reference"] == "PAY-778"
    assert data["customer_email"] == "maria@example.com"


@pytest.mark.asyncio
async def test_cancel_endpoint_restores_seats(test_client, hold_payload):
    flight_id = await create_flight(test_client, total_seats=4)
    hold = await create_hold(test_client, hold_payload([flight_id]))

    response = await test_client.post(
        "/v1/booking/cancel", json={"reservation_code": hold["reservation_code"], "reason": "Duplicate"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"
    assert response.json()["cancellation_reason"] == "Duplicate"

    flight = (await test_client.post("/v1/inventory/flights/get", json={"flight_id": flight_id})).json()
    assert flight["available_seats"] == 4

    response = await test_client.post("/v1/booking/cancel", json={"reservation_code": hold["reservation_code"]})
    assert response.status_code == 409
    assert response.json()["code"] == "ALREADY_CANCELLED"


@pytest.mark.asyncio
async def test_hold_insufficient_inventory(test_client, hold_payload):
    flight_id = await create_flight(test_client, total_seats=1)

    response = await test_client.post("/v1/booking/hold", json=hold_payload([flight_id]))

    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "INSUFFICIENT_INVENTORY"
    assert data["recoverable"] is True
    assert data["retryable"] is False
    assert data["available"] == 1


@pytest.mark.asyncio
async def test_hold_invalid_data(test_client, hold_payload):
    payload = hold_payload()
    payload["customer"]["email"] = "not-an-email"

    response = await test_client.post("/v1/booking/hold", json=payload)

    assert response.status_code == 422
    data = response.json()
    assert data["status"] == 422
    assert any("email" in violation["path"] for violation in data["violations"])


@pytest.mark.asyncio
async def test_confirm_expired_hold_endpoint(test_client, hold_payload, expire_hold):
    flight_id = await create_flight(test_client, total_seats=10)
    hold = await create_hold(test_client, hold_payload([flight_id]))
    await expire_hold(hold["reservation_code"])

    response = await test_client.post("/v1/booking/confirm", json={"reservation_code": hold["reservation_code"]})

    assert response.status_code == 410
    assert response.json()["code"] == "BOOKING_EXPIRED"

    flight = (await test_client.post("/v1/inventory/flights/get", json={"flight_id": flight_id})).json()
    assert flight["available_seats"] == 10


@pytest.mark.asyncio
async def test_pay_before_confirm_conflicts(test_client, hold_payload):
    hold = await create_hold(test_client, hold_payload())

    response = await test_client.post(
        "/v1/booking/pay", json={"reservation_code": hold["reservation_code"], "payment_reference": "PAY-1"}
    )

    assert response.status_code == 409
    data = response.json()
    assert data["code"] == "INVALID_STATE"
    assert data["current_status"] == "HOLD"


@pytest.mark.asyncio
async def test_get_unknown_booking(test_client):
    response = await test_client.post("/v1/booking/get", json={"reservation_code": "MXi-4040"})

    assert response.status_code == 404
    assert response.json()["resource_type"] == "booking"


@pytest.mark.asyncio
async def test_sweep_expired_endpoint(test_client, hold_payload, expire_hold):
    hold = await create_hold(test_client, hold_payload())
    await expire_hold(hold["reservation_code"])

    response = await test_client.post("/v1/booking/sweep-expired", json={"batch_size": 10})

    assert response.status_code == 200
    assert response.json() == {"expired_count": 1}


@pytest.mark.asyncio
async def test_list_bookings_endpoint(test_client, hold_payload, expire_hold):
    lapsed = await create_hold(test_client, hold_payload())
    live = await create_hold(test_client, hold_payload())
    await expire_hold(lapsed["reservation_code"])

    response = await test_client.post("/v1/booking/list", json={"customer_email": "maria@example.com"})

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 2
    assert [b["reservation_code"] for b in data["bookings"]] == [
        live["reservation_code"],
        lapsed["reservation_code"],
    ]
    assert [b["status"] for b in data["bookings"]] == ["HOLD", "CANCELLED"]

    response = await test_client.post(
        "/v1/booking/list",
        json={"customer_email": "maria@example.com", "status": "HOLD", "limit": 1},
    )
    assert response.json()["count"] == 1
    assert response.json()["bookings"][0]["reservation_code"] == live["reservation_code"]


@pytest.mark.asyncio
async def test_list_bookings_invalid_request(test_client):
    response = await test_client.post(
        "/v1/booking/list",
        json={"customer_email": "not-an-email", "limit": 0},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_quote_endpoint(test_client, seed_prices, package_prices):
    await seed_prices(package_prices)

    response = await test_client.post(
        "/v1/pricing/quote",
        json={
            "adults": 2,
            "child_ages": [8, 9],
            "flight_option_id": "SOF-HRG-0701",
            "lodging_option_id": "hotel-41-double",
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total_price"] == 146001
    assert data["currency"] == "EUR"
    assert len(data["children"]) == 2


@pytest.mark.asyncio
async def test_quote_price_unavailable(test_client):
    response = await test_client.post(
        "/v1/pricing/quote",
        json={"adults": 2, "child_ages": [], "flight_option_id": "NOPE", "lodging_option_id": "NOPE"},
    )

    assert response.status_code == 404
    assert response.json()["code"] == "PRICE_UNAVAILABLE"


@pytest.mark.asyncio
async def test_quote_child_age_out_of_range(test_client):
    response = await test_client.post(
        "/v1/pricing/quote",
        json={"adults": 2, "child_ages": [14], "flight_option_id": "F", "lodging_option_id": "L"},
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_metrics_endpoint(test_client):
    """Test the Prometheus metrics endpoint."""
    response = await test_client.get("/metrics")

    assert response.status_code == 200
    assert "reservation_holds_created_total" in response.text
