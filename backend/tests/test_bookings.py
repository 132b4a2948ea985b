"""
Tests for the booking lifecycle: creation, accept/decline/complete,
generic vendor updates and ownership checks.
"""

from datetime import datetime, timezone, timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from conftest import notifications_for


def _booking_payload(vendor_id: int, **overrides) -> dict:
    payload = {
        "vendor_id": vendor_id,
        "service_type": "Photography",
        "event_date": (datetime.now(timezone.utc) + timedelta(days=45)).isoformat(),
        "event_location": "Manchester",
        "guests": 120,
        "budget": "500.00",
        "message": "Wedding reception, evening only",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_booking(client: AsyncClient, db_session, client_headers, client_user, vendor_user):
    """Client creates a PENDING booking; the vendor gets a NEW_BOOKING notification."""
    response = await client.post(
        "/api/v1/bookings/",
        json=_booking_payload(vendor_user.id),
        headers=client_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["payment_status"] == "PENDING"
    assert data["client_id"] == client_user.id
    assert Decimal(data["budget"]) == Decimal("500")
    assert data["adjusted_price"] is None
    assert data["client_approval_status"] is None

    notes = await notifications_for(db_session, vendor_user.id, "NEW_BOOKING")
    assert len(notes) == 1
    assert notes[0].data == {"booking_id": data["id"]}


@pytest.mark.asyncio
async def test_create_booking_as_vendor_forbidden(client: AsyncClient, vendor_headers, other_vendor):
    response = await client.post(
        "/api/v1/bookings/",
        json=_booking_payload(other_vendor.id),
        headers=vendor_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_booking_unknown_vendor(client: AsyncClient, client_headers, client_user):
    """Booking a non-vendor (here: another client) returns 404."""
    response = await client.post(
        "/api/v1/bookings/",
        json=_booking_payload(client_user.id),
        headers=client_headers,
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_booking_non_positive_budget(client: AsyncClient, client_headers, vendor_user):
    response = await client.post(
        "/api/v1/bookings/",
        json=_booking_payload(vendor_user.id, budget="0"),
        headers=client_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_booking_unauthenticated(client: AsyncClient, vendor_user):
    response = await client.post("/api/v1/bookings/", json=_booking_payload(vendor_user.id))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_accept_booking(client: AsyncClient, db_session, vendor_headers, client_user, pending_booking):
    """Vendor accepts -> CONFIRMED; client is told to pay."""
    response = await client.put(f"/api/v1/bookings/{pending_booking.id}/accept", headers=vendor_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "CONFIRMED"

    notes = await notifications_for(db_session, client_user.id, "BOOKING_ACCEPTED")
    assert len(notes) == 1
    assert notes[0].action_url.endswith(f"/dashboard/payments/{pending_booking.id}")


@pytest.mark.asyncio
async def test_accept_twice_rejected(client: AsyncClient, vendor_headers, pending_booking):
    """Accept requires PENDING; a second accept is an illegal transition."""
    await client.put(f"/api/v1/bookings/{pending_booking.id}/accept", headers=vendor_headers)
    response = await client.put(f"/api/v1/bookings/{pending_booking.id}/accept", headers=vendor_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize("action", ["accept", "decline"])
async def test_vendor_actions_forbidden_for_other_actors(
    client: AsyncClient,
    db_session,
    pending_booking,
    client_headers,
    other_vendor_headers,
    admin_headers,
    action,
):
    """Only the booking's vendor may accept or decline; nobody else changes anything."""
    for headers in (client_headers, other_vendor_headers, admin_headers):
        response = await client.put(f"/api/v1/bookings/{pending_booking.id}/{action}", headers=headers)
        assert response.status_code == 403

    await db_session.refresh(pending_booking)
    assert pending_booking.status == "PENDING"
    assert pending_booking.notes is None


@pytest.mark.asyncio
async def test_decline_booking_with_reason(client: AsyncClient, db_session, vendor_headers, client_user, pending_booking):
    response = await client.put(
        f"/api/v1/bookings/{pending_booking.id}/decline",
        json={"decline_reason": "fully booked"},
        headers=vendor_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "CANCELLED"
    assert data["notes"] == "fully booked"
    assert data["decline_reason"] == "fully booked"

    notes = await notifications_for(db_session, client_user.id, "BOOKING_DECLINED")
    assert len(notes) == 1
    assert "fully booked" in notes[0].message


@pytest.mark.asyncio
async def test_decline_without_reason_uses_default_note(client: AsyncClient, vendor_headers, pending_booking):
    response = await client.put(f"/api/v1/bookings/{pending_booking.id}/decline", headers=vendor_headers)
    assert response.status_code == 200
    assert response.json()["notes"] == "Declined by vendor"
    assert response.json()["decline_reason"] is None


@pytest.mark.asyncio
async def test_cancelled_booking_is_terminal(client: AsyncClient, vendor_headers, pending_booking):
    """After a decline no operation can move the status again."""
    await client.put(f"/api/v1/bookings/{pending_booking.id}/decline", headers=vendor_headers)

    for action in ("accept", "decline", "complete"):
        response = await client.put(f"/api/v1/bookings/{pending_booking.id}/{action}", headers=vendor_headers)
        assert response.status_code == 400

    for target in ("PENDING", "CONFIRMED", "COMPLETED"):
        response = await client.put(
            f"/api/v1/bookings/{pending_booking.id}",
            json={"status": target},
            headers=vendor_headers,
        )
        assert response.status_code == 400

    get_response = await client.get(f"/api/v1/bookings/{pending_booking.id}", headers=vendor_headers)
    assert get_response.json()["status"] == "CANCELLED"


@pytest.mark.asyncio
async def test_complete_booking(client: AsyncClient, db_session, vendor_headers, client_user, pending_booking):
    pending = await client.put(f"/api/v1/bookings/{pending_booking.id}/complete", headers=vendor_headers)
    assert pending.status_code == 400  # must be confirmed first

    await client.put(f"/api/v1/bookings/{pending_booking.id}/accept", headers=vendor_headers)
    response = await client.put(f"/api/v1/bookings/{pending_booking.id}/complete", headers=vendor_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"
    assert len(await notifications_for(db_session, client_user.id, "BOOKING_COMPLETED")) == 1


@pytest.mark.asyncio
async def test_update_booking_status_notifies_client(client: AsyncClient, db_session, vendor_headers, client_user, pending_booking):
    response = await client.put(
        f"/api/v1/bookings/{pending_booking.id}",
        json={"status": "CONFIRMED", "notes": "See you there"},
        headers=vendor_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "CONFIRMED"
    assert response.json()["notes"] == "See you there"

    notes = await notifications_for(db_session, client_user.id, "BOOKING_STATUS_UPDATE")
    assert len(notes) == 1
    assert notes[0].data["status"] == "CONFIRMED"
    assert notes[0].data["previous_status"] == "PENDING"


@pytest.mark.asyncio
async def test_update_booking_without_status_change_is_silent(client: AsyncClient, db_session, vendor_headers, client_user, pending_booking):
    response = await client.put(
        f"/api/v1/bookings/{pending_booking.id}",
        json={"status": "PENDING", "quoted_price": "550.00"},
        headers=vendor_headers,
    )
    assert response.status_code == 200
    assert Decimal(response.json()["quoted_price"]) == Decimal("550")
    assert await notifications_for(db_session, client_user.id) == []


@pytest.mark.asyncio
async def test_update_booking_client_forbidden(client: AsyncClient, client_headers, pending_booking):
    response = await client.put(
        f"/api/v1/bookings/{pending_booking.id}",
        json={"notes": "I want to change this"},
        headers=client_headers,
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_update_quoted_price_blocked_during_negotiation(client: AsyncClient, vendor_headers, pending_booking):
    await client.put(
        f"/api/v1/bookings/{pending_booking.id}/adjust-price",
        json={"adjusted_price": "650.00"},
        headers=vendor_headers,
    )
    response = await client.put(
        f"/api/v1/bookings/{pending_booking.id}",
        json={"quoted_price": "700.00"},
        headers=vendor_headers,
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_vendor_cannot_reopen_paid_booking(client: AsyncClient, payment_gateway, client_headers, vendor_headers, pending_booking):
    """Once escrow holds a payment the vendor cannot flip payment_status back and invite a second charge."""
    await client.post("/api/v1/payments/intents", json={"booking_id": pending_booking.id}, headers=client_headers)
    payment_gateway.settle("pi_test_1")
    await client.post("/api/v1/payments/verify", json={"payment_intent_id": "pi_test_1"}, headers=client_headers)

    response = await client.put(
        f"/api/v1/bookings/{pending_booking.id}",
        json={"payment_status": "PENDING", "notes": "Reset for a new payment"},
        headers=vendor_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Payment status of a paid booking cannot be changed"

    booking = await client.get(f"/api/v1/bookings/{pending_booking.id}", headers=vendor_headers)
    assert booking.json()["payment_status"] == "PAID"
    assert booking.json()["notes"] is None

    again = await client.post("/api/v1/payments/intents", json={"booking_id": pending_booking.id}, headers=client_headers)
    assert again.status_code == 400
    assert len(payment_gateway.created) == 1


@pytest.mark.asyncio
async def test_vendor_cannot_mark_unpaid_booking_paid(client: AsyncClient, vendor_headers, client_headers, pending_booking):
    response = await client.put(
        f"/api/v1/bookings/{pending_booking.id}",
        json={"payment_status": "PAID", "status": "CONFIRMED"},
        headers=vendor_headers,
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "A booking can only be marked paid by a completed payment"

    booking = await client.get(f"/api/v1/bookings/{pending_booking.id}", headers=client_headers)
    assert booking.json()["payment_status"] == "PENDING"
    assert booking.json()["status"] == "PENDING"


@pytest.mark.asyncio
async def test_vendor_can_record_partial_payment(client: AsyncClient, vendor_headers, pending_booking):
    response = await client.put(
        f"/api/v1/bookings/{pending_booking.id}",
        json={"payment_status": "PARTIAL"},
        headers=vendor_headers,
    )
    assert response.status_code == 200
    assert response.json()["payment_status"] == "PARTIAL"


@pytest.mark.asyncio
async def test_booking_not_found(client: AsyncClient, vendor_headers):
    response = await client.put("/api/v1/bookings/99999/accept", headers=vendor_headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Booking not found"


@pytest.mark.asyncio
async def test_get_booking_only_for_parties(client: AsyncClient, pending_booking, client_headers, vendor_headers, other_vendor_headers, admin_headers):
    for headers in (client_headers, vendor_headers, admin_headers):
        response = await client.get(f"/api/v1/bookings/{pending_booking.id}", headers=headers)
        assert response.status_code == 200

    response = await client.get(f"/api/v1/bookings/{pending_booking.id}", headers=other_vendor_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_list_bookings_with_stats(client: AsyncClient, client_headers, vendor_headers, other_vendor_headers, vendor_user):
    for _ in range(3):
        await client.post("/api/v1/bookings/", json=_booking_payload(vendor_user.id), headers=client_headers)

    listing = await client.get("/api/v1/bookings/", headers=vendor_headers)
    first_id = listing.json()["bookings"][0]["id"]
    await client.put(f"/api/v1/bookings/{first_id}/accept", headers=vendor_headers)

    response = await client.get("/api/v1/bookings/?status=PENDING&page_size=1", headers=client_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert len(data["bookings"]) == 1
    assert data["stats"] == {"total": 3, "pending": 2, "confirmed": 1, "cancelled": 0, "completed": 0}

    # Another vendor sees none of these
    other = await client.get("/api/v1/bookings/", headers=other_vendor_headers)
    assert other.json()["total"] == 0
    assert other.json()["stats"]["total"] == 0
