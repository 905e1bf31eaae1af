from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import TransactionConflictError

OBLIGATIONS_URL = "/api/v1/obligations"


async def _create_obligation(client, amount="100.00"):
    response = await client.post(
        OBLIGATIONS_URL,
        json={
            "kind": "transaction",
            "name": "Car repair",
            "amount": amount,
            "currency_code": "USD",
            "due_date": "2024-06-30",
        }
    )
    assert response.status_code == 201
    return response.json()["id"]


@pytest.mark.asyncio
async def test_record_payment(client):
    obligation_id = await _create_obligation(client)

    response = await client.post(
        f"{OBLIGATIONS_URL}/{obligation_id}/payments",
        data={"amount": "40", "paid_at": "2024-06-10", "note": "First half"}
    )

    assert response.status_code == 201
    data = response.json()
    assert data["amount_cents"] == 4000
    assert data["amount"] == "40.00"
    assert data["note"] == "First half"
    assert data["attachment_id"] is None

    obligation = (await client.get(f"{OBLIGATIONS_URL}/{obligation_id}")).json()
    assert obligation["remaining_cents"] == 6000


@pytest.mark.asyncio
async def test_record_payment_with_file(client, store, owner_id):
    obligation_id = await _create_obligation(client)

    response = await client.post(
        f"{OBLIGATIONS_URL}/{obligation_id}/payments",
        data={"amount": "100", "paid_at": "2024-06-10"},
        files={"proof_of_payment_file": ("receipt.pdf", b"%PDF-1.4", "application/pdf")}
    )

    assert response.status_code == 201
    attachment_id = response.json()["attachment_id"]
    assert attachment_id in store.attachments
    assert store.attachments[attachment_id].filename == "receipt.pdf"
    assert store.storage_used[owner_id] == 8


@pytest.mark.asyncio
async def test_record_payment_links_uploaded_attachment(client):
    obligation_id = await _create_obligation(client)
    upload = await client.post(
        "/api/v1/attachments",
        files={"file": ("scan.png", b"png-bytes", "image/png")}
    )
    assert upload.status_code == 201
    attachment_id = upload.json()["id"]

    response = await client.post(
        f"{OBLIGATIONS_URL}/{obligation_id}/payments",
        data={"amount": "5", "paid_at": "2024-06-10", "attachment_id": attachment_id}
    )

    assert response.status_code == 201
    assert response.json()["attachment_id"] == attachment_id


@pytest.mark.asyncio
async def test_record_payment_exceeding_balance(client):
    obligation_id = await _create_obligation(client)

    response = await client.post(
        f"{OBLIGATIONS_URL}/{obligation_id}/payments",
        data={"amount": "100.01", "paid_at": "2024-06-10"}
    )

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert detail["amount_cents"] == 10001
    assert detail["remaining_cents"] == 10000
    assert "exceeds remaining balance (100.00)" in detail["message"]


@pytest.mark.asyncio
async def test_rejected_payment_with_file_stores_nothing(client, store, owner_id, tmp_path):
    obligation_id = await _create_obligation(client, amount="10")

    response = await client.post(
        f"{OBLIGATIONS_URL}/{obligation_id}/payments",
        data={"amount": "20", "paid_at": "2024-06-10"},
        files={"proof_of_payment_file": ("receipt.pdf", b"%PDF", "application/pdf")}
    )

    assert response.status_code == 400
    assert store.payments == {}
    assert store.attachments == {}
    assert store.storage_used[owner_id] == 0
    assert not [p for p in tmp_path.rglob("*") if p.is_file()]


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["abc", "0", "1e308"])
async def test_invalid_amount_with_file_stores_nothing(client, store, tmp_path, amount):
    obligation_id = await _create_obligation(client)

    response = await client.post(
        f"{OBLIGATIONS_URL}/{obligation_id}/payments",
        data={"amount": amount, "paid_at": "2024-06-10"},
        files={"proof_of_payment_file": ("receipt.pdf", b"%PDF", "application/pdf")}
    )

    assert response.status_code == 422
    assert response.json()["detail"][0]["field"] == "amount"
    assert store.attachments == {}
    assert not [p for p in tmp_path.rglob("*") if p.is_file()]


@pytest.mark.asyncio
async def test_payment_with_file_on_unknown_obligation_stores_nothing(client, store, tmp_path):
    response = await client.post(
        f"{OBLIGATIONS_URL}/507f1f77bcf86cd799439011/payments",
        data={"amount": "10", "paid_at": "2024-06-10"},
        files={"proof_of_payment_file": ("receipt.pdf", b"%PDF", "application/pdf")}
    )

    assert response.status_code == 404
    assert store.attachments == {}
    assert not [p for p in tmp_path.rglob("*") if p.is_file()]


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0", "-3", "abc", "1e308", "1e17"])
async def test_record_payment_invalid_amount(client, amount):
    obligation_id = await _create_obligation(client)

    response = await client.post(
        f"{OBLIGATIONS_URL}/{obligation_id}/payments",
        data={"amount": amount, "paid_at": "2024-06-10"}
    )

    assert response.status_code == 422
    assert response.json()["detail"][0]["field"] == "amount"


@pytest.mark.asyncio
async def test_record_payment_invalid_date(client):
    obligation_id = await _create_obligation(client)

    response = await client.post(
        f"{OBLIGATIONS_URL}/{obligation_id}/payments",
        data={"amount": "10", "paid_at": "not-a-date"}
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_record_payment_file_and_attachment_id(client):
    obligation_id = await _create_obligation(client)

    response = await client.post(
        f"{OBLIGATIONS_URL}/{obligation_id}/payments",
        data={"amount": "10", "paid_at": "2024-06-10", "attachment_id": "507f1f77bcf86cd799439011"},
        files={"proof_of_payment_file": ("receipt.pdf", b"%PDF", "application/pdf")}
    )

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_record_payment_unknown_obligation(client):
    response = await client.post(
        f"{OBLIGATIONS_URL}/507f1f77bcf86cd799439011/payments",
        data={"amount": "10", "paid_at": "2024-06-10"}
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_record_payment_conflict(client, payment_service):
    obligation_id = await _create_obligation(client)
    payment_service.record_payment = AsyncMock(side_effect=TransactionConflictError("busy"))

    response = await client.post(
        f"{OBLIGATIONS_URL}/{obligation_id}/payments",
        data={"amount": "10", "paid_at": "2024-06-10"}
    )

    assert response.status_code == 409


@pytest.mark.asyncio
async def test_list_and_delete_payment(client):
    obligation_id = await _create_obligation(client)
    first = await client.post(
        f"{OBLIGATIONS_URL}/{obligation_id}/payments",
        data={"amount": "30", "paid_at": "2024-06-12"}
    )
    await client.post(
        f"{OBLIGATIONS_URL}/{obligation_id}/payments",
        data={"amount": "20", "paid_at": "2024-06-01"}
    )

    listed = await client.get(f"{OBLIGATIONS_URL}/{obligation_id}/payments")
    assert listed.status_code == 200
    assert [p["paid_at"] for p in listed.json()] == ["2024-06-01", "2024-06-12"]

    deleted = await client.delete(f"/api/v1/payments/{first.json()['id']}")
    assert deleted.status_code == 200

    obligation = (await client.get(f"{OBLIGATIONS_URL}/{obligation_id}")).json()
    assert obligation["total_paid_cents"] == 2000
    assert len(obligation["payments"]) == 1


@pytest.mark.asyncio
async def test_delete_unknown_payment(client):
    response = await client.delete("/api/v1/payments/507f1f77bcf86cd799439011")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_upload_empty_attachment(client):
    response = await client.post(
        "/api/v1/attachments",
        files={"file": ("empty.pdf", b"", "application/pdf")}
    )
    assert response.status_code == 422
