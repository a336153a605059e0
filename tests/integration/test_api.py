"""Integration tests for API endpoints"""

import uuid

import pytest
from fastapi.testclient import TestClient

from organitto_ops.domain.models import Actor, Role
from organitto_ops.domain.pipeline import StagePipeline

pytestmark = pytest.mark.integration


def _submit_expense(client: TestClient, headers, **overrides):
    body = {
        "amount_cents": 500000,
        "transaction_date": "2024-03-01",
        "category": "raw_materials",
        "notes": "Shea butter",
    }
    body.update(overrides)
    return client.post("/v1/finance/expense", json=body, headers=headers)


def _create_product(client: TestClient, headers, name="Neem Face Wash"):
    return client.post(
        "/v1/products",
        json={"name": name, "category": "skincare", "priority": "high"},
        headers=headers,
    )


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "organitto_decisions_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_missing_token_is_unauthorized(client: TestClient):
    response = client.get("/v1/finance/expense")
    assert response.status_code == 401


def test_invalid_token_is_unauthorized(client: TestClient):
    response = client.get("/v1/finance/expense", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


def test_pending_account_cannot_act(client: TestClient, auth_headers):
    response = _submit_expense(client, auth_headers("pending-1"))
    assert response.status_code == 403


def test_unknown_profile_is_unauthorized(client: TestClient, auth_headers):
    response = client.get("/v1/products", headers=auth_headers("stranger"))
    assert response.status_code == 401


def test_expense_approval_flow(client: TestClient, auth_headers):
    """Test partner submits 5000 Raw Materials and an admin approves it"""
    submitted = _submit_expense(client, auth_headers("partner-1"))
    assert submitted.status_code == 201
    record = submitted.json()
    assert record["status"] == "pending"
    assert record["submitter_id"] == "partner-1"
    assert record["payment_mode"] == "cash"

    response = client.post(
        f"/v1/finance/expense/{record['id']}/decision",
        json={"decision": "approve", "comment": "Bill checked"},
        headers=auth_headers("admin-1"),
    )
    assert response.status_code == 200
    decided = response.json()
    assert decided["status"] == "approved"
    assert decided["approver_id"] == "admin-1"
    assert decided["decided_at"] is not None
    assert decided["approval_comment"] == "Bill checked"

    activity = client.get("/v1/activity", headers=auth_headers("partner-1")).json()["activity"]
    descriptions = [entry["description"] for entry in activity]
    assert "Asha approved expense: 5,000.00 for Raw Materials" in descriptions


def test_reject_without_reason_is_refused(client: TestClient, auth_headers):
    record = _submit_expense(client, auth_headers("partner-1")).json()

    response = client.post(
        f"/v1/finance/expense/{record['id']}/decision",
        json={"decision": "reject", "rejection_reason": "   "},
        headers=auth_headers("admin-1"),
    )
    assert response.status_code == 422
    assert response.json()["detail"]["error"] == "MissingRejectionReason"

    current = client.get(f"/v1/finance/expense/{record['id']}", headers=auth_headers("admin-1")).json()
    assert current["status"] == "pending"
    assert current["approver_id"] is None


def test_partner_cannot_decide(client: TestClient, auth_headers):
    record = _submit_expense(client, auth_headers("partner-1")).json()

    response = client.post(
        f"/v1/finance/expense/{record['id']}/decision",
        json={"decision": "approve"},
        headers=auth_headers("partner-1"),
    )
    assert response.status_code == 403


def test_second_decision_conflicts(client: TestClient, auth_headers):
    """Test a decided record answers 409 and keeps the first outcome"""
    record = _submit_expense(client, auth_headers("partner-1")).json()
    url = f"/v1/finance/expense/{record['id']}/decision"

    first = client.post(url, json={"decision": "approve"}, headers=auth_headers("admin-1"))
    second = client.post(
        url, json={"decision": "reject", "rejection_reason": "duplicate"}, headers=auth_headers("admin-2")
    )

    assert first.status_code == 200
    assert second.status_code == 409
    current = client.get(f"/v1/finance/expense/{record['id']}", headers=auth_headers("admin-1")).json()
    assert current["status"] == "approved"
    assert current["approver_id"] == "admin-1"


def test_decide_unknown_record(client: TestClient, auth_headers):
    response = client.post(
        f"/v1/finance/expense/{uuid.uuid4()}/decision",
        json={"decision": "approve"},
        headers=auth_headers("admin-1"),
    )
    assert response.status_code == 404


def test_invalid_submission(client: TestClient, auth_headers):
    assert _submit_expense(client, auth_headers("partner-1"), amount_cents=0).status_code == 422
    assert _submit_expense(client, auth_headers("partner-1"), payment_mode="barter").status_code == 422
    assert _submit_expense(client, auth_headers("partner-1"), status="approved").status_code == 422


def test_investment_reject_flow(client: TestClient, auth_headers):
    submitted = client.post(
        "/v1/finance/investment",
        json={"amount_cents": 2500000, "transaction_date": "2024-02-15", "category": "Working capital"},
        headers=auth_headers("partner-1"),
    )
    assert submitted.status_code == 201
    record = submitted.json()
    assert record["partner_id"] == "partner-1"

    response = client.post(
        f"/v1/finance/investment/{record['id']}/decision",
        json={"decision": "reject", "rejection_reason": "No transfer proof"},
        headers=auth_headers("admin-2"),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "rejected"
    assert response.json()["rejection_reason"] == "No transfer proof"


def test_partners_see_only_their_records(client: TestClient, auth_headers):
    _submit_expense(client, auth_headers("partner-1"))
    _submit_expense(client, auth_headers("admin-1"), category="rent")

    mine = client.get("/v1/finance/expense", headers=auth_headers("partner-1")).json()["records"]
    everything = client.get("/v1/finance/expense", headers=auth_headers("admin-1")).json()["records"]

    assert {r["submitter_id"] for r in mine} == {"partner-1"}
    assert len(everything) == 2

    pending = client.get("/v1/finance/expense?status=pending", headers=auth_headers("admin-1")).json()["records"]
    assert len(pending) == 2


def test_delete_record(client: TestClient, auth_headers):
    record = _submit_expense(client, auth_headers("partner-1")).json()
    url = f"/v1/finance/expense/{record['id']}"

    assert client.delete(url, headers=auth_headers("partner-1")).status_code == 403
    assert client.delete(url, headers=auth_headers("admin-1")).status_code == 204
    assert client.get(url, headers=auth_headers("admin-1")).status_code == 404
    assert client.delete(url, headers=auth_headers("admin-1")).status_code == 404


def test_upload_proof(client: TestClient, auth_headers):
    headers = {**auth_headers("partner-1"), "Content-Type": "application/pdf"}
    response = client.post("/v1/finance/expense/proofs?filename=bill.pdf", content=b"%PDF-1.4", headers=headers)

    assert response.status_code == 201
    data = response.json()
    assert data["path"].startswith("bills/")
    assert data["path"].endswith(".pdf")
    assert data["url"].endswith(f"/object/public/expense-bills/{data['path']}")


def test_upload_empty_proof(client: TestClient, auth_headers):
    response = client.post(
        "/v1/finance/investment/proofs?filename=proof.png", content=b"", headers=auth_headers("partner-1")
    )
    assert response.status_code == 422


def test_product_advances_through_pipeline(client: TestClient, auth_headers):
    """Test three advances reach testing with a consistent stage history"""
    product = _create_product(client, auth_headers("partner-1")).json()
    assert product["current_stage"] == "idea"

    for _ in range(3):
        response = client.post(f"/v1/products/{product['id']}/advance", headers=auth_headers("partner-1"))
        assert response.status_code == 200

    assert response.json()["current_stage"] == "testing"

    history = client.get(f"/v1/products/{product['id']}/history", headers=auth_headers("partner-1")).json()
    entries = history["entries"]
    assert [e["stage"] for e in entries] == ["idea", "research", "formula", "testing"]
    assert [e["exited_at"] is None for e in entries] == [False, False, False, True]
    assert entries[0]["notes"] == "Product created"
    for earlier, later in zip(entries, entries[1:]):
        assert later["entered_at"] == earlier["exited_at"]


def test_launch_requires_confirmation(client: TestClient, auth_headers):
    """Test the move into launched needs confirm_launch and nothing moves afterwards"""
    product = _create_product(client, auth_headers("admin-1")).json()
    url = f"/v1/products/{product['id']}/advance"

    for _ in range(7):
        assert client.post(url, headers=auth_headers("admin-1")).status_code == 200

    unconfirmed = client.post(url, headers=auth_headers("admin-1"))
    assert unconfirmed.status_code == 428
    current = client.get(f"/v1/products/{product['id']}", headers=auth_headers("admin-1")).json()
    assert current["current_stage"] == "ready"

    launched = client.post(url, json={"confirm_launch": True}, headers=auth_headers("admin-1"))
    assert launched.status_code == 200
    assert launched.json()["current_stage"] == "launched"
    assert launched.json()["progress"] == 100

    again = client.post(url, json={"confirm_launch": True}, headers=auth_headers("admin-1"))
    assert again.status_code == 409
    assert again.json()["detail"]["error"] == "AlreadyTerminal"


def test_unconfirmed_advance_cannot_launch_after_a_concurrent_move(client: TestClient, auth_headers, monkeypatch):
    """Test an advance sent while the product was at production does not launch it once it reached ready"""
    product = _create_product(client, auth_headers("admin-1")).json()
    url = f"/v1/products/{product['id']}"
    client.patch(url, json={"current_stage": "production"}, headers=auth_headers("admin-1"))

    real_advance = StagePipeline.advance
    other_user = Actor(user_id="partner-1", name="Meera", role=Role.PARTNER)

    def advanced_by_someone_else_first(self, product_id, actor, confirm_launch=False):
        real_advance(self, product_id, other_user)
        return real_advance(self, product_id, actor, confirm_launch=confirm_launch)

    monkeypatch.setattr(StagePipeline, "advance", advanced_by_someone_else_first)
    response = client.post(f"{url}/advance", json={}, headers=auth_headers("admin-1"))
    monkeypatch.undo()

    assert response.status_code == 428
    assert response.json()["detail"]["error"] == "LaunchNotConfirmed"
    current = client.get(url, headers=auth_headers("admin-1")).json()
    assert current["current_stage"] == "ready"
    assert current["progress"] != 100


def test_advance_unknown_product(client: TestClient, auth_headers):
    response = client.post(f"/v1/products/{uuid.uuid4()}/advance", headers=auth_headers("admin-1"))
    assert response.status_code == 404


def test_product_override(client: TestClient, auth_headers):
    """Test PATCH sets stage and progress directly and leaves history alone"""
    product = _create_product(client, auth_headers("partner-1")).json()
    url = f"/v1/products/{product['id']}"

    denied = client.patch(url, json={"progress": 40}, headers=auth_headers("partner-1"))
    assert denied.status_code == 403

    response = client.patch(
        url,
        json={"current_stage": "printing", "progress": 70, "description": "Cold-pressed neem"},
        headers=auth_headers("admin-1"),
    )
    assert response.status_code == 200
    data = response.json()
    assert data["current_stage"] == "printing"
    assert data["progress"] == 70
    assert data["description"] == "Cold-pressed neem"

    history = client.get(f"{url}/history", headers=auth_headers("admin-1")).json()["entries"]
    assert [e["stage"] for e in history] == ["idea"]

    assert client.patch(url, json={"progress": 150}, headers=auth_headers("admin-1")).status_code == 422
    assert client.patch(url, json={"created_by": "x"}, headers=auth_headers("admin-1")).status_code == 422


def test_list_products_by_stage(client: TestClient, auth_headers):
    first = _create_product(client, auth_headers("partner-1"), name="Rose Toner").json()
    _create_product(client, auth_headers("partner-1"), name="Aloe Gel")
    client.post(f"/v1/products/{first['id']}/advance", headers=auth_headers("partner-1"))

    research = client.get("/v1/products?stage=research", headers=auth_headers("admin-1")).json()["products"]
    assert [p["name"] for p in research] == ["Rose Toner"]


def test_signup_approval_signin_flow(client: TestClient, auth_headers):
    """Test a new registration stays locked out until an admin approves it"""
    signup = client.post(
        "/v1/auth/signup",
        json={"email": "newbie@example.com", "password": "secret", "name": "Nisha"},
    )
    assert signup.status_code == 201
    assert signup.json()["approval_status"] == "pending"

    locked = client.post("/v1/auth/signin", json={"email": "newbie@example.com", "password": "secret"})
    assert locked.status_code == 403

    queue = client.get("/v1/users", headers=auth_headers("admin-1")).json()["users"]
    assert {u["id"] for u in queue} == {"pending-1", "newbie"}

    approved = client.post(
        "/v1/users/newbie/approval", json={"decision": "approve"}, headers=auth_headers("admin-1")
    )
    assert approved.status_code == 200
    assert approved.json()["approval_status"] == "approved"

    session = client.post("/v1/auth/signin", json={"email": "newbie@example.com", "password": "secret"})
    assert session.status_code == 200
    token = session.json()["access_token"]
    assert session.json()["profile"]["id"] == "newbie"

    products = client.get("/v1/products", headers={"Authorization": f"Bearer {token}"})
    assert products.status_code == 200

    assert client.post("/v1/auth/signout", headers={"Authorization": f"Bearer {token}"}).status_code == 204


def test_signin_wrong_password(client: TestClient):
    response = client.post("/v1/auth/signin", json={"email": "admin-1@example.com", "password": "nope"})
    assert response.status_code == 401


def test_account_review_is_admin_only(client: TestClient, auth_headers):
    assert client.get("/v1/users", headers=auth_headers("partner-1")).status_code == 403
    response = client.post(
        "/v1/users/pending-1/approval", json={"decision": "reject"}, headers=auth_headers("admin-1")
    )
    assert response.status_code == 422

    rejected = client.post(
        "/v1/users/pending-1/approval",
        json={"decision": "reject", "rejection_reason": "Not a partner"},
        headers=auth_headers("admin-1"),
    )
    assert rejected.status_code == 200
    assert rejected.json()["rejection_reason"] == "Not a partner"

    again = client.post(
        "/v1/users/pending-1/approval", json={"decision": "approve"}, headers=auth_headers("admin-2")
    )
    assert again.status_code == 409


def test_signup_cannot_choose_role(client: TestClient):
    """Test self-registration always yields a pending partner"""
    escalated = client.post(
        "/v1/auth/signup",
        json={"email": "boss@example.com", "password": "secret", "name": "Boss", "role": "admin"},
    )
    assert escalated.status_code == 422

    signup = client.post("/v1/auth/signup", json={"email": "boss@example.com", "password": "secret", "name": "Boss"})
    assert signup.status_code == 201
    assert signup.json()["role"] == "partner"


def test_signup_twice_conflicts(client: TestClient):
    body = {"email": "twice@example.com", "password": "secret", "name": "Tara"}
    assert client.post("/v1/auth/signup", json=body).status_code == 201

    again = client.post("/v1/auth/signup", json=body)
    assert again.status_code == 409
    assert again.json()["detail"]["error"] == "DuplicateRecord"


def test_edit_pending_expense(client: TestClient, auth_headers):
    """Test the submitter corrects a pending expense; decision fields stay out of reach"""
    record = _submit_expense(client, auth_headers("partner-1")).json()
    url = f"/v1/finance/expense/{record['id']}"

    edited = client.patch(
        url, json={"amount_cents": 480000, "notes": "Shea butter, 19kg"}, headers=auth_headers("partner-1")
    )
    assert edited.status_code == 200
    assert edited.json()["amount_cents"] == 480000
    assert edited.json()["notes"] == "Shea butter, 19kg"
    assert edited.json()["status"] == "pending"

    status_change = client.patch(url, json={"status": "approved"}, headers=auth_headers("partner-1"))
    assert status_change.status_code == 422
    assert client.get(url, headers=auth_headers("admin-1")).json()["status"] == "pending"

    activity = client.get("/v1/activity", headers=auth_headers("admin-1")).json()["activity"]
    assert "expense_updated" in {entry["activity_type"] for entry in activity}


def test_edit_after_decision_conflicts(client: TestClient, auth_headers):
    record = _submit_expense(client, auth_headers("partner-1")).json()
    url = f"/v1/finance/expense/{record['id']}"
    client.post(f"{url}/decision", json={"decision": "approve"}, headers=auth_headers("admin-1"))

    response = client.patch(url, json={"amount_cents": 1}, headers=auth_headers("partner-1"))
    assert response.status_code == 409
    assert client.get(url, headers=auth_headers("admin-1")).json()["amount_cents"] == 500000


def test_edit_by_admin_and_unknown_record(client: TestClient, auth_headers):
    record = _submit_expense(client, auth_headers("partner-1")).json()

    by_admin = client.patch(
        f"/v1/finance/expense/{record['id']}", json={"payment_mode": "bank_transfer"}, headers=auth_headers("admin-1")
    )
    assert by_admin.status_code == 200
    assert by_admin.json()["payment_mode"] == "bank_transfer"

    missing = client.patch(f"/v1/finance/expense/{uuid.uuid4()}", json={"notes": "x"}, headers=auth_headers("admin-1"))
    assert missing.status_code == 404


def test_vendor_directory(client: TestClient, auth_headers):
    """Test adding, reading and editing a vendor, then attributing an expense to it"""
    created = client.post(
        "/v1/vendors",
        json={"name": "Shea Traders", "contact_person": "Ramesh", "certifications": ["ISO 9001"]},
        headers=auth_headers("partner-1"),
    )
    assert created.status_code == 201
    vendor = created.json()
    assert vendor["category"] == "Raw Materials"
    assert vendor["payment_terms"] == "30 days"
    assert vendor["current_rating"] == 3

    client.post("/v1/vendors", json={"name": "Akash Prints", "category": "Printing"}, headers=auth_headers("admin-1"))
    names = [v["name"] for v in client.get("/v1/vendors", headers=auth_headers("partner-1")).json()["vendors"]]
    assert names == ["Akash Prints", "Shea Traders"]

    url = f"/v1/vendors/{vendor['id']}"
    updated = client.patch(url, json={"current_rating": 5}, headers=auth_headers("partner-1"))
    assert updated.status_code == 200
    assert updated.json()["current_rating"] == 5
    assert updated.json()["contact_person"] == "Ramesh"
    assert client.patch(url, json={"current_rating": 9}, headers=auth_headers("partner-1")).status_code == 422

    assert client.get(url, headers=auth_headers("partner-1")).json()["name"] == "Shea Traders"
    assert client.get(f"/v1/vendors/{uuid.uuid4()}", headers=auth_headers("partner-1")).status_code == 404

    expense = _submit_expense(client, auth_headers("partner-1"), vendor_id=vendor["id"])
    assert expense.status_code == 201
    assert expense.json()["vendor_id"] == vendor["id"]


def test_expense_with_unknown_vendor_is_refused(client: TestClient, auth_headers):
    response = _submit_expense(client, auth_headers("partner-1"), vendor_id=str(uuid.uuid4()))
    assert response.status_code == 422
    assert client.get("/v1/finance/expense", headers=auth_headers("admin-1")).json()["records"] == []


def test_vendor_delete_is_admin_only_and_detaches_expenses(client: TestClient, auth_headers):
    vendor = client.post("/v1/vendors", json={"name": "Glass Jars Co"}, headers=auth_headers("partner-1")).json()
    expense = _submit_expense(client, auth_headers("partner-1"), vendor_id=vendor["id"]).json()
    url = f"/v1/vendors/{vendor['id']}"

    assert client.delete(url, headers=auth_headers("partner-1")).status_code == 403
    assert client.delete(url, headers=auth_headers("admin-1")).status_code == 204
    assert client.get(url, headers=auth_headers("admin-1")).status_code == 404

    detached = client.get(f"/v1/finance/expense/{expense['id']}", headers=auth_headers("admin-1")).json()
    assert detached["vendor_id"] is None
