"""End-to-end tests through the HTTP API against an in-memory database."""

from datetime import datetime

from bson import ObjectId

from app.services.mongo_service import utc_now
from tests.conftest import PASSWORD, auth_headers


def test_register_login_and_me(client):
    response = client.post("/api/auth/register", json={
        "email": "Amina@Example.com", "password": PASSWORD, "role": "company",
    })
    assert response.status_code == 201

    response = client.post("/api/auth/register", json={
        "email": "amina@example.com", "password": PASSWORD,
    })
    assert response.status_code == 409

    response = client.post("/api/auth/login", json={"email": "amina@example.com", "password": PASSWORD})
    assert response.status_code == 200
    token = response.json()["access_token"]

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    body = me.json()
    assert body["email"] == "amina@example.com"
    assert body["role"] == "company"
    assert "password_hash" not in body


def test_login_rejects_bad_credentials(client, make_user):
    user = make_user()
    response = client.post("/api/auth/login", json={"email": user["email"], "password": "wrong-password"})
    assert response.status_code == 401


def test_admins_cannot_self_register(client):
    response = client.post("/api/auth/register", json={
        "email": "root@example.com", "password": PASSWORD, "role": "admin",
    })
    assert response.status_code == 422


def test_protected_routes_need_a_token(client):
    assert client.get("/api/auth/me").status_code in (401, 403)
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


def test_admin_routes_reject_regular_users(client, make_user):
    headers = auth_headers(make_user())
    assert client.get("/api/admin/stats", headers=headers).status_code == 403
    assert client.post(f"/api/escrow/{ObjectId()}/release", headers=headers).status_code == 403


def test_quota_flow(client, make_user):
    admin = make_user("admin")
    user = make_user("candidate")
    headers = auth_headers(user)

    response = client.post("/api/premium/quotas/applications/consume", json={"amount": 1}, headers=headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "Premium subscription required"

    response = client.post(
        f"/api/admin/users/{user['_id']}/plan", json={"plan": "individual-pro"}, headers=auth_headers(admin)
    )
    assert response.status_code == 200
    assert response.json()["applications"]["remaining"] == 10

    response = client.post(
        "/api/premium/quotas/applications/consume",
        json={"amount": 4, "idempotency_key": "apply-42"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["remaining"] == 6

    retry = client.post(
        "/api/premium/quotas/applications/consume",
        json={"amount": 4, "idempotency_key": "apply-42"},
        headers=headers,
    )
    assert retry.json()["remaining"] == 6

    response = client.post("/api/premium/quotas/applications/consume", json={"amount": 7}, headers=headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "Quota limit exceeded"

    quota = client.get("/api/premium/quotas/applications", headers=headers).json()
    assert quota["used"] + quota["remaining"] == quota["total"]

    assert client.get("/api/premium/quotas/cv_views", headers=headers).status_code == 404
    assert client.get("/api/premium/quotas/teleports", headers=headers).status_code == 422


def test_consume_rejects_zero_amount(client, make_user):
    headers = auth_headers(make_user(plan="individual-pro"))
    response = client.post("/api/premium/quotas/applications/consume", json={"amount": 0}, headers=headers)
    assert response.status_code == 422


def test_escrow_lifecycle(client, make_user):
    admin = make_user("admin")
    buyer = make_user("company")
    seller = make_user("candidate")
    stranger = make_user("candidate")

    order = client.post(
        "/api/orders", json={"seller_id": str(seller["_id"]), "amount": 200}, headers=auth_headers(buyer)
    ).json()
    assert order["status"] == "pending"

    response = client.post(
        "/api/escrow", json={"order_id": order["id"], "amount": 200}, headers=auth_headers(seller)
    )
    assert response.status_code == 403

    response = client.post(
        "/api/escrow", json={"order_id": order["id"], "amount": 200, "transaction_id": "pay-1"},
        headers=auth_headers(buyer),
    )
    assert response.status_code == 201
    escrow = response.json()
    assert escrow["status"] == "held"

    duplicate = client.post(
        "/api/escrow", json={"order_id": order["id"], "amount": 200}, headers=auth_headers(buyer)
    )
    assert duplicate.status_code == 409

    assert client.get(f"/api/escrow/{escrow['id']}", headers=auth_headers(stranger)).status_code == 403

    released = client.post(f"/api/escrow/{escrow['id']}/release", headers=auth_headers(admin)).json()
    assert released["commission"] == 20
    assert released["seller_earnings"] == 180

    wallet = client.get("/api/wallet", headers=auth_headers(seller)).json()
    assert wallet["balance"] == 180
    history = client.get("/api/wallet/transactions", headers=auth_headers(seller)).json()
    assert history["meta"]["total"] == 1

    response = client.post(f"/api/escrow/{escrow['id']}/refund", headers=auth_headers(admin))
    assert response.status_code == 400

    order = client.get(f"/api/orders/{order['id']}", headers=auth_headers(buyer)).json()
    assert order["status"] == "completed"


def test_escrow_validation(client, make_user):
    headers = auth_headers(make_user())
    response = client.post("/api/escrow", json={"order_id": str(ObjectId()), "amount": -10}, headers=headers)
    assert response.status_code == 422

    response = client.post("/api/escrow", json={"order_id": "order-1", "amount": 10}, headers=headers)
    assert response.status_code == 422

    response = client.post("/api/escrow", json={"order_id": str(ObjectId()), "amount": 10}, headers=headers)
    assert response.status_code == 404


def test_dispute_and_admin_resolution(client, make_user):
    admin = make_user("admin")
    buyer, seller = make_user(), make_user()
    order = client.post(
        "/api/orders", json={"seller_id": str(seller["_id"]), "amount": 50}, headers=auth_headers(buyer)
    ).json()
    escrow = client.post(
        "/api/escrow", json={"order_id": order["id"], "amount": 50}, headers=auth_headers(buyer)
    ).json()

    disputed = client.post(f"/api/escrow/{escrow['id']}/dispute", headers=auth_headers(seller)).json()
    assert disputed["status"] == "disputed"

    listing = client.get("/api/admin/finances/escrow?status=disputed", headers=auth_headers(admin)).json()
    assert listing["meta"]["total"] == 1

    response = client.post(
        f"/api/admin/finances/escrow/{escrow['id']}/resolve", json={"decision": "refund"},
        headers=auth_headers(admin),
    )
    assert response.json()["status"] == "refunded"
    assert client.get("/api/wallet", headers=auth_headers(buyer)).json()["balance"] == 50


def test_admin_actions(client, make_user):
    admin = make_user("admin")
    target = make_user()
    headers = auth_headers(admin)

    response = client.post("/api/admin/actions", json={"action": "nuke_user", "target_id": str(target["_id"])},
                           headers=headers)
    assert response.status_code == 422

    response = client.post("/api/admin/actions", json={"action": "ban_user", "target_id": "  "}, headers=headers)
    assert response.status_code == 422

    response = client.post(
        "/api/admin/actions", json={"action": "ban_user", "target_id": str(target["_id"]), "reason": "fraud"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["result"]["is_active"] is False

    # Banned users lose access immediately
    assert client.get("/api/auth/me", headers=auth_headers(target)).status_code == 403

    logs = client.get("/api/admin/logs", headers=headers).json()
    assert logs["meta"]["total"] == 1
    assert logs["data"][0]["reason"] == "fraud"

    stats = client.get("/api/admin/stats", headers=headers).json()
    assert stats["users"] == 2


def test_skills_api(client, make_user):
    admin = make_user("admin")
    user = make_user()

    response = client.post("/api/skills", json={"name": "  Kotlin ", "category": "language"},
                           headers=auth_headers(admin))
    assert response.status_code == 201
    assert response.json()["name"] == "Kotlin"

    assert client.post("/api/skills", json={"name": "   "}, headers=auth_headers(admin)).status_code == 422

    added = client.post("/api/users/me/skills", json={"name": "Kotlin"}, headers=auth_headers(user)).json()
    assert added["usage_count"] == 1

    skills = client.get("/api/skills", params={"q": "kot"}).json()
    assert [s["name"] for s in skills] == ["Kotlin"]

    assert client.delete("/api/users/me/skills/Kotlin", headers=auth_headers(user)).status_code == 200
    assert client.delete("/api/users/me/skills/Kotlin", headers=auth_headers(user)).status_code == 404


def test_quota_maintenance_endpoints(client, make_user):
    headers = auth_headers(make_user("admin"))

    seeded = client.post("/api/admin/quotas/seed", headers=headers).json()
    assert seeded == {"inserted": 0, "verified": True}

    assert client.post("/api/admin/quotas/reset", headers=headers).json() == {"reset": 0}


def test_root(client):
    assert client.get("/").json()["status"] == "healthy"


def test_order_with_unknown_seller_is_rejected(client, make_user, db):
    response = client.post(
        "/api/orders", json={"seller_id": str(ObjectId()), "amount": 100}, headers=auth_headers(make_user())
    )
    assert response.status_code == 404
    assert response.json()["detail"] == "Seller not found"
    assert db["orders"].count_documents({}) == 0


def test_order_workflow_release_on_confirmation(client, make_user):
    buyer, seller = make_user("company"), make_user()
    order = client.post(
        "/api/orders", json={"seller_id": str(seller["_id"]), "amount": 100}, headers=auth_headers(buyer)
    ).json()
    client.post("/api/escrow", json={"order_id": order["id"], "amount": 100}, headers=auth_headers(buyer))

    assert client.post(f"/api/orders/{order['id']}/confirm", headers=auth_headers(buyer)).status_code == 400
    assert client.post(f"/api/orders/{order['id']}/deliver", headers=auth_headers(buyer)).status_code == 403

    delivered = client.post(f"/api/orders/{order['id']}/deliver", headers=auth_headers(seller))
    assert delivered.status_code == 200
    assert delivered.json()["status"] == "delivered"
    assert delivered.json()["auto_confirm_at"] is not None

    assert client.post(f"/api/orders/{order['id']}/cancel", headers=auth_headers(buyer)).status_code == 400

    confirmed = client.post(f"/api/orders/{order['id']}/confirm", headers=auth_headers(buyer))
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "completed"
    assert client.get("/api/wallet", headers=auth_headers(seller)).json()["balance"] == 90

    history = client.get("/api/wallet/transactions", headers=auth_headers(seller)).json()
    assert history["data"][0]["type"] == "CREDIT"
    assert history["data"][0]["order_id"] == order["id"]


def test_cancel_pending_order(client, make_user):
    buyer, seller = make_user(), make_user()
    order = client.post(
        "/api/orders", json={"seller_id": str(seller["_id"]), "amount": 15}, headers=auth_headers(buyer)
    ).json()

    assert client.post(f"/api/orders/{order['id']}/cancel", headers=auth_headers(make_user())).status_code == 403

    response = client.post(f"/api/orders/{order['id']}/cancel", headers=auth_headers(buyer))
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"


def test_admin_auto_confirm_endpoint(client, make_user):
    response = client.post("/api/admin/orders/auto-confirm", headers=auth_headers(make_user("admin")))
    assert response.json() == {"confirmed": 0}


def test_unconsumed_quota_shows_upcoming_reset(client, make_user, db):
    # Templates seeded long ago keep their original reset date
    db["premium_quotas"].update_many({"is_default": True}, {"$set": {"reset_date": datetime(2020, 2, 1)}})
    headers = auth_headers(make_user("company", plan="company-biz"))

    quota = client.get("/api/premium/quotas/cv_views", headers=headers).json()

    assert quota["used"] == 0
    assert quota["remaining"] == 50
    assert datetime.fromisoformat(quota["reset_date"]) > utc_now()
