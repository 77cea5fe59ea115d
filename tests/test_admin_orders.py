from bson import ObjectId

from lifecycle import proof_digest


def _status(db, livestock_id):
    return db["livestock"].find_one({"_id": ObjectId(livestock_id)})["status"]


def test_admin_reject_restocks_and_notifies_user(admin, customer, db, add_livestock, place_order, png_bytes):
    goat = add_livestock()
    order = place_order(customer, [goat], proof=png_bytes()).json()

    resp = admin.put(f"/api/admin/orders/{order['id']}/reject", json={"reason": "Blurry screenshot"})
    assert resp.status_code == 200
    assert _status(db, goat) == "Available"

    stored = db["order"].find_one({"_id": ObjectId(order["id"])})
    assert stored["status"] == "Payment Rejected"
    assert stored["rejection_reason"] == "Blurry screenshot"

    notes = customer.get("/api/user/state").json()["notifications"]
    assert len(notes) == 1
    assert notes[0]["title"] == "Payment Rejected"
    assert "Blurry screenshot" in notes[0]["message"]
    assert notes[0]["seen"] is False


def test_reject_uses_default_reason(admin, customer, db, add_livestock, place_order, png_bytes):
    order = place_order(customer, [add_livestock()], proof=png_bytes()).json()
    admin.put(f"/api/admin/orders/{order['id']}/reject", json={})
    assert db["order"].find_one({"_id": ObjectId(order["id"])})["rejection_reason"] == "Invalid payment proof."


def test_reupload_after_rejection_reserves_items_again(admin, customer, db, add_livestock, place_order, png_bytes):
    goat = add_livestock()
    order = place_order(customer, [goat], proof=png_bytes()).json()
    admin.put(f"/api/admin/orders/{order['id']}/reject", json={"reason": "wrong amount"})

    files = {"paymentProof": ("better.png", png_bytes(), "image/png")}
    resp = customer.put(f"/api/orders/{order['id']}/reupload", files=files)
    assert resp.status_code == 200

    stored = db["order"].find_one({"_id": ObjectId(order["id"])})
    assert stored["status"] == "Processing"
    assert stored["rejection_reason"] == ""
    assert _status(db, goat) == "Sold"


def test_reupload_after_rejection_fails_when_item_resold(admin, make_client, db, add_livestock, place_order, png_bytes):
    goat = add_livestock()
    first = make_client("First", "first@example.com")
    second = make_client("Second", "second@example.com")
    order = place_order(first, [goat], proof=png_bytes()).json()
    admin.put(f"/api/admin/orders/{order['id']}/reject", json={"reason": "fake"})
    assert place_order(second, [goat]).status_code == 201

    retry = png_bytes()
    files = {"paymentProof": ("again.png", retry, "image/png")}
    assert first.put(f"/api/orders/{order['id']}/reupload", files=files).status_code == 409
    assert db["order"].find_one({"_id": ObjectId(order["id"])})["status"] == "Payment Rejected"
    # The failed re-upload leaves the proof free for a later attempt
    assert db["payment_proof"].count_documents({"hash": proof_digest(retry)}) == 0


def test_admin_reapprove_after_rejection_fails_when_item_resold(admin, make_client, db, add_livestock, place_order, png_bytes):
    goat = add_livestock()
    first = make_client("First", "first@example.com")
    second = make_client("Second", "second@example.com")
    order = place_order(first, [goat], proof=png_bytes()).json()
    admin.put(f"/api/admin/orders/{order['id']}/reject", json={"reason": "fake"})
    resale = place_order(second, [goat])
    assert resale.status_code == 201

    resp = admin.put(f"/api/admin/orders/{order['id']}", json={"status": "Processing"})
    assert resp.status_code == 409
    assert db["order"].find_one({"_id": ObjectId(order["id"])})["status"] == "Payment Rejected"
    live = db["order"].count_documents({"items._id": goat, "status": {"$nin": ["Cancelled", "Payment Rejected"]}})
    assert live == 1
    # No "Order update" notification for a move that did not happen
    assert first.get("/api/user/state").json()["notifications"][-1]["title"] == "Payment Rejected"


def test_admin_reapprove_after_rejection_reserves_items(admin, customer, db, add_livestock, place_order, png_bytes):
    goat = add_livestock()
    order = place_order(customer, [goat], proof=png_bytes()).json()
    admin.put(f"/api/admin/orders/{order['id']}/reject", json={"reason": "checked again"})

    resp = admin.put(f"/api/admin/orders/{order['id']}", json={"status": "Processing"})
    assert resp.status_code == 200
    assert _status(db, goat) == "Sold"


def test_admin_cancel_rejected_order_keeps_items_available(admin, customer, db, add_livestock, place_order, png_bytes):
    goat = add_livestock()
    order = place_order(customer, [goat], proof=png_bytes()).json()
    admin.put(f"/api/admin/orders/{order['id']}/reject", json={"reason": "fake"})

    resp = admin.put(f"/api/admin/orders/{order['id']}", json={"status": "Cancelled"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "Cancelled"
    assert _status(db, goat) == "Available"


def test_status_flow_to_delivered(admin, customer, db, add_livestock, place_order):
    goat = add_livestock()
    order = place_order(customer, [goat]).json()

    for status in ("Processing", "Sold", "Delivered"):
        resp = admin.put(f"/api/admin/orders/{order['id']}", json={"status": status})
        assert resp.status_code == 200, resp.text
        assert resp.json()["status"] == status

    assert _status(db, goat) == "Sold"
    assert len(customer.get("/api/user/state").json()["notifications"]) == 3


def test_illegal_transition_is_rejected(admin, customer, add_livestock, place_order):
    order = place_order(customer, [add_livestock()]).json()
    resp = admin.put(f"/api/admin/orders/{order['id']}", json={"status": "Delivered"})
    assert resp.status_code == 400
    assert admin.put(f"/api/admin/orders/{order['id']}", json={"status": "Shipped"}).status_code == 422
    assert admin.put("/api/admin/orders/65f000000000000000000000", json={"status": "Sold"}).status_code == 404


def test_admin_cancel_restocks(admin, customer, db, add_livestock, place_order):
    goat = add_livestock()
    order = place_order(customer, [goat]).json()
    resp = admin.put(f"/api/admin/orders/{order['id']}", json={"status": "Cancelled"})
    assert resp.status_code == 200
    assert resp.json()["cancellation_reason"] == "Cancelled by admin"
    assert _status(db, goat) == "Available"


def test_admin_lists_orders_and_serves_proof(admin, customer, add_livestock, place_order, png_bytes):
    proof = png_bytes("proof-for-admin")
    with_proof = place_order(customer, [add_livestock("Goat 1")], proof=proof).json()
    without_proof = place_order(customer, [add_livestock("Goat 2")]).json()

    orders = admin.get("/api/admin/orders").json()["orders"]
    assert {o["id"] for o in orders} == {with_proof["id"], without_proof["id"]}
    assert all("data" not in (o.get("payment_proof") or {}) for o in orders)

    pending = admin.get("/api/admin/orders", params={"status": "Pending"}).json()["orders"]
    assert [o["id"] for o in pending] == [without_proof["id"]]

    resp = admin.get(f"/api/admin/orders/proof/{with_proof['id']}")
    assert resp.status_code == 200
    assert resp.content == proof
    assert resp.headers["content-type"] == "image/png"
    assert admin.get(f"/api/admin/orders/proof/{without_proof['id']}").status_code == 404


def test_admin_users_and_notifications(admin, customer, add_livestock, place_order):
    users = admin.get("/api/admin/users").json()["users"]
    assert {u["email"] for u in users} == {"admin@example.com", "ravi@example.com"}
    assert all("password" not in u for u in users)

    place_order(customer, [add_livestock()])
    feed = admin.get("/api/admin/notifications", params={"unseen": True}).json()["notifications"]
    assert len(feed) == 1
    assert feed[0]["kind"] == "new_order"

    assert admin.put(f"/api/admin/notifications/{feed[0]['id']}/seen").status_code == 200
    assert admin.get("/api/admin/notifications", params={"unseen": True}).json()["notifications"] == []
    assert len(admin.get("/api/admin/notifications").json()["notifications"]) == 1


def test_admin_routes_forbidden_for_customers(customer, add_livestock, place_order):
    order = place_order(customer, [add_livestock()]).json()
    assert customer.get("/api/admin/orders").status_code == 403
    assert customer.put(f"/api/admin/orders/{order['id']}/reject", json={"reason": "x"}).status_code == 403
    assert customer.get("/api/admin/users").status_code == 403
