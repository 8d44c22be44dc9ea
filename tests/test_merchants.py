"""Tests for merchant accounts, categories and menus."""

import pytest

from ngantri.auth import MERCHANT_SESSION_COOKIE, verify_password
from ngantri.merchant_service import merchant_service
from ngantri.models import Merchant, utcnow


def _register(client, phone="+6281234500001", name="Warung Bu Sri", password="rahasia123"):
    return client.post("/api/merchants/register", json={
        "phone_number": phone,
        "password": password,
        "name": name,
        "description": "Masakan rumahan",
    })


class TestRegistration:
    def test_register_assigns_sequential_numbers(self, client, db):
        first = _register(client, phone="+6281234500001")
        second = _register(client, phone="+6281234500002", name="Bakso Pak Kumis")

        assert first.status_code == 201
        assert first.json()["message"] == "Merchant registered successfully"
        assert first.json()["data"]["merchant_number"] == 1
        assert second.json()["data"]["merchant_number"] == 2
        assert "password_hash" not in first.json()["data"]

        stored = db.get(Merchant, first.json()["data"]["id"])
        assert stored.password_hash != "rahasia123"
        assert verify_password("rahasia123", stored.password_hash)

    def test_duplicate_phone_conflicts(self, client):
        _register(client)
        response = _register(client, name="Someone Else")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

    def test_merchant_number_collision_retries(self, client, make_merchant, monkeypatch):
        make_merchant("Existing")
        numbers = iter([1, 2])
        monkeypatch.setattr(merchant_service, "next_merchant_number", lambda db: next(numbers))

        response = _register(client)

        assert response.status_code == 201
        assert response.json()["data"]["merchant_number"] == 2

    def test_merchant_number_collision_gives_up(self, client, db, make_merchant, monkeypatch):
        make_merchant("Existing")
        monkeypatch.setattr(merchant_service, "next_merchant_number", lambda db: 1)

        response = _register(client)

        assert response.status_code == 409
        assert response.json()["error"]["message"] == "Could not allocate a merchant number, please try again"
        assert db.query(Merchant).count() == 1

    def test_phone_held_by_deleted_merchant(self, client, db, make_merchant):
        deleted = make_merchant("Tutup", phone_number="+6281234500001")
        deleted.deleted_at = utcnow()
        db.commit()

        response = _register(client)

        assert response.status_code == 409
        assert response.json()["error"]["message"] == "Phone number is already registered"

    def test_phone_must_be_e164(self, client):
        response = _register(client, phone="081234500001")

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Invalid phone number format"

    def test_short_password_rejected(self, client):
        response = _register(client, password="short")

        assert response.status_code == 400
        details = response.json()["error"]["details"]
        assert details[0]["field"] == "password"


class TestLogin:
    def test_login_sets_session_cookie(self, client):
        merchant_id = _register(client).json()["data"]["id"]

        response = client.post("/api/merchants/login", json={
            "phone_number": "+6281234500001", "password": "rahasia123",
        })

        assert response.status_code == 200
        assert response.cookies.get(MERCHANT_SESSION_COOKIE) == merchant_id

        me = client.get("/api/merchants/me")
        assert me.status_code == 200
        assert me.json()["data"]["name"] == "Warung Bu Sri"

    def test_wrong_password(self, client):
        _register(client)

        response = client.post("/api/merchants/login", json={
            "phone_number": "+6281234500001", "password": "wrong-password",
        })

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"

    def test_inactive_merchant_cannot_login(self, client, make_merchant):
        make_merchant("Tutup", is_available=False, phone_number="+6281299999999", password="password123")

        response = client.post("/api/merchants/login", json={
            "phone_number": "+6281299999999", "password": "password123",
        })

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "MERCHANT_INACTIVE"

    def test_dashboard_requires_session(self, client):
        response = client.get("/api/merchants/me")

        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_logout_clears_cookie(self, client):
        _register(client)
        client.post("/api/merchants/login", json={
            "phone_number": "+6281234500001", "password": "rahasia123",
        })
        assert client.get("/api/merchants/me").status_code == 200

        client.post("/api/merchants/logout")

        assert client.get("/api/merchants/me").status_code == 401


class TestProfile:
    def test_update_profile(self, merchant_client, make_merchant):
        client = merchant_client(make_merchant())

        response = client.put("/api/merchants/profile", json={"name": "Warung Baru", "description": "Enak"})

        assert response.status_code == 200
        assert response.json()["data"]["name"] == "Warung Baru"
        assert response.json()["data"]["description"] == "Enak"

    def test_change_password(self, merchant_client, make_merchant, db):
        merchant = make_merchant(password="password123")
        client = merchant_client(merchant)

        wrong = client.put("/api/merchants/profile/password", json={
            "current_password": "nope", "new_password": "newpassword1",
        })
        assert wrong.status_code == 400
        assert wrong.json()["error"]["message"] == "Current password is incorrect"

        ok = client.put("/api/merchants/profile/password", json={
            "current_password": "password123", "new_password": "newpassword1",
        })
        assert ok.status_code == 200

        db.expire_all()
        assert verify_password("newpassword1", db.get(Merchant, merchant.id).password_hash)


class TestPublicBrowsing:
    def test_lists_only_available_merchants(self, client, make_merchant):
        open_merchant = make_merchant("Open")
        make_merchant("Closed", is_available=False)

        response = client.get("/api/merchants")

        assert response.status_code == 200
        assert [m["id"] for m in response.json()["data"]] == [open_merchant.id]
        assert "phone_number" not in response.json()["data"][0]
        assert response.json()["pagination"]["hasMore"] is False

    def test_merchant_menus_available_only(self, client, make_merchant, make_menu):
        merchant = make_merchant()
        available = make_menu(merchant, "Nasi")
        make_menu(merchant, "Habis", is_available=False)

        everything = client.get(f"/api/merchants/{merchant.id}/menus").json()["data"]
        only_available = client.get(
            f"/api/merchants/{merchant.id}/menus", params={"available_only": True}
        ).json()["data"]

        assert len(everything) == 2
        assert [m["id"] for m in only_available] == [available.id]

    def test_unknown_merchant(self, client):
        response = client.get("/api/merchants/nobody")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "MERCHANT_NOT_FOUND"


class TestCategoriesAndMenus:
    @pytest.fixture
    def owner(self, merchant_client, make_merchant):
        merchant = make_merchant("Warung Bu Sri")
        return merchant, merchant_client(merchant)

    def test_category_names_unique_per_merchant(self, owner):
        _, client = owner

        created = client.post("/api/merchants/dashboard/categories", json={"name": "Minuman"})
        duplicate = client.post("/api/merchants/dashboard/categories", json={"name": "Minuman"})

        assert created.status_code == 201
        assert duplicate.status_code == 409

    def test_rename_category(self, owner):
        _, client = owner
        category_id = client.post(
            "/api/merchants/dashboard/categories", json={"name": "Minum"}
        ).json()["data"]["id"]

        response = client.put(f"/api/merchants/dashboard/categories/{category_id}", json={"name": "Minuman"})

        assert response.json()["data"]["name"] == "Minuman"

    def test_menu_lifecycle(self, owner):
        merchant, client = owner
        category_id = client.post(
            "/api/merchants/dashboard/categories", json={"name": "Makanan"}
        ).json()["data"]["id"]

        created = client.post("/api/merchants/dashboard/menus", json={
            "category_id": category_id, "name": "Nasi Goreng", "price": 15000,
        })
        assert created.status_code == 201
        menu_id = created.json()["data"]["id"]
        assert created.json()["data"]["merchant_id"] == merchant.id

        updated = client.put(f"/api/merchants/dashboard/menus/{menu_id}", json={"price": 17000})
        assert updated.json()["data"]["price"] == 17000

        toggled = client.patch(
            f"/api/merchants/dashboard/menus/{menu_id}/availability", json={"is_available": False}
        )
        assert toggled.json()["data"]["is_available"] is False

        in_use = client.delete(f"/api/merchants/dashboard/categories/{category_id}")
        assert in_use.status_code == 400

        assert client.delete(f"/api/merchants/dashboard/menus/{menu_id}").status_code == 200
        assert client.get("/api/merchants/dashboard/menus").json()["data"] == []
        assert client.delete(f"/api/merchants/dashboard/categories/{category_id}").status_code == 200

    def test_negative_price_rejected(self, owner):
        _, client = owner
        category_id = client.post(
            "/api/merchants/dashboard/categories", json={"name": "Makanan"}
        ).json()["data"]["id"]

        response = client.post("/api/merchants/dashboard/menus", json={
            "category_id": category_id, "name": "Gratis", "price": -1,
        })

        assert response.status_code == 400

    def test_cannot_use_another_merchants_category(self, owner, make_merchant, make_menu):
        _, client = owner
        other_menu = make_menu(make_merchant("Other"))

        response = client.post("/api/merchants/dashboard/menus", json={
            "category_id": other_menu.category_id, "name": "Curian", "price": 1000,
        })

        assert response.status_code == 404

    def test_cannot_edit_another_merchants_menu(self, owner, make_merchant, make_menu):
        _, client = owner
        other_menu = make_menu(make_merchant("Other"))

        response = client.put(f"/api/merchants/dashboard/menus/{other_menu.id}", json={"price": 1})

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "MENU_NOT_FOUND"
