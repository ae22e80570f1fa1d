"""Endpoint tests running the full app against an in-memory MongoDB."""

import logging

from bson import ObjectId
from fastapi.testclient import TestClient

from main import create_app
from tests.conftest import ADDRESS


def register(test_client, email="crio-user@example.com", password="usersPassword1"):
    return test_client.post(
        "/auth/register",
        json={"name": "crio-user", "email": email, "password": password},
    )


class TestAuth:
    def test_register(self, test_client):
        response = register(test_client)

        assert response.status_code == 201
        data = response.json()
        assert data["user"]["email"] == "crio-user@example.com"
        assert data["user"]["walletMoney"] == 500
        assert "password" not in data["user"]
        assert data["tokens"]["access"]["token"]

    def test_register_duplicate_email(self, test_client):
        register(test_client, email="dup@example.com")

        response = register(test_client, email="Dup@Example.com")

        assert response.status_code == 409
        assert response.json()["detail"] == "Email already taken"

    def test_register_weak_password(self, test_client):
        assert register(test_client, password="short1").status_code == 422
        assert register(test_client, password="onlyletters").status_code == 422
        assert register(test_client, password="12345678").status_code == 422

    def test_register_invalid_email(self, test_client):
        assert register(test_client, email="not-an-email").status_code == 422

    def test_login(self, test_client):
        register(test_client)

        response = test_client.post(
            "/auth/login",
            json={"email": "crio-user@example.com", "password": "usersPassword1"},
        )

        assert response.status_code == 200
        assert "password" not in response.json()["user"]

    def test_login_wrong_password(self, test_client):
        register(test_client)

        response = test_client.post(
            "/auth/login",
            json={"email": "crio-user@example.com", "password": "wrongPassword1"},
        )

        assert response.status_code == 401

    def test_protected_route_needs_token(self, test_client):
        assert test_client.get("/cart").status_code == 401
        assert test_client.get("/cart", headers={"Authorization": "Bearer garbage"}).status_code == 401


class TestUsers:
    def test_get_own_user(self, test_client, make_user, auth_headers):
        user = make_user()

        response = test_client.get(f"/users/{user['_id']}", headers=auth_headers(user))

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == str(user["_id"])
        assert "password" not in data

    def test_get_own_address(self, test_client, make_user, auth_headers):
        user = make_user(address=ADDRESS)

        response = test_client.get(f"/users/{user['_id']}?q=address", headers=auth_headers(user))

        assert response.status_code == 200
        assert response.json() == {"address": ADDRESS}

    def test_other_user_is_forbidden(self, test_client, make_user, auth_headers):
        me = make_user(email="me@example.com")
        other = make_user(email="other@example.com")

        assert test_client.get(f"/users/{other['_id']}", headers=auth_headers(me)).status_code == 403
        assert test_client.get(f"/users/{other['_id']}?q=address", headers=auth_headers(me)).status_code == 403
        response = test_client.put(
            f"/users/{other['_id']}/address",
            json={"address": ADDRESS},
            headers=auth_headers(me),
        )
        assert response.status_code == 403

    def test_unknown_user(self, test_client, make_user, auth_headers):
        user = make_user()

        assert test_client.get(f"/users/{ObjectId()}", headers=auth_headers(user)).status_code == 404
        assert test_client.get("/users/not-an-id", headers=auth_headers(user)).status_code == 400

    def test_set_address(self, test_client, make_user, auth_headers, db):
        user = make_user()

        response = test_client.put(
            f"/users/{user['_id']}/address",
            json={"address": ADDRESS},
            headers=auth_headers(user),
        )

        assert response.status_code == 200
        assert response.json() == {"address": ADDRESS}
        assert db["user"].find_one({"_id": user["_id"]})["address"] == ADDRESS

    def test_set_address_too_short(self, test_client, make_user, auth_headers):
        user = make_user()

        response = test_client.put(
            f"/users/{user['_id']}/address",
            json={"address": "short"},
            headers=auth_headers(user),
        )

        assert response.status_code == 422


class TestProducts:
    def test_list_and_get(self, test_client, products):
        listed = test_client.get("/products").json()
        assert {p["id"] for p in listed} == set(products)

        response = test_client.get(f"/products/{products[0]}")
        assert response.status_code == 200
        assert response.json()["cost"] == 100

    def test_missing_product(self, test_client):
        assert test_client.get(f"/products/{ObjectId()}").status_code == 404
        assert test_client.get("/products/nope").status_code == 400


class TestCart:
    def test_add_update_delete(self, test_client, make_user, auth_headers, products):
        headers = auth_headers(make_user())

        response = test_client.post("/cart", json={"productId": products[0], "quantity": 1}, headers=headers)
        assert response.status_code == 201
        cart = response.json()
        assert cart["cartItems"][0]["product"]["id"] == products[0]

        response = test_client.put("/cart", json={"productId": products[0], "quantity": 4}, headers=headers)
        assert response.status_code == 200
        assert response.json()["cartItems"][0]["quantity"] == 4

        response = test_client.put("/cart", json={"productId": products[0], "quantity": 0}, headers=headers)
        assert response.status_code == 204
        assert test_client.get("/cart", headers=headers).json()["cartItems"] == []

    def test_get_cart_without_one(self, test_client, make_user, auth_headers):
        assert test_client.get("/cart", headers=auth_headers(make_user())).status_code == 404

    def test_add_duplicate(self, test_client, make_user, auth_headers, products):
        headers = auth_headers(make_user())
        test_client.post("/cart", json={"productId": products[0], "quantity": 1}, headers=headers)

        response = test_client.post("/cart", json={"productId": products[0], "quantity": 1}, headers=headers)

        assert response.status_code == 400
        assert len(test_client.get("/cart", headers=headers).json()["cartItems"]) == 1

    def test_invalid_quantity(self, test_client, make_user, auth_headers, products):
        headers = auth_headers(make_user())

        response = test_client.post("/cart", json={"productId": products[0], "quantity": 0}, headers=headers)

        assert response.status_code == 422

    def test_checkout(self, test_client, make_user, auth_headers, products, db):
        user = make_user(address=ADDRESS, wallet=300)
        headers = auth_headers(user)
        test_client.post("/cart", json={"productId": products[0], "quantity": 2}, headers=headers)
        test_client.post("/cart", json={"productId": products[1], "quantity": 1}, headers=headers)

        response = test_client.put("/cart/checkout", headers=headers)

        assert response.status_code == 204
        assert db["user"].find_one({"_id": user["_id"]})["walletMoney"] == 50
        assert test_client.get("/cart", headers=headers).json()["cartItems"] == []

    def test_checkout_insufficient_balance(self, test_client, make_user, auth_headers, products, db):
        user = make_user(address=ADDRESS, wallet=100)
        headers = auth_headers(user)
        test_client.post("/cart", json={"productId": products[0], "quantity": 2}, headers=headers)
        test_client.post("/cart", json={"productId": products[1], "quantity": 1}, headers=headers)

        response = test_client.put("/cart/checkout", headers=headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Insufficient wallet balance"
        assert db["user"].find_one({"_id": user["_id"]})["walletMoney"] == 100


class TestHealth:
    def test_database_status(self, test_client, products):
        data = test_client.get("/test").json()

        assert data["connection_status"] == "Connected"
        assert "product" in data["collections"]


class TestAppFactory:
    def test_building_the_app_leaves_logging_alone(self, database):
        root = logging.getLogger()
        handler = logging.NullHandler()
        root.addHandler(handler)
        try:
            create_app(database)
            assert handler in root.handlers
        finally:
            root.removeHandler(handler)

    def test_startup_configures_logging(self, database):
        root = logging.getLogger()
        handler = logging.NullHandler()
        root.addHandler(handler)
        try:
            with TestClient(create_app(database)):
                assert handler not in root.handlers
        finally:
            root.removeHandler(handler)
