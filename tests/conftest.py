import os
from uuid import uuid4

import mongomock
import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("ENVIRONMENT", "test")

from auth import generate_auth_tokens  # noqa: E402
from cart_service import CartService  # noqa: E402
from database import Database  # noqa: E402
from main import create_app  # noqa: E402
from schemas import RegisterInput  # noqa: E402
from user_service import UserService  # noqa: E402

ADDRESS = "221B Baker Street, London NW1 6XE"


@pytest.fixture()
def database():
    """In-memory MongoDB, dropped after every test."""
    database = Database(
        url="mongodb://localhost:27017",
        name=f"shop-test-{uuid4().hex[:8]}",
        client_factory=mongomock.MongoClient,
    )
    database.connect()
    client, name = database.client, database.name

    yield database

    client.drop_database(name)
    database.close()


@pytest.fixture()
def db(database):
    return database.db


@pytest.fixture()
def users(db):
    return UserService(db)


@pytest.fixture()
def carts(db, users):
    return CartService(db, users)


@pytest.fixture()
def products(db):
    """Two products: a 100 and a 50."""
    result = db["product"].insert_many(
        [
            {"name": "Basketball", "category": "Sports", "cost": 100, "rating": 5},
            {"name": "Water Bottle", "category": "Kitchen", "cost": 50, "rating": 4},
        ]
    )
    return [str(oid) for oid in result.inserted_ids]


@pytest.fixture()
def make_user(users, db):
    def _make_user(email="crio-user@example.com", address=None, wallet=None, password="usersPassword1"):
        user = users.create_user(RegisterInput(name="crio-user", email=email, password=password))
        changes = {}
        if address is not None:
            changes["address"] = address
        if wallet is not None:
            changes["walletMoney"] = wallet
        if changes:
            db["user"].update_one({"_id": user["_id"]}, {"$set": changes})
        return db["user"].find_one({"_id": user["_id"]})

    return _make_user


@pytest.fixture()
def auth_headers():
    def _auth_headers(user):
        token = generate_auth_tokens(user)["access"]["token"]
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture()
def test_client(database):
    app = create_app(database)
    with TestClient(app) as client:
        yield client
