import os
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import structlog
from bson import ObjectId
from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from auth import generate_auth_tokens, get_current_user, login_user_with_email_and_password
from cart_service import CartService, get_cart_service
from config import PORT
from database import Database, get_db, serialize_doc
from log_config import configure_logging
from schemas import (
    AddressInput,
    AuthResponse,
    CartItemInput,
    CartItemUpdate,
    LoginInput,
    RegisterInput,
)
from user_service import UserService, get_user_service

logger = structlog.get_logger(__name__)


def public_user(user: Dict[str, Any]) -> Dict[str, Any]:
    user = serialize_doc(user)
    # Never send password hash
    user.pop("password", None)
    return user


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    database: Database = app.state.database
    database.connect()
    yield
    database.close()


def create_app(database: Optional[Database] = None) -> FastAPI:
    app = FastAPI(title="Shop API", lifespan=lifespan)
    app.state.database = database or Database()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def read_root():
        return {"message": "Shop API"}

    @app.get("/test")
    def test_database(request: Request):
        database: Database = request.app.state.database
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
            "database_name": database.name,
            "connection_status": "Not Connected",
            "collections": [],
        }
        if database.db is None:
            return response
        response["connection_status"] = "Connected"
        try:
            response["collections"] = database.db.list_collection_names()
            response["database"] = "✅ Available"
        except Exception as e:
            logger.warning("Database check failed", error=str(e))
            response["database"] = f"❌ Error: {str(e)[:80]}"
        return response

    # Auth
    @app.post("/auth/register", status_code=201, response_model=AuthResponse)
    def register(payload: RegisterInput, users: UserService = Depends(get_user_service)):
        user = users.create_user(payload)
        return AuthResponse(user=public_user(user), tokens=generate_auth_tokens(user))

    @app.post("/auth/login", response_model=AuthResponse)
    def login(payload: LoginInput, users: UserService = Depends(get_user_service)):
        user = login_user_with_email_and_password(users, payload.email, payload.password)
        return AuthResponse(user=public_user(user), tokens=generate_auth_tokens(user))

    # Users
    @app.get("/users/{user_id}")
    def get_user(
        user_id: str,
        q: Optional[str] = None,
        current_user: dict = Depends(get_current_user),
        users: UserService = Depends(get_user_service),
    ):
        if not ObjectId.is_valid(user_id):
            raise HTTPException(status_code=400, detail="Invalid user id")
        if q == "address":
            data = users.get_user_address_by_id(user_id)
        else:
            data = users.get_user_by_id(user_id)
        if not data:
            raise HTTPException(status_code=404, detail="User not found")
        if data["email"] != current_user["email"]:
            raise HTTPException(status_code=403, detail="User not authenticated to see other user's data")
        if q == "address":
            return {"address": data["address"]}
        return public_user(data)

    @app.put("/users/{user_id}/address")
    def set_address(
        user_id: str,
        payload: AddressInput,
        current_user: dict = Depends(get_current_user),
        users: UserService = Depends(get_user_service),
    ):
        if not ObjectId.is_valid(user_id):
            raise HTTPException(status_code=400, detail="Invalid user id")
        user = users.get_user_by_id(user_id)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        if user["email"] != current_user["email"]:
            raise HTTPException(status_code=403, detail="User not authorized to access this resource")
        address = users.set_address(user, payload.address)
        return {"address": address}

    # Products
    @app.get("/products")
    def list_products(limit: int = 100, db=Depends(get_db)):
        return [serialize_doc(d) for d in db["product"].find({}).limit(limit)]

    @app.get("/products/{product_id}")
    def get_product(product_id: str, db=Depends(get_db)):
        if not ObjectId.is_valid(product_id):
            raise HTTPException(status_code=400, detail="Invalid product id")
        product = db["product"].find_one({"_id": ObjectId(product_id)})
        if not product:
            raise HTTPException(status_code=404, detail="Product not found")
        return serialize_doc(product)

    # Cart
    @app.get("/cart")
    def get_cart(current_user: dict = Depends(get_current_user), carts: CartService = Depends(get_cart_service)):
        return serialize_doc(carts.get_cart_by_user(current_user))

    @app.post("/cart", status_code=201)
    def add_to_cart(
        item: CartItemInput,
        current_user: dict = Depends(get_current_user),
        carts: CartService = Depends(get_cart_service),
    ):
        cart = carts.add_product_to_cart(current_user, item.productId, item.quantity)
        return serialize_doc(cart)

    @app.put("/cart")
    def update_cart(
        item: CartItemUpdate,
        current_user: dict = Depends(get_current_user),
        carts: CartService = Depends(get_cart_service),
    ):
        if item.quantity == 0:
            carts.delete_product_from_cart(current_user, item.productId)
            return Response(status_code=204)
        cart = carts.update_product_in_cart(current_user, item.productId, item.quantity)
        return serialize_doc(cart)

    @app.put("/cart/checkout", status_code=204)
    def checkout(current_user: dict = Depends(get_current_user), carts: CartService = Depends(get_cart_service)):
        carts.checkout(current_user)
        return Response(status_code=204)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=PORT)
