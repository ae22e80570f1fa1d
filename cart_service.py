"""
Cart operations

A cart is keyed by its owner's email and created lazily on the first
add-to-cart. Items hold a snapshot of the product document; a product id can
appear at most once per cart.
"""

from typing import Any, Dict, List, Optional

import structlog
from fastapi import Depends
from pymongo.database import Database as MongoDatabase
from pymongo.errors import PyMongoError

from config import DEFAULT_PAYMENT_OPTION
from database import get_db, to_object_id
from errors import ApiError
from schemas import Cart as CartSchema, CartItem as CartItemSchema, utcnow
from user_service import UserService, get_user_service

logger = structlog.get_logger(__name__)


def cart_total(cart: Dict[str, Any]) -> float:
    return sum(item["product"]["cost"] * item["quantity"] for item in cart.get("cartItems", []))


def find_item_index(cart: Dict[str, Any], product_id: Any) -> int:
    oid = to_object_id(product_id)
    if oid is None:
        return -1
    for i, item in enumerate(cart.get("cartItems", [])):
        if to_object_id(item["product"].get("_id")) == oid:
            return i
    return -1


class CartService:
    def __init__(self, db: MongoDatabase, users: UserService):
        self.carts = db["cart"]
        self.products = db["product"]
        self.users = users

    def _find_cart(self, user: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self.carts.find_one({"email": user["email"]})

    def _find_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        oid = to_object_id(product_id)
        if oid is None:
            return None
        return self.products.find_one({"_id": oid})

    def _create_cart(self, user: Dict[str, Any]) -> Dict[str, Any]:
        cart = CartSchema(email=user["email"], paymentOption=DEFAULT_PAYMENT_OPTION).model_dump()
        cart["updatedAt"] = utcnow()
        try:
            result = self.carts.insert_one(cart)
        except PyMongoError:
            logger.exception("Cart creation failed", email=user["email"])
            raise ApiError(500, "User cart creation failed")
        cart["_id"] = result.inserted_id
        logger.info("Cart created", email=user["email"])
        return cart

    def _save(self, cart: Dict[str, Any]) -> None:
        cart["updatedAt"] = utcnow()
        self.carts.update_one(
            {"_id": cart["_id"]},
            {"$set": {"cartItems": cart["cartItems"], "updatedAt": cart["updatedAt"]}},
        )

    def get_cart_by_user(self, user: Dict[str, Any]) -> Dict[str, Any]:
        cart = self._find_cart(user)
        if cart is None:
            raise ApiError(404, "User does not have a cart")
        return cart

    def add_product_to_cart(self, user: Dict[str, Any], product_id: str, quantity: int) -> Dict[str, Any]:
        cart = self._find_cart(user)
        if cart is None:
            cart = self._create_cart(user)

        if find_item_index(cart, product_id) != -1:
            raise ApiError(
                400,
                "Product already in cart. Use the cart sidebar to update or remove product from cart",
            )

        product = self._find_product(product_id)
        if product is None:
            raise ApiError(400, "Product doesn't exist in database")

        item = CartItemSchema(product=product, quantity=quantity)
        cart["cartItems"].append(item.model_dump())
        self._save(cart)
        logger.info("Product added to cart", email=user["email"], product_id=product_id, quantity=quantity)
        return cart

    def update_product_in_cart(self, user: Dict[str, Any], product_id: str, quantity: int) -> Dict[str, Any]:
        cart = self._find_cart(user)
        if cart is None:
            raise ApiError(400, "User does not have a cart. Use POST to create cart and add a product")

        if self._find_product(product_id) is None:
            raise ApiError(400, "Product doesn't exist in database")

        index = find_item_index(cart, product_id)
        if index == -1:
            raise ApiError(400, "Product not in cart")

        cart["cartItems"][index]["quantity"] = quantity
        self._save(cart)
        logger.info("Cart quantity updated", email=user["email"], product_id=product_id, quantity=quantity)
        return cart

    def delete_product_from_cart(self, user: Dict[str, Any], product_id: str) -> None:
        cart = self._find_cart(user)
        if cart is None:
            raise ApiError(400, "User does not have a cart")

        index = find_item_index(cart, product_id)
        if index == -1:
            raise ApiError(400, "Product not in cart")

        cart["cartItems"].pop(index)
        self._save(cart)
        logger.info("Product removed from cart", email=user["email"], product_id=product_id)

    def checkout(self, user: Dict[str, Any]) -> Dict[str, Any]:
        """
        Pay for everything in the user's cart out of their wallet.

        Fails with a 400 ApiError when the cart is missing or empty, the
        address is still the default, or the wallet cannot cover the total.
        On failure neither the wallet nor the cart is modified. On success
        the wallet is debited and the cart emptied (the cart itself is kept).

        The cart is claimed first by emptying it only if it still holds the
        items that were priced, then the wallet is debited only if the stored
        balance covers the total. Two checkouts racing on one cart cannot
        both charge for it, and a stale balance cannot overdraw the wallet.
        """
        cart = self._find_cart(user)
        if cart is None:
            raise ApiError(400, "User does not have a cart")

        items = cart.get("cartItems")
        if not items:
            raise ApiError(400, "No products in the cart")

        if not self.users.has_set_non_default_address(user):
            raise ApiError(400, "Address not set")

        total = cart_total(cart)
        if total > user.get("walletMoney", 0):
            logger.info("Checkout rejected", email=user["email"], total=total, reason="insufficient balance")
            raise ApiError(400, "Insufficient wallet balance")

        claimed = self.carts.update_one(
            {"_id": cart["_id"], "cartItems": items},
            {"$set": {"cartItems": [], "updatedAt": utcnow()}},
        )
        if claimed.matched_count == 0:
            logger.info("Checkout rejected", email=user["email"], total=total, reason="cart changed")
            raise ApiError(400, "Cart changed during checkout, please retry")

        try:
            debited = self.users.debit_wallet(user, total)
        except PyMongoError:
            logger.exception("Debiting wallet failed, restoring cart", email=user["email"], total=total)
            self._restore_items(cart, items)
            raise
        if not debited:
            self._restore_items(cart, items)
            logger.info("Checkout rejected", email=user["email"], total=total, reason="insufficient balance")
            raise ApiError(400, "Insufficient wallet balance")

        cart["cartItems"] = []
        logger.info("Checkout complete", email=user["email"], total=total, wallet=user["walletMoney"])
        return cart

    def _restore_items(self, cart: Dict[str, Any], items: List[Dict[str, Any]]) -> None:
        cart["cartItems"] = items
        self._save(cart)


def get_cart_service(
    db: MongoDatabase = Depends(get_db),
    users: UserService = Depends(get_user_service),
) -> CartService:
    return CartService(db, users)
