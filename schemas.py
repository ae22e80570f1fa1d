"""
Database Schemas

MongoDB collection schemas and request bodies, as Pydantic models.
Model name lowercased is the collection name:
- User -> "user" collection
- Product -> "product" collection
- Cart -> "cart" collection
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from config import DEFAULT_ADDRESS, DEFAULT_PAYMENT_OPTION, DEFAULT_WALLET_MONEY


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address, stored lowercase")
    password: str = Field(..., description="BCrypt hashed password")
    walletMoney: float = Field(DEFAULT_WALLET_MONEY, ge=0, description="Spendable balance")
    address: str = Field(DEFAULT_ADDRESS, description="Shipping address")
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)


class Product(BaseModel):
    name: str
    category: Optional[str] = None
    cost: float = Field(..., ge=0)
    rating: float = Field(default=0, ge=0, le=5)
    image: Optional[str] = None


class CartItem(BaseModel):
    product: Dict[str, Any] = Field(..., description="Product document as it was when added")
    quantity: int = Field(..., ge=1)


class Cart(BaseModel):
    email: EmailStr = Field(..., description="Owner's email")
    cartItems: List[CartItem] = Field(default_factory=list)
    paymentOption: str = Field(DEFAULT_PAYMENT_OPTION)


# Request bodies

class RegisterInput(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank")
        return v

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def check_password_policy(cls, v: str) -> str:
        if len(v) < 8:
            raise ValueError("Password must be at least 8 characters")
        if not re.search(r"\d", v) or not re.search(r"[a-zA-Z]", v):
            raise ValueError("Password must contain at least one letter and one number")
        return v


class LoginInput(BaseModel):
    email: EmailStr
    password: str


class AddressInput(BaseModel):
    address: str = Field(..., min_length=20)


class CartItemInput(BaseModel):
    productId: str
    quantity: int = Field(..., ge=1)


class CartItemUpdate(BaseModel):
    productId: str
    quantity: int = Field(..., ge=0, description="0 removes the product from the cart")


class AccessToken(BaseModel):
    token: str
    expires: datetime


class AuthTokens(BaseModel):
    access: AccessToken


class AuthResponse(BaseModel):
    user: Dict[str, Any]
    tokens: AuthTokens
