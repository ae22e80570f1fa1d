from typing import Any, Dict, Optional

import structlog
from fastapi import Depends
from passlib.context import CryptContext
from pymongo.database import Database as MongoDatabase
from pymongo.errors import DuplicateKeyError

from config import BCRYPT_ROUNDS, DEFAULT_ADDRESS
from database import get_db, to_object_id
from errors import ApiError
from schemas import RegisterInput, User as UserSchema, utcnow

logger = structlog.get_logger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # stored value is not a recognizable hash
        return False


class UserService:
    def __init__(self, db: MongoDatabase):
        self.users = db["user"]

    def get_user_by_id(self, user_id: Any) -> Optional[Dict[str, Any]]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return self.users.find_one({"_id": oid})

    def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return self.users.find_one({"email": email.lower()})

    def is_email_taken(self, email: str) -> bool:
        return self.get_user_by_email(email) is not None

    def create_user(self, body: RegisterInput) -> Dict[str, Any]:
        """
        Register a new user.

        Raises a 409 ApiError when the email is already registered. The
        password is stored as a salted bcrypt hash, never as plaintext.
        """
        if self.is_email_taken(body.email):
            raise ApiError(409, "Email already taken")
        user = UserSchema(
            name=body.name,
            email=body.email.lower(),
            password=hash_password(body.password),
        )
        try:
            result = self.users.insert_one(user.model_dump())
        except DuplicateKeyError:
            # lost a race with a concurrent registration
            raise ApiError(409, "Email already taken")
        logger.info("User registered", user_id=str(result.inserted_id))
        return self.users.find_one({"_id": result.inserted_id})

    def get_user_address_by_id(self, user_id: Any) -> Optional[Dict[str, Any]]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        return self.users.find_one({"_id": oid}, {"email": 1, "address": 1})

    def set_address(self, user: Dict[str, Any], new_address: str) -> str:
        now = utcnow()
        self.users.update_one(
            {"_id": user["_id"]},
            {"$set": {"address": new_address, "updatedAt": now}},
        )
        user["address"] = new_address
        user["updatedAt"] = now
        return user["address"]

    def is_password_match(self, user: Dict[str, Any], password: str) -> bool:
        return verify_password(password, user.get("password", ""))

    def has_set_non_default_address(self, user: Dict[str, Any]) -> bool:
        return user.get("address", DEFAULT_ADDRESS) != DEFAULT_ADDRESS

    def debit_wallet(self, user: Dict[str, Any], amount: float) -> bool:
        """
        Take `amount` out of the stored wallet only if the stored balance covers it.

        The balance check runs against the database, not the possibly stale
        `user` dict, so two concurrent debits cannot overdraw the wallet.
        Returns False when the balance is insufficient.
        """
        result = self.users.update_one(
            {"_id": user["_id"], "walletMoney": {"$gte": amount}},
            {"$inc": {"walletMoney": -amount}, "$set": {"updatedAt": utcnow()}},
        )
        if result.matched_count == 0:
            return False
        user["walletMoney"] = user.get("walletMoney", 0) - amount
        return True


def get_user_service(db: MongoDatabase = Depends(get_db)) -> UserService:
    return UserService(db)
