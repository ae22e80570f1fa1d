from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from fastapi import Depends, Header, HTTPException
from jose import JWTError, jwt

from config import ACCESS_TOKEN_EXPIRE_MINUTES, ALGORITHM, SECRET_KEY
from user_service import UserService, get_user_service


def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> Tuple[str, datetime]:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode = {"sub": user_id, "iat": datetime.now(timezone.utc), "exp": expire}
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM), expire


def generate_auth_tokens(user: Dict[str, Any]) -> Dict[str, Any]:
    token, expires = create_access_token(str(user["_id"]))
    return {"access": {"token": token, "expires": expires}}


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="Please authenticate")


def login_user_with_email_and_password(users: UserService, email: str, password: str) -> Dict[str, Any]:
    user = users.get_user_by_email(email)
    if not user or not users.is_password_match(user, password):
        raise HTTPException(status_code=401, detail="Incorrect email or password")
    return user


# Dependency to get current user

def get_current_user(
    authorization: Optional[str] = Header(default=None),
    users: UserService = Depends(get_user_service),
) -> Dict[str, Any]:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Please authenticate")
    token = authorization.split(" ", 1)[1]
    payload = decode_token(token)
    user = users.get_user_by_id(payload.get("sub"))
    if not user:
        raise HTTPException(status_code=401, detail="Please authenticate")
    return user
