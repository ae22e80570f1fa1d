"""
Application settings

Everything is read once from the environment at import time.
"""

import os

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://127.0.0.1:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "shop")

# JWT Config
SECRET_KEY = os.getenv("JWT_SECRET", "dev-secret-change")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_EXPIRATION_MINUTES", 60 * 24 * 7))  # 7 days

# Defaults applied to new users and carts
DEFAULT_WALLET_MONEY = float(os.getenv("DEFAULT_WALLET_MONEY", 500))
DEFAULT_ADDRESS = os.getenv("DEFAULT_ADDRESS", "ADDRESS_NOT_SET")
DEFAULT_PAYMENT_OPTION = os.getenv("DEFAULT_PAYMENT_OPTION", "PAYMENT_OPTION_DEFAULT")

BCRYPT_ROUNDS = 10

PORT = int(os.getenv("PORT", 8000))
