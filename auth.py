import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Union

# These are for password hashing and JWT token management
from jose import JWTError, jwt
from passlib.context import CryptContext

from config import get_settings
from database import Database, DuplicateKeyError
from errors import Conflict, Unauthorized, validate_model
from schemas import UserCreate, UserLogin, UserPublic

logger = logging.getLogger(__name__)

settings = get_settings()

# Password hashing using bcrypt
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.bcrypt_rounds)

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_TOKEN = "Token is not valid"
DUPLICATE_EMAIL = "User already exists with this email"


# Helper function to create a JWT access token
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.access_token_expire_minutes)
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


# Helper function to read the user id back out of a token
def decode_access_token(token: str) -> str:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as exc:
        logger.warning("Rejected token: %s", exc)
        raise Unauthorized(INVALID_TOKEN) from exc
    user_id = payload.get("sub")
    if not user_id:
        raise Unauthorized(INVALID_TOKEN)
    return user_id


# Helper function to verify a plain-text password against a hashed password
def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


# Helper function to hash a password
def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def public_user(user: Dict[str, Any]) -> UserPublic:
    return UserPublic(id=user["_id"], email=user["email"], name=user["name"])


@dataclass
class AuthResult:
    token: str
    user: UserPublic


class AccountService:
    """Registers users, checks their credentials and resolves bearer tokens."""

    def __init__(self, db: Database):
        self.users = db.users

    def signup(self, data: Union[UserCreate, Mapping[str, Any]]) -> AuthResult:
        user_in = validate_model(UserCreate, data)

        # Check if the email is already registered
        if self.users.find_one({"email": user_in.email}) is not None:
            raise Conflict(DUPLICATE_EMAIL)

        now = datetime.now(timezone.utc)
        try:
            user = self.users.insert({
                "email": user_in.email,
                "password": get_password_hash(user_in.password),
                # Use the email prefix as the default display name
                "name": user_in.name or user_in.email.split("@")[0],
                "createdAt": now,
                "updatedAt": now,
            })
        except DuplicateKeyError as exc:
            # Another signup for the same email won the race
            raise Conflict(DUPLICATE_EMAIL) from exc
        logger.info("Registered user %s", user["_id"])
        return AuthResult(token=create_access_token({"sub": user["_id"]}), user=public_user(user))

    def login(self, data: Union[UserLogin, Mapping[str, Any]]) -> AuthResult:
        credentials = validate_model(UserLogin, data)

        user = self.users.find_one({"email": credentials.email})
        # Unknown email and wrong password get the same answer
        if user is None or not verify_password(credentials.password, user["password"]):
            logger.warning("Failed login attempt")
            raise Unauthorized(INVALID_CREDENTIALS)

        logger.info("User %s logged in", user["_id"])
        return AuthResult(token=create_access_token({"sub": user["_id"]}), user=public_user(user))

    def resolve_user(self, token: Optional[str]) -> Dict[str, Any]:
        if not token:
            raise Unauthorized("No token, authorization denied")
        user_id = decode_access_token(token)
        # Look up the user in the database
        user = self.users.find_one({"_id": user_id})
        if user is None:
            logger.warning("Token refers to unknown user %s", user_id)
            raise Unauthorized(INVALID_TOKEN)
        return user

