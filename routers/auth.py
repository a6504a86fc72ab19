import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, HTTPException
from itsdangerous import BadSignature, URLSafeTimedSerializer
from passlib.context import CryptContext
from sqlmodel import select

import config
from db import SessionDep
from errors import Forbidden, ServerError
from lifecycle import Actor
from models import Role, User
from schemas import LoginData, UserCreate, UserRead

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

serializer = URLSafeTimedSerializer(config.SECRET_KEY, salt="helpline-auth")


pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user: User) -> str:
    """
    Store id + role + name in the signed token.
    Example data:
        {"id": 3, "role": "volunteer", "name": "Bob"}
    """
    return serializer.dumps(
        {"id": user.id, "role": Role(user.role).value, "name": user.name}
    )


def verify_access_token(
    token: str, max_age_seconds: int = config.TOKEN_MAX_AGE_SECONDS
) -> Optional[Actor]:
    """
    Returns the Actor the token was issued to,
    or None if the token is invalid/expired.
    """
    try:
        data = serializer.loads(token, max_age=max_age_seconds)
    except BadSignature:
        return None
    try:
        return Actor(id=int(data["id"]), role=Role(data["role"]), name=data.get("name", ""))
    except (KeyError, TypeError, ValueError):
        return None


def get_current_actor(
    authorization: Optional[str] = Header(default=None),
) -> Actor:
    """
    Reads the bearer token from the Authorization header and verifies it.
    The role inside the token is trusted as issued; no store lookup.
    Raises 401 if the token is missing or invalid.
    """
    if not authorization:
        raise HTTPException(status_code=401, detail="No token, authorization denied")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Malformed authorization header")

    actor = verify_access_token(token.strip())
    if actor is None:
        raise HTTPException(status_code=401, detail="Token is not valid")
    return actor


ActorDep = Annotated[Actor, Depends(get_current_actor)]


def require_admin(actor: ActorDep) -> Actor:
    if actor.role != Role.ADMIN:
        raise Forbidden("Access denied. Not an admin.")
    return actor


AdminDep = Annotated[Actor, Depends(require_admin)]


def _token_response(user: User, msg: str) -> dict:
    return {
        "token": create_access_token(user),
        "msg": msg,
        "user": {"id": user.id, "name": user.name, "role": Role(user.role).value},
    }


@router.post("/register")
def register(user_in: UserCreate, session: SessionDep):
    """
    Register a new user with a hashed password and return a token.
    Admin accounts can only be self-registered when ALLOW_ADMIN_REGISTRATION is on.
    """
    if user_in.role == Role.ADMIN and not config.ALLOW_ADMIN_REGISTRATION:
        raise HTTPException(status_code=400, detail="Invalid role provided.")

    existing = session.exec(
        select(User).where(User.email == user_in.email)
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="User already exists")

    user = User(
        name=user_in.name,
        email=user_in.email,
        contact_number=user_in.contact_number,
        password_hash=hash_password(user_in.password),
        role=user_in.role,
    )
    session.add(user)
    session.commit()
    session.refresh(user)

    if user.id is None:
        raise ServerError("User was not created successfully")

    logger.info("Registered user %s as %s", user.id, user.role.value)
    return _token_response(user, "User registered successfully!")


@router.post("/login")
def login(payload: LoginData, session: SessionDep):
    """
    Log in with email + password and return a bearer token.
    """
    user = session.exec(
        select(User).where(User.email == payload.email)
    ).first()

    if user is None or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=400, detail="Invalid Credentials")

    return _token_response(user, "Logged in successfully!")


@router.get("/me", response_model=UserRead)
def read_me(actor: ActorDep, session: SessionDep):
    """
    Get info about the currently logged-in user.
    """
    user = session.get(User, actor.id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user
