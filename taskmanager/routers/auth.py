from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from jose import JWTError, jwt
import bcrypt
from sqlalchemy.orm import Session

from ..config import ACCESS_TOKEN_EXPIRE_MINUTES, SECRET_KEY
from ..database import get_db
from ..errors import Forbidden, Unauthorized, ValidationError
from ..models import User, UserRole
from ..schemas.user import AuthResponse, TokenData, User as UserSchema, UserCreate, UserCredentials
from ..storage import Storage

router = APIRouter()

ALGORITHM = "HS256"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    password_bytes = plain_password.encode('utf-8')[:72]
    hashed_bytes = hashed_password.encode('utf-8') if isinstance(hashed_password, str) else hashed_password
    return bcrypt.checkpw(password_bytes, hashed_bytes)


def get_password_hash(password: str) -> str:
    """Hash a password using bcrypt directly."""
    password_bytes = password.encode('utf-8')[:72]  # Truncate to 72 bytes (bcrypt limit)
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(password_bytes, salt)
    return hashed.decode('utf-8')


def authenticate_user(db: Session, username: str, password: str) -> Optional[User]:
    """Authenticate a user."""
    user = Storage(db).get_user_by_username(username)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def _get_token_from_request(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip()
    return request.cookies.get("token")


def _decode_token(token: str) -> Optional[TokenData]:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        username: str = payload.get("sub")
        if not username:
            return None
        return TokenData(username=username)
    except JWTError:
        return None


def _issue_session(response: Response, user: User) -> dict:
    access_token = create_access_token(data={"sub": user.username})
    response.set_cookie(
        key="token",
        value=access_token,
        httponly=True,
        secure=False,  # Set to True in production with HTTPS
        samesite="lax",
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "user": user,
    }


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
) -> User:
    """Get current user from JWT token."""
    token = _get_token_from_request(request)
    if not token:
        raise Unauthorized("Not authenticated")

    token_data = _decode_token(token)
    if not token_data or not token_data.username:
        raise Unauthorized("Could not validate credentials")

    user = Storage(db).get_user_by_username(token_data.username)
    if user is None:
        raise Unauthorized("User not found")
    return user


def require_role(*roles: UserRole) -> Callable[..., User]:
    """Build a dependency that admits authenticated users holding one of ``roles``."""
    allowed = set(roles)

    def _guard(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise Forbidden("Forbidden: insufficient permissions")
        return current_user

    return _guard


require_user_or_admin = require_role(UserRole.USER, UserRole.ADMIN)
require_admin = require_role(UserRole.ADMIN)


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(
    user: UserCreate,
    response: Response,
    db: Session = Depends(get_db),
):
    """Create a new user account."""
    storage = Storage(db)
    if storage.get_user_by_username(user.username):
        raise ValidationError("Username already exists", field="username")

    db_user = storage.create_user(
        username=user.username,
        hashed_password=get_password_hash(user.password),
        email=user.email,
    )
    return _issue_session(response, db_user)


@router.post("/signin", response_model=AuthResponse)
def signin(
    credentials: UserCredentials,
    response: Response,
    db: Session = Depends(get_db),
):
    """Sign in and get JWT token."""
    db_user = authenticate_user(db, credentials.username, credentials.password)
    if not db_user:
        raise Unauthorized("Incorrect username or password")
    return _issue_session(response, db_user)


@router.post("/signout")
def signout(response: Response):
    """Sign out and clear session cookie."""
    response.delete_cookie(key="token")
    return {"success": True}


@router.get("/me", response_model=UserSchema)
def read_users_me(current_user: User = Depends(get_current_user)):
    """Get current user information."""
    return current_user
