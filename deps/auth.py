# deps/auth.py
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, SECRET_KEY
from database import get_db
from models import UserProfile
from utils.timeutil import utcnow

bearer_scheme = HTTPBearer(auto_error=False)
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def get_password_hash(plain: str) -> str:
    return pwd_context.hash(plain)


def create_access_token(data: dict, minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    to_encode = data.copy()
    to_encode["exp"] = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    return jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


def verify_token(token: str) -> int:
    """Identity check: token -> user id. Raises ValueError on anything invalid."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        raise ValueError(str(e)) from e
    sub = payload.get("sub")
    if sub is None:
        raise ValueError("token has no subject")
    return int(sub)


def fetch_profile(db: Session, user_id: int) -> Optional[UserProfile]:
    return db.get(UserProfile, user_id)


def authenticate_user(db: Session, email: str, password: str) -> Optional[UserProfile]:
    user = db.query(UserProfile).filter(UserProfile.email == email.strip().lower()).first()
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


def get_current_profile(
    db: Session = Depends(get_db),
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> UserProfile:
    if creds is None or creds.scheme.lower() != "bearer" or not creds.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No authorization token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        user_id = verify_token(creds.credentials)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    profile = fetch_profile(db, user_id)
    if not profile:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail="User profile not found")
    if not profile.is_active:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    return profile


# exchange email/password for a token (mounted in routers/auth.py)
def login_for_access_token(
    db: Session = Depends(get_db),
    form: OAuth2PasswordRequestForm = Depends(),
):
    user = authenticate_user(db, form.username, form.password)
    if not user:
        raise HTTPException(status_code=400, detail="Incorrect email or password")
    user.last_login_at = utcnow()
    db.commit()
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"access_token": token, "token_type": "bearer"}
