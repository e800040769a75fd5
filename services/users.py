# services/users.py
from typing import Optional

from sqlalchemy.orm import Session

from deps.auth import get_password_hash
from exceptions import ConflictError
from models import Role, UserProfile


def create_user(
    db: Session,
    *,
    email: str,
    password: str,
    full_name: str,
    role: Role,
    phone: Optional[str] = None,
) -> UserProfile:
    email = email.strip().lower()
    if db.query(UserProfile.id).filter(UserProfile.email == email).first():
        raise ConflictError(f"Email already exists: {email}")

    u = UserProfile(
        email=email,
        full_name=full_name.strip(),
        phone=phone,
        role=Role(role).value,
        is_active=True,
        password_hash=get_password_hash(password),
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def create_technician(db: Session, *, email: str, password: str, full_name: str,
                      phone: Optional[str] = None) -> UserProfile:
    return create_user(db, email=email, password=password, full_name=full_name,
                       phone=phone, role=Role.TECHNICIAN)


def list_technicians(db: Session, *, include_inactive: bool = False) -> list[UserProfile]:
    q = db.query(UserProfile).filter(UserProfile.role == Role.TECHNICIAN.value)
    if not include_inactive:
        q = q.filter(UserProfile.is_active.is_(True))
    return q.order_by(UserProfile.full_name).all()
