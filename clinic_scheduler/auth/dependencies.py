import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from clinic_scheduler.auth import jwt_handler
from clinic_scheduler.auth.actor import Actor
from clinic_scheduler.database import get_db
from clinic_scheduler.models.client import Client
from clinic_scheduler.models.user import ROLE_PATIENT, User

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    email = payload.get("sub")
    if not email:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    user = db.query(User).filter(User.email == email).first()
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def build_actor(user: User, db: Session) -> Actor:
    client_id = None
    if user.role == ROLE_PATIENT:
        client = db.query(Client).filter(Client.user_id == user.id).first()
        client_id = client.id if client else None

    return Actor(
        user_id=user.id,
        role=user.role,
        organization_id=user.organization_id,
        client_id=client_id,
    )


def get_current_actor(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Actor:
    return build_actor(user, db)
