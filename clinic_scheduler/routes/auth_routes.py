from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from clinic_scheduler.auth.dependencies import build_actor, get_current_user
from clinic_scheduler.database import get_db
from clinic_scheduler.models.user import User

router = APIRouter(tags=['auth'])


@router.get("/me")
def me(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    actor = build_actor(current_user, db)
    return {
        "email": current_user.email,
        "role": current_user.role,
        "organization_id": actor.organization_id,
        "client_id": actor.client_id,
    }
