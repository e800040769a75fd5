# routers/auth.py
from fastapi import APIRouter, Depends

from deps.auth import get_current_profile, login_for_access_token
from models import UserProfile
from routers.common import ok
from schemas import ProfileOut

router = APIRouter(prefix="/auth", tags=["auth"])

# OAuth2 password form: username = email
router.post("/token")(login_for_access_token)


@router.get("/me")
def me(profile: UserProfile = Depends(get_current_profile)):
    return ok(ProfileOut.model_validate(profile))
