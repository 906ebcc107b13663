from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel, EmailStr
from ..models import User
from ..services.auth import authenticate, change_password, create_token, current_user, register_user
from ..services.profiles import get_profile, profile_dict

router = APIRouter()


class RegisterPayload(BaseModel):
    email: EmailStr
    password: str


class LoginPayload(BaseModel):
    email: EmailStr
    password: str


class PasswordPayload(BaseModel):
    current_password: str
    new_password: str


def _user_out(user: User) -> dict:
    return {"id": user.id, "email": user.email, "created_at": user.created_at}


@router.post('/auth/register')
def register(payload: RegisterPayload):
    user, profile = register_user(payload.email.lower(), payload.password)
    token = create_token(user)
    return {"token": token, "user": _user_out(user), "profile": profile_dict(profile)}


@router.post('/auth/login')
def login(payload: LoginPayload):
    user = authenticate(payload.email.lower(), payload.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = create_token(user)
    return {"token": token, "user": _user_out(user)}


@router.get('/auth/me')
def me(user: User = Depends(current_user)):
    return {**_user_out(user), "profile": profile_dict(get_profile(user.id))}


@router.post('/auth/password')
def update_password(payload: PasswordPayload, user: User = Depends(current_user)):
    change_password(user, payload.current_password, payload.new_password)
    return {"ok": True}
