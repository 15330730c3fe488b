"""Operator login - exchanges the configured admin credentials for a JWT."""

import hmac

import structlog
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from leadflow.config import settings
from leadflow.middleware.auth import create_admin_token

logger = structlog.get_logger()
router = APIRouter(prefix="/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    token: str
    email: str


@router.post("/login", response_model=LoginResponse)
def login(req: LoginRequest):
    email_ok = hmac.compare_digest(req.email.strip().lower(), settings.admin_email.lower())
    password_ok = hmac.compare_digest(req.password, settings.admin_password)
    if not (email_ok and password_ok):
        logger.warning("admin_login_rejected", email=req.email)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return LoginResponse(token=create_admin_token(settings.admin_email), email=settings.admin_email)
