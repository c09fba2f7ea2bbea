# src/bioren_backend/app/api/routes/auth.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, status
from fastapi.responses import PlainTextResponse

from bioren_backend.app.deps import get_directory
from bioren_backend.app.models import LoginResult, RegisterRequest, UserProfile
from bioren_backend.app.services.directory import UserDirectoryService

router = APIRouter(prefix="/api/auth", tags=["auth"])

PROFILE_NOT_FOUND = "profile not found"


@router.post("/login", response_model=LoginResult)
async def login(
    authorization: Optional[str] = Header(None),
    directory: UserDirectoryService = Depends(get_directory),
):
    """
    Verify a Firebase ID token and echo who it belongs to.
    Nothing is read from or written to the store.
    """
    return await directory.login(authorization)


@router.post("/register", response_model=UserProfile, status_code=status.HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    authorization: Optional[str] = Header(None),
    directory: UserDirectoryService = Depends(get_directory),
):
    """
    Create (or overwrite) the caller's profile.
    subjectId and email come from the token; only `name` is taken from the body.
    """
    return await directory.register(authorization, body.name)


@router.get(
    "/me",
    response_model=UserProfile,
    responses={404: {"description": "caller never registered", "content": {"text/plain": {}}}},
)
async def me(
    authorization: Optional[str] = Header(None),
    directory: UserDirectoryService = Depends(get_directory),
):
    profile = await directory.lookup(authorization)
    if profile is None:
        return PlainTextResponse(PROFILE_NOT_FOUND, status_code=status.HTTP_404_NOT_FOUND)
    return profile
