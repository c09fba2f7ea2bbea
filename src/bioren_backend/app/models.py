# src/bioren_backend/app/models.py
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class UserProfile(BaseModel):
    """
    A registered user, one document per user in the users collection.

    subject_id comes from the verified token and is the document id. The
    wire/document field names are camelCase (subjectId, displayName, ...).
    """
    model_config = ConfigDict(populate_by_name=True)

    subject_id: str = Field(..., alias="subjectId")
    display_name: Optional[str] = Field(None, alias="displayName")
    phone: Optional[str] = None  # reserved, never written by the current flows
    email: Optional[str] = None

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "UserProfile":
        return cls.model_validate(doc)


class LoginResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    subject_id: str = Field(..., alias="subjectId")
    email: Optional[str] = None
    # carried through from the token, never serialised in the login response
    role: Optional[str] = Field(None, exclude=True)


class RegisterRequest(BaseModel):
    # extra keys (e.g. a client-sent "subjectId") are ignored
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
