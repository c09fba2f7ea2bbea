# src/bioren_backend/app/services/directory.py
# Maps verified Firebase identities -> user profiles in the document store.
from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from bioren_backend.app.auth.bearer import parse_bearer
from bioren_backend.app.auth.firebase import TokenVerifier, VerificationFailure, VerifiedIdentity
from bioren_backend.app.core.config import USERS_COLLECTION
from bioren_backend.app.core.errors import StorageError, Unauthorized
from bioren_backend.app.core.logging import auth_trace
from bioren_backend.app.models import LoginResult, UserProfile
from bioren_backend.app.services.store import DocumentStore

_log = logging.getLogger("bioren.directory")


class UserDirectoryService:
    """
    register / login / lookup on top of an identity verifier and a document store.

    Every operation verifies the bearer token first; on failure it raises
    Unauthorized before touching the store. The profile's subject id is
    always taken from the verified token.
    """

    def __init__(self, verifier: TokenVerifier, store: DocumentStore, collection: str = USERS_COLLECTION):
        self.verifier = verifier
        self.store = store
        self.collection = collection

    async def _authenticate(self, authorization: Optional[str]) -> VerifiedIdentity:
        token = parse_bearer(authorization)  # MalformedAuthorization is an Unauthorized
        try:
            return await self.verifier.verify(token)
        except VerificationFailure as ex:
            auth_trace("directory.verify_failed", reason=str(ex))
            raise Unauthorized("invalid or expired token") from ex

    async def register(self, authorization: Optional[str], display_name: Optional[str]) -> UserProfile:
        identity = await self._authenticate(authorization)
        profile = UserProfile(
            subject_id=identity.subject_id,
            email=identity.email,
            display_name=display_name,
        )
        # full overwrite: a repeated register replaces the stored profile
        await self.store.upsert(self.collection, profile.subject_id, profile.to_document())
        _log.info("registered user sub=%s", profile.subject_id)
        return profile

    async def login(self, authorization: Optional[str]) -> LoginResult:
        identity = await self._authenticate(authorization)
        _log.info("login sub=%s", identity.subject_id)
        return LoginResult(subject_id=identity.subject_id, email=identity.email, role=identity.role)

    async def lookup(self, authorization: Optional[str]) -> Optional[UserProfile]:
        """Stored profile of the caller, or None when they never registered.

        Store failures propagate as StorageError; they are not treated as absence.
        """
        identity = await self._authenticate(authorization)
        doc = await self.store.get(self.collection, identity.subject_id)
        if doc is None:
            return None
        # the document id is authoritative for the subject
        try:
            return UserProfile.from_document({**doc, "subjectId": identity.subject_id})
        except ValidationError as ex:
            _log.error("stored profile %s/%s does not decode: %s", self.collection, identity.subject_id, ex)
            raise StorageError("undecodable profile") from ex
