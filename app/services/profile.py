from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from ..auth import AuthUser
from ..schemas import Photo, Preferences, Profile, ProfileRequest
from ..utils import is_uuid
from .errors import InvalidRequestError, NotFoundError
from .swipes import DEFAULT_COLLECTION_NAME

logger = logging.getLogger(__name__)


def photo_from_row(row: Dict[str, Any]) -> Photo:
    return Photo(
        id=str(row["id"]),
        url=row["url"],
        is_primary=bool(row.get("is_primary")),
        uploaded_at=row.get("uploaded_at"),
    )


def profile_from_row(row: Dict[str, Any], photos: List[Dict[str, Any]]) -> Profile:
    prefs = row.get("preferences")
    return Profile(
        id=str(row["id"]),
        auth_id=row["auth_id"],
        email=row.get("email") or "",
        name=row.get("name") or "User",
        preferences=Preferences.model_validate(prefs) if prefs else None,
        primary_photo_id=str(row["primary_photo_id"]) if row.get("primary_photo_id") else None,
        created_at=row.get("created_at"),
        photos=[photo_from_row(p) for p in photos],
    )


class ProfileGateway:
    """
    Creates and updates the user record and photo set.

    At most `max_photos` photos per user; exactly zero or one of them is
    primary, mirrored by users.primary_photo_id.
    """

    def __init__(self, store, max_photos: int = 5):
        self.store = store
        self.max_photos = max_photos

    def _require_user(self, auth_id: str) -> Dict[str, Any]:
        user = self.store.get_user_by_auth_id(auth_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def upsert(self, auth: AuthUser, request: ProfileRequest) -> Profile:
        prefs = request.preferences.model_dump(by_alias=True, exclude_none=True) if request.preferences else None
        user = self.store.get_user_by_auth_id(auth.id)

        if user:
            user = self.store.update_user(
                str(user["id"]),
                name=request.name or user.get("name") or "User",
                preferences=prefs if prefs is not None else user.get("preferences"),
            )
        else:
            user = self.store.create_user(
                auth.id,
                email=auth.email or "",
                name=request.name or auth.name or "User",
                preferences=prefs,
            )
            self.store.create_collection(str(user["id"]), DEFAULT_COLLECTION_NAME, is_default=True)
            logger.info(f"Created user {user['id']} for auth subject {auth.id}")

        if request.photo_urls:
            self._attach_photos(user, request.photo_urls, request.primary_photo_index)

        return self.get(auth.id)

    def get(self, auth_id: str) -> Profile:
        user = self._require_user(auth_id)
        return profile_from_row(user, self.store.list_photos(str(user["id"])))

    def primary_photo(self, auth_id: str) -> Optional[Photo]:
        user = self._require_user(auth_id)
        photos = self.store.list_photos(str(user["id"]))
        for p in photos:
            if p.get("is_primary"):
                return photo_from_row(p)
        return None

    def add_photos(self, auth_id: str, urls: List[str]) -> Tuple[List[Photo], int]:
        user = self._require_user(auth_id)
        if len(self.store.list_photos(str(user["id"]))) >= self.max_photos:
            raise InvalidRequestError(f"Photo limit reached ({self.max_photos})")
        return self._attach_photos(user, urls, None)

    def _attach_photos(self, user: Dict[str, Any], urls: List[str],
                       primary_index: Optional[int]) -> Tuple[List[Photo], int]:
        """Add photos up to the cap; returns (added photos, number rejected)."""
        user_id = str(user["id"])
        existing = self.store.list_photos(user_id)
        room = max(self.max_photos - len(existing), 0)
        candidates = [u.strip() for u in urls if u and u.strip()]
        accepted = candidates[:room]
        rejected = len(candidates) - len(accepted)
        if rejected:
            logger.warning(f"Rejected {rejected} photo(s) for user {user_id}: limit is {self.max_photos}")

        added = [self.store.add_photo(user_id, url) for url in accepted]
        has_primary = any(p.get("is_primary") for p in existing)

        if primary_index is not None and 0 <= primary_index < len(added):
            self.store.set_primary_photo(user_id, str(added[primary_index]["id"]))
        elif added and not has_primary:
            self.store.set_primary_photo(user_id, str(added[0]["id"]))

        added_ids = {str(a["id"]) for a in added}
        photos = [photo_from_row(p) for p in self.store.list_photos(user_id) if str(p["id"]) in added_ids]
        return photos, rejected

    def replace_photo(self, auth_id: str, photo_id: str, url: str) -> Photo:
        user = self._require_user(auth_id)
        if not url.strip():
            raise InvalidRequestError("url must not be blank")
        row = self.store.update_photo_url(str(user["id"]), photo_id, url.strip()) if is_uuid(photo_id) else None
        if not row:
            raise NotFoundError("Photo not found")
        return photo_from_row(row)

    def set_primary(self, auth_id: str, photo_id: str) -> Photo:
        user = self._require_user(auth_id)
        row = self.store.get_photo(str(user["id"]), photo_id) if is_uuid(photo_id) else None
        if not row:
            raise NotFoundError("Photo not found")
        self.store.set_primary_photo(str(user["id"]), photo_id)
        return photo_from_row({**row, "is_primary": True})

    def delete_photo(self, auth_id: str, photo_id: str) -> int:
        user = self._require_user(auth_id)
        user_id = str(user["id"])
        row = self.store.get_photo(user_id, photo_id) if is_uuid(photo_id) else None
        if not row:
            raise NotFoundError("Photo not found")

        affected = self.store.delete_photo(user_id, photo_id)
        if row.get("is_primary"):
            remaining = self.store.list_photos(user_id)
            self.store.set_primary_photo(user_id, str(remaining[0]["id"]) if remaining else None)
        return affected
