"""
Account settings: profile, photo, notification/privacy preferences,
password, data export and account deletion for the calling user.
"""

import logging
import re
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import get_current_user_id, hash_password, verify_password
from database import as_utc, find_by_id, get_db, to_object_id, utcnow
from errors import Conflict, InvalidRequest, NotFound, workflow_boundary
from schemas import NOTIFICATION_FIELDS, PRIVACY_FIELDS, NotificationPreferences, PrivacyPreferences

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/settings", tags=["settings"])

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6


def _profile(user: dict) -> dict:
    return {
        "name": user.get("name"),
        "email": user.get("email"),
        "phone": user.get("phone") or "",
        "bio": user.get("bio") or "",
        "location": user.get("location") or "",
        "skills": user.get("skills") or [],
        "profilePhoto": user.get("profile_photo") or "",
    }


def _preferences(block: Optional[dict], defaults: BaseModel) -> dict:
    if not block:
        return defaults.model_dump()
    return {**defaults.model_dump(), **block}


def _get_user(db: Database, user_id: str) -> dict:
    user = find_by_id(db, "user", user_id)
    if not user:
        raise NotFound("User not found")
    return user


def _update_user(db: Database, user_id: str, fields: dict) -> dict:
    updated = db.user.find_one_and_update(
        {"_id": to_object_id(user_id)},
        {"$set": {**fields, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if not updated:
        raise NotFound("User not found")
    return updated


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _email_taken(db: Database, email: str, user_id: str) -> bool:
    return db.user.find_one({"email": email, "_id": {"$ne": to_object_id(user_id)}}) is not None


def get_user_settings(db: Database, user_id: str) -> dict:
    user = _get_user(db, user_id)
    return {
        "profile": _profile(user),
        "notifications": _preferences(user.get("notifications"), NotificationPreferences()),
        "privacy": _preferences(user.get("privacy"), PrivacyPreferences()),
    }


def update_profile(
    db: Database,
    user_id: str,
    name: Optional[str],
    email: Optional[str],
    phone: Optional[str] = None,
    bio: Optional[str] = None,
    location: Optional[str] = None,
    skills: Any = None,
) -> dict:
    if not name or not email:
        raise InvalidRequest("Name and email are required")
    if not EMAIL_RE.match(email):
        raise InvalidRequest("Invalid email format")
    if skills is not None and not isinstance(skills, list):
        raise InvalidRequest("Skills must be a list")

    email = email.strip().lower()
    if _email_taken(db, email, user_id):
        raise Conflict("Email is already taken by another user")

    cleaned_skills: List[str] = [s.strip() for s in skills or [] if isinstance(s, str) and s.strip()]
    try:
        updated = _update_user(db, user_id, {
            "name": name.strip(),
            "email": email,
            "phone": _clean(phone),
            "bio": _clean(bio),
            "location": _clean(location),
            "skills": cleaned_skills,
        })
    except DuplicateKeyError:
        # another account claimed the address after the lookup
        raise Conflict("Email is already taken by another user")
    return _profile(updated)


def upload_profile_photo(db: Database, user_id: str, photo: Optional[str]) -> str:
    if not photo:
        raise InvalidRequest("No photo data provided")
    if not photo.startswith("data:image/"):
        raise InvalidRequest("Invalid image format")
    updated = _update_user(db, user_id, {"profile_photo": photo})
    return updated["profile_photo"]


def update_notifications(db: Database, user_id: str, values: dict) -> dict:
    """Replace the whole notification block; omitted flags become False."""
    notifications = {field: bool(values.get(field)) for field in NOTIFICATION_FIELDS}
    updated = _update_user(db, user_id, {"notifications": notifications})
    return updated["notifications"]


def update_privacy(db: Database, user_id: str, values: dict) -> dict:
    """Replace the whole privacy block; omitted flags become False."""
    privacy = {field: bool(values.get(field)) for field in PRIVACY_FIELDS}
    updated = _update_user(db, user_id, {"privacy": privacy})
    return updated["privacy"]


def change_password(db: Database, user_id: str, current_password: Optional[str], new_password: Optional[str]) -> None:
    if not current_password or not new_password:
        raise InvalidRequest("Current password and new password are required")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise InvalidRequest(f"New password must be at least {MIN_PASSWORD_LENGTH} characters long")

    user = _get_user(db, user_id)
    if not verify_password(current_password, user.get("password_hash")):
        raise InvalidRequest("Current password is incorrect")

    _update_user(db, user_id, {"password_hash": hash_password(new_password)})
    logger.info("Password changed for user %s", user_id)


def download_user_data(db: Database, user_id: str) -> dict:
    user = _get_user(db, user_id)
    now = utcnow()
    created_at = user.get("created_at") or now
    offerings = user.get("offerings") or []
    return {
        "exportDate": as_utc(now).isoformat(),
        "profile": {
            "id": str(user["_id"]),
            "name": user.get("name"),
            "email": user.get("email"),
            "phone": user.get("phone"),
            "bio": user.get("bio"),
            "location": user.get("location"),
            "skills": user.get("skills", []),
            "profilePhoto": user.get("profile_photo"),
            "trustScore": user.get("trust_score"),
            "isVerified": user.get("is_verified", False),
            "createdAt": as_utc(user.get("created_at")),
            "updatedAt": as_utc(user.get("updated_at")),
        },
        "settings": {
            "notifications": user.get("notifications"),
            "privacy": user.get("privacy"),
        },
        "offerings": offerings,
        "needs": user.get("needs") or [],
        "statistics": {
            "totalOfferings": len(offerings),
            "accountAge": (now - created_at).days,
        },
    }


def delete_account(db: Database, user_id: str) -> None:
    """
    Delete the user document.

    Messages, matches, notifications and other users' connection lists that
    reference this account are left untouched.
    """
    _get_user(db, user_id)
    db.user.delete_one({"_id": to_object_id(user_id)})
    logger.info("Deleted account %s", user_id)


class ProfileBody(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    skills: Optional[Any] = None


class PhotoBody(BaseModel):
    profilePhoto: Optional[str] = None


class NotificationsBody(BaseModel):
    emailNotifications: Any = None
    pushNotifications: Any = None
    marketingEmails: Any = None
    newMatches: Any = None
    messages: Any = None
    skillRequests: Any = None


class PrivacyBody(BaseModel):
    profileVisibility: Any = None
    showLocation: Any = None
    showEmail: Any = None
    showPhone: Any = None


class PasswordBody(BaseModel):
    currentPassword: Optional[str] = None
    newPassword: Optional[str] = None


@router.get("")
def read_settings(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    with workflow_boundary("fetching settings"):
        data = get_user_settings(db, user_id)
    return {"success": True, "data": data}


@router.put("/profile")
def put_profile(body: ProfileBody, user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    with workflow_boundary("updating profile"):
        data = update_profile(db, user_id, **body.model_dump())
    return {"success": True, "message": "Profile updated successfully", "data": data}


@router.put("/profile/photo")
def put_profile_photo(body: PhotoBody, user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    with workflow_boundary("uploading photo"):
        photo = upload_profile_photo(db, user_id, body.profilePhoto)
    return {"success": True, "message": "Profile photo uploaded successfully", "data": {"profilePhoto": photo}}


@router.put("/notifications")
def put_notifications(
    body: NotificationsBody,
    user_id: str = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    with workflow_boundary("updating notifications"):
        data = update_notifications(db, user_id, body.model_dump())
    return {"success": True, "message": "Notification preferences updated successfully", "data": data}


@router.put("/privacy")
def put_privacy(body: PrivacyBody, user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    with workflow_boundary("updating privacy settings"):
        data = update_privacy(db, user_id, body.model_dump())
    return {"success": True, "message": "Privacy settings updated successfully", "data": data}


@router.put("/password")
def put_password(body: PasswordBody, user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    with workflow_boundary("changing password"):
        change_password(db, user_id, body.currentPassword, body.newPassword)
    return {"success": True, "message": "Password changed successfully"}


@router.get("/download")
def download(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    with workflow_boundary("preparing user data"):
        data = download_user_data(db, user_id)
    return {"success": True, "data": data}


@router.delete("/account")
def remove_account(user_id: str = Depends(get_current_user_id), db: Database = Depends(get_db)):
    with workflow_boundary("deleting account"):
        delete_account(db, user_id)
    return {"success": True, "message": "Account deleted successfully"}
