"""
Database Schemas for SkillSwap (skills & goods bartering)

Each Pydantic model maps to a MongoDB collection (lowercased class name).
References to other documents are stored as the target's _id string.
"""

from typing import List, Optional, Literal, Dict, Any
from pydantic import BaseModel, Field, EmailStr


class AvailableHours(BaseModel):
    day: str
    start_time: str
    end_time: str


# Something a user can give in a trade
class Offering(BaseModel):
    type: Literal['skill', 'good']
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    skill_level: Optional[Literal['beginner', 'intermediate', 'advanced', 'expert']] = None
    available_hours: List[AvailableHours] = Field(default_factory=list)


# Something a user wants to receive in a trade
class Need(BaseModel):
    type: Literal['skill', 'good']
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    preferred_location: Optional[str] = None
    urgency: Optional[Literal['low', 'medium', 'high']] = None


class NotificationPreferences(BaseModel):
    emailNotifications: bool = True
    pushNotifications: bool = True
    marketingEmails: bool = False
    newMatches: bool = True
    messages: bool = True
    skillRequests: bool = True


class PrivacyPreferences(BaseModel):
    profileVisibility: bool = True
    showLocation: bool = True
    showEmail: bool = False
    showPhone: bool = False


class MatchPreferences(BaseModel):
    max_distance: int = Field(50, description="Search radius in km")
    use_blockchain: bool = False


NOTIFICATION_FIELDS = list(NotificationPreferences.model_fields)
PRIVACY_FIELDS = list(PrivacyPreferences.model_fields)


# Platform members
class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr = Field(..., description="Email address, stored lowercased")
    phone: Optional[str] = Field(None, description="Phone number")
    password_hash: str = Field(..., description="Salted PBKDF2 hash of password")
    avatar: str = Field("/placeholder.svg", description="Avatar URL")
    profile_photo: str = Field("", description="Profile photo as data URI")
    trust_score: int = Field(50, description="Reputation score")
    is_verified: bool = Field(False)
    bio: str = ""
    location: str = Field("", description="City or region")
    skills: List[str] = Field(default_factory=list)
    profession: str = ""
    languages: List[str] = Field(default_factory=list)
    connections: List[str] = Field(default_factory=list, description="Connected user ids (symmetric)")
    completed_trades: int = Field(0, ge=0)
    is_active: bool = Field(True, description="Whether user is active")
    rating: float = Field(0, ge=0)
    offerings: List[Offering] = Field(default_factory=list)
    needs: List[Need] = Field(default_factory=list)
    notifications: NotificationPreferences = Field(default_factory=NotificationPreferences)
    privacy: PrivacyPreferences = Field(default_factory=PrivacyPreferences)
    preferences: MatchPreferences = Field(default_factory=MatchPreferences)


NotificationType = Literal[
    'connection_request',
    'connection_accepted',
    'trade_request',
    'trade_accepted',
    'trade_completed',
    'message',
    'system',
]


# Directed messages between users about workflow events
class Notification(BaseModel):
    recipient: str = Field(..., description="Recipient user id")
    sender: str = Field(..., description="Sender user id")
    type: NotificationType
    title: str = Field(..., max_length=140)
    message: str = Field(..., description="Text shown to the recipient")
    data: Dict[str, Any] = Field(default_factory=dict)
    read: bool = Field(False)


# A proposed or in-progress barter exchange
class Match(BaseModel):
    requester: str = Field(..., description="User id that proposed the trade")
    recipient: str = Field(..., description="User id the trade was proposed to")
    status: Literal['pending', 'accepted', 'rejected', 'completed', 'cancelled'] = Field('pending')
    offering_title: Optional[str] = None
    need_title: Optional[str] = None


# Chat thread between users
class Conversation(BaseModel):
    participants: List[str] = Field(..., min_length=2)


class Message(BaseModel):
    conversation: str = Field(..., description="Conversation id")
    sender: str = Field(..., description="Sender user id")
    content: str = Field(..., max_length=5000)
    read: bool = Field(False)
