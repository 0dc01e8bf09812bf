"""
Database Schemas for Sardene

Each Pydantic model maps to a MongoDB collection with the lowercase class name.
- Idea -> "idea"
- User -> "user"
- Engagement -> "engagement"

Identity and BearerCredential are not stored; they describe what the
OAuth provider hands back.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EngagementKind(str, Enum):
    LIKE = "like"
    MAKE = "make"

    @property
    def counter(self) -> str:
        """Idea field that counts engagements of this kind."""
        return "gazers" if self is EngagementKind.LIKE else "makers"


class Identity(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Provider-issued numeric user id")
    login: str = Field(..., description="Provider login handle")
    name: str = Field("", description="Display name")


class BearerCredential(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str = Field(..., description="Provider access token, passed through as the bearer")
    token_type: str = Field("bearer")
    scope: str = Field("")


class Idea(BaseModel):
    name: str = Field(..., description="Idea title")
    description: str = Field(..., description="What the idea is about")
    publisher: str = Field(..., description="Login of the publishing user")
    makers: int = Field(0, ge=0, description="Cached count of make engagements")
    gazers: int = Field(0, ge=0, description="Cached count of like engagements")
    created_at: int = Field(..., description="Seconds since epoch")


class User(BaseModel):
    id: int = Field(..., alias="_id", description="Provider user id, also the document key")
    login: str
    name: str = ""
    created_at: int = Field(..., description="Seconds since epoch")


class Engagement(BaseModel):
    user_id: int = Field(..., description="Provider user id")
    idea_id: str = Field(..., description="Target idea id as hex string")
    kind: EngagementKind
    created_at: int = Field(..., description="Seconds since epoch")
