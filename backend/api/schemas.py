"""
Pydantic schemas for the user and menu API
"""
from typing import Optional, List, Dict, Any
from datetime import datetime
from pydantic import BaseModel, Field, AliasChoices


class UserResponse(BaseModel):
    """User account as returned to clients"""
    id: int
    email: str
    name: str
    google_id: Optional[str] = Field(None, validation_alias=AliasChoices("google_id", "federated_id"))
    avatar: Optional[str] = Field(None, validation_alias=AliasChoices("avatar", "avatar_url"))
    is_active: bool
    created_at: datetime
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class UserListData(BaseModel):
    """Paginated user list"""
    users: List[UserResponse]
    total: int
    page: int
    limit: int
    total_pages: int
    keyword: Optional[str] = None


class UserStatsResponse(BaseModel):
    total_users: int
    active_users: int
    inactive_users: int

    class Config:
        from_attributes = True


class UpdateUserRequest(BaseModel):
    """Request to update a user's profile"""
    name: Optional[str] = Field(None, max_length=255)
    avatar_url: Optional[str] = Field(
        None,
        max_length=1000,
        validation_alias=AliasChoices("avatar_url", "avatar"),
    )


class MenuResponse(BaseModel):
    email: str
    menu: List[Dict[str, Any]]


def success(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    """Wrap a payload in the {"success": true, ...} envelope."""
    body: Dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return body
