from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional, Dict, Any


class FirebaseBridgeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    firebase_token: Optional[str] = Field(default=None, alias="firebaseToken")
    email: Optional[EmailStr] = None
    display_name: Optional[str] = Field(default=None, alias="displayName")
    photo_url: Optional[str] = Field(default=None, alias="photoURL")


class SessionResponse(BaseModel):
    access_token: str
    refresh_token: str
    user: Dict[str, Any]


class CurrentUser(BaseModel):
    id: str
    email: str
