from pydantic import BaseModel, ConfigDict
from typing import Optional, Literal
from datetime import datetime


class UserPreferences(BaseModel):
    user_id: str
    default_language: str = "es"
    default_detail_level: str = "standard"
    default_tone: str = "engaging"
    preferred_voice_id: Optional[str] = None
    auto_generate_audio: bool = False
    theme: str = "dark"
    email_notifications: bool = True
    new_features_newsletter: bool = True
    updated_at: Optional[datetime] = None


class UpdatePreferencesRequest(BaseModel):
    # Unknown keys are rejected by the service with a 400 that names them
    model_config = ConfigDict(extra="allow")

    default_language: Optional[str] = None
    default_detail_level: Optional[Literal["brief", "standard", "detailed"]] = None
    default_tone: Optional[str] = None
    preferred_voice_id: Optional[str] = None
    auto_generate_audio: Optional[bool] = None
    theme: Optional[Literal["light", "dark", "system"]] = None
    email_notifications: Optional[bool] = None
    new_features_newsletter: Optional[bool] = None


class PreferencesEnvelope(BaseModel):
    preferences: UserPreferences
    success: bool = True
