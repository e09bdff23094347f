from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional, List, Literal, Union


class AudioGenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    narrative: Optional[str] = None
    movie_title: Optional[str] = Field(default=None, alias="movieTitle")


class AudioFallbackRequest(BaseModel):
    narrative: Optional[str] = None


class AudioResult(BaseModel):
    """Generated audio: a hosted URL or inline base64, never both."""
    success: bool = True
    source: Literal["url", "base64"]
    audio_url: Optional[str] = None
    audio_base64: Optional[str] = None
    duration: Union[float, str] = "unknown"
    format: str = "mp3"

    @model_validator(mode="after")
    def check_payload(self):
        if self.source == "url" and not self.audio_url:
            raise ValueError("audio_url is required when source is 'url'")
        if self.source == "base64" and not self.audio_base64:
            raise ValueError("audio_base64 is required when source is 'base64'")
        return self


class SpeechInstructions(BaseModel):
    lang: str = "es-MX"
    rate: float = 1.0
    pitch: float = 1.0
    volume: float = 0.8


class AudioFallbackResponse(BaseModel):
    success: bool = True
    script: str
    method: str = "browser_synthesis"
    instructions: SpeechInstructions = Field(default_factory=SpeechInstructions)
    note: str = "Use Web Speech API for synthesis"


class Voice(BaseModel):
    name: str
    language: str
    gender: str


class VoicesResponse(BaseModel):
    available_voices: List[Voice]
    note: str
    supported_languages: List[str]
