"""
Pydantic configuration models with validation.
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, Dict, Any, Union


class GeminiConfig(BaseModel):
    """Generative service configuration, shared by transcription and response."""
    api_key: str = Field(..., description="Gemini API key")
    model: str = Field("gemini-2.0-flash", description="Model name")
    base_url: str = Field("https://generativelanguage.googleapis.com", description="Service base URL")
    timeout: float = Field(30.0, gt=0, le=600, description="Request timeout in seconds")
    instruction: Optional[str] = Field(None, description="Transcription instruction")
    generation_config: Optional[Dict[str, Any]] = Field(None, description="generationConfig payload")

    @field_validator('api_key')
    @classmethod
    def validate_api_key(cls, v):
        if not v or len(v) < 10:
            raise ValueError('Invalid Gemini API key (too short)')
        return v

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, v):
        if not v.startswith(('http://', 'https://')):
            raise ValueError('base_url must start with http:// or https://')
        return v.rstrip('/')


class CaptureConfig(BaseModel):
    """Microphone capture configuration."""
    sample_rate: int = Field(16000, gt=0, le=192000, description="Capture sample rate")
    channels: int = Field(1, ge=1, le=2, description="Channel count")
    frames_per_buffer: int = Field(1024, ge=64, le=16384, description="Frames per callback")
    max_duration_seconds: float = Field(120, gt=0, description="Longest recording kept")
    device: Optional[Union[int, str]] = Field(None, description="Input device index or name")


class SpeechConfig(BaseModel):
    """Speech output options."""
    language: str = Field("en-US", min_length=2, description="Language tag")
    rate: float = Field(1.0, ge=0.1, le=4.0, description="Speed multiplier")
    pitch: float = Field(1.0, ge=0.5, le=2.0, description="Pitch multiplier")


class MemoryConfig(BaseModel):
    """Conversation memory configuration."""
    max_turns: int = Field(10, ge=1, le=200, description="Turns kept in memory")
    context_turns: int = Field(5, ge=0, description="Turns sent with each prompt")
    storage_key: str = Field("conversation_memory", min_length=1, description="Key in the store")

    @model_validator(mode='after')
    def validate_context(self):
        if self.context_turns > self.max_turns:
            raise ValueError(
                f'context_turns ({self.context_turns}) cannot exceed max_turns ({self.max_turns})'
            )
        return self


class SessionConfig(BaseModel):
    """Session persona and status messages."""
    persona: str = Field(..., min_length=1, description="Persona preamble")
    messages: Dict[str, str] = Field(default_factory=dict, description="Status message overrides")


class ProviderSelection(BaseModel):
    provider: str
    config: Dict[str, Any] = Field(default_factory=dict)


class FrameworkConfig(BaseModel):
    """Complete voice companion configuration."""
    capture: CaptureConfig
    transcription: GeminiConfig
    response: GeminiConfig
    speech: SpeechConfig
    memory: MemoryConfig
    session: SessionConfig
    tts: ProviderSelection
    storage: ProviderSelection
    providers: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode='after')
    def validate_storage(self):
        if self.storage.provider == 'json_file' and not self.storage.config.get('path'):
            raise ValueError('json_file storage requires a path')
        return self

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'FrameworkConfig':
        """Validate a dictionary produced by `get_framework_config()`."""
        return cls(
            capture=CaptureConfig(**config['capture']['config']),
            transcription=GeminiConfig(**config['transcription']['config']),
            response=GeminiConfig(**config['response']['config']),
            speech=SpeechConfig(**config.get('speech', {})),
            memory=MemoryConfig(**config.get('memory', {})),
            session=SessionConfig(**config['session']),
            tts=ProviderSelection(**config['tts']),
            storage=ProviderSelection(**config['storage']),
            providers={
                name: config[name]['provider']
                for name in ('capture', 'transcription', 'response', 'tts', 'storage')
            }
        )
