from pydantic import BaseModel, Field, validator
from typing import List, Optional, Literal
from datetime import datetime

from constants import ExecutionConfig, SettingKeys


class CamelModel(BaseModel):
    """Request bodies use the browser client's camelCase keys"""

    class Config:
        populate_by_name = True


# Execution Schemas
class ExecuteRequest(CamelModel):
    command: str
    execution_id: str = Field(alias='executionId')
    output_file: Optional[str] = Field(default=None, alias='outputFile')
    timeout: float = Field(default=ExecutionConfig.DEFAULT_TIMEOUT_SECONDS, gt=0, le=24 * 3600)

    @validator('command')
    def command_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('No command provided')
        return v

    @validator('execution_id', pre=True)
    def execution_id_to_str(cls, v):
        # Browser clients send Date.now() numbers
        return str(v) if v is not None else v


class CancelRequest(CamelModel):
    execution_id: str = Field(alias='executionId')

    @validator('execution_id', pre=True)
    def execution_id_to_str(cls, v):
        return str(v) if v is not None else v


class ExecuteResponse(BaseModel):
    success: bool
    cancelled: bool = False
    message: Optional[str] = None
    error: Optional[str] = None
    outputFile: Optional[str] = None
    outputSize: Optional[int] = None
    stdout: str = ''
    stderr: str = ''
    code: Optional[int] = None
    timedOut: bool = False


# Region Schemas
class DisplayRegionPayload(CamelModel):
    """Selection rectangle plus the rendered element size it was drawn on"""
    x: float
    y: float
    width: float
    height: float
    display_width: float = Field(alias='displayWidth')
    display_height: float = Field(alias='displayHeight')
    file_path: Optional[str] = Field(default=None, alias='filePath')

    @validator('display_width', 'display_height')
    def display_size_positive(cls, v):
        if v <= 0:
            raise ValueError('Display dimensions must be positive')
        return v


class RegionRequest(CamelModel):
    display_region: DisplayRegionPayload = Field(alias='displayRegion')
    file_path: str = Field(alias='filePath')


class RegionResponse(BaseModel):
    regionString: str
    region: dict
    actualRegion: dict
    originalDimensions: dict
    rotation: float
    displayDimensions: dict
    isValid: bool


# Session Schemas
class InputFileRequest(BaseModel):
    path: str


class InputFileResponse(BaseModel):
    session_id: str
    input_file: Optional[str] = None
    exists: bool = False


# Chat Schemas
class ChatMessage(BaseModel):
    role: Literal['system', 'user', 'assistant']
    content: str


class ChatRequest(CamelModel):
    provider: str
    message: Optional[str] = None
    user_input: Optional[str] = Field(default=None, alias='userInput')
    conversation_history: List[ChatMessage] = Field(default_factory=list, alias='conversationHistory')
    pre_calculated_region: Optional[str] = Field(default=None, alias='preCalculatedRegion')
    model: Optional[str] = None

    @property
    def operation(self) -> str:
        return self.user_input or self.message or ''


# Settings Schemas
class SettingBase(BaseModel):
    key: str
    value: str

    @validator('value')
    def validate_value(cls, v, values):
        """Validate setting values based on key"""
        key = values.get('key', '')

        if key in SettingKeys.BOOLEAN_KEYS:
            if v.strip().lower() not in ['true', 'false']:
                raise ValueError(f"{key} must be 'true' or 'false'")
            return v.strip().lower()

        elif key in SettingKeys.TOOL_PATH_KEYS:
            # Empty string means "use the bundled/PATH binary"
            if '\x00' in v:
                raise ValueError('Tool path contains an invalid character')
            return v.strip()

        return v


class Setting(SettingBase):
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
