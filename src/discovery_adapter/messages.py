"""Payloads exchanged with the component's callers."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ComponentSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    service: str = Field(default="", description="Service id from the discovery directory")
    method: str = Field(default="", description="Full method name, e.g. spreadsheets.values.get")
    enable_error_port: bool = Field(
        default=False,
        alias="enableErrorPort",
        description="Emit failures as error payloads instead of raising",
    )


class Token(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(..., alias="accessToken", min_length=1)
    token_type: str = Field(default="Bearer", alias="tokenType")
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")
    expiry: Optional[datetime] = None


class ExecuteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    context: Any = None
    token: Token
    parameters: Dict[str, Any] = Field(default_factory=dict)


class ExecuteResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    context: Any = None
    status_code: int = Field(..., alias="statusCode")
    headers: Dict[str, Any] = Field(default_factory=dict)
    body: Dict[str, Any] = Field(default_factory=dict)


class ErrorMessage(BaseModel):
    context: Any = None
    error: str
    code: Optional[int] = None
