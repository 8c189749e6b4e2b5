"""
API Models for the SCP Tool Server

Pydantic models for the HTTP surface. Tool arguments themselves are
validated by the tool layer (tools/scp_tools.py).
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ToolCallResponse(BaseModel):
    """
    Successful tool call result.
    """
    tool: str = Field(..., min_length=1)
    result: Dict[str, Any]

    model_config = ConfigDict(extra="forbid")


class ToolListResponse(BaseModel):
    tools: List[Dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")


class AboutResponse(BaseModel):
    name: str
    license: Dict[str, str]
    attribution: Dict[str, Any]
    disclaimer: str
    index: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(extra="forbid")
