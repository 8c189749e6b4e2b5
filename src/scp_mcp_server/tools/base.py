"""
Tool Dispatch Layer

This module defines the central, authoritative dispatch mechanism for all
tool calls. It enforces:

- Explicit tool allow-listing
- Strong argument validation
- Dependency injection for testability
- Uniform error behavior (every failure is an ScpError)

No tool is callable unless it is explicitly registered here.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Tuple, Type

import pydantic
from pydantic import BaseModel

from ..core.errors import ValidationError
from ..scp.repository import ScpRepository
from .definitions import (
    TOOL_SCP_GET_ATTRIBUTION,
    TOOL_SCP_GET_CONTENT,
    TOOL_SCP_GET_PAGE,
    TOOL_SCP_GET_RELATED,
    TOOL_SCP_SEARCH,
)
from .scp_tools import (
    GetContentArgs,
    GetPageArgs,
    LinkArgs,
    SearchArgs,
    tool_get_attribution,
    tool_get_content,
    tool_get_page,
    tool_get_related,
    tool_search,
)


# ---------------------------------------------------------------------
# Tool Type Definitions
# ---------------------------------------------------------------------

ToolHandler = Callable[[ScpRepository, Any], Awaitable[Dict[str, Any]]]


# ---------------------------------------------------------------------
# Tool Registry (AUTHORITATIVE)
# ---------------------------------------------------------------------

TOOL_REGISTRY: Dict[str, Tuple[Type[BaseModel], ToolHandler]] = {
    TOOL_SCP_SEARCH: (SearchArgs, tool_search),
    TOOL_SCP_GET_PAGE: (GetPageArgs, tool_get_page),
    TOOL_SCP_GET_CONTENT: (GetContentArgs, tool_get_content),
    TOOL_SCP_GET_RELATED: (LinkArgs, tool_get_related),
    TOOL_SCP_GET_ATTRIBUTION: (LinkArgs, tool_get_attribution),
}


def _describe_validation_error(exc: pydantic.ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "arguments"
        parts.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return "; ".join(parts)


# ---------------------------------------------------------------------
# Public Dispatch API
# ---------------------------------------------------------------------

async def dispatch_tool_call(
    tool_name: str,
    args: Dict[str, Any],
    repo: ScpRepository,
) -> Dict[str, Any]:
    """
    Dispatch a tool call.

    Parameters
    ----------
    tool_name : str
        The symbolic tool name requested by the client.

    args : Dict[str, Any]
        Parsed JSON arguments for the tool.

    repo : ScpRepository
        Active repository instance (injected).

    Returns
    -------
    Dict[str, Any]
        Tool execution result, JSON-serializable.

    Raises
    ------
    ValidationError
        If the tool name is unknown or the arguments do not validate.
    """
    entry = TOOL_REGISTRY.get(tool_name)
    if entry is None:
        raise ValidationError(f"Unknown tool requested: {tool_name}")

    args_model, handler = entry
    try:
        parsed = args_model.model_validate(args or {})
    except pydantic.ValidationError as exc:
        raise ValidationError(
            f"Invalid arguments for {tool_name}: {_describe_validation_error(exc)}"
        ) from exc

    return await handler(repo, parsed)
