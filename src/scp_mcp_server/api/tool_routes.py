"""
Tool Routes

HTTP entry point for tool calls. Each call is rate limited per client
session, dispatched through the allow-listed tool registry, and recorded in
the audit log whether it succeeds or fails.

Error responses are produced by the global ScpError handler registered in
main.create_app().
"""

from typing import Annotated, Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Header, status

from ..core.errors import RateLimitedError, ScpError
from ..scp.repository import ScpRepository
from ..security.audit_logger import AuditLogger
from ..security.rate_limiter import FixedWindowRateLimiter
from ..tools.base import dispatch_tool_call
from ..tools.definitions import TOOL_DEFINITIONS
from ..tools.scp_tools import summarize_result
from .dependencies import get_audit_logger, get_rate_limiter, get_repository
from .models import ToolCallResponse, ToolListResponse

router = APIRouter(prefix="/tools", tags=["tools"])


@router.get(
    "",
    response_model=ToolListResponse,
    summary="List callable tools and their argument schemas",
)
async def list_tools() -> ToolListResponse:
    return ToolListResponse(tools=TOOL_DEFINITIONS)


@router.post(
    "/{tool_name}",
    response_model=ToolCallResponse,
    status_code=status.HTTP_200_OK,
    summary="Invoke a tool",
)
async def call_tool(
    tool_name: str,
    repo: Annotated[ScpRepository, Depends(get_repository)],
    rate_limiter: Annotated[FixedWindowRateLimiter, Depends(get_rate_limiter)],
    audit_logger: Annotated[AuditLogger, Depends(get_audit_logger)],
    args: Annotated[Optional[Dict[str, Any]], Body()] = None,
    session_id: Annotated[Optional[str], Header(alias="mcp-session-id")] = None,
) -> ToolCallResponse:
    """
    Invoke one tool with a JSON object of arguments.

    Parameters
    ----------
    tool_name : str
        Registered tool name, e.g. ``scp_search``.

    args : Optional[Dict[str, Any]]
        Tool arguments; see GET /tools for each tool's schema.

    session_id : Optional[str]
        Client session id from the ``mcp-session-id`` header. Calls without
        one share the global rate limit window.
    """
    args = args or {}
    rate_key = f"session:{session_id}" if session_id else "global"

    usage = rate_limiter.consume(rate_key)
    if not usage.allowed:
        message = f"Rate limit exceeded. Try again after {usage.reset_time.isoformat()}."
        audit_logger.log(tool=tool_name, args=args, session_id=session_id, error=message)
        raise RateLimitedError(message)

    try:
        result = await dispatch_tool_call(tool_name, args, repo)
    except ScpError as exc:
        audit_logger.log(tool=tool_name, args=args, session_id=session_id, error=str(exc))
        raise

    audit_logger.log(
        tool=tool_name,
        args=args,
        session_id=session_id,
        result_meta=summarize_result(tool_name, result),
    )
    return ToolCallResponse(tool=tool_name, result=result)
