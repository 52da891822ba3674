"""HTTP routes for the three host hooks.

  POST /v1/hooks/before-tool-call : evaluate_tool_call()
  POST /v1/hooks/tool-result      : filter_tool_result()
  GET  /v1/hooks/agent-context    : build_agent_context()

Request bodies use the host's camelCase field names. All routes require
``app.state.ready``.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request

from callguard.config import GuardConfig
from callguard.policy.context import build_agent_context
from callguard.policy.output import filter_tool_result
from callguard.policy.resolver import evaluate_tool_call

router = APIRouter(prefix="/v1/hooks", tags=["hooks"])


async def require_ready(request: Request) -> None:
    """FastAPI dependency: raises HTTP 503 if app.state.ready is not True."""
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={"status": "starting", "message": "CallGuard is starting up."},
        )


async def _json_object(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=422, detail="Request body must be valid JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=422, detail="Request body must be a JSON object")
    return body


def _config(request: Request) -> GuardConfig:
    return request.app.state.config


@router.post("/before-tool-call", dependencies=[Depends(require_ready)])
async def before_tool_call(request: Request) -> dict[str, Any]:
    """Body: ``{"toolName": str, "params": object, "sessionKey"?: str}``."""
    body = await _json_object(request)
    tool_name = body.get("toolName")
    params = body.get("params", {})
    session_key = body.get("sessionKey")
    if not isinstance(tool_name, str) or not tool_name:
        raise HTTPException(status_code=422, detail="toolName must be a non-empty string")
    if params is not None and not isinstance(params, dict):
        raise HTTPException(status_code=422, detail="params must be an object")
    if session_key is not None and not isinstance(session_key, str):
        raise HTTPException(status_code=422, detail="sessionKey must be a string")

    verdict = evaluate_tool_call(tool_name, params, _config(request), session_key=session_key)
    return {**verdict.to_hook_result(), "decisionId": verdict.decision_id}


@router.post("/tool-result", dependencies=[Depends(require_ready)])
async def tool_result(request: Request) -> dict[str, Any]:
    """Body: ``{"message": {"content": str | [block, ...], ...}}``."""
    body = await _json_object(request)
    message = body.get("message")
    if not isinstance(message, dict):
        raise HTTPException(status_code=422, detail="message must be an object")
    return {"message": filter_tool_result(message, _config(request))}


@router.get("/agent-context", dependencies=[Depends(require_ready)])
async def agent_context(request: Request) -> dict[str, Any]:
    context = build_agent_context(_config(request))
    if context is None:
        return {}
    return {"prependContext": context}
