"""Health endpoint for CallGuard.

  GET /health: 503 before ``app.state.ready``, 200 with a status body after.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request

from callguard import __version__
from callguard.scanner.patterns import build_patterns

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    """Primary health check.

    Response body (200):
        {
          "status": "ok",
          "version": "1.0.0",
          "patterns": <number of active secret/PII rules>,
          "destructive": true | false
        }
    """
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={"status": "starting", "message": "CallGuard is starting up."},
        )
    config = request.app.state.config
    return {
        "status": "ok",
        "version": __version__,
        "patterns": len(build_patterns(config)),
        "destructive": config.destructive.enabled,
    }
