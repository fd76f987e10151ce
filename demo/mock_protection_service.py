#!/usr/bin/env python3
"""Mock data-protection service for the dataprotect demo and integration tests.

Implements the two endpoints of the real service with an in-memory token vault:

  POST /v1/protect  {"protection_policy_name", "data"} → {"protected_data": "tkn_..."}
  POST /v1/reveal   {"protection_policy_name", "data"} → {"data": "<plaintext>"}

Unknown policies get HTTP 400 ``{"error": "unknown policy"}``; unknown tokens or
a token revealed under a different policy get HTTP 404. No cryptography happens
here; tokens are random and only meaningful to this process.

Usage:
    python3 demo/mock_protection_service.py
"""

import secrets

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

KNOWN_POLICIES = frozenset({"protect-credit-card", "protect-ssn", "protect-email"})


class ProtectBody(BaseModel):
    protection_policy_name: str
    data: str


def create_app() -> FastAPI:
    """Build a mock service with its own empty vault."""
    app = FastAPI(title="Mock Data Protection Service (dataprotect demo)")
    # token -> (policy, plaintext)
    app.state.vault = {}

    @app.post("/v1/protect")
    async def protect(body: ProtectBody, request: Request):
        if body.protection_policy_name not in KNOWN_POLICIES:
            return JSONResponse(status_code=400, content={"error": "unknown policy"})
        token = f"tkn_{secrets.token_hex(8)}"
        request.app.state.vault[token] = (body.protection_policy_name, body.data)
        return {"protected_data": token}

    @app.post("/v1/reveal")
    async def reveal(body: ProtectBody, request: Request):
        if body.protection_policy_name not in KNOWN_POLICIES:
            return JSONResponse(status_code=400, content={"error": "unknown policy"})
        entry = request.app.state.vault.get(body.data)
        if entry is None or entry[0] != body.protection_policy_name:
            return JSONResponse(status_code=404, content={"error": "unknown token"})
        return {"data": entry[1]}

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "mock-protection-service"}

    return app


app = create_app()


if __name__ == "__main__":
    print("Mock protection service starting on http://127.0.0.1:8080")
    uvicorn.run(app, host="127.0.0.1", port=8080, log_level="warning")
