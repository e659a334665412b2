"""
Subscriber-side FastAPI dependency for verifying incoming webhook deliveries.

Usage:
    verifier = WebhookSignatureVerifier(secret)

    @app.post("/hooks/railagent")
    async def on_event(event: WebhookEvent = Depends(verifier)):
        ...
"""

from fastapi import HTTPException, Request, status
from pydantic import ValidationError

from ..schemas import WebhookEvent
from .signing import DEFAULT_TOLERANCE_SEC, SIGNATURE_HEADER, TIMESTAMP_HEADER, verify_webhook_signature


class WebhookSignatureVerifier:
    def __init__(self, secret: str, tolerance_sec: int = DEFAULT_TOLERANCE_SEC):
        self.secret = secret
        self.tolerance_sec = tolerance_sec

    async def __call__(self, request: Request) -> WebhookEvent:
        body = await request.body()
        payload = body.decode("utf-8", errors="replace")
        check = verify_webhook_signature(
            self.secret,
            payload,
            request.headers.get(SIGNATURE_HEADER),
            request.headers.get(TIMESTAMP_HEADER),
            tolerance_sec=self.tolerance_sec,
        )
        if not check.ok:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=check.reason)
        try:
            return WebhookEvent.model_validate_json(body)
        except ValidationError:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Malformed webhook event")
