"""
Shared-secret authentication for Trust Layer endpoints.

Callers must send the configured TRUST_LAYER_KEY in the x-api-key header.
"""
import hmac
import logging
from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

API_KEY_HEADER = "x-api-key"


async def verify_api_key(request: Request) -> None:
    """
    Verify that the request carries the shared secret.

    An unset TRUST_LAYER_KEY rejects every request.

    Raises:
        HTTPException(403): If the header is missing or does not match
    """
    expected = request.app.state.settings.trust_layer_key or ""
    provided = (request.headers.get(API_KEY_HEADER) or "").strip()

    if not expected:
        logger.error("TRUST_LAYER_KEY not configured - rejecting request")
        raise HTTPException(status_code=403, detail="Unauthorized")

    if not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning("Invalid x-api-key from %s (received length: %d)",
                       request.client.host if request.client else "unknown", len(provided))
        raise HTTPException(status_code=403, detail="Unauthorized")
