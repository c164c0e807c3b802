from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
import hashlib
from gstr2b_recon.core.audit import audit_repo
from gstr2b_recon.schemas.audit import AuditAction, AuditLogEntry, AuditStatus
import logging
from typing import Callable

logger = logging.getLogger(__name__)


def action_for_endpoint(endpoint: str) -> AuditAction:
    if "download" in endpoint:
        return AuditAction.DOWNLOAD
    if "report" in endpoint:
        return AuditAction.REPORT
    if "reconcile" in endpoint:
        return AuditAction.RECONCILE
    if "health" in endpoint:
        return AuditAction.HEALTH_CHECK
    return AuditAction.UNKNOWN


class AuditMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable):
        # 1. Capture Request Details
        endpoint = request.url.path
        method = request.method
        action_type = action_for_endpoint(endpoint)

        logger.debug(f"Request to {endpoint}, action={action_type.value}")

        # 2. Capture & Hash Input
        request_body_bytes = await request.body()
        # Always hash the body, even if empty, for determinism
        input_hash = hashlib.sha256(request_body_bytes).hexdigest()

        # Re-inject body
        async def receive():
            return {"type": "http.request", "body": request_body_bytes}
        request._receive = receive

        # 3. Process Request
        response = None
        status = AuditStatus.FAILURE
        status_code = None
        output_hash = None

        try:
            response = await call_next(request)
            status_code = response.status_code
            if 200 <= response.status_code < 300:
                status = AuditStatus.SUCCESS

            # 4. Capture & Hash Output
            response_body_bytes = b""
            async for chunk in response.body_iterator:
                response_body_bytes += chunk

            output_hash = hashlib.sha256(response_body_bytes).hexdigest()

            # Reconstruct response
            response = Response(
                content=response_body_bytes,
                status_code=response.status_code,
                headers=dict(response.headers),
                media_type=response.media_type
            )
        finally:
            # 5. Log Event
            try:
                audit_repo.save(AuditLogEntry(
                    endpoint=endpoint,
                    method=method,
                    action_type=action_type,
                    input_hash=input_hash,
                    output_hash=output_hash,
                    status_code=status_code,
                    status=status
                ))
            except Exception as log_error:
                logger.error(f"Audit Logging Failed: {log_error}")

        return response
