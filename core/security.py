import logging
from fastapi import Request
import config
from core.errors import Forbidden

logger = logging.getLogger(__name__)

ADMIN_PREFIX = "/api/admin"


def operator_identity(request: Request) -> str:
    """Identity asserted by the access proxy in front of the operator API.

    The proxy strips any client-supplied copy of the header, so its presence
    is the proof of authentication.
    """
    identity = request.headers.get(config.OPERATOR_HEADER, "").strip()
    if not identity:
        logger.warning(f"Operator request without {config.OPERATOR_HEADER} to {request.url.path}")
        raise Forbidden("Operator access required", code="operator_required")
    if config.OPERATOR_EMAILS and identity.lower() not in config.OPERATOR_EMAILS:
        logger.warning(f"Operator {identity} not in OPERATOR_EMAILS")
        raise Forbidden("Operator not allowed", code="operator_not_allowed")
    return identity


async def require_operator(request: Request) -> str:
    return operator_identity(request)
