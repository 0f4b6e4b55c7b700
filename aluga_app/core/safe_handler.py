import logging
from functools import wraps

from fastapi import HTTPException, Request
from fintechs.mercadopago import PaymentProviderError

from .breaker import CircuitOpenError
from .friendly_msg import get_friendly_message

logger = logging.getLogger(__name__)


def _request_context(request: Request | None) -> str:
    if request is None:
        return ""
    client_ip = request.client.host if request.client else "unknown"
    trace_id = request.headers.get("X-Request-ID", "none")
    return f"TraceID={trace_id} | {request.url.path} from {client_ip}"


def safe_handler(func):
    @wraps(func)
    async def wrapper(*args, **kwargs):
        request: Request | None = None
        for arg in list(args) + list(kwargs.values()):
            if isinstance(arg, Request):
                request = arg
                break

        try:
            return await func(*args, **kwargs)
        except HTTPException as e:
            logger.warning(
                f"[HTTPException] {_request_context(request)} | {e.status_code}: {e.detail}"
            )
            raise
        except (PaymentProviderError, CircuitOpenError) as e:
            # detail carries the provider message
            logger.error(
                f"[PaymentProvider] {_request_context(request)} | in {func.__name__}: {e}"
            )
            raise HTTPException(status_code=502, detail=str(e))
        except Exception as e:
            logger.error(
                f"[Unhandled Error] {_request_context(request)} | in {func.__name__}: {e}",
                exc_info=True,
            )
            raise HTTPException(status_code=500, detail=get_friendly_message(e))

    return wrapper
