from functools import wraps
import logging
import threading

from fastapi import HTTPException, status
from google.api_core import exceptions as gcp_exceptions
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from classhub.core.config import settings
from classhub.utils.exceptions import StoreUnavailableError


logger = logging.getLogger(__name__)

_outer_call = threading.local()

TRANSIENT_ERRORS = (
    gcp_exceptions.ServiceUnavailable,
    gcp_exceptions.DeadlineExceeded,
    gcp_exceptions.ResourceExhausted,
)


def _call_with_retry(func, args, kwargs):
    retrying = Retrying(
        stop=stop_after_attempt(settings.STORE_RETRY_ATTEMPTS),
        wait=wait_exponential(
            multiplier=settings.STORE_RETRY_BASE_DELAY, max=settings.STORE_RETRY_MAX_DELAY
        ),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        before_sleep=lambda state: logger.warning(
            f"Transient store error in {func.__name__} "
            f"(attempt {state.attempt_number}), retrying: {state.outcome.exception()}"
        ),
        reraise=True,
    )
    return retrying(func, *args, **kwargs)


def handle_firestore_exceptions(func=None, *, retry: bool = True):
    """
    Decorator to catch Firestore exceptions and raise HTTPExceptions.

    Transient store errors are retried with exponential backoff unless
    ``retry=False``; once attempts run out they surface as StoreUnavailableError.
    Only the outermost decorated call on a thread retries and maps errors, so
    a service method calling another one does not multiply the attempts.
    """

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if getattr(_outer_call, "active", False):
                return fn(*args, **kwargs)

            _outer_call.active = True
            try:
                if retry:
                    return _call_with_retry(fn, args, kwargs)
                return fn(*args, **kwargs)
            except HTTPException:
                # re-raise domain errors and existing HTTPExceptions as-is
                raise
            except TRANSIENT_ERRORS as e:
                logger.error(f"Store unavailable in {fn.__name__}: {e}", exc_info=True)
                raise StoreUnavailableError(
                    "The schedule store is temporarily unavailable. Please try again."
                ) from e
            except Exception as e:
                logger.exception(f"Unhandled exception in {fn.__name__}: {e}")
                raise HTTPException(
                    status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                    detail="Internal server error",
                ) from e
            finally:
                _outer_call.active = False

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator
