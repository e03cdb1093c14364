"""Shared HTTP handling for every upstream: openFDA and the reasoning providers."""

from typing import Optional

import requests

from .errors import TransientError, UpstreamError
from .logger import get_logger
from .retry import RetryError, exponential_backoff, is_transient_error, should_retry_http_status

logger = get_logger()

RETRYABLE_EXCEPTIONS = (
    requests.exceptions.Timeout,
    requests.exceptions.ConnectionError,
)


class RetryableStatusError(requests.exceptions.HTTPError):
    """Response status worth retrying (429, 5xx)."""
    pass


def _send(session: requests.Session, method: str, url: str, timeout: float, **kwargs) -> requests.Response:
    resp = session.request(method, url, timeout=timeout, **kwargs)
    if should_retry_http_status(resp.status_code):
        raise RetryableStatusError(f"{resp.status_code} from {url}", response=resp)
    return resp


def _failure_label(exc: BaseException) -> str:
    if isinstance(exc, requests.exceptions.HTTPError) and exc.response is not None:
        return f"HTTPError_{exc.response.status_code}"
    if isinstance(exc, requests.exceptions.Timeout):
        return "Timeout"
    if isinstance(exc, requests.exceptions.ConnectionError):
        return "ConnectionError"
    return type(exc).__name__


def request_with_error_handling(
    method: str,
    url: str,
    service: str,
    session: Optional[requests.Session] = None,
    timeout: float = 15.0,
    max_retries: int = 3,
    base_delay: float = 1.0,
    not_found_ok: bool = False,
    **kwargs,
) -> Optional[requests.Response]:
    """Send a request with retries, standardized error mapping and logging.

    Args:
        method: HTTP method
        url: Request URL (without secrets; pass keys via params/headers)
        service: Upstream name for logging and metrics (e.g. 'openfda')
        session: requests session to send with (default: a new one)
        timeout: Per-attempt timeout in seconds
        max_retries: Retries on timeouts, connection errors, 429 and 5xx
        base_delay: Initial backoff delay in seconds
        not_found_ok: Return None on 404 instead of raising

    Returns:
        Response on success, None on 404 when not_found_ok

    Raises:
        TransientError: Timeouts, connection failures, 429/5xx after retries
        UpstreamError: Any other HTTP or request failure
    """
    session = session or requests.Session()
    send = exponential_backoff(
        max_retries=max_retries,
        base_delay=base_delay,
        exceptions=RETRYABLE_EXCEPTIONS + (RetryableStatusError,),
        on_retry=lambda attempt, e, delay: logger.warning(
            f"{service} request failed, retrying", url=url, attempt=attempt, delay=delay, error=str(e)
        ),
    )(_send)

    logger.record_external_attempt(service)
    try:
        resp = send(session, method, url, timeout, **kwargs)
        resp.raise_for_status()
    except RetryError as e:
        cause = e.__cause__ or e
        logger.record_external_failure(service, _failure_label(cause))
        logger.error(f"{service} unavailable", url=url, attempts=max_retries + 1, error=str(cause))
        raise TransientError(f"{service} is unavailable: {cause}") from e
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        if status == 404 and not_found_ok:
            logger.record_external_success(service)
            logger.debug(f"{service} returned no match", url=url, status=404)
            return None
        logger.record_external_failure(service, _failure_label(e))
        logger.error(f"{service} request failed", url=url, status=status)
        raise UpstreamError(f"{service} request failed ({status})") from e
    except requests.exceptions.RequestException as e:
        logger.record_external_failure(service, _failure_label(e))
        logger.error(f"{service} request error", url=url, error=str(e))
        if is_transient_error(e):
            raise TransientError(f"{service} request error: {e}") from e
        raise UpstreamError(f"{service} request error: {e}") from e

    logger.record_external_success(service)
    return resp
