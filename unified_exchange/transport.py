"""
Unified Exchange - HTTP Transport.

============================================================
PURPOSE
============================================================
Performs one HTTP request against an exchange REST API and
returns the parsed JSON body.

Every transport, HTTP and parsing failure is raised as an
ExchangeError. No retries happen here.

============================================================
"""

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

import aiohttp

from .errors import (
    ExchangeError,
    authentication_error,
    exchange_error,
    insufficient_funds_error,
    invalid_order_error,
)
from .logging_utils import mask_headers, mask_params


logger = logging.getLogger(__name__)


SUPPORTED_METHODS = ("GET", "POST", "PUT", "DELETE")

# 404s on these paths mean the order does not exist
ORDER_PATH_MARKER = "/orders/"


# ============================================================
# REQUEST
# ============================================================

async def make_request(
    url: str,
    method: str,
    headers: Mapping[str, str],
    body: Optional[Mapping[str, Any]] = None,
    session: Optional[aiohttp.ClientSession] = None,
    timeout: Optional[aiohttp.ClientTimeout] = None,
) -> Any:
    """
    Make API request.

    Args:
        url: Absolute URL
        method: GET, POST, PUT or DELETE
        headers: Request headers
        body: Payload. Sent as query parameters for GET, JSON otherwise
        session: Open session to reuse; a short-lived one is used if None
        timeout: Per-request timeout

    Returns:
        Parsed JSON response (None for an empty body)

    Raises:
        ExchangeError: On any transport, HTTP or parsing failure
        ValueError: On an unsupported method
    """
    method = method.upper()
    if method not in SUPPORTED_METHODS:
        raise ValueError(f"Unsupported HTTP method: {method}")

    request_kwargs: Dict[str, Any] = {"headers": dict(headers)}
    if method == "GET":
        if body:
            request_kwargs["params"] = _to_query(body)
    elif body is not None:
        request_kwargs["json"] = dict(body)
    if timeout is not None:
        request_kwargs["timeout"] = timeout

    logger.debug(
        f"{method} {url} headers={mask_headers(headers)} "
        f"body={mask_params(body)}"
    )

    try:
        if session is not None:
            return await _send(session, method, url, request_kwargs)

        session_kwargs = {"timeout": timeout} if timeout is not None else {}
        async with aiohttp.ClientSession(**session_kwargs) as own_session:
            return await _send(own_session, method, url, request_kwargs)

    except ExchangeError:
        raise
    except asyncio.TimeoutError as e:
        raise exchange_error("Request timeout", code="NETWORK_ERROR") from e
    except aiohttp.ClientConnectionError as e:
        raise exchange_error(
            f"Network error: Unable to reach server ({e})",
            code="NETWORK_ERROR",
        ) from e
    except aiohttp.ClientError as e:
        raise exchange_error(
            str(e) or "Network error",
            code="NETWORK_ERROR",
            http_status=500,
        ) from e


async def _send(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    request_kwargs: Dict[str, Any],
) -> Any:
    async with session.request(method, url, **request_kwargs) as response:
        try:
            data = await response.json(content_type=None)
        except ValueError as e:
            raise exchange_error(
                "Invalid response format",
                code="INVALID_RESPONSE",
                http_status=response.status,
            ) from e

        logger.debug(f"{method} {url} -> {response.status}")
        return check_response(url, response.status, data)


def _to_query(body: Mapping[str, Any]) -> Dict[str, str]:
    """Serialize a payload as query parameters, dropping absent values."""
    query = {}
    for key, value in body.items():
        if value is None:
            continue
        if isinstance(value, bool):
            query[key] = "true" if value else "false"
        else:
            query[key] = str(value)
    return query


# ============================================================
# RESPONSE CLASSIFICATION
# ============================================================

def check_response(url: str, status: int, data: Any) -> Any:
    """
    Classify an HTTP response.

    Args:
        url: Request URL (used to detect order paths)
        status: HTTP status
        data: Parsed JSON body

    Returns:
        data unchanged on success

    Raises:
        ExchangeError: For any non-success response
    """
    payload = data if isinstance(data, dict) else {}
    message = payload.get("error")
    message = str(message) if message else None
    code = payload.get("code")
    is_order_path = ORDER_PATH_MARKER in url

    if status == 404:
        if is_order_path:
            raise invalid_order_error(message or "Order not found")
        raise exchange_error(message or "Resource not found", code="NOT_FOUND", http_status=404)

    if status == 401 or code == "AUTH_ERROR":
        raise authentication_error(message or "Authentication failed")

    if not 200 <= status < 300 or message:
        if code == "INVALID_ORDER":
            raise invalid_order_error(message or "Invalid order parameters")
        if code == "INSUFFICIENT_FUNDS":
            raise insufficient_funds_error(message or "Insufficient funds for the operation")
        if code == "INVALID_SYMBOL":
            raise invalid_order_error(message or "Invalid trading symbol")
        if code == "NOT_FOUND":
            if is_order_path:
                raise invalid_order_error(message or "Order not found")
            raise exchange_error(message or "Resource not found", code="NOT_FOUND", http_status=status)

        raise exchange_error(
            message or f"HTTP error! status: {status}",
            code=str(code) if code else "UNKNOWN_ERROR",
            http_status=status,
        )

    return data
