import logging

import httpx

from shelter_giving.client.errors import NetworkError, ServerError
from shelter_giving.core.config import ClientSettings, get_client_settings

logger = logging.getLogger(__name__)

NETWORK_FAILURE = "Could not reach the donation server. Please check your connection and submit again."


def build_http_client(settings: ClientSettings | None = None, **kwargs) -> httpx.AsyncClient:
    settings = settings or get_client_settings()
    return httpx.AsyncClient(base_url=settings.API_URL, **kwargs)


def _server_message(response: httpx.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return fallback
    if not isinstance(body, dict):
        return fallback
    detail = body.get("detail") or body.get("error") or body.get("details")
    if isinstance(detail, str) and detail:
        return detail
    # FastAPI validation errors come back as a list of {"msg": ...}
    if isinstance(detail, list) and detail and isinstance(detail[0], dict):
        return str(detail[0].get("msg") or fallback)
    return fallback


async def post_json(http: httpx.AsyncClient, path: str, payload: dict | None = None,
                    failure_message: str = "Request failed") -> dict:
    """POSTs JSON and returns the decoded body, mapping failures to client errors.

    No retry is attempted; the user resubmits.
    """
    try:
        response = await http.post(path, json=payload or {})
    except httpx.TransportError as e:
        logger.warning(f"POST {path} did not reach the server: {e}")
        raise NetworkError(NETWORK_FAILURE) from e

    if not response.is_success:
        logger.warning(f"POST {path} failed with status {response.status_code}")
        raise ServerError(_server_message(response, failure_message), status_code=response.status_code)

    try:
        body = response.json()
    except ValueError as e:
        raise ServerError(failure_message, status_code=response.status_code) from e
    if not isinstance(body, dict):
        logger.warning(f"POST {path} returned a non-object body")
        raise ServerError(failure_message, status_code=response.status_code)
    return body
