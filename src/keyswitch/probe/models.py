# Probe: Remote Model Listing
#
# Queries <api_base>/v1/models with a bearer key and normalizes the
# handful of response shapes seen in the wild:
#   {"data": [...]}                     (OpenAI-style)
#   {"object": "list", "data": [...]}
#   {"models": [...]}
#   [...]                               (bare array)
#
# Every failure becomes a ModelQueryResult with success=False and a
# message naming what went wrong; nothing is raised to the caller.

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

MODELS_PATH = "v1/models"
USER_AGENT = "keyswitch/0.1.0"
REQUEST_TIMEOUT_SEC = 15

_DISPLAY_NAMES: Dict[str, str] = {
    "claude-3-5-sonnet-20241022": "Claude 3.5 Sonnet",
    "claude-3-sonnet-20240229": "Claude 3 Sonnet",
    "claude-3-haiku-20240307": "Claude 3 Haiku",
    "claude-3-opus-20240229": "Claude 3 Opus",
    "claude-2.1": "Claude 2.1",
    "claude-2.0": "Claude 2.0",
    "claude-instant-1.2": "Claude Instant 1.2",
}


@dataclass
class ModelInfo:
    id: str
    name: str
    display_name: str


@dataclass
class ModelQueryResult:
    """Outcome of a model-listing probe."""

    success: bool
    message: str
    models: List[ModelInfo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def model_display_name(model_id: Optional[str]) -> str:
    """Friendly label: a known name, else the id title-cased on hyphens."""
    if not model_id:
        return "Unknown Model"
    if model_id in _DISPLAY_NAMES:
        return _DISPLAY_NAMES[model_id]
    return " ".join(word[:1].upper() + word[1:] for word in model_id.split("-"))


def models_url(api_base: str) -> str:
    if api_base.endswith("/"):
        return api_base + MODELS_PATH
    return f"{api_base}/{MODELS_PATH}"


def extract_models(payload: Any) -> List[Dict[str, Any]]:
    """Pull the list of model entries out of any supported response shape."""
    if isinstance(payload, list):
        entries = payload
    elif isinstance(payload, dict):
        if isinstance(payload.get("data"), list):
            entries = payload["data"]
        elif isinstance(payload.get("models"), list):
            entries = payload["models"]
        else:
            entries = []
    else:
        entries = []
    return [entry for entry in entries if isinstance(entry, dict) and entry.get("id")]


def _status_message(status_code: int) -> str:
    if status_code == 401:
        return "API key is invalid or unauthorized"
    if status_code == 403:
        return "API key does not have permission to list models"
    if status_code == 404:
        return "API address is invalid or does not support model listing"
    return f"API call failed: HTTP {status_code}"


def query_models(
    api_key: Optional[str],
    api_base: Optional[str],
    timeout: float = REQUEST_TIMEOUT_SEC,
) -> ModelQueryResult:
    """
    List the models available to ``api_key`` at ``api_base``.

    Args:
        api_key: Plaintext key sent as a bearer token
        api_base: Base URL of the API (``/v1/models`` is appended)
        timeout: Request timeout in seconds

    Returns:
        ModelQueryResult; never raises for network or HTTP failures.
    """
    if not api_key or not api_base:
        return ModelQueryResult(False, "Missing API key or API address")

    url = models_url(api_base)
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }

    try:
        resp = httpx.get(url, headers=headers, timeout=timeout)
    except (httpx.InvalidURL, httpx.UnsupportedProtocol) as exc:
        logger.warning("Model query to %s rejected: %s", url, exc)
        return ModelQueryResult(False, "API request failed, check the API address format")
    except httpx.ConnectError as exc:
        logger.warning("Model query to %s could not connect: %s", url, exc)
        return ModelQueryResult(
            False,
            "Cannot connect to the API server, check the network and API address",
        )
    except httpx.HTTPError as exc:
        logger.warning("Model query to %s failed: %s", url, exc)
        return ModelQueryResult(False, f"Model query failed: {exc}")

    if resp.status_code >= 400:
        logger.warning("Model query to %s returned HTTP %d", url, resp.status_code)
        return ModelQueryResult(False, _status_message(resp.status_code))

    try:
        payload = resp.json()
    except ValueError:
        return ModelQueryResult(False, "API returned a response that is not JSON")

    entries = extract_models(payload)
    if not entries:
        return ModelQueryResult(True, "Connected, but no model data was found")

    models = [
        ModelInfo(
            id=str(entry["id"]),
            name=str(entry["id"]),
            display_name=model_display_name(str(entry["id"])),
        )
        for entry in entries
    ]
    logger.debug("Model query to %s found %d models", url, len(models))
    return ModelQueryResult(True, f"Connected, found {len(models)} available models", models)
