# core/annotation_client.py
import base64
from typing import Any, Dict, List, Optional
import httpx
import logging
from util.constants import ANNOTATION_MAX_RESULTS
from util.errors import AnnotationError
from util.timing import timed

logger = logging.getLogger(__name__)


def _label_request(image: bytes, max_results: int) -> Dict[str, Any]:
    """
    Build an images:annotate body asking for LABEL_DETECTION only.
    """
    return {
        "requests": [
            {
                "image": {"content": base64.b64encode(image).decode("ascii")},
                "features": [{"type": "LABEL_DETECTION", "maxResults": max_results}],
            }
        ]
    }


def _parse_labels(data: Dict[str, Any]) -> List[str]:
    responses = data.get("responses")
    if not isinstance(responses, list) or not responses:
        raise AnnotationError("annotation response has no results")
    first = responses[0] if isinstance(responses[0], dict) else {}
    err = first.get("error")
    if err:
        raise AnnotationError(f"annotation failed: {err.get('message') or err}")
    out: List[str] = []
    for ann in first.get("labelAnnotations") or []:
        desc = ann.get("description") if isinstance(ann, dict) else None
        if desc:
            out.append(str(desc))
    return out


class AnnotationClient:
    """
    Client for an image annotation API shaped like Cloud Vision images:annotate.

    Credentials are issued elsewhere: pass either an API key or a bearer token.
    The owner closes the client with aclose().
    """

    def __init__(
        self,
        api_url: str,
        *,
        api_key: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"content-type": "application/json"}
        if access_token:
            headers["authorization"] = f"Bearer {access_token}"
        params = {"key": api_key} if api_key else None
        self._url = api_url
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=5.0),
            headers=headers,
            params=params,
            transport=transport,
        )

    async def annotate_labels(
        self, image: bytes, max_results: int = ANNOTATION_MAX_RESULTS
    ) -> List[str]:
        """
        Return up to `max_results` label descriptions, best first. Raises
        AnnotationError for transport failures, non-2xx replies and error bodies.
        """
        payload = _label_request(image, max_results)
        with timed(logger, "ai.annotate", bytes=len(image)):
            try:
                r = await self._client.post(self._url, json=payload)
                r.raise_for_status()
                data = r.json()
            except httpx.HTTPError as e:
                raise AnnotationError(f"annotation request failed: {type(e).__name__} {e}") from e
            except ValueError as e:
                raise AnnotationError("annotation response is not JSON") from e
        if not isinstance(data, dict):
            raise AnnotationError("annotation response is not an object")
        labels = _parse_labels(data)[:max_results]
        logger.info("ai.annotate.labels count=%d", len(labels))
        return labels

    async def aclose(self) -> None:
        await self._client.aclose()
