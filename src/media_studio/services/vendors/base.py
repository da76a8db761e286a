"""
Vendor adapter interface and shared HTTP handling
"""
from abc import ABC
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

import httpx

from ...config import config
from ...exceptions import VendorError

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Normalised output of a finished vendor job"""
    url: str
    content_type: str
    logs: List[str] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict)
    model: Optional[str] = None


class VendorClient(ABC):
    """
    Base class for vendor HTTP adapters

    Subclasses set `vendor` and build requests; this class turns transport and
    HTTP failures into VendorError with the vendor's own message.
    """

    vendor: str = "vendor"

    def __init__(self, api_key: str, base_url: str, client: Optional[httpx.AsyncClient] = None):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = client

    def _headers(self) -> Dict[str, str]:
        return {}

    async def _request(self, method: str, url: str, transient: bool = False, **kwargs) -> httpx.Response:
        """
        Send a request to the vendor

        Args:
            transient: Mark 5xx/transport failures as retryable (status checks)
        """
        headers = {**self._headers(), **kwargs.pop("headers", {})}
        client = self._client or httpx.AsyncClient(timeout=config.VENDOR_REQUEST_TIMEOUT)
        try:
            response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException:
            if transient:
                raise
            raise VendorError(f"{self.vendor} request timed out", vendor=self.vendor, transient=True)
        except httpx.HTTPError as e:
            raise VendorError(f"{self.vendor} request failed: {e}", vendor=self.vendor, transient=transient)
        finally:
            if self._client is None:
                await client.aclose()

        if response.is_error:
            message = self._error_message(response)
            logger.warning(f"{self.vendor} returned HTTP {response.status_code}: {message}")
            raise VendorError(
                message,
                vendor=self.vendor,
                vendor_status=response.status_code,
                transient=transient and response.status_code >= 500,
            )
        return response

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        """Pull the vendor's own error message out of an error response"""
        try:
            data = response.json()
        except ValueError:
            return response.text or response.reason_phrase or f"HTTP {response.status_code}"

        if isinstance(data, dict):
            detail = data.get("detail") or data.get("message") or data.get("error")
            if isinstance(detail, list) and detail:
                first = detail[0]
                detail = first.get("msg", str(first)) if isinstance(first, dict) else str(first)
            if detail:
                return str(detail)
        return response.reason_phrase or f"HTTP {response.status_code}"
