"""
CAS ticket validation.

The frontend receives a ticket from the identity provider after login and
hands it to us; we validate it against the CAS ``serviceValidate`` endpoint
and parse the XML reply.  Namespace prefixes (``cas:``) are stripped.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Optional

import httpx

from src.config import Settings
from src.domain.exceptions import TransportError

logger = logging.getLogger(__name__)


@dataclass
class CasResponse:
    success: bool
    username: Optional[str] = None
    attributes: dict[str, str] = field(default_factory=dict)
    failure_code: Optional[str] = None


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def parse_service_response(body: str) -> CasResponse:
    """Parse a CAS 2.0/3.0 ``serviceResponse`` document."""
    try:
        root = ET.fromstring(body)
    except ET.ParseError as exc:
        raise TransportError(f"Malformed CAS response: {exc}") from exc

    for child in root:
        name = _local(child.tag)
        if name == "authenticationSuccess":
            username = None
            attributes: dict[str, str] = {}
            for node in child:
                if _local(node.tag) == "user":
                    username = (node.text or "").strip()
                elif _local(node.tag) == "attributes":
                    attributes = {
                        _local(a.tag): (a.text or "").strip() for a in node
                    }
            return CasResponse(success=bool(username), username=username, attributes=attributes)
        if name == "authenticationFailure":
            return CasResponse(success=False, failure_code=child.get("code"))

    raise TransportError("CAS response has neither success nor failure")


class CasClient:
    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None):
        self.settings = settings
        self._client = client

    async def validate(self, ticket: str) -> CasResponse:
        params = {"ticket": ticket, "service": self.settings.service_url}
        try:
            if self._client is not None:
                resp = await self._client.get(self.settings.cas_validate_url, params=params)
            else:
                async with httpx.AsyncClient(
                    timeout=self.settings.cas_timeout_seconds
                ) as client:
                    resp = await client.get(self.settings.cas_validate_url, params=params)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransportError(f"CAS validation request failed: {exc}") from exc

        result = parse_service_response(resp.text)
        logger.info("CAS validation for ticket: success=%s", result.success)
        return result
