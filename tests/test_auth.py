"""Tests for CAS ticket validation and JWT handling (HTTP mocked with httpx)."""

from __future__ import annotations

import httpx
import pytest

from src.config import Settings
from src.domain.exceptions import AuthenticationError, TransportError
from src.infrastructure.cas import CasClient, parse_service_response
from src.services.auth import AuthService, decode_token, issue_token

SUCCESS_XML = """
<cas:serviceResponse xmlns:cas="http://www.yale.edu/tp/cas">
  <cas:authenticationSuccess>
    <cas:user>AB12</cas:user>
    <cas:attributes>
      <cas:givenName>Alice</cas:givenName>
      <cas:sn>Brown</cas:sn>
    </cas:attributes>
  </cas:authenticationSuccess>
</cas:serviceResponse>
"""

FAILURE_XML = """
<cas:serviceResponse xmlns:cas="http://www.yale.edu/tp/cas">
  <cas:authenticationFailure code="INVALID_TICKET">Ticket not recognized</cas:authenticationFailure>
</cas:serviceResponse>
"""

TEST_SETTINGS = Settings(
    jwt_secret="test-secret",
    cas_validate_url="https://cas.example.edu/serviceValidate",
    service_url="https://carpool.example.edu/auth",
)


def cas_client(body: str, status: int = 200, seen: list | None = None) -> CasClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status, text=body)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CasClient(TEST_SETTINGS, client=client)


class TestParseServiceResponse:
    def test_success(self):
        result = parse_service_response(SUCCESS_XML)
        assert result.success is True
        assert result.username == "AB12"
        assert result.attributes == {"givenName": "Alice", "sn": "Brown"}

    def test_failure(self):
        result = parse_service_response(FAILURE_XML)
        assert result.success is False
        assert result.failure_code == "INVALID_TICKET"

    def test_garbage_raises_transport_error(self):
        with pytest.raises(TransportError):
            parse_service_response("not xml")

    def test_unexpected_document_raises(self):
        with pytest.raises(TransportError):
            parse_service_response("<serviceResponse><other/></serviceResponse>")


class TestTokens:
    def test_round_trip_carries_username(self):
        token = issue_token("ab12", {}, TEST_SETTINGS)
        assert decode_token(token, TEST_SETTINGS)["sub"] == "ab12"

    def test_wrong_secret_is_rejected(self):
        token = issue_token("ab12", {}, TEST_SETTINGS)
        other = Settings(jwt_secret="another-secret")
        with pytest.raises(AuthenticationError):
            decode_token(token, other)


class TestAuthService:
    @pytest.mark.asyncio
    async def test_first_login_creates_lowercased_user(self, db_session):
        seen: list = []
        service = AuthService(db_session, cas_client(SUCCESS_XML, seen=seen), TEST_SETTINGS)

        result = await service.login("ST-1")

        assert result.is_new is True
        assert result.user.username == "ab12"
        assert result.user.email == "ab12@rice.edu"
        assert result.user.display_name == "Alice Brown"
        assert decode_token(result.token, TEST_SETTINGS)["sub"] == "ab12"
        assert seen[0].url.params["ticket"] == "ST-1"
        assert seen[0].url.params["service"] == "https://carpool.example.edu/auth"

    @pytest.mark.asyncio
    async def test_second_login_reuses_user(self, db_session):
        first = await AuthService(db_session, cas_client(SUCCESS_XML), TEST_SETTINGS).login("ST-1")
        second = await AuthService(db_session, cas_client(SUCCESS_XML), TEST_SETTINGS).login("ST-2")
        assert second.is_new is False
        assert second.user.id == first.user.id

    @pytest.mark.asyncio
    async def test_rejected_ticket(self, db_session):
        service = AuthService(db_session, cas_client(FAILURE_XML), TEST_SETTINGS)
        with pytest.raises(AuthenticationError):
            await service.login("ST-bad")

    @pytest.mark.asyncio
    async def test_cas_outage_is_transport_error(self, db_session):
        service = AuthService(db_session, cas_client("", status=503), TEST_SETTINGS)
        with pytest.raises(TransportError):
            await service.login("ST-1")
