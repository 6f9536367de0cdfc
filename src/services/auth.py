"""
CAS login and JWT handling.

After the identity provider redirects the browser back, the frontend sends
us the ticket.  We validate it, create the user on first login (usernames
are lowercased so one NetID never maps to two accounts) and hand back a
signed token for the ride endpoints.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings
from src.domain.entities import User
from src.domain.exceptions import AuthenticationError
from src.infrastructure.cas import CasClient
from src.infrastructure.repositories import UserRepository

logger = logging.getLogger(__name__)


@dataclass
class LoginResult:
    user: User
    token: str
    is_new: bool


def issue_token(username: str, attributes: dict, settings: Settings) -> str:
    payload = {
        "sub": username,
        "data": {"user": username, "attributes": attributes},
        "iat": int(datetime.now(timezone.utc).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError as exc:
        raise AuthenticationError("Invalid token") from exc


class AuthService:
    def __init__(self, session: AsyncSession, cas: CasClient, settings: Settings):
        self.session = session
        self.cas = cas
        self.settings = settings
        self.users = UserRepository(session)

    async def login(self, ticket: str) -> LoginResult:
        result = await self.cas.validate(ticket)
        if not result.success:
            logger.info("CAS authentication failed: %s", result.failure_code)
            raise AuthenticationError("CAS authentication failed")

        username = result.username.lower()
        user = await self.users.get_by_username(username)
        is_new = user is None
        if is_new:
            user = await self.users.create(
                username=username,
                email=f"{username}@{self.settings.email_domain}",
                first_name=result.attributes.get("givenName"),
                last_name=result.attributes.get("sn"),
            )
            await self.session.commit()
            logger.info("Created user %s (%s)", user.id, username)

        token = issue_token(username, result.attributes, self.settings)
        return LoginResult(user=user.to_entity(), token=token, is_new=is_new)
