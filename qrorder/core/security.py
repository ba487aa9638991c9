"""
Token Service

Issues and verifies the signed access/refresh token pair that carries
``{user_id, role}``. User accounts and login live outside this service; the
order engine only needs "token -> Identity".
"""

import logging
from dataclasses import dataclass

from itsdangerous import BadData, SignatureExpired, URLSafeTimedSerializer

from qrorder.core.config import Settings
from qrorder.core.errors import AuthenticationRequired
from qrorder.domain import Identity, Role

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"


@dataclass
class TokenPair:
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int = 0

    def to_dict(self) -> dict:
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
        }


class TokenService:
    """Signs tokens with separate secrets (and salts) for each token type."""

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: int,
        refresh_ttl: int,
    ):
        self._serializers = {
            ACCESS: URLSafeTimedSerializer(access_secret, salt="qrorder-access"),
            REFRESH: URLSafeTimedSerializer(refresh_secret, salt="qrorder-refresh"),
        }
        self._ttl = {ACCESS: access_ttl, REFRESH: refresh_ttl}

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            access_secret=settings.access_token_secret,
            refresh_secret=settings.refresh_token_secret,
            access_ttl=settings.access_token_ttl_seconds,
            refresh_ttl=settings.refresh_token_ttl_seconds,
        )

    def issue_token_pair(self, user_id: str, role: Role) -> TokenPair:
        role = Role(role)
        payload = {"user_id": user_id, "role": role.value}
        return TokenPair(
            access_token=self._serializers[ACCESS].dumps({**payload, "type": ACCESS}),
            refresh_token=self._serializers[REFRESH].dumps({**payload, "type": REFRESH}),
            expires_in=self._ttl[ACCESS],
        )

    def verify_access_token(self, token: str) -> Identity:
        return self._verify(token, ACCESS)

    def verify_refresh_token(self, token: str) -> Identity:
        return self._verify(token, REFRESH)

    def refresh(self, refresh_token: str) -> TokenPair:
        identity = self.verify_refresh_token(refresh_token)
        return self.issue_token_pair(identity.user_id, identity.role)

    def _verify(self, token: str, token_type: str) -> Identity:
        try:
            payload = self._serializers[token_type].loads(token, max_age=self._ttl[token_type])
        except SignatureExpired:
            raise AuthenticationRequired("Token has expired")
        except BadData:
            raise AuthenticationRequired("Invalid token")

        if not isinstance(payload, dict) or payload.get("type") != token_type:
            raise AuthenticationRequired("Invalid token")

        try:
            return Identity(user_id=str(payload["user_id"]), role=Role(payload["role"]))
        except (KeyError, ValueError):
            logger.warning("Token payload missing user_id/role")
            raise AuthenticationRequired("Invalid token")
