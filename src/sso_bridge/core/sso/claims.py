"""ID token claim parsing.

The ID token is obtained by this service directly from the provider's
token endpoint over TLS, never relayed by the browser, so its claims are
read WITHOUT verifying the JWT signature. Expiry is still enforced.

The parser is injected into `SSOService`; replacing it with one that checks
the signature against the provider JWKS does not touch the exchange flow.
"""

import logging
from typing import Protocol

from jose import JWTError, jwt
from pydantic import ValidationError

from sso_bridge.core.sso.errors import IdentityTokenDecodeError
from sso_bridge.domain.models import IdentityClaims

logger = logging.getLogger(__name__)


class IdentityTokenParser(Protocol):
    """Turns a raw ID token into the claims the exchange needs"""

    def parse(self, id_token: str) -> IdentityClaims:
        ...


class UnverifiedIdentityTokenParser:
    """Reads ID token claims without checking the signature

    Args:
        leeway_seconds: Clock skew tolerated on `exp`
    """

    def __init__(self, leeway_seconds: int = 60):
        self.leeway_seconds = leeway_seconds
        logger.warning("ID token signatures are not verified; tokens must come from the token endpoint")

    def parse(self, id_token: str) -> IdentityClaims:
        """Decode claims

        Raises:
            IdentityTokenDecodeError: Malformed token, expired token,
                or missing `exp`/`nonce`
        """
        try:
            claims = jwt.decode(
                id_token,
                "",
                options={
                    "verify_signature": False,
                    "verify_aud": False,
                    "verify_iss": False,
                    "verify_at_hash": False,
                    "require_exp": True,
                    "leeway": self.leeway_seconds,
                },
            )
        except JWTError as e:
            logger.warning(f"ID token rejected: {e}")
            raise IdentityTokenDecodeError("Could not decode id token") from e

        try:
            return IdentityClaims.model_validate(claims)
        except ValidationError as e:
            logger.warning(f"ID token claims incomplete: {e.error_count()} error(s)")
            raise IdentityTokenDecodeError("Could not decode id token") from e
