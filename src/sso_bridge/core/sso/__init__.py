"""OpenID Connect single sign-on.

- provider: OIDC discovery, authorization URL, code exchange, userinfo
- claims: ID token claim parsing
- service: authorize / exchange / redeem flow
- errors: failure taxonomy
"""

from .errors import SSOError

__all__ = [
    "SSOError",
]
