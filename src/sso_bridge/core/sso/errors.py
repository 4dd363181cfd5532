"""SSO error taxonomy.

Every failure in the authorize/exchange/redeem flow is terminal for the call
in which it occurs and carries a human-readable message. `status_code` is
the HTTP status the API layer reports for it.
"""


class SSOError(Exception):
    """Base class for single-sign-on failures."""

    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(SSOError):
    """Issuer or redirect URL configuration is missing or invalid."""

    status_code = 500


class DiscoveryError(SSOError):
    """OpenID provider metadata could not be discovered."""

    status_code = 502


class TokenExchangeError(SSOError):
    """Token endpoint was unreachable or rejected the authorization code."""

    status_code = 502


class MissingIdentityTokenError(SSOError):
    """Token response did not contain an id_token."""

    status_code = 502


class IdentityTokenDecodeError(SSOError):
    """ID token claims could not be decoded."""

    status_code = 502


class UserInfoError(SSOError):
    """Userinfo endpoint missing or request failed."""

    status_code = 502


class MissingEmailError(SSOError):
    """Neither the ID token nor userinfo contained an email."""

    status_code = 400


class NoncePersistenceError(SSOError):
    """Nonce could not be stored before redirecting."""

    status_code = 500


class NonceNotFoundError(SSOError):
    """Nonce from the exchanged identity is not in the store."""

    status_code = 400


class NonceLookupError(SSOError):
    """Nonce store could not be queried during redemption."""

    status_code = 500


class NonceDeletionError(SSOError):
    """Nonce record could not be deleted during redemption."""

    status_code = 500


class CacheMissError(SSOError):
    """No cached identity for this authorization code."""

    status_code = 400


class CodeNotExchangedError(CacheMissError):
    """Code was never exchanged, or its cache entry expired."""


class CodeAlreadyRedeemedError(CacheMissError):
    """Code has already been redeemed."""
