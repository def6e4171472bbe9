import jwt
from functools import lru_cache
from jwt import PyJWKClient
from typing import Dict, Any
from dms.configs.settings import settings
from dms.core.exceptions import UnauthorizedError


@lru_cache(maxsize=4)
def _jwk_client(jwks_url: str) -> PyJWKClient:
    return PyJWKClient(jwks_url, cache_keys=True)


def decode_token(token: str) -> Dict[str, Any]:
    """Decode and verify a bearer JWT against the configured JWKS endpoint"""
    try:
        signing_key = _jwk_client(settings.AUTH_JWKS_URL).get_signing_key_from_jwt(token)

        payload = jwt.decode(
            token,
            signing_key.key,
            algorithms=settings.AUTH_ALGORITHMS,
            issuer=settings.AUTH_ISSUER or None,
            audience=settings.AUTH_AUDIENCE,
            options={"verify_aud": settings.AUTH_AUDIENCE is not None}
        )

    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired", code="TOKEN_EXPIRED")
    except jwt.InvalidTokenError as e:
        raise UnauthorizedError(f"Invalid token: {str(e)}", code="INVALID_TOKEN")
    except jwt.PyJWKClientError as e:
        raise UnauthorizedError(f"Token verification failed: {str(e)}")

    if not payload.get("sub"):
        raise UnauthorizedError("Token has no subject", code="INVALID_TOKEN")
    return payload
