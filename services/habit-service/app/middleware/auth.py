"""
Authentication dependency for Habit Service

Validates JWT tokens from AWS Cognito and extracts the user identifier.
"""
import jwt
import requests
import threading
import time
from typing import Optional, Dict, Any
from fastapi import Depends, Request, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import logging
from functools import lru_cache

from app.config import Settings
from app.dependencies import get_app_settings
from app.exceptions import AuthError, ConfigurationError, HabitTrackerError

logger = logging.getLogger(__name__)

# Security scheme; missing credentials are reported as AuthError (401), not 403
security = HTTPBearer(auto_error=False)


def cognito_issuer(region: str, user_pool_id: str) -> str:
    return f'https://cognito-idp.{region}.amazonaws.com/{user_pool_id}'


@lru_cache()
def get_cognito_public_keys(region: str, user_pool_id: str) -> Dict[str, Any]:
    """
    Download and cache Cognito public keys (JWKS)

    Returns:
        Dictionary with public keys indexed by 'kid'
    """
    keys_url = f'{cognito_issuer(region, user_pool_id)}/.well-known/jwks.json'

    try:
        response = requests.get(keys_url, timeout=10)
        response.raise_for_status()
        keys = response.json()['keys']
    except (requests.RequestException, KeyError, ValueError) as e:
        logger.error(f"Error downloading Cognito public keys: {str(e)}")
        raise HabitTrackerError("Unable to validate authentication tokens")

    # Index keys by 'kid' for fast lookup
    return {key['kid']: key for key in keys}


# Minimum seconds between forced JWKS refreshes triggered by unknown key IDs
JWKS_REFRESH_INTERVAL = 60

_last_jwks_refresh: Optional[float] = None
_refresh_lock = threading.Lock()


def _may_refresh_public_keys() -> bool:
    """Rate-limits refreshes so tokens with made-up key IDs cannot force a download per request"""
    global _last_jwks_refresh
    with _refresh_lock:
        now = time.monotonic()
        if _last_jwks_refresh is not None and now - _last_jwks_refresh < JWKS_REFRESH_INTERVAL:
            return False
        _last_jwks_refresh = now
        return True


def verify_cognito_token(token: str, settings: Settings) -> Dict[str, Any]:
    """
    Verify and decode a Cognito JWT token (ID or access token)

    Args:
        token: JWT token string
        settings: Cognito pool and client configuration

    Returns:
        Decoded token payload with user claims

    Raises:
        AuthError: If token is invalid
        ConfigurationError: If the Cognito pool is not configured
    """
    if not settings.COGNITO_USER_POOL_ID or not settings.COGNITO_CLIENT_ID:
        raise ConfigurationError("Cognito authentication is not configured")

    try:
        headers = jwt.get_unverified_header(token)
    except jwt.InvalidTokenError as e:
        logger.warning(f"Malformed token: {str(e)}")
        raise AuthError("Invalid token")

    public_keys = get_cognito_public_keys(settings.COGNITO_REGION, settings.COGNITO_USER_POOL_ID)
    kid = headers.get('kid')
    if kid not in public_keys and _may_refresh_public_keys():
        # Cognito may have rotated its signing keys since they were cached
        logger.info(f"Unknown key ID {kid}, refreshing Cognito public keys")
        get_cognito_public_keys.cache_clear()
        public_keys = get_cognito_public_keys(settings.COGNITO_REGION, settings.COGNITO_USER_POOL_ID)
    if kid not in public_keys:
        raise AuthError("Invalid token: Unknown key ID")

    public_key = jwt.algorithms.RSAAlgorithm.from_jwk(public_keys[kid])

    try:
        # Access tokens carry client_id instead of aud, so audience is checked below
        payload = jwt.decode(
            token,
            public_key,
            algorithms=['RS256'],
            issuer=cognito_issuer(settings.COGNITO_REGION, settings.COGNITO_USER_POOL_ID),
            options={'verify_exp': True, 'verify_aud': False, 'require': ['exp', 'sub']},
        )
    except jwt.ExpiredSignatureError:
        raise AuthError("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid token: {str(e)}")
        raise AuthError(f"Invalid token: {str(e)}")

    if payload.get('token_use') == 'access':
        audience = payload.get('client_id')
    else:
        audience = payload.get('aud')
    if audience != settings.COGNITO_CLIENT_ID:
        raise AuthError("Invalid token: audience mismatch")

    return payload


def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    settings: Settings = Depends(get_app_settings),
) -> str:
    """
    Dependency returning the Cognito 'sub' of the caller

    Usage:
        @router.get("/habits")
        def list_habits(user_id: str = Depends(get_current_user_id)):
            ...
    """
    if credentials is None or not credentials.credentials:
        raise AuthError("User ID is required")

    payload = verify_cognito_token(credentials.credentials, settings)
    user_id = payload.get('sub')
    if not user_id:
        raise AuthError("User ID is required")

    request.state.user_id = user_id
    return user_id
