from typing import Any, Dict

from fastapi import Depends, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from dms.utils.jwt_verification import decode_token

security = HTTPBearer()

async def verify_token(authorization_credentials: HTTPAuthorizationCredentials = Security(security)) -> Dict[str, Any]:
    """Verify the bearer JWT and return its claims"""
    token = authorization_credentials.credentials
    return decode_token(token)


async def get_current_owner_id(claims: Dict[str, Any] = Depends(verify_token)) -> str:
    """Owner id every store query is scoped by"""
    return str(claims["sub"])
