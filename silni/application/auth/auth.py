# silni/application/auth/auth.py
# the scheduler calls the job routes with a service-role JWT in the Authorization header
import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from silni.infra.config import settings

ALGORITHM = "HS256"
SERVICE_ROLE = "service_role"

bearer_scheme = HTTPBearer(auto_error=False)

def verify_service_token(token: str, secret: str) -> dict:
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM], options={"verify_aud": False})
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    if payload.get("role") != SERVICE_ROLE:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Service role required")
    return payload

# no secret configured means the check is off (local runs)
def require_service_role(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)):
    secret = settings.SERVICE_ROLE_SECRET
    if not secret:
        return None
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    return verify_service_token(credentials.credentials, secret)
