import os
from jose import jwt, JWTError
from datetime import datetime, timedelta, timezone
from fastapi import Header
from typing import Optional
from .errors import FeedError

# Prefer JWT_SECRET but support legacy JWT_SECRET_KEY for compatibility
SECRET = os.getenv('JWT_SECRET') or os.getenv('JWT_SECRET_KEY', 'devsecret')
ALGORITHM = os.getenv('JWT_ALGORITHM', 'HS256')
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv('ACCESS_TOKEN_EXPIRE_MINUTES', '60'))

def create_access_token(data: dict, expires_delta: timedelta = None):
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({'exp': expire})
    encoded = jwt.encode(to_encode, SECRET, algorithm=ALGORITHM)
    return encoded

def decode_token(token: str):
    try:
        payload = jwt.decode(token, SECRET, algorithms=[ALGORITHM])
        return payload
    except JWTError:
        return None

async def get_current_user(authorization: Optional[str] = Header(None)) -> dict:
    """Resolve the acting user from an 'Authorization: Bearer <token>' header"""
    if not authorization:
        raise FeedError(401, 'Not authenticated.')
    scheme, _, token = authorization.partition(' ')
    if scheme.lower() != 'bearer' or not token:
        raise FeedError(401, 'Not authenticated.')
    payload = decode_token(token.strip())
    if not payload or 'id' not in payload:
        raise FeedError(401, 'Not authenticated.')
    return {'id': int(payload['id']), 'email': payload.get('email')}
