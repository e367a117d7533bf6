import logging
from typing import Annotated

from fastapi import Request, Depends, HTTPException
from firebase_admin.auth import verify_id_token

from models.user import User
from services.posts import PostService

logger = logging.getLogger(__name__)


async def get_current_user(request: Request) -> User:
    """
    Verify Firebase ID token from Authorization header and return user info
    """
    authorization = request.headers.get("Authorization")
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail="Invalid authorization header"
        )

    token = authorization.split("Bearer ")[1]
    try:
        # Verify the Firebase ID token
        decoded_token = verify_id_token(token, check_revoked=True, clock_skew_seconds=10)
    except Exception as e:
        logger.warning("Invalid authentication token: %s", e)
        raise HTTPException(
            status_code=401,
            detail="Invalid authentication token"
        )

    return User(
        user_id=decoded_token["uid"],
        email=decoded_token.get("email"),
    )


async def get_post_service(request: Request) -> PostService:
    """Get post service from app state"""
    return request.app.state.post_service


CurrentUser = Annotated[User, Depends(get_current_user)]
Posts = Annotated[PostService, Depends(get_post_service)]
