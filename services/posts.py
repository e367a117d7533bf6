import html
import logging
import uuid
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional

import bleach

from services.errors import ValidationError, NotFound
from services.firestore import FirestoreDB, POST_NOT_FOUND

logger = logging.getLogger(__name__)


def clean_text(text: Optional[str]) -> str:
    """
    Strip markup and surrounding whitespace; blank text is rejected.
    bleach escapes what it keeps, so entities are turned back into characters
    """
    if not isinstance(text, str):
        raise ValidationError("text", "Text is required")
    cleaned = html.unescape(bleach.clean(text, tags=[], strip=True)).strip()
    if not cleaned:
        raise ValidationError("text", "Text is required")
    return cleaned


class PostService:
    """
    Lifecycle of posts and their likes and comments.

    The caller id is always the one verified by the auth dependency. Author
    name and avatar are copied from the user's profile when a post or comment
    is written and are never refreshed afterwards.
    """

    def __init__(self, db: FirestoreDB):
        self.db = db

    async def _get_profile(self, user_id: str) -> Dict[str, Any]:
        profile = await self.db.get_user_profile(user_id)
        if profile is None:
            raise NotFound("User not found")
        return profile

    async def create_post(self, user_id: str, text: Optional[str]) -> Dict[str, Any]:
        """Create a post owned by user_id"""
        text = clean_text(text)
        profile = await self._get_profile(user_id)

        post = await self.db.create_post({
            "user": user_id,
            "text": text,
            "name": profile["name"],
            "avatar": profile.get("avatar"),
            "created_at": datetime.now(timezone.utc),
            "likes": [],
            "comments": [],
        })
        logger.info("User %s created post %s", user_id, post["id"])
        return post

    async def list_posts(self, limit: Optional[int] = None, offset: int = 0) -> List[Dict[str, Any]]:
        """All posts, newest first"""
        return await self.db.get_all_posts(limit=limit, offset=offset)

    async def get_post(self, post_id: str) -> Dict[str, Any]:
        post = await self.db.get_post(post_id)
        if post is None:
            raise NotFound(POST_NOT_FOUND)
        return post

    async def delete_post(self, user_id: str, post_id: str) -> Dict[str, str]:
        await self.db.delete_post(post_id, user_id)
        logger.info("User %s deleted post %s", user_id, post_id)
        return {"msg": "Post removed"}

    async def like_post(self, user_id: str, post_id: str) -> List[Dict[str, Any]]:
        likes = await self.db.add_like(post_id, user_id)
        logger.info("User %s liked post %s", user_id, post_id)
        return likes

    async def unlike_post(self, user_id: str, post_id: str) -> List[Dict[str, Any]]:
        likes = await self.db.remove_like(post_id, user_id)
        logger.info("User %s unliked post %s", user_id, post_id)
        return likes

    async def add_comment(self, user_id: str, post_id: str, text: Optional[str]) -> List[Dict[str, Any]]:
        """Prepend a comment by user_id and return the post's comments"""
        text = clean_text(text)
        # Missing posts are reported before a missing profile; the transaction
        # in the store checks existence again
        if await self.db.get_post(post_id) is None:
            raise NotFound(POST_NOT_FOUND)
        profile = await self._get_profile(user_id)

        comment = {
            "id": uuid.uuid4().hex,
            "user": user_id,
            "text": text,
            "name": profile["name"],
            "avatar": profile.get("avatar"),
            "created_at": datetime.now(timezone.utc),
        }
        comments = await self.db.add_comment(post_id, comment)
        logger.info("User %s commented %s on post %s", user_id, comment["id"], post_id)
        return comments

    async def remove_comment(self, user_id: str, post_id: str, comment_id: str) -> List[Dict[str, Any]]:
        comments = await self.db.remove_comment(post_id, comment_id, user_id)
        logger.info("User %s removed comment %s from post %s", user_id, comment_id, post_id)
        return comments
