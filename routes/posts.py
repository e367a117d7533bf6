import functools
import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from config import POSTS_MAX_PAGE_SIZE
from context import describe_request
from dependencies import CurrentUser, Posts
from models.post import Post, PostRequest, CommentRequest, Like, Comment, DeleteResponse
from services.errors import PostsError

logger = logging.getLogger(__name__)

router = APIRouter()


def server_errors(handler):
    """Turn unexpected failures into a generic 500; domain errors pass through"""

    @functools.wraps(handler)
    async def wrapper(*args, **kwargs):
        try:
            return await handler(*args, **kwargs)
        except (PostsError, HTTPException):
            raise
        except Exception:
            logger.exception("Unhandled error in %s", describe_request())
            raise HTTPException(status_code=500, detail="Server Error")

    return wrapper


@router.post("", response_model=Post)
@server_errors
async def create_post(posts: Posts, current_user: CurrentUser, body: PostRequest):
    """Create a post"""
    return await posts.create_post(current_user.user_id, body.text)


@router.get("", response_model=List[Post])
@server_errors
async def get_posts(
        posts: Posts,
        current_user: CurrentUser,
        limit: Optional[int] = Query(None, ge=1, le=POSTS_MAX_PAGE_SIZE),
        offset: int = Query(0, ge=0),
):
    """Get all posts, newest first"""
    return await posts.list_posts(limit=limit, offset=offset)


@router.get("/{post_id}", response_model=Post)
@server_errors
async def get_post(posts: Posts, current_user: CurrentUser, post_id: str):
    return await posts.get_post(post_id)


@router.delete("/{post_id}", response_model=DeleteResponse)
@server_errors
async def delete_post(posts: Posts, current_user: CurrentUser, post_id: str):
    """Delete a post; only its author may do this"""
    return await posts.delete_post(current_user.user_id, post_id)


@router.put("/like/{post_id}", response_model=List[Like])
@server_errors
async def like_post(posts: Posts, current_user: CurrentUser, post_id: str):
    return await posts.like_post(current_user.user_id, post_id)


@router.put("/unlike/{post_id}", response_model=List[Like])
@server_errors
async def unlike_post(posts: Posts, current_user: CurrentUser, post_id: str):
    return await posts.unlike_post(current_user.user_id, post_id)


@router.post("/comment/{post_id}", response_model=List[Comment])
@server_errors
async def add_comment(posts: Posts, current_user: CurrentUser, post_id: str, body: CommentRequest):
    """Comment on a post"""
    return await posts.add_comment(current_user.user_id, post_id, body.text)


@router.delete("/comment/{post_id}/{comment_id}", response_model=List[Comment])
@server_errors
async def delete_comment(posts: Posts, current_user: CurrentUser, post_id: str, comment_id: str):
    """Delete a comment; only its author may do this"""
    return await posts.remove_comment(current_user.user_id, post_id, comment_id)
