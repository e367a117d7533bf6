import asyncio
import copy
import itertools
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from dependencies import get_current_user
from main import app
from models.user import User
from services.errors import NotFound, Forbidden, Conflict
from services.firestore import POST_NOT_FOUND, COMMENT_NOT_FOUND, NOT_AUTHORIZED
from services.posts import PostService


class InMemoryStore:
    """
    Same interface as FirestoreDB. Reads yield to the event loop before
    returning, mutations check and write without yielding, which mirrors
    a committed Firestore transaction.
    """

    def __init__(self, users: Optional[Dict[str, Dict[str, Any]]] = None):
        self.users = users or {}
        self.posts: Dict[str, Dict[str, Any]] = {}
        self._ids = itertools.count(1)

    def seed_post(self, user: str, text: str, created_at: datetime, **fields) -> str:
        post_id = f"post{next(self._ids)}"
        self.posts[post_id] = {
            "user": user,
            "text": text,
            "name": fields.get("name", user),
            "avatar": fields.get("avatar"),
            "created_at": created_at,
            "likes": fields.get("likes", []),
            "comments": fields.get("comments", []),
        }
        return post_id

    def _existing(self, post_id: str) -> Dict[str, Any]:
        if post_id not in self.posts:
            raise NotFound(POST_NOT_FOUND)
        return self.posts[post_id]

    async def get_user_profile(self, user_id: str):
        await asyncio.sleep(0)
        user = self.users.get(user_id)
        if user is None:
            return None
        return {"name": user["name"], "avatar": user.get("avatar")}

    async def get_all_posts(self, limit=None, offset=0) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        posts = [{**copy.deepcopy(data), "id": post_id} for post_id, data in self.posts.items()]
        posts.sort(key=lambda p: p["created_at"], reverse=True)
        posts = posts[offset:]
        return posts if limit is None else posts[:limit]

    async def get_post(self, post_id: str):
        await asyncio.sleep(0)
        if post_id not in self.posts:
            return None
        return {**copy.deepcopy(self.posts[post_id]), "id": post_id}

    async def create_post(self, post_data):
        post_id = f"post{next(self._ids)}"
        self.posts[post_id] = copy.deepcopy(post_data)
        return {**post_data, "id": post_id}

    async def delete_post(self, post_id, user_id):
        post = self._existing(post_id)
        if post["user"] != user_id:
            raise Forbidden(NOT_AUTHORIZED)
        del self.posts[post_id]

    async def add_like(self, post_id, user_id):
        post = self._existing(post_id)
        if any(like["user"] == user_id for like in post["likes"]):
            raise Conflict("Post already liked")
        post["likes"] = [{"user": user_id}] + post["likes"]
        return copy.deepcopy(post["likes"])

    async def remove_like(self, post_id, user_id):
        post = self._existing(post_id)
        remaining = [like for like in post["likes"] if like["user"] != user_id]
        if len(remaining) == len(post["likes"]):
            raise Conflict("Post has not yet been liked")
        post["likes"] = remaining
        return copy.deepcopy(remaining)

    async def add_comment(self, post_id, comment):
        post = self._existing(post_id)
        post["comments"] = [copy.deepcopy(comment)] + post["comments"]
        return copy.deepcopy(post["comments"])

    async def remove_comment(self, post_id, comment_id, user_id):
        post = self._existing(post_id)
        comment = next((c for c in post["comments"] if c["id"] == comment_id), None)
        if comment is None:
            raise NotFound(COMMENT_NOT_FOUND)
        if comment["user"] != user_id:
            raise Forbidden(NOT_AUTHORIZED)
        post["comments"] = [c for c in post["comments"] if c["id"] != comment_id]
        return copy.deepcopy(post["comments"])


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore(users={
        "alice": {"name": "Alice", "avatar": "https://gravatar.com/alice"},
        "bob": {"name": "Bob", "avatar": "https://gravatar.com/bob"},
        "carol": {"name": "Carol", "avatar": None},
    })


@pytest.fixture
def service(store) -> PostService:
    return PostService(store)


@pytest.fixture
def client(service):
    app.state.post_service = service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login():
    """Make subsequent requests authenticated as the given user id"""

    def _login(user_id: str):
        app.dependency_overrides[get_current_user] = lambda: User(user_id=user_id)

    yield _login
    app.dependency_overrides.clear()
