import logging
import re
from typing import List, Dict, Any, Optional

import firebase_admin
from firebase_admin import firestore_async
from google.cloud import firestore

from services.errors import NotFound, Forbidden, Conflict

logger = logging.getLogger(__name__)

POST_NOT_FOUND = "Post not found"
COMMENT_NOT_FOUND = "Comment does not exist"
NOT_AUTHORIZED = "User not authorized"

_RESERVED_ID = re.compile(r"^__.*__$")


def is_valid_document_id(doc_id: Any) -> bool:
    """
    Check a client-supplied id against Firestore's document id rules:
    non-empty, at most 1500 bytes, no '/', not '.' or '..', not '__*__'
    """
    if not isinstance(doc_id, str) or not doc_id:
        return False
    if len(doc_id.encode("utf-8")) > 1500:
        return False
    if "/" in doc_id or doc_id in (".", ".."):
        return False
    return not _RESERVED_ID.match(doc_id)


def _snapshot_to_post(snapshot) -> Dict[str, Any]:
    post_data = snapshot.to_dict()
    post_data["id"] = snapshot.id
    post_data.setdefault("likes", [])
    post_data.setdefault("comments", [])
    return post_data


class FirestoreDB:
    """
    Post storage on Firestore. Every mutation of an existing post runs inside
    a transaction so the guard (exists, owner, already liked, ...) and the
    write commit together; Firestore retries the transaction on contention.
    """

    def __init__(self, app: firebase_admin.App):
        self.db = firestore_async.client(app)

    async def close(self):
        """Close the gRPC channel of the async client"""
        await self.db._firestore_api.transport.close()

    def collection(self, name: str):
        return self.db.collection(name)

    def _post_ref(self, post_id: str):
        """Document reference for a post; malformed ids are reported as missing posts"""
        if not is_valid_document_id(post_id):
            raise NotFound(POST_NOT_FOUND)
        try:
            return self.collection("posts").document(post_id)
        except ValueError:
            raise NotFound(POST_NOT_FOUND)

    async def get_user_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get the name and avatar of a user"""
        if not is_valid_document_id(user_id):
            return None
        snapshot = await self.collection("users").document(user_id).get()
        if not snapshot.exists:
            return None
        user_data = snapshot.to_dict()
        return {"name": user_data.get("name", ""), "avatar": user_data.get("avatar")}

    async def get_all_posts(self, limit: Optional[int] = None, offset: int = 0) -> List[Dict[str, Any]]:
        """Get all posts sorted by creation date descending"""
        query = self.collection("posts").order_by("created_at", direction=firestore.Query.DESCENDING)
        if offset:
            query = query.offset(offset)
        if limit is not None:
            query = query.limit(limit)

        posts = []
        async for doc in query.stream():
            posts.append(_snapshot_to_post(doc))
        return posts

    async def get_post(self, post_id: str) -> Optional[Dict[str, Any]]:
        """Get a post by ID"""
        try:
            post_ref = self._post_ref(post_id)
        except NotFound:
            return None
        snapshot = await post_ref.get()
        if not snapshot.exists:
            return None
        return _snapshot_to_post(snapshot)

    async def create_post(self, post_data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a new post"""
        new_post_ref = self.collection("posts").document()
        await new_post_ref.set(post_data)
        return {**post_data, "id": new_post_ref.id}

    async def delete_post(self, post_id: str, user_id: str) -> None:
        """Delete a post if it belongs to user_id"""
        post_ref = self._post_ref(post_id)
        transaction = self.db.transaction()

        @firestore.async_transactional
        async def delete_in_transaction(transaction, post_ref):
            snapshot = await post_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFound(POST_NOT_FOUND)
            if snapshot.get("user") != user_id:
                raise Forbidden(NOT_AUTHORIZED)
            transaction.delete(post_ref)

        await delete_in_transaction(transaction, post_ref)

    async def add_like(self, post_id: str, user_id: str) -> List[Dict[str, Any]]:
        """Prepend a like from user_id unless the user already liked the post"""
        post_ref = self._post_ref(post_id)
        transaction = self.db.transaction()

        @firestore.async_transactional
        async def like_in_transaction(transaction, post_ref):
            snapshot = await post_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFound(POST_NOT_FOUND)

            likes = snapshot.to_dict().get("likes", [])
            if any(like.get("user") == user_id for like in likes):
                raise Conflict("Post already liked")

            likes = [{"user": user_id}] + likes
            transaction.update(post_ref, {"likes": likes})
            return likes

        return await like_in_transaction(transaction, post_ref)

    async def remove_like(self, post_id: str, user_id: str) -> List[Dict[str, Any]]:
        """Remove the like of user_id if there is one"""
        post_ref = self._post_ref(post_id)
        transaction = self.db.transaction()

        @firestore.async_transactional
        async def unlike_in_transaction(transaction, post_ref):
            snapshot = await post_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFound(POST_NOT_FOUND)

            likes = snapshot.to_dict().get("likes", [])
            remaining = [like for like in likes if like.get("user") != user_id]
            if len(remaining) == len(likes):
                raise Conflict("Post has not yet been liked")

            transaction.update(post_ref, {"likes": remaining})
            return remaining

        return await unlike_in_transaction(transaction, post_ref)

    async def add_comment(self, post_id: str, comment: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Prepend a comment to a post"""
        post_ref = self._post_ref(post_id)
        transaction = self.db.transaction()

        @firestore.async_transactional
        async def comment_in_transaction(transaction, post_ref):
            snapshot = await post_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFound(POST_NOT_FOUND)

            comments = [comment] + snapshot.to_dict().get("comments", [])
            transaction.update(post_ref, {"comments": comments})
            return comments

        return await comment_in_transaction(transaction, post_ref)

    async def remove_comment(self, post_id: str, comment_id: str, user_id: str) -> List[Dict[str, Any]]:
        """Remove a single comment by its id if it was written by user_id"""
        post_ref = self._post_ref(post_id)
        transaction = self.db.transaction()

        @firestore.async_transactional
        async def uncomment_in_transaction(transaction, post_ref):
            snapshot = await post_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFound(POST_NOT_FOUND)

            comments = snapshot.to_dict().get("comments", [])
            comment = next((c for c in comments if c.get("id") == comment_id), None)
            if comment is None:
                raise NotFound(COMMENT_NOT_FOUND)
            if comment.get("user") != user_id:
                raise Forbidden(NOT_AUTHORIZED)

            comments = [c for c in comments if c.get("id") != comment_id]
            transaction.update(post_ref, {"comments": comments})
            return comments

        return await uncomment_in_transaction(transaction, post_ref)
