"""
Likes and comments on published blog posts

Server side: `toggle_like` and `post_comment`, used by the public routes.
Client side: `LikeToggle`, the optimistic like button state that the blog
page keeps per post (liked flag persisted in local storage, rolled back
when the request fails).
"""

import enum
import json
from typing import Any, Callable, Dict, MutableMapping, Optional

import structlog
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import PyMongoError

from controllers import present_comment
from database import BLOG, BLOG_COMMENT, new_id, utcnow
from errors import NotFound, StorageFailure
from fallback import FallbackData
from schemas import CommentCreate

logger = structlog.get_logger(__name__)

FALLBACK_WARNING = "Backend not configured. Like counts are read-only in fallback mode."
NOT_IN_STORE_WARNING = "Post is only available in fallback data. Like counts are read-only."


def _fallback_likes(fallback: FallbackData, post_id: str, warning: str) -> Dict[str, Any]:
    post = fallback.find_post(post_id)
    if post is None:
        raise NotFound("blog", post_id)
    return {"likes": int(post.get("likes") or 0), "warning": warning}


def toggle_like(database: Optional[Database], fallback: FallbackData, post_id: str, unlike: bool = False) -> Dict[str, Any]:
    """Apply one like (or unlike) and return the authoritative count.

    The counter is changed with an atomic $inc; an unlike only applies while
    the count is above zero, so it can never go negative.
    """
    if database is None:
        return _fallback_likes(fallback, post_id, FALLBACK_WARNING)

    posts = database[BLOG]
    try:
        if unlike:
            doc = posts.find_one_and_update(
                {"_id": post_id, "likes": {"$gt": 0}},
                {"$inc": {"likes": -1}},
                projection={"likes": 1},
                return_document=ReturnDocument.AFTER,
            )
            if doc is None:
                # already at zero, or the post is not in the store
                doc = posts.find_one({"_id": post_id}, {"likes": 1})
        else:
            doc = posts.find_one_and_update(
                {"_id": post_id},
                {"$inc": {"likes": 1}},
                projection={"likes": 1},
                return_document=ReturnDocument.AFTER,
            )
    except PyMongoError as exc:
        raise StorageFailure("update likes", exc) from exc

    if doc is None:
        logger.warning("like_target_missing", post_id=post_id)
        return _fallback_likes(fallback, post_id, NOT_IN_STORE_WARNING)

    likes = max(0, int(doc.get("likes") or 0))
    logger.info("post_liked", post_id=post_id, unlike=unlike, likes=likes)
    return {"likes": likes}


def post_comment(database: Database, post_id: str, payload: CommentCreate) -> Dict[str, Any]:
    try:
        post = database[BLOG].find_one({"_id": post_id, "status": "published"}, {"_id": 1})
    except PyMongoError as exc:
        raise StorageFailure("read blog", exc) from exc
    if post is None:
        raise NotFound("blog", post_id)

    doc = {
        "_id": new_id(),
        "blog_id": post_id,
        "author": payload.author,
        "message": payload.message,
        "created_at": utcnow(),
    }
    try:
        database[BLOG_COMMENT].insert_one(doc)
    except PyMongoError as exc:
        raise StorageFailure("insert comment", exc) from exc
    return present_comment(doc)


# ===========================
# Client-side optimistic like
# ===========================
class LikeState(enum.Enum):
    IDLE = "idle"
    OPTIMISTIC = "optimistic"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


class LikeToggle:
    """Like button state for one post.

    `storage` behaves like browser local storage: string keys to string
    values. Liked flags for every post live under one JSON object.
    """

    STORAGE_KEY = "likedPosts"
    FAILURE_NOTICE = "Failed to update like"

    def __init__(self, post_id: str, likes: int, storage: MutableMapping[str, str]):
        self.post_id = post_id
        self.likes = likes
        self.storage = storage
        self.state = LikeState.IDLE
        self.notice: Optional[str] = None
        self.liked = bool(self._liked_posts().get(post_id, False))
        self._previous: Optional[tuple] = None

    def _liked_posts(self) -> Dict[str, bool]:
        raw = self.storage.get(self.STORAGE_KEY)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("liked_posts_unreadable", raw=raw)
            return {}
        return data if isinstance(data, dict) else {}

    def _persist(self, liked: bool) -> None:
        liked_posts = self._liked_posts()
        liked_posts[self.post_id] = liked
        self.storage[self.STORAGE_KEY] = json.dumps(liked_posts)

    def begin(self) -> bool:
        """Flip the local state before the request; returns the `unlike` flag to send."""
        if self.state is LikeState.OPTIMISTIC:
            raise RuntimeError("like request already in flight")
        self._previous = (self.liked, self.likes)
        unlike = self.liked
        self.liked = not self.liked
        self.likes = max(0, self.likes + (1 if self.liked else -1))
        self._persist(self.liked)
        self.notice = None
        self.state = LikeState.OPTIMISTIC
        return unlike

    def confirm(self, likes: int) -> None:
        if self.state is not LikeState.OPTIMISTIC:
            raise RuntimeError("no like request in flight")
        self.likes = likes
        self._previous = None
        self.state = LikeState.CONFIRMED

    def rollback(self, notice: str = FAILURE_NOTICE) -> None:
        if self.state is not LikeState.OPTIMISTIC:
            raise RuntimeError("no like request in flight")
        self.liked, self.likes = self._previous
        self._persist(self.liked)
        self._previous = None
        self.notice = notice
        self.state = LikeState.ROLLED_BACK

    def toggle(self, send: Callable[[str, bool], Dict[str, Any]]) -> LikeState:
        """Run one optimistic round trip; `send(post_id, unlike)` performs the request."""
        unlike = self.begin()
        try:
            response = send(self.post_id, unlike)
            likes = int(response["likes"])
        except Exception as exc:
            logger.warning("like_toggle_failed", post_id=self.post_id, error=str(exc))
            self.rollback()
            return self.state
        self.confirm(likes)
        if response.get("warning"):
            self.notice = response["warning"]
        return self.state
