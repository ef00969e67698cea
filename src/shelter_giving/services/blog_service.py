import hmac
import hashlib
import logging

from shelter_giving.data_access.dynamodb import DynamoDataAccess
from shelter_giving.models.blog import BlogLike, LikeResult

logger = logging.getLogger(__name__)


class BlogPostNotFound(Exception):
    pass


def hash_ip(raw_ip: str, salt: str) -> str:
    return hmac.new(salt.encode("utf-8"), raw_ip.encode("utf-8"), hashlib.sha256).hexdigest()


class BlogLikeService:
    def __init__(self, data_access: DynamoDataAccess, ip_salt: str = "", like_ttl_seconds: int | None = None):
        self.data_access = data_access
        self.ip_salt = ip_salt
        self.like_ttl_seconds = like_ttl_seconds

    def liker_key(self, client_ip: str | None, user_id: str | None = None) -> str | None:
        if user_id:
            return f"USER#{user_id}"
        if client_ip:
            return f"IP#{hash_ip(client_ip, self.ip_salt)}"
        return None

    def _current(self, post_id: str) -> LikeResult:
        post = self.data_access.get_blog_post(post_id) or {}
        return LikeResult(likes=max(0, int(post.get("likes", 0))))

    def toggle_like(self, post_id: str, client_ip: str | None, user_id: str | None = None) -> LikeResult:
        """Likes the post for this reader, or removes the like they already left."""
        post = self.data_access.get_blog_post(post_id)
        if not post:
            raise BlogPostNotFound(post_id)

        liker_key = self.liker_key(client_ip, user_id)
        if liker_key is None:
            raise ValueError("Cannot identify reader for like")

        if self.data_access.get_blog_like(post_id, liker_key):
            if not self.data_access.delete_blog_like(post_id, liker_key):
                # a concurrent unlike from the same reader already removed it
                return self._current(post_id)
            likes = self.data_access.increment_blog_likes(post_id, -1)
            logger.info(f"Like removed from post {post_id}")
            return LikeResult(likes=likes, removed=True)

        like = BlogLike(post_id=post_id, liker_key=liker_key)
        ttl = self.like_ttl_seconds if like.is_anonymous else None
        if not self.data_access.create_blog_like(like, ttl_seconds=ttl):
            # a concurrent request from the same reader won the race
            return self._current(post_id)

        likes = self.data_access.increment_blog_likes(post_id, 1)
        logger.info(f"Like added to post {post_id}")
        return LikeResult(likes=likes, added=True)
