import json
import logging

import httpx
from pydantic import BaseModel

from shelter_giving.client.errors import ServerError, ShelterClientError
from shelter_giving.client.http import post_json
from shelter_giving.client.optimistic import optimistic_update
from shelter_giving.client.state import LikeEvent, LikeState, transition
from shelter_giving.client.storage import KeyValueStorage

logger = logging.getLogger(__name__)

LIKED_POSTS_KEY = "likedPosts"
LIKE_FAILURE = "Could not save your like. Please try again."


class LikeResponse(BaseModel):
    success: bool = False
    likes: int = 0
    added: bool | None = None
    removed: bool | None = None


class BlogClient:
    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    async def like(self, post_id: str) -> LikeResponse:
        body = await post_json(self.http, f"/blog/{post_id}/like", failure_message=LIKE_FAILURE)
        return LikeResponse.model_validate(body)


class LikedPostsCache:
    """IDs of posts this browser has liked, kept as a JSON array in local storage."""

    def __init__(self, storage: KeyValueStorage, key: str = LIKED_POSTS_KEY):
        self.storage = storage
        self.key = key

    def _read(self) -> list[str]:
        raw = self.storage.get_item(self.key)
        if not raw:
            return []
        try:
            ids = json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding corrupt {self.key} cache")
            return []
        return [str(i) for i in ids] if isinstance(ids, list) else []

    def _write(self, ids: list[str]) -> None:
        self.storage.set_item(self.key, json.dumps(ids))

    def contains(self, post_id: str) -> bool:
        return post_id in self._read()

    def add(self, post_id: str) -> None:
        ids = self._read()
        if post_id not in ids:
            ids.append(post_id)
            self._write(ids)

    def discard(self, post_id: str) -> None:
        ids = self._read()
        if post_id in ids:
            ids.remove(post_id)
            self._write(ids)


class LikeToggleController:
    def __init__(self, post_id: str, client: BlogClient, cache: LikedPostsCache, like_count: int = 0):
        self.post_id = post_id
        self.client = client
        self.cache = cache
        self.like_count = like_count
        self.liked = cache.contains(post_id)
        self.state = LikeState.IDLE
        self.busy = False
        self.error: str | None = None

    @property
    def disabled(self) -> bool:
        return self.busy

    @property
    def aria_busy(self) -> bool:
        return self.busy

    @property
    def aria_pressed(self) -> bool:
        return self.liked

    @property
    def aria_label(self) -> str:
        return "Unlike post" if self.liked else "Like post"

    def _failed(self, message: str) -> None:
        self.error = message
        self.state = transition(self.state, LikeEvent.FAILED)

    async def toggle(self) -> bool:
        """One click. Returns True when the server accepted it."""
        self.state = transition(self.state, LikeEvent.CLICK)

        prev_liked, prev_count = self.liked, self.like_count
        prev_cached = self.cache.contains(self.post_id)

        def apply():
            self.liked = not prev_liked
            self.like_count = prev_count + 1 if self.liked else max(0, prev_count - 1)
            self.busy = True
            self.error = None

        def revert():
            self.liked, self.like_count = prev_liked, prev_count
            if prev_cached:
                self.cache.add(self.post_id)
            else:
                self.cache.discard(self.post_id)

        async def request() -> LikeResponse:
            response = await self.client.like(self.post_id)
            if not response.success:
                raise ServerError(LIKE_FAILURE)
            return response

        def reconcile(response: LikeResponse):
            self.state = transition(self.state, LikeEvent.RESPONDED)
            self.like_count = response.likes
            if response.added:
                self.liked = True
                self.cache.add(self.post_id)
            elif response.removed:
                self.liked = False
                self.cache.discard(self.post_id)

        try:
            await optimistic_update(apply, revert, request, reconcile)
        except ShelterClientError as e:
            logger.warning(f"Like on post {self.post_id} rolled back: {e.user_message}")
            self._failed(e.user_message)
            return False
        except Exception:
            logger.exception(f"Like on post {self.post_id} rolled back")
            self._failed(LIKE_FAILURE)
            return False
        finally:
            self.busy = False

        self.state = transition(self.state, LikeEvent.SETTLED)
        return True
