from datetime import datetime
from pydantic import BaseModel, Field


class BlogLike(BaseModel):
    post_id: str
    # "USER#<id>" for signed-in readers, "IP#<hmac>" for anonymous ones
    liker_key: str
    created_at: datetime = Field(default_factory=datetime.now)

    @property
    def is_anonymous(self) -> bool:
        return self.liker_key.startswith("IP#")


class LikeResult(BaseModel):
    likes: int
    added: bool = False
    removed: bool = False
