import json
import logging
from typing import Any, Mapping, TypeVar

from pydantic import BaseModel, ValidationError

from shelter_giving.client.storage import KeyValueStorage

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class Mailbox:
    """Single-slot message passing over storage: whatever is put is read at most once."""

    def __init__(self, storage: KeyValueStorage):
        self.storage = storage

    def put(self, key: str, value: BaseModel | Mapping[str, Any]) -> None:
        if isinstance(value, BaseModel):
            payload = value.model_dump_json()
        else:
            payload = json.dumps(dict(value))
        self.storage.set_item(key, payload)

    def take_once(self, key: str, model: type[M] | None = None) -> M | dict | None:
        raw = self.storage.get_item(key)
        if raw is None:
            return None
        self.storage.remove_item(key)

        try:
            if model is not None:
                return model.model_validate_json(raw)
            value = json.loads(raw)
        except (ValueError, ValidationError) as e:
            logger.error(f"Error parsing mailbox data for {key}: {e}")
            return None
        return value if isinstance(value, dict) else None
