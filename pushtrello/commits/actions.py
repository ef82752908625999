from dataclasses import dataclass
from typing import Any, Dict, Optional

from pushtrello.errors import JobPayloadInvalid


@dataclass(frozen=True)
class Action:
    """One comment (and optional move) to apply to a card for a commit."""
    target_ref: str
    comment_body: str
    source_url: str
    move_to_name: Optional[str] = None

    @property
    def idempotence_key(self) -> str:
        return self.target_ref + self.source_url

    def to_payload(self) -> Dict[str, Any]:
        """Plain-value job payload; safe to store and redeliver."""
        return {
            "target_ref": self.target_ref,
            "comment_body": self.comment_body,
            "source_url": self.source_url,
            "move_to_name": self.move_to_name,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Action":
        if not isinstance(payload, dict):
            raise JobPayloadInvalid("action payload must be an object")
        for name in ("target_ref", "comment_body", "source_url"):
            if not isinstance(payload.get(name), str) or not payload[name]:
                raise JobPayloadInvalid(f"action payload field {name!r} is missing or not a string")
        move_to_name = payload.get("move_to_name")
        if move_to_name is not None and not isinstance(move_to_name, str):
            raise JobPayloadInvalid("action payload field 'move_to_name' must be a string")
        return cls(
            target_ref=payload["target_ref"],
            comment_body=payload["comment_body"],
            source_url=payload["source_url"],
            move_to_name=move_to_name or None,
        )
