"""
Decoding of GitHub push-event bodies.

Only the fields the processor needs are kept; anything else in the JSON is
ignored and missing optional fields are left empty.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List

from pushtrello.errors import BatchMalformed


@dataclass(frozen=True)
class Author:
    name: str = ""
    username: str = ""
    email: str = ""


@dataclass(frozen=True)
class Commit:
    id: str = ""
    message: str = ""
    timestamp: str = ""
    url: str = ""
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    modified: List[str] = field(default_factory=list)
    author: Author = field(default_factory=Author)
    committer: Author = field(default_factory=Author)
    distinct: bool = False


@dataclass(frozen=True)
class PushPayload:
    before: str = ""
    after: str = ""
    ref: str = ""
    commits: List[Commit] = field(default_factory=list)


def _str_field(data: Dict[str, Any], name: str, where: str) -> str:
    value = data.get(name)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise BatchMalformed(f"{where}.{name} must be a string, got {type(value).__name__}")
    return value


def _str_list_field(data: Dict[str, Any], name: str, where: str) -> List[str]:
    value = data.get(name)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise BatchMalformed(f"{where}.{name} must be a list of strings")
    return list(value)


def _author(data: Dict[str, Any], name: str, where: str) -> Author:
    value = data.get(name)
    if value is None:
        return Author()
    if not isinstance(value, dict):
        raise BatchMalformed(f"{where}.{name} must be an object")
    path = f"{where}.{name}"
    return Author(
        name=_str_field(value, "name", path),
        username=_str_field(value, "username", path),
        email=_str_field(value, "email", path),
    )


def _commit(data: Any, index: int) -> Commit:
    where = f"commits[{index}]"
    if not isinstance(data, dict):
        raise BatchMalformed(f"{where} must be an object")
    distinct = data.get("distinct", False)
    if distinct is None:
        distinct = False
    if not isinstance(distinct, bool):
        raise BatchMalformed(f"{where}.distinct must be a boolean")
    return Commit(
        id=_str_field(data, "id", where),
        message=_str_field(data, "message", where),
        timestamp=_str_field(data, "timestamp", where),
        url=_str_field(data, "url", where),
        added=_str_list_field(data, "added", where),
        removed=_str_list_field(data, "removed", where),
        modified=_str_list_field(data, "modified", where),
        author=_author(data, "author", where),
        committer=_author(data, "committer", where),
        distinct=distinct,
    )


def decode_push_payload(raw) -> PushPayload:
    """Decode a raw push-event body.

    Args:
        raw: bytes or str holding the JSON document

    Raises:
        BatchMalformed: invalid JSON, or a known field with the wrong type
    """
    try:
        if isinstance(raw, (bytes, bytearray)):
            raw = bytes(raw).decode("utf-8")
        data = json.loads(raw)
    except (UnicodeDecodeError, ValueError) as exc:
        raise BatchMalformed(f"payload is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise BatchMalformed("payload must be a JSON object")

    commits = data.get("commits")
    if commits is None:
        commits = []
    if not isinstance(commits, list):
        raise BatchMalformed("commits must be a list")

    return PushPayload(
        before=_str_field(data, "before", "payload"),
        after=_str_field(data, "after", "payload"),
        ref=_str_field(data, "ref", "payload"),
        commits=[_commit(c, i) for i, c in enumerate(commits)],
    )
