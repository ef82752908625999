"""
Commit message markup.

A commit message is plain text with card references in square brackets,
optionally followed by the name of the list the card should move to::

    Fixed the login redirect [https://trello.com/c/AbCd1234](Done)

parses to ``[Text("Fixed the login redirect "), Link(url, [Text("Done")])]``.
A bracket pair only counts as a reference when its content is non-empty and
has no whitespace, so ``see [the docs]`` and ``[ ]`` stay text.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Union

from pushtrello.errors import ParseError


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Link:
    value: str
    children: List["MessageNode"] = field(default_factory=list)


MessageNode = Union[Text, Link]

# Anything mapping message text to nodes can stand in for parse_message.
MessageParser = Callable[[str], List[MessageNode]]


def _is_reference(value: str) -> bool:
    return bool(value) and not any(ch.isspace() for ch in value)


def _find_on_line(text: str, char: str, start: int) -> int:
    """Index of char in text from start, stopping at the end of the line; -1 if absent."""
    for idx in range(start, len(text)):
        if text[idx] == char:
            return idx
        if text[idx] == "\n":
            return -1
    return -1


def parse_message(text: str) -> List[MessageNode]:
    """Parse a commit message into a flat list of Text and Link nodes.

    Raises:
        ParseError: ``[`` with no ``]`` on the same line, or a ``(`` directly
            after a reference with no ``)`` on the same line
    """
    nodes: List[MessageNode] = []
    buf: List[str] = []
    pos = 0

    def flush():
        if buf:
            nodes.append(Text("".join(buf)))
            buf.clear()

    while pos < len(text):
        ch = text[pos]
        if ch != "[":
            buf.append(ch)
            pos += 1
            continue

        close = _find_on_line(text, "]", pos + 1)
        if close == -1:
            raise ParseError("unterminated '['", position=pos)
        inner = text[pos + 1:close]
        if "[" in inner or not _is_reference(inner):
            # Not a reference; keep the bracket as text and carry on after it
            buf.append(ch)
            pos += 1
            continue

        children: List[MessageNode] = []
        end = close + 1
        if end < len(text) and text[end] == "(":
            paren_close = _find_on_line(text, ")", end + 1)
            if paren_close == -1:
                raise ParseError("unterminated '(' after card reference", position=end)
            target = text[end + 1:paren_close]
            if "(" in target:
                raise ParseError("nested '(' in list name", position=end)
            if target.strip():
                children.append(Text(target.strip()))
            end = paren_close + 1

        flush()
        nodes.append(Link(inner, children))
        pos = end

    flush()
    return nodes
