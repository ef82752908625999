from typing import Iterator, List, Optional

from pushtrello.commits.actions import Action
from pushtrello.commits.markup import Link, MessageNode, MessageParser, Text, parse_message
from pushtrello.github.payload import Commit
from pushtrello.logging_config import get_logger

logger = get_logger(__name__)


def _text_values(nodes: List[MessageNode]) -> Iterator[str]:
    """Values of Text nodes outside any Link, in tree order."""
    for node in nodes:
        if isinstance(node, Text):
            yield node.value


def _links(nodes: List[MessageNode]) -> Iterator[Link]:
    """Every Link in the tree, in document order (a link before its descendants)."""
    for node in nodes:
        if isinstance(node, Link):
            yield node
            yield from _links(node.children)


def _move_target(link: Link) -> Optional[str]:
    if not link.children:
        return None
    return link.children[0].value


class MessageInterpreter:
    """Turns a commit into the card actions its message asks for."""

    def __init__(self, max_comment_size: int, parser: MessageParser = parse_message):
        self.max_comment_size = max_comment_size
        self.parser = parser

    def build_comment(self, commit: Commit, nodes: List[MessageNode]) -> str:
        """Author line plus message text, cut to leave room for the commit url.

        Sizes are UTF-8 byte counts. A multi-byte character split by the cut
        is dropped whole.
        """
        body = commit.author.name + "\n" + "".join(_text_values(nodes))
        max_body = self.max_comment_size - (len(commit.url.encode("utf-8")) + 1)  # +1 for \n
        if max_body < 0:
            logger.warning(
                "Commit url longer than the maximum comment size",
                url=commit.url,
                max_comment_size=self.max_comment_size,
            )
            max_body = 0
        encoded = body.encode("utf-8")
        if len(encoded) > max_body:
            body = encoded[:max_body].decode("utf-8", "ignore")
        return body + "\n" + commit.url

    def interpret(self, commit: Commit) -> List[Action]:
        """Derive actions for a commit.

        Raises:
            ParseError: the message markup is malformed
        """
        nodes = self.parser(commit.message)
        logger.debug("Commit message parsed", commit_id=commit.id, nodes=len(nodes))
        comment = self.build_comment(commit, nodes)
        return [
            Action(
                target_ref=link.value,
                comment_body=comment,
                source_url=commit.url,
                move_to_name=_move_target(link),
            )
            for link in _links(nodes)
        ]
