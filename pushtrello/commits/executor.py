"""
Applying a single card action against Trello.

Posting the comment is the primary effect and is guarded by the action
ledger. Moving the card afterwards is best effort: any failure along the
card → board → lists → move chain is logged and the action still succeeds.
"""

from enum import Enum

from pushtrello.commits.actions import Action
from pushtrello.commits.ledger import ActionLedger
from pushtrello.errors import CommentPostFailed, RelocationError
from pushtrello.logging_config import get_logger
from pushtrello.trello.api import TrelloAPIError
from pushtrello.trello.utils import card_id_from_ref, find_list_by_name

logger = get_logger(__name__)


class ActionOutcome(Enum):
    DUPLICATE = "duplicate"
    COMMENTED = "commented"
    MOVED = "moved"


class ActionExecutor:

    def __init__(self, trello, ledger: ActionLedger, system_log=None):
        self.trello = trello
        self.ledger = ledger
        self.system_log = system_log

    def run_job(self, payload) -> ActionOutcome:
        """Dispatcher entry point for ``action_card`` jobs."""
        return self.execute(Action.from_payload(payload))

    def execute(self, action: Action) -> ActionOutcome:
        """
        Comment on the card once per (card reference, commit url), then try the move.

        Raises:
            LedgerLookupError: the ledger could not be read
            CommentPostFailed: Trello rejected or never received the comment
        """
        key = action.idempotence_key
        if self.ledger.is_applied(key):
            logger.info("Action already applied, skipping", target_ref=action.target_ref, source_url=action.source_url)
            return ActionOutcome.DUPLICATE

        card_id = card_id_from_ref(action.target_ref)
        try:
            self.trello.post_comment(card_id, action.comment_body)
        except TrelloAPIError as exc:
            logger.error("Comment post failed", target_ref=action.target_ref, card_id=card_id, error=str(exc))
            raise CommentPostFailed(card_id, exc) from exc

        self.ledger.record_applied(key)
        logger.info("Comment posted", target_ref=action.target_ref, card_id=card_id, source_url=action.source_url)

        if not action.move_to_name:
            return ActionOutcome.COMMENTED

        try:
            self.relocate(card_id, action.move_to_name)
        except RelocationError as exc:
            logger.warning("Card move skipped", card_id=card_id, move_to=action.move_to_name, reason=str(exc))
            if self.system_log is not None:
                self.system_log.log_warning(
                    "relocation",
                    "move_card",
                    exc,
                    context={"card_id": card_id, "move_to": action.move_to_name, "source_url": action.source_url},
                )
            return ActionOutcome.COMMENTED
        return ActionOutcome.MOVED

    def relocate(self, card_id: str, list_name: str) -> None:
        """
        Move card_id to the list on its board named list_name.

        Raises:
            RelocationError: any lookup or the move failed, or no list matched
        """
        try:
            card = self.trello.get_card(card_id)
        except TrelloAPIError as exc:
            raise RelocationError(f"card lookup failed: {exc}") from exc
        board_id = (card or {}).get("idBoard")
        if not board_id:
            raise RelocationError(f"card {card_id} has no board")

        try:
            board = self.trello.get_board(board_id)
        except TrelloAPIError as exc:
            raise RelocationError(f"board lookup failed: {exc}") from exc

        try:
            lists = self.trello.get_board_lists((board or {}).get("id") or board_id)
        except TrelloAPIError as exc:
            raise RelocationError(f"board lists lookup failed: {exc}") from exc

        destination = find_list_by_name(lists, list_name)
        if destination is None or not destination.get("id"):
            raise RelocationError(f"no list named {list_name!r} on board {board_id}")

        try:
            self.trello.move_card(card.get("id") or card_id, destination["id"])
        except TrelloAPIError as exc:
            raise RelocationError(f"move failed: {exc}") from exc
        logger.info("Card moved", card_id=card_id, list_id=destination["id"], list_name=list_name)
