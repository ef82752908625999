"""
Tests for applying card actions: dedup ledger, comment posting and best-effort moves.
"""
import pytest
from unittest.mock import Mock, patch
from sqlalchemy.exc import OperationalError

from pushtrello.commits.actions import Action
from pushtrello.commits.executor import ActionExecutor, ActionOutcome
from pushtrello.commits.ledger import ActionLedger
from pushtrello.errors import CommentPostFailed, LedgerLookupError, RelocationError
from pushtrello.models import ActionRecord, SystemLog
from pushtrello.services.system_log_service import SystemLogService
from pushtrello.trello.api import TrelloAPIError

CARD_URL = "https://trello.com/c/AbCd1234/7-login"


@pytest.fixture
def executor(app, trello):
    return ActionExecutor(trello, ActionLedger(), system_log=SystemLogService)


def make_action(move_to_name=None, target_ref=CARD_URL):
    return Action(
        target_ref=target_ref,
        comment_body="Ann\nFixed it \nhttp://x/1",
        source_url="http://x/1",
        move_to_name=move_to_name,
    )


class TestActionLedger:

    def test_unknown_key_not_applied(self, app):
        assert ActionLedger().is_applied("nope") is False

    def test_record_then_applied(self, app):
        ledger = ActionLedger()
        assert ledger.record_applied("k") is True
        assert ledger.is_applied("k") is True
        # Recording twice is harmless
        assert ledger.record_applied("k") is True
        assert ActionRecord.query.count() == 1

    def test_lookup_failure_raises(self, app):
        with patch("pushtrello.commits.ledger.db") as mock_db:
            mock_db.session.get.side_effect = OperationalError("select", {}, Exception("down"))
            with pytest.raises(LedgerLookupError):
                ActionLedger().is_applied("k")
            mock_db.session.rollback.assert_called_once()

    def test_write_failure_returns_false(self, app):
        with patch("pushtrello.commits.ledger.db") as mock_db:
            mock_db.session.get.return_value = None
            mock_db.session.commit.side_effect = OperationalError("insert", {}, Exception("down"))
            assert ActionLedger().record_applied("k") is False
            mock_db.session.rollback.assert_called_once()


class TestExecute:

    def test_comment_without_move(self, executor, trello):
        outcome = executor.execute(make_action())

        assert outcome == ActionOutcome.COMMENTED
        trello.post_comment.assert_called_once_with("AbCd1234", "Ann\nFixed it \nhttp://x/1")
        trello.get_card.assert_not_called()
        trello.move_card.assert_not_called()
        assert ActionLedger().is_applied(CARD_URL + "http://x/1")

    def test_comment_and_move(self, executor, trello):
        outcome = executor.execute(make_action(move_to_name="Done"))

        assert outcome == ActionOutcome.MOVED
        trello.get_card.assert_called_once_with("AbCd1234")
        trello.get_board.assert_called_once_with("board-1")
        trello.get_board_lists.assert_called_once_with("board-1")
        trello.move_card.assert_called_once_with("card-full-id", "list-done")

    def test_duplicate_is_skipped(self, executor, trello):
        executor.execute(make_action(move_to_name="Done"))
        trello.reset_mock()

        outcome = executor.execute(make_action(move_to_name="Done"))

        assert outcome == ActionOutcome.DUPLICATE
        trello.post_comment.assert_not_called()
        trello.move_card.assert_not_called()

    def test_bare_reference_used_as_card_id(self, executor, trello):
        executor.execute(make_action(target_ref="CARD-1"))
        trello.post_comment.assert_called_once_with("CARD-1", "Ann\nFixed it \nhttp://x/1")

    def test_list_match_is_case_sensitive(self, executor, trello):
        outcome = executor.execute(make_action(move_to_name="done"))

        assert outcome == ActionOutcome.COMMENTED
        trello.post_comment.assert_called_once()
        trello.move_card.assert_not_called()
        warning = SystemLog.query.filter_by(category="relocation").one()
        assert warning.level == "WARNING"
        assert "done" in warning.message

    def test_comment_failure_leaves_no_record(self, executor, trello):
        trello.post_comment.side_effect = TrelloAPIError("boom", status_code=503)

        with pytest.raises(CommentPostFailed) as exc_info:
            executor.execute(make_action(move_to_name="Done"))

        assert exc_info.value.retryable is True
        assert exc_info.value.card_id == "AbCd1234"
        assert ActionRecord.query.count() == 0
        trello.move_card.assert_not_called()

    @pytest.mark.parametrize("status,retryable", [
        (None, True),
        (500, True),
        (503, True),
        (429, True),
        (401, False),
        (404, False),
    ])
    def test_comment_failure_retryable_by_status(self, executor, trello, status, retryable):
        trello.post_comment.side_effect = TrelloAPIError("failed", status_code=status)

        with pytest.raises(CommentPostFailed) as exc_info:
            executor.execute(make_action())

        assert exc_info.value.retryable is retryable

    def test_ledger_lookup_failure_posts_nothing(self, trello):
        ledger = Mock(spec=ActionLedger)
        ledger.is_applied.side_effect = LedgerLookupError("down")
        executor = ActionExecutor(trello, ledger)

        with pytest.raises(LedgerLookupError):
            executor.execute(make_action())

        trello.post_comment.assert_not_called()

    def test_ledger_write_failure_still_succeeds(self, trello):
        ledger = Mock(spec=ActionLedger)
        ledger.is_applied.return_value = False
        ledger.record_applied.return_value = False
        executor = ActionExecutor(trello, ledger)

        assert executor.execute(make_action()) == ActionOutcome.COMMENTED
        ledger.record_applied.assert_called_once_with(CARD_URL + "http://x/1")

    def test_run_job_builds_action_from_payload(self, executor, trello):
        outcome = executor.run_job(make_action(move_to_name="Done").to_payload())
        assert outcome == ActionOutcome.MOVED


class TestRelocate:

    @pytest.mark.parametrize("failing", ["get_card", "get_board", "get_board_lists", "move_card"])
    def test_any_step_failure_is_swallowed(self, executor, trello, failing):
        getattr(trello, failing).side_effect = TrelloAPIError("nope", status_code=404)

        outcome = executor.execute(make_action(move_to_name="Done"))

        assert outcome == ActionOutcome.COMMENTED
        trello.post_comment.assert_called_once()
        assert ActionLedger().is_applied(CARD_URL + "http://x/1")

    def test_card_without_board(self, executor, trello):
        trello.get_card.return_value = {"id": "card-full-id"}
        with pytest.raises(RelocationError):
            executor.relocate("AbCd1234", "Done")
        trello.get_board.assert_not_called()

    def test_missing_list_raises(self, executor, trello):
        trello.get_board_lists.return_value = []
        with pytest.raises(RelocationError):
            executor.relocate("AbCd1234", "Done")
        trello.move_card.assert_not_called()

    def test_no_system_log_configured(self, trello):
        trello.get_board_lists.return_value = []
        ledger = Mock(spec=ActionLedger)
        ledger.is_applied.return_value = False
        executor = ActionExecutor(trello, ledger)

        assert executor.execute(make_action(move_to_name="Done")) == ActionOutcome.COMMENTED
