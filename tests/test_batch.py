"""
Tests for processing a stored push payload into card action jobs.
"""
import pytest
from unittest.mock import Mock

from conftest import commit_dict, push_body
from pushtrello.commits.batch import (
    ACTION_CARD,
    PROCESS_PAYLOAD,
    BatchProcessor,
    missing_fields,
    validate_commits,
)
from pushtrello.commits.interpreter import MessageInterpreter
from pushtrello.errors import BatchMalformed, CommitFieldsMissing, ParseError, PayloadNotFound
from pushtrello.github.payload import Author, Commit, PushPayload
from pushtrello.github.store import PayloadStore


@pytest.fixture
def store(app):
    return PayloadStore()


@pytest.fixture
def dispatcher():
    mock_dispatcher = Mock()
    mock_dispatcher.enqueue.side_effect = lambda kind, payload: 99
    return mock_dispatcher


@pytest.fixture
def processor(store, dispatcher):
    return BatchProcessor(store, MessageInterpreter(max_comment_size=200), dispatcher)


class TestValidation:

    def test_complete_commit_has_nothing_missing(self):
        commit = Commit(id="c", message="m", url="u", author=Author(name="Ann"))
        assert missing_fields(commit) == []

    def test_blank_strings_count_as_missing(self):
        commit = Commit(id="c", message="  ", url="", author=Author(name="\t"))
        assert missing_fields(commit) == ["url", "author.name", "message"]

    def test_first_incomplete_commit_reported(self):
        push = PushPayload(commits=[
            Commit(id="ok", message="m", url="u", author=Author(name="Ann")),
            Commit(id="bad", message="m", url="u"),
        ])
        with pytest.raises(CommitFieldsMissing) as exc_info:
            validate_commits(push)
        assert exc_info.value.commit_id == "bad"
        assert exc_info.value.missing == ["author.name"]


class TestBatchProcessor:

    def test_dispatches_one_job_per_action_in_order(self, processor, store, dispatcher):
        payload_id = store.save(push_body(
            commit_dict("First [A](Done)", url="http://x/1", commit_id="c1"),
            commit_dict("Second [B] and [C]", url="http://x/2", commit_id="c2"),
        ))

        assert processor.process(payload_id) == 3

        calls = dispatcher.enqueue.call_args_list
        assert [c.args[0] for c in calls] == [ACTION_CARD] * 3
        assert [c.args[1]["target_ref"] for c in calls] == ["A", "B", "C"]
        assert calls[0].args[1] == {
            "target_ref": "A",
            "comment_body": "Ann\nFirst \nhttp://x/1",
            "source_url": "http://x/1",
            "move_to_name": "Done",
        }

    def test_one_incomplete_commit_blocks_the_whole_batch(self, processor, store, dispatcher):
        payload_id = store.save(push_body(
            commit_dict("One [A]", commit_id="c1"),
            commit_dict("Two [B]", author="", commit_id="c2"),
            commit_dict("Three [C]", commit_id="c3"),
        ))

        with pytest.raises(CommitFieldsMissing):
            processor.process(payload_id)

        dispatcher.enqueue.assert_not_called()

    def test_parse_failure_stops_at_failing_commit(self, processor, store, dispatcher):
        payload_id = store.save(push_body(
            commit_dict("One [A]", url="http://x/1", commit_id="c1"),
            commit_dict("Two [B", url="http://x/2", commit_id="c2"),
            commit_dict("Three [C]", url="http://x/3", commit_id="c3"),
        ))

        with pytest.raises(ParseError):
            processor.process(payload_id)

        dispatcher.enqueue.assert_called_once()
        assert dispatcher.enqueue.call_args.args[1]["target_ref"] == "A"

    def test_malformed_payload(self, processor, store, dispatcher):
        payload_id = store.save(b"{not json")
        with pytest.raises(BatchMalformed):
            processor.process(payload_id)
        dispatcher.enqueue.assert_not_called()

    def test_unknown_payload(self, processor):
        with pytest.raises(PayloadNotFound):
            processor.process("12345")

    def test_run_job_reads_payload_id(self, processor, store, dispatcher):
        payload_id = store.save(push_body(commit_dict("[A]")))
        assert processor.run_job({"payload_id": payload_id}) == 1

    def test_empty_push_dispatches_nothing(self, processor, store, dispatcher):
        payload_id = store.save(push_body())
        assert processor.process(payload_id) == 0
        dispatcher.enqueue.assert_not_called()

    def test_replay_enqueues_processing(self, processor, store, dispatcher):
        payload_id = store.save(push_body(commit_dict("[A]")))

        assert processor.replay(payload_id) == 99

        dispatcher.enqueue.assert_called_once_with(PROCESS_PAYLOAD, {"payload_id": payload_id})

    def test_replay_unknown_payload(self, processor, dispatcher):
        with pytest.raises(PayloadNotFound):
            processor.replay("not-a-handle")
        dispatcher.enqueue.assert_not_called()


class TestPayloadStore:

    def test_save_and_load(self, store):
        payload_id = store.save(b"raw body")
        assert store.load(payload_id).payload == b"raw body"
        assert store.exists(payload_id)

    @pytest.mark.parametrize("handle", [None, "", "abc", "999"])
    def test_unknown_handles(self, store, handle):
        with pytest.raises(PayloadNotFound):
            store.load(handle)
        assert store.exists(handle) is False
