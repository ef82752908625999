"""
Tests for decoding GitHub push-event bodies.
"""
import json

import pytest

from pushtrello.errors import BatchMalformed
from pushtrello.github.payload import Author, decode_push_payload


class TestDecodePushPayload:

    def test_decodes_commits_and_authors(self):
        raw = json.dumps({
            "before": "a" * 40,
            "after": "b" * 40,
            "ref": "refs/heads/main",
            "repository": {"name": "ignored"},
            "commits": [{
                "id": "abc123",
                "message": "Fix [CARD-1]",
                "url": "https://github.com/o/r/commit/abc123",
                "author": {"name": "Ann", "username": "ann", "email": "ann@example.com"},
                "modified": ["a.py"],
                "distinct": True,
            }],
        }).encode()

        push = decode_push_payload(raw)

        assert push.ref == "refs/heads/main"
        assert len(push.commits) == 1
        commit = push.commits[0]
        assert commit.id == "abc123"
        assert commit.author == Author(name="Ann", username="ann", email="ann@example.com")
        assert commit.committer == Author()
        assert commit.modified == ["a.py"]
        assert commit.added == []
        assert commit.distinct is True

    def test_missing_and_null_fields_become_empty(self):
        push = decode_push_payload('{"commits": [{"message": null, "author": null}]}')
        commit = push.commits[0]
        assert commit.message == ""
        assert commit.url == ""
        assert commit.author.name == ""
        assert push.before == ""

    def test_no_commits(self):
        assert decode_push_payload(b'{"ref": "refs/tags/v1"}').commits == []

    @pytest.mark.parametrize("raw", [
        b"not json",
        b"\xff\xfe",
        b"[1, 2]",
        b'{"commits": {}}',
        b'{"commits": ["x"]}',
        b'{"commits": [{"message": 5}]}',
        b'{"commits": [{"author": "Ann"}]}',
        b'{"commits": [{"added": [1]}]}',
        b'{"commits": [{"distinct": "yes"}]}',
        b'{"ref": 1}',
    ])
    def test_malformed_bodies_rejected(self, raw):
        with pytest.raises(BatchMalformed):
            decode_push_payload(raw)
