"""Shared fixtures: an app on in-memory sqlite with a mocked Trello client."""
import json

import pytest
from unittest.mock import Mock

from pushtrello import create_app
from pushtrello.config import TestingConfig
from pushtrello.github.signature import sign
from pushtrello.models import db
from pushtrello.trello.api import TrelloAPI


@pytest.fixture
def trello():
    """Trello client stand-in with one board holding 'Doing' and 'Done' lists."""
    client = Mock(spec=TrelloAPI)
    client.is_configured = True
    client.post_comment.return_value = {"id": "comment-1"}
    client.get_card.return_value = {"id": "card-full-id", "idBoard": "board-1"}
    client.get_board.return_value = {"id": "board-1", "name": "Dev"}
    client.get_board_lists.return_value = [
        {"id": "list-doing", "name": "Doing"},
        {"id": "list-done", "name": "Done"},
    ]
    client.move_card.return_value = {"id": "card-full-id", "idList": "list-done"}
    return client


@pytest.fixture
def notifier():
    mock_notifier = Mock()
    mock_notifier.send.return_value = True
    return mock_notifier


@pytest.fixture
def app(trello, notifier):
    """Create Flask application for testing."""
    app = create_app(TestingConfig, trello=trello, notifier=notifier)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


def push_body(*commits, ref="refs/heads/main"):
    """Encode a push event holding the given commit dicts."""
    return json.dumps({
        "before": "0" * 40,
        "after": "f" * 40,
        "ref": ref,
        "commits": list(commits),
    }).encode("utf-8")


def commit_dict(message, url="http://x/1", author="Ann", commit_id="c1"):
    return {
        "id": commit_id,
        "message": message,
        "timestamp": "2024-01-01T00:00:00Z",
        "url": url,
        "author": {"name": author, "username": author.lower(), "email": f"{author.lower()}@example.com"},
        "committer": {"name": author, "username": author.lower(), "email": f"{author.lower()}@example.com"},
        "added": [],
        "removed": [],
        "modified": ["README.md"],
        "distinct": True,
    }


def signed_headers(body, secret=TestingConfig.GITHUB_WEBHOOK_SECRET, event="push"):
    headers = {"X-Hub-Signature": sign(body, secret), "Content-Type": "application/json"}
    if event:
        headers["X-GitHub-Event"] = event
    return headers
