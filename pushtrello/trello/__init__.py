from pushtrello.trello.api import TrelloAPI, TrelloAPIError

__all__ = ["TrelloAPI", "TrelloAPIError"]
