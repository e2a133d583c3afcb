# src/services/buyer_app_service/app/actions.py
from enum import Enum


class Action(str, Enum):
    """
    Buyer-side protocol actions accepted by the gateway. The value is both the
    route path segment and the stem of the action's schema file.
    """
    SEARCH = "search"
    SELECT = "select"
    INIT = "init"
    CONFIRM = "confirm"
    STATUS = "status"
    TRACK = "track"
    CANCEL = "cancel"
    UPDATE = "update"
    RATING = "rating"
    SUPPORT = "support"
