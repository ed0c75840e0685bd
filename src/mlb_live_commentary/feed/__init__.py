"""Live feed aggregation for games followed in real time.

Flow per polling tick (per game):
    SubscriberRegistry (any listeners?)
        ↓
    EventQueue (deliver a queued event) or PollCursor (next timestamp)
        ↓
    Game.liveGameV1(game_pk, timecode) → plays → GameEvents
        ↓
    CommentaryGenerator → enriched events → all subscribers
"""

from .aggregator import LIVE_EVENT, LiveFeedAggregator, LiveFeedHub, LiveFeedSubscription
from .cursor import PollCursor
from .event_queue import EventQueue
from .registry import SubscriberRegistry

__all__ = [
    "LIVE_EVENT",
    "LiveFeedAggregator",
    "LiveFeedHub",
    "LiveFeedSubscription",
    "PollCursor",
    "EventQueue",
    "SubscriberRegistry",
]
