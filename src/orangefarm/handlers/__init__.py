"""Change-feed handlers for the progression pipeline.

Each handler takes a session and a ``ChangeEvent`` (the before/after pair
of one document write), applies its mutation in a single transaction and
commits. All of them are safe to run twice with the same event.
"""

from orangefarm.handlers.achievement_reward import pay_achievement_rewards
from orangefarm.handlers.asset_link import sync_bot_assignment
from orangefarm.handlers.harvest import process_harvest
from orangefarm.handlers.player_init import initialize_player

__all__ = [
    "initialize_player",
    "pay_achievement_rewards",
    "process_harvest",
    "sync_bot_assignment",
]
