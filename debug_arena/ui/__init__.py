"""Qt UI components for the leaderboard console."""

from .dialog_helpers import show_error, show_info
from .leaderboard_window import LeaderboardWindow

__all__ = [
    "LeaderboardWindow",
    "show_error",
    "show_info",
]
