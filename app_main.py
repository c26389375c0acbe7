"""Application entry point for Debug Arena."""

from __future__ import annotations

import socket
import sys

from PySide6.QtWidgets import QApplication

from debug_arena.core.arena_manager import ArenaManager
from debug_arena.core.services.code_executor import PistonExecutor
from debug_arena.core.services.quiz_store import InMemoryQuizStore, QuizStore
from debug_arena.core.services.supabase_store import SupabaseQuizStore
from debug_arena.server.api_server import start_api_server
from debug_arena.ui.leaderboard_window import LeaderboardWindow
from debug_arena.utils.config import ArenaSettings, load_settings
from debug_arena.utils.logging_config import configure_logging


def _determine_learner_url(port: int) -> str:
    """Best-effort determination of the local IP for the learner-facing URL."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.connect(("8.8.8.8", 80))
            ip_address = sock.getsockname()[0]
    except OSError:
        ip_address = "127.0.0.1"
    return f"http://{ip_address}:{port}/"


def _build_store(settings: ArenaSettings) -> QuizStore:
    if settings.supabase_url and settings.supabase_key:
        return SupabaseQuizStore(settings.supabase_url, settings.supabase_key, settings.supabase_token)
    return InMemoryQuizStore()


def main() -> None:
    """Read settings, start the API server, and launch the leaderboard window."""
    settings = load_settings()
    logger = configure_logging(settings.log_level)
    logger.info("Starting Debug Arena…")

    store = _build_store(settings)
    if not settings.uses_hosted_storage:
        logger.warning("No hosted storage configured; data lives in memory for this run only.")
    manager = ArenaManager(store, executor=PistonExecutor(settings.piston_url))

    start_api_server(manager, host=settings.host, port=settings.port)
    learner_url = _determine_learner_url(settings.port)
    logger.info("Learner page available at %s", learner_url)

    app = QApplication(sys.argv)
    app.aboutToQuit.connect(manager.shutdown)
    window = LeaderboardWindow(manager, learner_url=learner_url)
    window.show()
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
