"""Qt UI constants used by the leaderboard window."""

WINDOW_TITLE: str = "Debug Arena Leaderboard"
ALL_QUIZZES_LABEL: str = "All quizzes"
EMPTY_LEADERBOARD_MESSAGE: str = "No rankings yet. Complete quizzes to appear on the leaderboard."
LEADERBOARD_REFRESH_INTERVAL_MS: int = 5000
LEARNER_URL_TEMPLATE: str = "Learners connect to: {url}"

TABLE_HEADERS: tuple[str, ...] = ("Rank", "Learner", "Solved", "Accuracy", "Time", "Score")
PODIUM_MEDALS: tuple[str, ...] = ("#1", "#2", "#3")
