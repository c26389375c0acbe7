"""Quiz-related constants shared across the core, server and UI layers."""

DEFAULT_TIME_PER_QUESTION_SECONDS: int = 150
DEFAULT_QUESTION_TITLE: str = "Fix the bug"
TIMER_INTERVAL_SECONDS: float = 1.0

# Execution-environment version per supported language.
LANGUAGE_VERSIONS: dict[str, str] = {
    "javascript": "18.15.0",
    "python": "3.10.0",
    "java": "17.0.2",
    "cpp": "10.2.0",
    "go": "1.16.2",
    "csharp": "5.0.201",
    "ruby": "3.0.1",
}
SUPPORTED_LANGUAGES: tuple[str, ...] = tuple(LANGUAGE_VERSIONS)

POSITION_BONUSES: tuple[int, ...] = (50, 30, 10)
POINTS_PER_CORRECT_ANSWER: int = 5
SPEED_BONUS_BASE: int = 20
SPEED_BONUS_DIVISOR: int = 6
PODIUM_SIZE: int = 3

TAB_SWITCH_DETAILS: str = "User switched away from quiz tab"
COPY_PASTE_DETAILS: str = "User attempted to copy/paste"
