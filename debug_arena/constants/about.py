"""Static metadata describing Debug Arena."""

APP_NAME = "Debug Arena"
APP_VERSION = "0.1"
APP_LICENSE = "MIT License"
APP_ABOUT_TEXT = (
    "Debug Arena is a timed code-debugging quiz platform. Administrators author "
    "buggy snippets in several languages, learners fix them against the clock, "
    "and results feed a scored leaderboard."
)
