"""Qt main window showing the live leaderboard and podium."""

from __future__ import annotations

import logging

from PySide6.QtCore import Qt, QTimer
from PySide6.QtWidgets import (
    QAbstractItemView,
    QComboBox,
    QHBoxLayout,
    QHeaderView,
    QLabel,
    QMainWindow,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

from debug_arena.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from debug_arena.constants.ui_constants import (
    ALL_QUIZZES_LABEL,
    EMPTY_LEADERBOARD_MESSAGE,
    LEADERBOARD_REFRESH_INTERVAL_MS,
    LEARNER_URL_TEMPLATE,
    PODIUM_MEDALS,
    TABLE_HEADERS,
    WINDOW_TITLE,
)
from debug_arena.core.arena_manager import ArenaManager
from debug_arena.core.errors import StorageError
from debug_arena.core.services.leaderboard import Leaderboard, LeaderboardRow
from debug_arena.ui.dialog_helpers import show_error, show_info

logger = logging.getLogger(__name__)


class LeaderboardWindow(QMainWindow):
    """Polls the manager for rankings and renders podium plus full table."""

    def __init__(self, manager: ArenaManager, learner_url: str | None = None) -> None:
        super().__init__()
        self.setWindowTitle(WINDOW_TITLE)
        self.manager = manager
        self.learner_url = learner_url

        self._build_ui()
        self._reload_quiz_filter()
        self._configure_refresh_timer()
        self.refresh()

    def _build_ui(self) -> None:
        central_widget = QWidget(self)
        self.setCentralWidget(central_widget)
        layout = QVBoxLayout()
        central_widget.setLayout(layout)

        if self.learner_url:
            url_label = QLabel(LEARNER_URL_TEMPLATE.format(url=self.learner_url), self)
            url_label.setTextInteractionFlags(Qt.TextSelectableByMouse)
            layout.addWidget(url_label)

        filter_row = QHBoxLayout()
        self.quiz_filter = QComboBox(self)
        self.quiz_filter.currentIndexChanged.connect(lambda _index: self.refresh())
        filter_row.addWidget(self.quiz_filter, stretch=1)
        self.refresh_button = QPushButton("Refresh", self)
        self.refresh_button.clicked.connect(self._handle_manual_refresh)
        filter_row.addWidget(self.refresh_button)
        self.about_button = QPushButton("About", self)
        self.about_button.clicked.connect(self._handle_about)
        filter_row.addWidget(self.about_button)
        layout.addLayout(filter_row)

        podium_row = QHBoxLayout()
        self.podium_labels: list[QLabel] = []
        for _medal in PODIUM_MEDALS:
            label = QLabel(self)
            label.setAlignment(Qt.AlignCenter)
            label.setWordWrap(True)
            podium_row.addWidget(label)
            self.podium_labels.append(label)
        layout.addLayout(podium_row)

        self.table = QTableWidget(0, len(TABLE_HEADERS), self)
        self.table.setHorizontalHeaderLabels(list(TABLE_HEADERS))
        self.table.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.table.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.table.verticalHeader().setVisible(False)
        self.table.horizontalHeader().setSectionResizeMode(QHeaderView.Stretch)
        layout.addWidget(self.table)

        self.status_label = QLabel(self)
        layout.addWidget(self.status_label)

    def _configure_refresh_timer(self) -> None:
        self.refresh_timer = QTimer(self)
        self.refresh_timer.setInterval(LEADERBOARD_REFRESH_INTERVAL_MS)
        self.refresh_timer.timeout.connect(self.refresh)
        self.refresh_timer.start()

    def _reload_quiz_filter(self) -> None:
        selected = self.selected_quiz_id()
        self.quiz_filter.blockSignals(True)
        self.quiz_filter.clear()
        self.quiz_filter.addItem(ALL_QUIZZES_LABEL, None)
        try:
            quizzes = self.manager.list_quizzes()
        except StorageError as exc:
            logger.warning("Could not load quizzes for the filter: %s", exc)
            quizzes = []
        for quiz in quizzes:
            self.quiz_filter.addItem(quiz.title, quiz.id)
        index = self.quiz_filter.findData(selected)
        self.quiz_filter.setCurrentIndex(max(index, 0))
        self.quiz_filter.blockSignals(False)

    def selected_quiz_id(self) -> str | None:
        return self.quiz_filter.currentData() if self.quiz_filter.count() else None

    def refresh(self) -> bool:
        try:
            rows = self.manager.get_leaderboard(self.selected_quiz_id())
        except StorageError as exc:
            logger.warning("Leaderboard refresh failed: %s", exc)
            self.status_label.setText(f"Could not refresh leaderboard: {exc}")
            return False
        self._render_podium(Leaderboard.podium(rows))
        self._render_table(rows)
        self.status_label.setText("" if rows else EMPTY_LEADERBOARD_MESSAGE)
        return True

    def _render_podium(self, podium: list[LeaderboardRow]) -> None:
        for index, label in enumerate(self.podium_labels):
            if index < len(podium):
                row = podium[index]
                label.setText(f"{PODIUM_MEDALS[index]}\n{row.display_name}\n{row.score} pts")
            else:
                label.setText(f"{PODIUM_MEDALS[index]}\n-")

    def _render_table(self, rows: list[LeaderboardRow]) -> None:
        self.table.setRowCount(len(rows))
        for row_index, row in enumerate(rows):
            values = (
                str(row.rank + 1),
                row.display_name,
                f"{row.correct_count}/{row.total_questions}",
                f"{row.accuracy_percent}%",
                row.formatted_time,
                str(row.score),
            )
            for column, value in enumerate(values):
                item = QTableWidgetItem(value)
                if row.email:
                    item.setToolTip(row.email)
                self.table.setItem(row_index, column, item)

    def _handle_manual_refresh(self) -> None:
        self._reload_quiz_filter()
        if not self.refresh():
            show_error(self, "Leaderboard", self.status_label.text())

    def _handle_about(self) -> None:
        details = f"{APP_NAME} v{APP_VERSION}\nLicense: {APP_LICENSE}\n\n{APP_ABOUT_TEXT}"
        show_info(self, f"About {APP_NAME}", details)

    def closeEvent(self, event) -> None:  # noqa: N802 - Qt override
        self.refresh_timer.stop()
        super().closeEvent(event)
