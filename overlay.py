"""Always-on-top overlay showing live transcript and copilot insights."""

from __future__ import annotations

from typing import Optional

from models import EnrichmentResult, SessionSnapshot

try:
    from PySide6.QtCore import Qt, QTimer
    from PySide6.QtWidgets import QApplication, QLabel, QWidget, QVBoxLayout
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QTimer = None  # type: ignore
    QApplication = None  # type: ignore
    QLabel = object  # type: ignore
    QWidget = object  # type: ignore
    QVBoxLayout = object  # type: ignore

_BASE_STYLE = "font-size: 15px; padding: 10px 14px; background: rgba(0,0,0,190);"
_STATUS_STYLE = "color: #9AE6B4; " + _BASE_STYLE + "border-top-left-radius: 12px; border-top-right-radius: 12px;"
_TEXT_STYLE = "color: white; " + _BASE_STYLE
_INSIGHT_STYLE = "color: #FBD38D; " + _BASE_STYLE + "border-bottom-left-radius: 12px; border-bottom-right-radius: 12px;"
_ERROR_STYLE = "color: #FF6B6B; " + _BASE_STYLE


def format_status(snapshot: SessionSnapshot, credits: Optional[int]) -> str:
    minutes, seconds = divmod(snapshot.listening_seconds, 60)
    state = "● Listening" if snapshot.listening else "○ Paused"
    if credits is None:
        return f"{state}  {minutes:02d}:{seconds:02d}  demo {snapshot.demo_seconds_used}s used"
    return f"{state}  {minutes:02d}:{seconds:02d}  {credits} credits"


def format_insights(result: EnrichmentResult, updated_ago: Optional[int], updating: bool) -> str:
    lines = []
    for card in result.knowledge_cards[:2]:
        head = f"{card.emoji} {card.title}".strip()
        body = card.content[0] if card.content else ""
        lines.append(f"{head}: {body}" if body else head)
    if result.predicted_paths:
        top = max(result.predicted_paths, key=lambda p: p.probability)
        lines.append(f"🔮 {top.text} ({top.probability}%)")
    if result.talking_points:
        lines.append(f"💬 {result.talking_points[0].text}")
    if result.follow_ups:
        lines.append(f"❓ {result.follow_ups[0].text}")
    if updating:
        lines.append("updating…")
    elif updated_ago is not None:
        lines.append(f"updated {updated_ago}s ago")
    return "\n".join(lines)


class OverlayWindow(QWidget):
    def __init__(self) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowFlags(
            Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool
        )
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setFixedWidth(640)

        self._status = QLabel("")
        self._status.setStyleSheet(_STATUS_STYLE)
        self._text = QLabel("")
        self._text.setWordWrap(True)
        self._text.setStyleSheet(_TEXT_STYLE)
        self._insights = QLabel("")
        self._insights.setWordWrap(True)
        self._insights.setStyleSheet(_INSIGHT_STYLE)

        layout = QVBoxLayout()
        layout.setContentsMargins(0, 0, 0, 0)
        layout.setSpacing(0)
        layout.addWidget(self._status)
        layout.addWidget(self._text)
        layout.addWidget(self._insights)
        self.setLayout(layout)

        self._error_timer: QTimer | None = None

    def _dock(self, margin: int = 24) -> None:
        """Pin the panel to the top-right corner of the primary screen."""
        screen = QApplication.primaryScreen() if QApplication is not None else None
        if screen is None:
            return
        area = screen.availableGeometry()
        self.adjustSize()
        self.move(area.right() - self.width() - margin, area.top() + margin)

    def render(self, status: str, text: str, insights: str) -> None:
        self._status.setText(status)
        if self._error_timer is None:
            self._text.setStyleSheet(_TEXT_STYLE)
            self._text.setText(text)
        self._insights.setText(insights)
        self._insights.setVisible(bool(insights))
        self._dock()
        self.show()

    def show_error(self, text: str, hide_after_ms: int = 3000) -> None:
        self._cancel_error_timer()
        self._text.setStyleSheet(_ERROR_STYLE)
        self._text.setText(f"⚠️ {text}")
        self._dock()
        self.show()
        if QTimer is not None:
            self._error_timer = QTimer()
            self._error_timer.setSingleShot(True)
            self._error_timer.timeout.connect(self._cancel_error_timer)
            self._error_timer.start(hide_after_ms)

    def _cancel_error_timer(self) -> None:
        if self._error_timer is not None:
            self._error_timer.stop()
            self._error_timer = None
