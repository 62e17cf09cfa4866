"""Application entrypoint."""

from __future__ import annotations

import asyncio
import logging
import sys

from account import Account, DemoUsage
from api_client import CopilotApiClient
from config import JsonConfigStore
from hotkey import ToggleHotkeyAdapter
from models import SessionSignal
from overlay import OverlayWindow, format_insights, format_status
from recognizer import DashscopeSpeechEngine
from recorder import MicrophonePermission, MicrophoneRecorder
from scheduler import LoopScheduler
from session_controller import SessionController

log = logging.getLogger("live_copilot")

try:
    from PySide6.QtCore import QObject, QSize, QTimer, Signal
    from PySide6.QtGui import QAction, QBrush, QColor, QIcon, QPainter, QPixmap
    from PySide6.QtWidgets import QApplication, QInputDialog, QLineEdit, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#888888"       # grey
ICON_LISTENING = "#FF4444"  # red

SIGNAL_TEXT = {
    SessionSignal.TRIAL_ENDED: ("Trial ended", "Your free demo time is used up. Sign in to keep listening."),
    SessionSignal.LOW_CREDITS: ("Low credits", "You have 10 or fewer credits left."),
    SessionSignal.OUT_OF_CREDITS: ("Out of credits", "Listening stopped: your credit balance is empty."),
}


class UIBridge(QObject):
    render_signal = Signal(str, str, str, bool)  # status, text, insights, listening
    error_signal = Signal(str)
    session_signal = Signal(str)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        self.overlay = OverlayWindow()
        self.ui = UIBridge()
        self.ui.render_signal.connect(self._on_render_ui)
        self.ui.error_signal.connect(self.overlay.show_error)
        self.ui.session_signal.connect(self._on_session_signal_ui)

        self.scheduler = LoopScheduler()
        self.account = Account()
        self.microphone = MicrophonePermission(self.config_store)
        self.api = CopilotApiClient(
            self.config_store.get_api_base_url(),
            token_provider=self.account.bearer_token,
        )
        self.controller = SessionController(
            recorder=MicrophoneRecorder(),
            engine=DashscopeSpeechEngine(api_key=self.config_store.get_api_key()),
            scheduler=self.scheduler,
            enrichment_service=self.api,
            ledger=self.api,
            account=self.account,
            demo_usage=DemoUsage(self.config_store),
            microphone=self.microphone,
            on_signal=self._on_session_signal,
            on_error=self._on_error,
            on_change=self._publish,
        )
        self.hotkey = ToggleHotkeyAdapter(hotkey_name=self.config_store.get_hotkey())

        self._refresh_timer = QTimer()
        self._refresh_timer.timeout.connect(lambda: self._core(self._publish))
        self._refresh_timer.start(1000)

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("Live Copilot: Ready")
        self._setup_menu()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()

        entries = [
            ("Start / Stop Listening", lambda: self._core(self.controller.toggle_listening)),
            ("Bookmark Last Line", lambda: self._core(self._bookmark_last)),
            ("Clear Transcript", lambda: self._core(self.controller.clear)),
            (None, None),
            ("Sign In…", self._sign_in),
            ("Sign Out", lambda: self._core(self.controller.sign_out)),
            ("Set DashScope API Key", self._set_api_key),
            (None, None),
            ("Quit", self.quit),
        ]
        for label, handler in entries:
            if label is None:
                menu.addSeparator()
                continue
            action = QAction(label, menu)
            action.triggered.connect(handler)
            menu.addAction(action)

        self.tray.setContextMenu(menu)

    def _core(self, fn, *args) -> None:  # noqa: ANN001
        """Run ``fn`` on the core event loop."""
        self.scheduler.call_soon_threadsafe(fn, *args)

    def _sign_in(self) -> None:
        token, ok = QInputDialog.getText(None, "Sign In", "Access token", QLineEdit.Password)
        if not ok or not token.strip():
            return
        self._core(lambda: self.scheduler.spawn(self._sign_in_core(token.strip())))

    async def _sign_in_core(self, token: str) -> None:
        credits = await self.controller.sign_in(token)
        log.info("account ready with %d credits", credits)

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "DashScope API Key")
        if not ok:
            return
        self.config_store.set_api_key(value)
        QMessageBox.information(None, "Saved", "API Key saved. Restart the app to apply.")

    def _bookmark_last(self) -> None:
        entries = self.controller.transcript.entries
        if entries:
            self.controller.transcript.toggle_bookmark(entries[-1].id)
            self._publish()

    # ------------------------------------------------------------------
    # Core callbacks (run on the loop thread → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _publish(self) -> None:
        snapshot = self.controller.snapshot()
        credits = self.account.credits if self.account.is_authenticated else None
        lines = [
            f"{'★ ' if e.bookmarked else ''}{e.time} {e.text}"
            for e in self.controller.transcript.entries[-2:]
        ]
        if snapshot.interim_text:
            lines.append(f"… {snapshot.interim_text}")
        enrichment = self.controller.enrichment
        insights = format_insights(
            enrichment.result,
            enrichment.last_update_seconds_ago,
            enrichment.is_updating,
        )
        if enrichment.error:
            insights = f"{insights}\n⚠️ {enrichment.error}".strip()
        self.ui.render_signal.emit(
            format_status(snapshot, credits),
            "\n".join(lines),
            insights,
            snapshot.listening,
        )

    def _on_session_signal(self, signal: SessionSignal) -> None:
        self.ui.session_signal.emit(signal.value)

    def _on_error(self, code: str, message: str) -> None:
        self.ui.error_signal.emit(f"{code}: {message}")

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_render_ui(self, status: str, text: str, insights: str, listening: bool) -> None:
        self.tray.setIcon(_create_icon(ICON_LISTENING if listening else ICON_IDLE))
        self.tray.setToolTip("Live Copilot: Listening" if listening else "Live Copilot: Ready")
        if listening or text or insights:
            self.overlay.render(status, text, insights)

    def _on_session_signal_ui(self, value: str) -> None:
        signal = SessionSignal(value)
        if signal == SessionSignal.MIC_PERMISSION_REQUIRED:
            answer = QMessageBox.question(
                None,
                "Microphone",
                "Live Copilot needs your microphone to transcribe the conversation. Allow?",
            )
            if answer == QMessageBox.Yes:
                self.microphone.grant()
                self._core(self.controller.set_listening, True)
            else:
                self.microphone.deny()
            return
        title, text = SIGNAL_TEXT[signal]
        QMessageBox.information(None, title, text)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.scheduler.start_thread()
        try:
            self.hotkey.start(on_toggle=lambda: self._core(self.controller.toggle_listening))
        except Exception as exc:
            log.warning("hotkey disabled: %s", exc)
            self.overlay.show_error(f"Hotkey disabled: {exc}")
        return self.app.exec()

    def quit(self) -> None:
        self.hotkey.stop()
        self._refresh_timer.stop()
        self._core(self.controller.set_listening, False)
        closing = asyncio.run_coroutine_threadsafe(self.api.aclose(), self.scheduler.loop)
        try:
            closing.result(timeout=2.0)
        except Exception as exc:
            log.debug("http client close failed: %s", exc)
        self.scheduler.stop_thread()
        self.app.quit()


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
