from __future__ import annotations

import asyncio
import sys

APP_NAME = "GuildBridge"


def _apply_theme(app, theme: str) -> None:
    try:
        from qt_material import apply_stylesheet, list_themes
    except ImportError:
        return
    themes = list_themes()
    chosen = theme if theme in themes else (themes[0] if themes else None)
    if chosen:
        apply_stylesheet(app, theme=chosen)


def build_bridge(cfg: dict):
    """Construct the context and the Qt bridge; the event loop must already be set."""
    from .chat.client import DiscordClient
    from .core.config import BridgeSettings
    from .core.context import BridgeContext
    from .core.credentials import CredentialStore
    from .logging.log_writer import LogWriter
    from .ui_pyqt6.bridge import BridgeQt

    settings = BridgeSettings.from_config(cfg)
    log = LogWriter(settings.log_dir) if settings.log_enabled else None
    ctx = BridgeContext(
        settings=settings,
        client=DiscordClient(),
        credentials=CredentialStore(),
        log=log,
    )
    return BridgeQt(ctx)


def main() -> int:
    # Import Qt modules only when running the app
    from PyQt6.QtCore import QTimer
    from PyQt6.QtWidgets import QApplication, QInputDialog, QLineEdit, QMainWindow
    from qasync import QEventLoop

    from .core.config import BridgeSettings, ensure_config

    cfg = ensure_config()
    app = QApplication(sys.argv)
    app.setApplicationName(APP_NAME)
    _apply_theme(app, BridgeSettings.from_config(cfg).theme)

    loop = QEventLoop(app)
    asyncio.set_event_loop(loop)
    bridge = build_bridge(cfg)

    # The chat UI itself lives elsewhere; this shell only hosts the status line
    win = QMainWindow()
    win.setWindowTitle(APP_NAME)
    win.resize(1280, 720)
    bridge.statusChanged.connect(lambda s: win.statusBar().showMessage(s, 8000))

    def _ask_token() -> None:
        token, ok = QInputDialog.getText(
            win, APP_NAME, "Bot token:", QLineEdit.EchoMode.Password
        )
        if ok and token.strip():
            bridge.submitToken(token.strip())
        elif not win.isVisible():
            app.quit()

    def _show_main() -> None:
        win.show()

    # Defer so the modal prompt never runs inside a bridge coroutine
    bridge.credentialRequested.connect(lambda: QTimer.singleShot(0, _ask_token))
    bridge.mainWindowRequested.connect(_show_main)
    app.aboutToQuit.connect(bridge.windowClosed)

    bridge.start()
    with loop:
        return loop.run_forever()


if __name__ == "__main__":
    raise SystemExit(main())
