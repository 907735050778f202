from __future__ import annotations

from .core.config import ensure_config


def main() -> None:
    """Launch the PyQt6 application entrypoint if available."""
    try:
        import PyQt6.QtWidgets  # noqa: F401
        import qasync  # noqa: F401

        from .main_pyqt6 import main as ui_main
    except ImportError:
        # Headless install: just make sure the config exists
        ensure_config()
        return
    ui_main()


if __name__ == "__main__":
    main()
