import sys
from pathlib import Path

from PySide6.QtWidgets import QApplication, QMainWindow

from assetbrowser.app_logging import get_logger
from assetbrowser.settings_models import BrowserConfig, default_browser_settings
from assetbrowser.settings_store import JsonSettingsStore
from assetbrowser.ui.controllers.browser_context import BrowserContext
from assetbrowser.ui.multi_panel_host import AssetBrowserHost

APP_NAME = "Asset Browser"
SETTINGS_RELATIVE_PATH = Path(".assetbrowser") / "settings.json"

logger = get_logger("main")


def _canonical_existing_dir(path_value: str | Path | None) -> str | None:
    text = str(path_value or "").strip()
    if not text:
        return None
    candidate = Path(text).expanduser()
    if not candidate.is_dir():
        return None
    try:
        return str(candidate.resolve())
    except OSError:
        return str(candidate)


def _load_config(project_root: str) -> BrowserConfig:
    store = JsonSettingsStore(Path(project_root) / SETTINGS_RELATIVE_PATH, default_browser_settings())
    store.load()
    if store.last_error:
        logger.warning("Using default browser settings: %s", store.last_error)
    return BrowserConfig.from_mapping(store.get("asset_browser"))


class AssetBrowserWindow(QMainWindow):
    def __init__(self, context: BrowserContext) -> None:
        super().__init__()
        self.setWindowTitle(f"{APP_NAME} [{Path(context.project_root).name}]")
        self.resize(1100, 700)
        self.host = AssetBrowserHost(context, parent=self)
        self.setCentralWidget(self.host)
        self.host.statusMessage.connect(lambda text: self.statusBar().showMessage(text, 4000))

    def closeEvent(self, event):
        self.host.shutdown()
        super().closeEvent(event)


if __name__ == "__main__":
    cli_args = sys.argv[1:]
    project_root = _canonical_existing_dir(cli_args[0] if cli_args else Path.cwd())
    if project_root is None:
        print(f"Not a directory: {cli_args[0]}", file=sys.stderr)
        sys.exit(2)

    app = QApplication([sys.argv[0], *cli_args[1:]])
    app.setStyle("Fusion")
    app.setApplicationName(APP_NAME)
    context = BrowserContext.for_project(project_root, _load_config(project_root))
    window = AssetBrowserWindow(context)
    window.show()
    sys.exit(app.exec())
