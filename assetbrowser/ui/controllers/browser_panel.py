"""Base class shared by every panel hosted in the asset browser."""

from __future__ import annotations

import os

from PySide6.QtCore import Signal
from PySide6.QtWidgets import QApplication, QInputDialog, QMessageBox, QWidget

from assetbrowser.app_logging import get_logger
from assetbrowser.services import file_operations as ops
from assetbrowser.services.remote_packages import PackageRecord
from assetbrowser.tree.expansion_state import ExpansionStateStore
from assetbrowser.ui.controllers.browser_context import BrowserContext

logger = get_logger(__name__)


class BrowserPanel(QWidget):
    PANEL_TYPE = ""

    folderSelected = Signal(str)
    fileSelected = Signal(str)
    assetSelected = Signal(object)        # AssetRecord
    packagesLoaded = Signal(list)         # list[PackageRecord]
    statusMessage = Signal(str)
    operationError = Signal(str, str)     # title, message

    def __init__(self, panel_id: str, context: BrowserContext, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.panel_id = panel_id
        self.context = context
        self.store: ExpansionStateStore | None = None
        self._closed = False

    @property
    def panel_type(self) -> str:
        return self.PANEL_TYPE

    def show_folder(self, path: str) -> None:
        pass

    def show_packages(self, packages: list[PackageRecord]) -> None:
        pass

    def show_cloud_packages(self, packages: list[PackageRecord]) -> None:
        pass

    def refresh(self) -> None:
        pass

    def save_state(self) -> None:
        if self.store is not None:
            self.store.flush()

    def set_panel_id(self, panel_id: str) -> None:
        """Re-key the panel after the host reordered it; state moves to the new key."""
        if panel_id == self.panel_id:
            return
        self.panel_id = panel_id
        if self.store is not None:
            self.store.panel_id = panel_id
            self.store.flush()

    def close_panel(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.save_state()

    def after_path_change(self, folder: str, focus_path: str | None = None) -> None:
        """Called after a file operation changed the contents of ``folder``."""
        self.refresh()

    # ---------- Feedback ----------

    def confirm(self, title: str, prompt: str) -> bool:
        answer = QMessageBox.question(
            self,
            title,
            prompt,
            QMessageBox.StandardButton.Yes | QMessageBox.StandardButton.No,
            QMessageBox.StandardButton.No,
        )
        return answer == QMessageBox.StandardButton.Yes

    def show_error(self, title: str, message: str) -> None:
        logger.warning("%s: %s", title, message.replace("\n", " "))
        self.operationError.emit(title, message)
        self.statusMessage.emit(message.replace("\n", " "))
        if self.isVisible():
            QMessageBox.warning(self, title, message)

    def copy_path_to_clipboard(self, path: str) -> None:
        QApplication.clipboard().setText(path)
        self.statusMessage.emit(f"Copied path: {path}")

    def copy_relative_path(self, path: str) -> None:
        relative = self.context.display_path(path)
        QApplication.clipboard().setText(relative)
        self.statusMessage.emit(f"Copied relative path: {relative}")

    def open_package_page(self, package: PackageRecord) -> bool:
        url = self.context.package_page_url(package.ident)
        if url is None:
            self.statusMessage.emit("No package page address is configured.")
            return False
        self.context.open_url(url)
        return True

    def prompt_simple_name(self, title: str, label: str, initial: str = "") -> str | None:
        while True:
            value, ok = QInputDialog.getText(self, title, label, text=initial)
            if not ok:
                return None
            problem = ops.validate_simple_name(value)
            if problem is None:
                return str(value).strip()
            QMessageBox.warning(self, title, problem)

    # ---------- File operations ----------

    def rename_path(self, path: str, new_name: str) -> str | None:
        if self.context.is_boundary(path):
            return None
        try:
            new_path = ops.rename_path(self.context.fs, path, new_name)
        except ops.FileOperationError as exc:
            self.show_error("Rename", str(exc))
            return None
        if new_path is None:
            return None
        self.after_path_change(os.path.dirname(new_path), new_path)
        self.statusMessage.emit(f"Renamed '{os.path.basename(path)}' to '{os.path.basename(new_path)}'")
        return new_path

    def duplicate_path(self, path: str) -> str | None:
        try:
            target = ops.duplicate_path(self.context.fs, path)
        except ops.FileOperationError as exc:
            self.show_error("Duplicate", str(exc))
            return None
        self.after_path_change(os.path.dirname(target), target)
        return target

    def delete_path(self, path: str, *, confirmed: bool = False) -> bool:
        if self.context.is_boundary(path):
            return False
        kind = "folder" if self.context.fs.is_dir(path) else "file"
        if not confirmed and not self.confirm("Confirm Delete", f"Delete this {kind}?\n\n{path}"):
            return False
        try:
            ops.delete_path(self.context.fs, path, compiled_suffix=self.context.config.rules.compiled_suffix)
        except ops.FileOperationError as exc:
            self.show_error("Delete", str(exc))
            self.after_path_change(os.path.dirname(path))
            return False
        self.after_path_change(os.path.dirname(path))
        self.statusMessage.emit(f"Deleted {path}")
        return True

    def create_file_in(self, folder: str, name: str) -> str | None:
        try:
            target = ops.create_file(self.context.fs, folder, name)
        except ops.FileOperationError as exc:
            self.show_error("Create File", str(exc))
            return None
        self.after_path_change(folder, target)
        return target

    def create_folder_in(self, folder: str, name: str | None = None) -> str | None:
        try:
            target = ops.create_folder(self.context.fs, folder, name)
        except ops.FileOperationError as exc:
            self.show_error("Create Folder", str(exc))
            return None
        self.after_path_change(folder, target)
        return target

    def handle_drop(self, sources: list[str], target_dir: str, copy: bool) -> ops.DropPlan:
        """Apply file drops now; folder moves wait for confirmation."""
        plan = ops.plan_drop(self.context.fs, sources, target_dir, copy=copy)
        done, failures = ops.apply_drop_items(self.context.fs, plan.immediate)
        if plan.needs_confirmation:
            names = "\n".join(os.path.basename(item.source) for item in plan.needs_confirmation[:8])
            prompt = f"Move {len(plan.needs_confirmation)} folder(s) into\n{target_dir}?\n\n{names}"
            if self.confirm("Move Folders", prompt):
                moved, folder_failures = ops.apply_drop_items(self.context.fs, plan.needs_confirmation)
                done.extend(moved)
                failures.extend(folder_failures)
        if done:
            self.refresh()
        if failures:
            summary = "\n".join(str(exc) for exc in failures[:8])
            self.show_error("Copy Failed" if copy else "Move Failed", summary)
        return plan

    def prompt_rename(self, path: str) -> None:
        new_name = self.prompt_simple_name("Rename", "New name:", os.path.basename(path))
        if new_name is not None:
            self.rename_path(path, new_name)

    def prompt_new_file(self, folder: str) -> None:
        name = self.prompt_simple_name("New File", "File name:")
        if name is not None:
            self.create_file_in(folder, name)
