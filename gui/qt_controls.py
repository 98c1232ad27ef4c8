"""PySide6 side panel for the aurora globe.

The panel never runs its own event loop: the glfw render loop calls
``poll()``, which pumps ``QApplication.processEvents()`` once, and then
reads user intent through ``consume_changes()`` / ``pop_requests()``.
"""
from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Optional

from PIL import Image
from PIL.ImageQt import ImageQt
from PySide6 import QtCore, QtWidgets
from PySide6.QtGui import QPixmap


@dataclass(frozen=True)
class ControlState:
    show_location: bool
    show_aurora: bool


@dataclass(frozen=True)
class PanelRequests:
    reload_forecast: bool = False
    center_on_location: bool = False
    reset_view: bool = False


class AuroraControlPanel(QtCore.QObject):
    def __init__(
        self,
        *,
        show_location: bool = True,
        show_aurora: bool = True,
        has_location: bool = False,
    ) -> None:
        super().__init__()
        self._app = QtWidgets.QApplication.instance() or QtWidgets.QApplication(sys.argv or [])

        self._closed = False
        self._changed = False
        self._reload = False
        self._center = False
        self._reset = False
        self._colorbar_pixmap: QPixmap | None = None

        self._win = QtWidgets.QWidget()
        self._win.setWindowTitle("Aurora Forecast")
        self._win.setAttribute(QtCore.Qt.WidgetAttribute.WA_DeleteOnClose, True)
        self._win.setMinimumSize(300, 420)

        layout = QtWidgets.QGridLayout(self._win)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setHorizontalSpacing(8)
        layout.setVerticalSpacing(6)

        row = 0
        self._metadata_label = QtWidgets.QLabel("Waiting for forecast...")
        self._metadata_label.setWordWrap(True)
        self._metadata_label.setTextInteractionFlags(QtCore.Qt.TextInteractionFlag.TextSelectableByMouse)
        layout.addWidget(self._metadata_label, row, 0, 1, 2)

        row += 1
        layout.addWidget(self._hline(), row, 0, 1, 2)

        row += 1
        self._location_check = QtWidgets.QCheckBox("Show my location")
        self._location_check.setChecked(bool(show_location))
        self._location_check.setEnabled(bool(has_location))
        layout.addWidget(self._location_check, row, 0, 1, 2)

        row += 1
        self._aurora_check = QtWidgets.QCheckBox("Show aurora forecast")
        self._aurora_check.setChecked(bool(show_aurora))
        layout.addWidget(self._aurora_check, row, 0, 1, 2)

        row += 1
        btn_row = QtWidgets.QHBoxLayout()
        self._reload_btn = QtWidgets.QPushButton("Reload forecast")
        self._center_btn = QtWidgets.QPushButton("Center on my location")
        self._center_btn.setEnabled(bool(has_location))
        self._reset_btn = QtWidgets.QPushButton("Reset view")
        btn_row.addWidget(self._reload_btn)
        btn_row.addWidget(self._center_btn)
        btn_row.addWidget(self._reset_btn)
        btn_row.addStretch(1)
        layout.addLayout(btn_row, row, 0, 1, 2)

        row += 1
        layout.addWidget(self._hline(), row, 0, 1, 2)

        row += 1
        self._colorbar_label = QtWidgets.QLabel()
        self._colorbar_label.setAlignment(QtCore.Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self._colorbar_label, row, 0)
        ticks = QtWidgets.QLabel("100%\n\n75%\n\n50%\n\n25%\n\n0%")
        ticks.setAlignment(QtCore.Qt.AlignmentFlag.AlignLeft | QtCore.Qt.AlignmentFlag.AlignVCenter)
        layout.addWidget(ticks, row, 1)

        row += 1
        layout.addWidget(self._hline(), row, 0, 1, 2)

        row += 1
        self._status_label = QtWidgets.QLabel("Status: Idle")
        layout.addWidget(self._status_label, row, 0, 1, 2)

        row += 1
        self._detail_label = QtWidgets.QLabel("No forecast requested yet.")
        self._detail_label.setWordWrap(True)
        layout.addWidget(self._detail_label, row, 0, 1, 2)

        row += 1
        self._fps_label = QtWidgets.QLabel("Frames: 0")
        layout.addWidget(self._fps_label, row, 0, 1, 2)

        self._win.destroyed.connect(self._on_destroyed)
        self._location_check.stateChanged.connect(self._on_toggle)
        self._aurora_check.stateChanged.connect(self._on_toggle)
        self._reload_btn.clicked.connect(self._on_reload)
        self._center_btn.clicked.connect(self._on_center)
        self._reset_btn.clicked.connect(self._on_reset)

        QtWidgets.QApplication.setStyle("Fusion")
        self._win.show()

    # ---- Public API ----
    def poll(self) -> bool:
        if self._closed:
            return False
        self._app.processEvents()
        return not self._closed

    def destroy(self) -> None:
        if not self._closed:
            self._closed = True
            self._win.close()

    def consume_changes(self) -> tuple[bool, ControlState]:
        changed = self._changed
        self._changed = False
        return changed, self.current_state()

    def pop_requests(self) -> PanelRequests:
        pending = PanelRequests(
            reload_forecast=self._reload,
            center_on_location=self._center,
            reset_view=self._reset,
        )
        self._reload = self._center = self._reset = False
        return pending

    def current_state(self) -> ControlState:
        return ControlState(
            show_location=self._location_check.isChecked(),
            show_aurora=self._aurora_check.isChecked(),
        )

    def set_has_location(self, available: bool) -> None:
        self._location_check.setEnabled(bool(available))
        self._center_btn.setEnabled(bool(available))

    def set_metadata(self, text: str) -> None:
        self._metadata_label.setText(text or "")

    def set_frame_count(self, frames: int) -> None:
        self._fps_label.setText(f"Frames: {frames}")

    def update_status(self, status: str, detail: str) -> None:
        self._status_label.setText(f"Status: {status}")
        self._detail_label.setText(detail or "")

    def set_colorbar(self, image: Optional[Image.Image]) -> None:
        if image is None:
            self._colorbar_label.clear()
            self._colorbar_pixmap = None
            return
        self._colorbar_pixmap = QPixmap.fromImage(ImageQt(image.convert("RGBA")))
        self._colorbar_label.setPixmap(self._colorbar_pixmap)

    # ---- Slots ----
    def _on_destroyed(self, *_args) -> None:
        self._closed = True

    def _on_toggle(self, *_args) -> None:
        self._changed = True

    def _on_reload(self) -> None:
        self._reload = True

    def _on_center(self) -> None:
        self._center = True

    def _on_reset(self) -> None:
        self._reset = True

    @staticmethod
    def _hline() -> QtWidgets.QFrame:
        f = QtWidgets.QFrame()
        f.setFrameShape(QtWidgets.QFrame.Shape.HLine)
        f.setFrameShadow(QtWidgets.QFrame.Shadow.Sunken)
        return f
