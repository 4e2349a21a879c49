import logging
import os
import subprocess
from typing import Optional, Tuple

from PyQt6.QtCore import QBuffer, QIODevice, QPoint, QRect
from PyQt6.QtGui import QGuiApplication, QImage

from .errors import CaptureFailure
from .models import Bounds

logger = logging.getLogger(__name__)

class ScreenCapture:
    """Capture screen regions using grim on Wayland and PyQt elsewhere"""

    def __init__(self, grayscale: bool = True):
        self.grayscale = grayscale

    @staticmethod
    def get_virtual_desktop_geometry() -> QRect:
        """Get the geometry of the entire virtual desktop (all screens combined)"""
        total_geo = QRect()
        for screen in QGuiApplication.screens():
            total_geo = total_geo.united(screen.geometry())
        return total_geo

    def capture(self, bounds: Bounds, display_id: int = 0) -> bytes:
        """Capture one region as PNG bytes, raising CaptureFailure on any problem"""
        if bounds.width <= 0 or bounds.height <= 0:
            raise CaptureFailure(f"Invalid region size: {bounds}")

        image, origin = self._capture_screen(bounds, display_id)
        rect = QRect(bounds.x, bounds.y, bounds.width, bounds.height).translated(-origin)
        rect = rect.intersected(image.rect())
        if rect.isEmpty():
            raise CaptureFailure(
                f"Requested region {bounds.x},{bounds.y} {bounds.width}x{bounds.height} "
                f"is outside screen {display_id} bounds"
            )

        cropped = image.copy(rect)
        if self.grayscale:
            cropped = cropped.convertToFormat(QImage.Format.Format_Grayscale8)
        return self._to_png(cropped)

    @staticmethod
    def select_screen(bounds: Bounds, display_id: int = 0):
        """Screen for a region: by index, then the one under its center, then the primary"""
        screens = QGuiApplication.screens()
        if 0 <= display_id < len(screens):
            screen = screens[display_id]
            if screen.geometry().contains(QPoint(bounds.x, bounds.y)):
                return screen
        center = QPoint(bounds.x + bounds.width // 2, bounds.y + bounds.height // 2)
        return QGuiApplication.screenAt(center) or QGuiApplication.primaryScreen()

    def _capture_screen(self, bounds: Bounds, display_id: int) -> Tuple[QImage, QPoint]:
        """Return a full screen image and its top-left in desktop coordinates"""
        if os.environ.get("XDG_SESSION_TYPE") == "wayland":
            logger.debug("Trying grim backend...")
            data = self._capture_grim()
            if data:
                image = QImage.fromData(data)
                if not image.isNull():
                    return image, self.get_virtual_desktop_geometry().topLeft()

        logger.debug("Falling back to PyQt backend...")
        screen = self.select_screen(bounds, display_id)
        if screen is None:
            raise CaptureFailure("No screen available")
        pixmap = screen.grabWindow(0)
        if pixmap.isNull():
            raise CaptureFailure("PyQt capture returned an empty image")
        return pixmap.toImage(), screen.geometry().topLeft()

    @staticmethod
    def _capture_grim() -> Optional[bytes]:
        """Capture screen using grim (Generic Wayland)"""
        try:
            result = subprocess.run(["grim", "-"], capture_output=True, timeout=5)
            if result.returncode == 0:
                return result.stdout
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"grim capture error: {e}")
        return None

    @staticmethod
    def _to_png(image: QImage) -> bytes:
        buffer = QBuffer()
        buffer.open(QIODevice.OpenModeFlag.WriteOnly)
        image.save(buffer, "PNG")
        return bytes(buffer.data())
