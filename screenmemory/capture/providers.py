"""
Capture Providers - screenshots, OCR and frontmost-app context.

These wrap the operating system facilities the rest of ScreenMemory treats
as opaque services:

- ScreenshotProvider writes an image file for a given path
- OCRProvider turns an image file into recognized text
- ContextProvider reports the frontmost application, window and URL

None of them raise on ordinary failures; callers check for the image file
and receive empty text or "Unknown" instead.
"""

import logging
import platform
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Note: Install these dependencies:
# pip install mss pytesseract pillow
# macOS: pip install pyobjc-framework-Cocoa pyobjc-framework-Quartz

try:
    import mss
    import pytesseract
    from PIL import Image, ImageEnhance
except ImportError:
    print("Install dependencies: pip install mss pytesseract pillow")
    raise

# Platform-specific imports
try:
    from AppKit import NSWorkspace
    from Quartz import (
        CGWindowListCopyWindowInfo,
        kCGWindowListOptionOnScreenOnly,
        kCGNullWindowID
    )
    MACOS_AVAILABLE = True
except ImportError:
    MACOS_AVAILABLE = False

from ..store.record_store import UNKNOWN_APP

logger = logging.getLogger(__name__)

SCREENCAPTURE_BIN = "/usr/sbin/screencapture"

# AppleScript returning the front tab URL, keyed by application name
BROWSER_URL_SCRIPTS = {
    "Safari": 'tell application "Safari" to return URL of front document',
    "Google Chrome": 'tell application "Google Chrome" to return URL of active tab of front window',
    "Brave Browser": 'tell application "Brave Browser" to return URL of active tab of front window',
    "Microsoft Edge": 'tell application "Microsoft Edge" to return URL of active tab of front window',
    "Arc": 'tell application "Arc" to return URL of active tab of front window',
}


def _run(args: list, timeout: float = 2) -> Optional[str]:
    """Run a helper command and return its stripped stdout, or None."""
    try:
        result = subprocess.run(args, capture_output=True, text=True, timeout=timeout)
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"{args[0]} failed: {e}")
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


class ScreenshotProvider:
    """Writes a screenshot of the primary display to a file."""

    def __init__(self, system: Optional[str] = None):
        self.system = system or platform.system()

    def capture(self, path: Path) -> None:
        """Capture the screen to `path`. Success is judged by file existence."""
        path = Path(path)
        if self.system == "Darwin":
            self._capture_screencapture(path)
        else:
            self._capture_mss(path)

    def _capture_screencapture(self, path: Path):
        # -x = no sound
        try:
            result = subprocess.run(
                [SCREENCAPTURE_BIN, "-x", "-t", "png", str(path)],
                capture_output=True,
                text=True,
            )
        except OSError as e:
            logger.error(f"screencapture could not run: {e}")
            return
        if result.returncode != 0:
            logger.error(f"screencapture exited with {result.returncode}: {result.stderr.strip()}")

    def _capture_mss(self, path: Path):
        try:
            with mss.mss() as sct:
                # Primary monitor
                monitor = sct.monitors[1]
                screenshot = sct.grab(monitor)
                image = Image.frombytes(
                    'RGB',
                    screenshot.size,
                    screenshot.bgra,
                    'raw',
                    'BGRX'
                )
                image.save(path, format="PNG")
        except Exception as e:
            logger.error(f"Screen grab failed: {e}")


class OCRProvider:
    """Extracts text from an image file with Tesseract."""

    def __init__(
        self,
        language: str = "eng",
        tesseract_config: str = "--oem 3 --psm 3",
        timeout: float = 0,
    ):
        self.language = language
        self.tesseract_config = tesseract_config
        self.timeout = timeout

    def _preprocess(self, image: Image.Image) -> Image.Image:
        """Grayscale, contrast and sharpen for better OCR accuracy."""
        gray = image.convert('L')
        enhanced = ImageEnhance.Contrast(gray).enhance(2.0)
        return ImageEnhance.Sharpness(enhanced).enhance(1.5)

    def extract_text(self, path: Path) -> str:
        """
        Recognize text in reading order, one line per output line.

        Returns an empty string when the image cannot be read or
        recognition is unavailable.
        """
        try:
            with Image.open(path) as image:
                prepared = self._preprocess(image)
            raw = pytesseract.image_to_string(
                prepared,
                lang=self.language,
                config=self.tesseract_config,
                timeout=self.timeout,
            )
        except Exception as e:
            logger.warning(f"OCR failed for {path}: {e}")
            return ""

        lines = [line.strip() for line in raw.splitlines()]
        return "\n".join(line for line in lines if line)


@dataclass
class AppContext:
    """Frontmost application at capture time."""
    app_name: str = UNKNOWN_APP
    window_title: str = ""
    url: Optional[str] = None


class ContextProvider:
    """Reports the frontmost application, its window title and page URL."""

    def __init__(self, system: Optional[str] = None):
        self.system = system or platform.system()

    def get_context(self) -> AppContext:
        try:
            if self.system == "Darwin":
                context = self._get_context_macos()
            elif self.system == "Linux":
                context = self._get_context_linux()
            else:
                logger.debug(f"Window detection not available on {self.system}")
                context = AppContext()
        except Exception as e:
            logger.error(f"Failed to get active window: {e}")
            context = AppContext()

        if context.url is None and context.app_name in BROWSER_URL_SCRIPTS:
            context.url = self._get_browser_url(context.app_name)
        return context

    def _get_context_macos(self) -> AppContext:
        if not MACOS_AVAILABLE:
            app_name = _run([
                'osascript', '-e',
                'tell application "System Events" to get name of first application process whose frontmost is true'
            ])
            return AppContext(app_name=app_name or UNKNOWN_APP)

        workspace = NSWorkspace.sharedWorkspace()
        active_app = workspace.frontmostApplication()
        if active_app is None:
            return AppContext()
        app_name = active_app.localizedName() or UNKNOWN_APP

        window_list = CGWindowListCopyWindowInfo(
            kCGWindowListOptionOnScreenOnly,
            kCGNullWindowID
        )

        # Layer 0 is the normal window layer; the list is front-to-back
        window_title = ""
        for window in window_list or []:
            if window.get('kCGWindowOwnerName') == app_name and window.get('kCGWindowLayer', 1) == 0:
                window_title = window.get('kCGWindowName') or ""
                if window_title:
                    break

        return AppContext(app_name=app_name, window_title=window_title)

    def _get_context_linux(self) -> AppContext:
        window_title = _run(['xdotool', 'getactivewindow', 'getwindowname']) or ""
        app_name = UNKNOWN_APP
        pid = _run(['xdotool', 'getactivewindow', 'getwindowpid'])
        if pid and pid.isdigit():
            try:
                app_name = Path(f"/proc/{pid}/comm").read_text().strip() or UNKNOWN_APP
            except OSError:
                pass
        return AppContext(app_name=app_name, window_title=window_title)

    def _get_browser_url(self, app_name: str) -> Optional[str]:
        if self.system != "Darwin":
            return None
        return _run(['osascript', '-e', BROWSER_URL_SCRIPTS[app_name]])
