"""Screen capture, OCR and watch mode for ScreenMemory."""

from .providers import AppContext, ContextProvider, OCRProvider, ScreenshotProvider
from .orchestrator import CaptureOrchestrator
from .scheduler import WatchScheduler, WatchState

__all__ = [
    "AppContext",
    "ContextProvider",
    "OCRProvider",
    "ScreenshotProvider",
    "CaptureOrchestrator",
    "WatchScheduler",
    "WatchState",
]
