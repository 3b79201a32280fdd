"""
Capture Orchestrator - turns one screenshot into one indexed record.

Steps:
1. Screenshot to a timestamped path under a per-day directory
2. Verify the image exists (missing image usually means no permission)
3. Read app/window/URL context and run OCR
4. Insert the record into the store, which persists it
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

from ..errors import CaptureFailure
from ..store.record_store import Record, RecordStore, new_record_id
from .providers import ContextProvider, OCRProvider, ScreenshotProvider

logger = logging.getLogger(__name__)

DAY_FORMAT = "%Y-%m-%d"
FILE_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"


class CaptureOrchestrator:
    """Coordinates the screenshot, OCR and context providers."""

    def __init__(
        self,
        store: RecordStore,
        screenshots_dir: Path,
        screenshot_provider: Optional[ScreenshotProvider] = None,
        ocr_provider: Optional[OCRProvider] = None,
        context_provider: Optional[ContextProvider] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.screenshots_dir = Path(screenshots_dir)
        self.screenshot_provider = screenshot_provider or ScreenshotProvider()
        self.ocr_provider = ocr_provider or OCRProvider()
        self.context_provider = context_provider or ContextProvider()
        self.clock = clock

    def image_path_for(self, timestamp: datetime) -> Path:
        """Per-day directory, filename unique to the second."""
        filename = f"screenshot_{timestamp.strftime(FILE_TIMESTAMP_FORMAT)}.png"
        return self.screenshots_dir / timestamp.strftime(DAY_FORMAT) / filename

    def capture(self) -> Record:
        """
        Capture, recognize and index the current screen.

        Raises:
            CaptureFailure: if no image was produced
            PersistenceSaveFailure: if the index could not be written
        """
        timestamp = self.clock()
        image_path = self.image_path_for(timestamp)
        image_path.parent.mkdir(parents=True, exist_ok=True)

        logger.debug(f"Capturing screenshot to {image_path}")
        self.screenshot_provider.capture(image_path)

        if not image_path.exists():
            raise CaptureFailure(image_path)

        context = self.context_provider.get_context()
        text = self.ocr_provider.extract_text(image_path)

        record = Record(
            id=new_record_id(),
            timestamp=timestamp,
            image_path=image_path,
            text=text,
            app_name=context.app_name,
            window_title=context.window_title,
            url=context.url,
        )
        self.store.insert(record)

        logger.info(f"Captured: {record.app_name} - {len(text)} chars")
        return record
