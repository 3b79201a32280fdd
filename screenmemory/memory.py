"""
ScreenMemory session - owns the record store and capture pipeline.

Usage:
    from screenmemory.memory import ScreenMemory

    memory = ScreenMemory.open()
    record = memory.capture()
    results = memory.search("from:terminal")
"""

import logging
import shutil
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List, Optional

from .capture.orchestrator import CaptureOrchestrator
from .capture.providers import ContextProvider, OCRProvider, ScreenshotProvider
from .config import Config, get_config
from .errors import StartupFailure
from .store.query import search as run_search
from .store.record_store import Record, RecordStore

logger = logging.getLogger(__name__)


class ScreenMemory:
    """
    One running session: configuration, store and orchestrator.

    Construct with `open()` at startup and pass the instance to whatever
    needs the store.
    """

    def __init__(self, config: Config, store: RecordStore, orchestrator: CaptureOrchestrator):
        self.config = config
        self.store = store
        self.orchestrator = orchestrator

    @classmethod
    def open(cls, config: Optional[Config] = None) -> "ScreenMemory":
        """
        Create required directories, build providers and load the index.

        Raises:
            StartupFailure: if a required directory cannot be created
        """
        config = config or get_config()

        for directory in (config.storage.data_dir, config.capture.screenshots_dir):
            try:
                Path(directory).mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StartupFailure(f"Cannot create directory {directory}: {e}") from e

        store = RecordStore(config.storage.index_path)
        store.load()

        orchestrator = CaptureOrchestrator(
            store,
            config.capture.screenshots_dir,
            screenshot_provider=ScreenshotProvider(),
            ocr_provider=OCRProvider(
                language=config.capture.ocr_language,
                tesseract_config=config.capture.tesseract_config,
                timeout=config.capture.ocr_timeout,
            ),
            context_provider=ContextProvider(),
        )
        return cls(config, store, orchestrator)

    def capture(self) -> Record:
        return self.orchestrator.capture()

    def search(self, query: str) -> List[Record]:
        return run_search(query, self.store.all())

    def recent(self, count: int = 10) -> List[Record]:
        return list(self.store.all()[:max(count, 0)])

    def find(self, id_prefix: str) -> Record:
        return self.store.find(id_prefix)

    def delete(self, id_prefix: str) -> Record:
        return self.store.delete(id_prefix)

    def export(self, id_prefix: str, dest: Optional[Path] = None) -> Path:
        """
        Copy a record's image into the export directory.

        Returns:
            Path of the exported copy
        """
        record = self.store.find(id_prefix)
        dest_dir = Path(dest) if dest else self.config.export.export_dir
        dest_dir.mkdir(parents=True, exist_ok=True)
        target = dest_dir / record.filename
        shutil.copy2(record.image_path, target)
        logger.info(f"Exported {record.short_id} to {target}")
        return target

    def stats(self) -> Dict[str, Any]:
        """Summary of the collection."""
        records = self.store.all()
        by_app = Counter(record.app_name for record in records)
        return {
            'total': len(records),
            'oldest': records[-1].timestamp if records else None,
            'newest': records[0].timestamp if records else None,
            'with_text': sum(1 for record in records if record.text),
            'by_app': dict(sorted(by_app.items(), key=lambda x: x[1], reverse=True)),
        }
