"""
E-Paper Storage Module

Writes rendered PDFs under the publicly served output directory and maps
them to the URL they are retrievable at.
"""

import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from epaper.config import OUTPUT_DIR, EPAPER_SUBDIR, PUBLIC_URL_PREFIX
from epaper.errors import PersistFailure

logger = logging.getLogger(__name__)


@dataclass
class StoredEdition:
    file_name: str
    url: str
    date: str
    size: int


class EPaperStorage:
    """Filesystem storage for generated e-papers."""

    def __init__(self, output_dir=None, subdir: Optional[str] = None,
                 url_prefix: Optional[str] = None):
        """
        Initialize the storage.

        Args:
            output_dir: Publicly served root directory.
            subdir: Directory under output_dir holding the PDFs.
            url_prefix: URL prefix the PDFs are served under.
        """
        self.output_dir = Path(output_dir or OUTPUT_DIR)
        self.epaper_dir = self.output_dir / (subdir or EPAPER_SUBDIR)
        self.url_prefix = (url_prefix or PUBLIC_URL_PREFIX).rstrip("/")

    @staticmethod
    def make_file_name(date_text: str) -> str:
        # Millisecond timestamp plus a random token keeps same-day regenerations apart
        token = uuid.uuid4().hex[:8]
        return f"epaper-{date_text}-{int(time.time() * 1000)}-{token}.pdf"

    def url_for(self, file_name: str) -> str:
        return f"{self.url_prefix}/{file_name}"

    def save(self, date_text: str, data: bytes) -> str:
        """
        Write a rendered edition.

        Args:
            date_text: Edition date, embedded in the file name.
            data: PDF bytes.

        Returns:
            Public URL of the stored file.

        Raises:
            PersistFailure: The file could not be written.
        """
        file_name = self.make_file_name(date_text)
        path = self.epaper_dir / file_name
        created = False
        try:
            self.epaper_dir.mkdir(parents=True, exist_ok=True)
            with open(path, "xb") as f:
                created = True
                f.write(data)
        except OSError as e:
            if created and path.exists():
                path.unlink()
            raise PersistFailure(f"Could not write {path}: {str(e)}")

        logger.info(f"E-paper written to {path}")
        return self.url_for(file_name)

    def list_editions(self) -> List[StoredEdition]:
        """List stored editions, newest date first."""
        if not self.epaper_dir.exists():
            return []

        editions = []
        for path in self.epaper_dir.glob("epaper-*.pdf"):
            # epaper-YYYY-MM-DD-<ms>-<token>.pdf
            date_text = path.name[len("epaper-"):len("epaper-") + 10]
            editions.append(StoredEdition(
                file_name=path.name,
                url=self.url_for(path.name),
                date=date_text,
                size=path.stat().st_size,
            ))
        editions.sort(key=lambda edition: (edition.date, edition.file_name), reverse=True)
        return editions
