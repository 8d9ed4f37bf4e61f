"""
Archive Page Module

This module renders index.html in the output directory, listing every stored
e-paper edition, so the generated-output directory can be browsed directly.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import jinja2

from epaper.config import TEMPLATES_DIR
from epaper.generation.storage import EPaperStorage
from epaper.pdf_rendering.section_renderer import format_bengali_date

logger = logging.getLogger(__name__)


class ArchivePageGenerator:
    """Class for generating the HTML listing of stored editions."""

    def __init__(self, storage: EPaperStorage, templates_dir=None,
                 title: str = "ই-পেপার আর্কাইভ", language: str = "bn"):
        """
        Initialize the archive page generator.

        Args:
            storage: Storage whose editions are listed.
            templates_dir: Directory containing archive.html.
            title: Page title.
            language: HTML lang attribute.
        """
        self.storage = storage
        self.templates_dir = Path(templates_dir or TEMPLATES_DIR)
        self.title = title
        self.language = language

        self.env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(self.templates_dir),
            autoescape=jinja2.select_autoescape(['html', 'xml'])
        )
        self.template = self.env.get_template("archive.html")

    def generate(self, now: Optional[datetime] = None) -> str:
        """
        Write index.html for the current set of stored editions.

        Returns:
            Path to the generated HTML file.
        """
        now = now or datetime.now()
        relative_dir = self.storage.epaper_dir.relative_to(self.storage.output_dir).as_posix()

        editions = [
            {
                "file_name": edition.file_name,
                "href": f"{relative_dir}/{edition.file_name}",
                "bengali_date": format_bengali_date(edition.date),
                "size_kb": max(1, round(edition.size / 1024)),
            }
            for edition in self.storage.list_editions()
        ]

        html_content = self.template.render(
            title=self.title,
            language=self.language,
            updated=now.strftime("%Y-%m-%d %H:%M"),
            editions=editions,
        )

        self.storage.output_dir.mkdir(parents=True, exist_ok=True)
        output_path = self.storage.output_dir / "index.html"
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(html_content)

        logger.info(f"Archive page with {len(editions)} editions written to {output_path}")
        return str(output_path)
