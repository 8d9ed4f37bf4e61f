"""
Section Renderer Module

This module draws the sections of an e-paper page onto a ReportLab canvas.
Each article-bearing section lays out title and truncated body blocks inside
its own rectangle using one of four strategies (single, double, triple,
grid). Lines that would cross the bottom of their rectangle or cell are not
drawn, so a section never paints outside the area its template gives it.

Header, footer and the weather block render static masthead content. The
weather block sits in a free band of the page when there is one, otherwise
at the bottom of the lowest article section, which then stops above it.
"""

import logging
import os
from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Tuple, Any

from reportlab.lib.colors import black
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.ttfonts import TTFont

from epaper.config import (
    REGULAR_FONT_PATH, BOLD_FONT_PATH, TRUNCATION_SUFFIX, SITE_ATTRIBUTION,
    WEATHER_TITLE, WEATHER_TEXT
)
from epaper.layout.template_registry import Rect, Section, Template
from epaper.models import Article

logger = logging.getLogger(__name__)

# Body preview length per strategy, in characters
TRUNCATION_BUDGETS = {
    "single": 200,
    "double": 150,
    "triple": 100,
    "grid": 80,
}

# Most articles a strategy can show regardless of section capacity
STRATEGY_CAPS = {
    "triple": 3,
    "grid": 4,
}

SECTION_TITLES = {
    "breaking": "জরুরি খবর",
    "main": "প্রধান সংবাদ",
    "secondary": "অন্যান্য সংবাদ",
    "sidebar": "পার্শ্ব সংবাদ",
}

SECTION_HEADING_SIZE = 14
SECTION_HEADING_SPACE = 25
SINGLE_MIN_SPACE = 50
DOUBLE_ROW_HEIGHT = 120
DOUBLE_MIN_SPACE = 100
COLUMN_GUTTER = 10
MASTHEAD_SIZES = (24, 20, 16)
MASTHEAD_INFO_OFFSET = 35
WEATHER_HEIGHT = 30
WEATHER_GAP = 5

BENGALI_DIGITS = str.maketrans("0123456789", "০১২৩৪৫৬৭৮৯")


def to_bengali_digits(text: Any) -> str:
    return str(text).translate(BENGALI_DIGITS)


def format_bengali_date(date_text: str) -> str:
    """
    Format an ISO date the way bn-BD locales print it: d/m/yyyy in Bengali numerals.

    Unparseable input is returned with its digits converted.
    """
    try:
        parsed = date.fromisoformat(str(date_text)[:10])
    except ValueError:
        return to_bengali_digits(date_text)
    return to_bengali_digits(f"{parsed.day}/{parsed.month}/{parsed.year}")


def truncate_preview(text: Optional[str], budget: int, suffix: Optional[str] = None) -> str:
    """
    Cut a body to a fixed number of characters and append the ellipsis suffix.

    The suffix is appended even when the body is shorter than the budget.
    """
    suffix = TRUNCATION_SUFFIX if suffix is None else suffix
    return (text or "")[:budget] + suffix


@dataclass(frozen=True)
class FontSet:
    regular: str = "Helvetica"
    bold: str = "Helvetica-Bold"


def register_fonts(regular_path: Optional[str] = None, bold_path: Optional[str] = None) -> FontSet:
    """
    Register TTF fonts for Bengali text. Falls back to Helvetica if not found.

    Args:
        regular_path: Path to the regular weight TTF.
        bold_path: Path to the bold weight TTF. Defaults to the regular one.

    Returns:
        The font names to draw with.
    """
    regular_path = regular_path if regular_path is not None else REGULAR_FONT_PATH
    bold_path = bold_path if bold_path is not None else BOLD_FONT_PATH

    if not regular_path or not os.path.exists(regular_path):
        if regular_path:
            logger.warning(f"Font not found at {regular_path}, using Helvetica")
        return FontSet()

    registered = pdfmetrics.getRegisteredFontNames()
    if "EPaperRegular" not in registered:
        pdfmetrics.registerFont(TTFont("EPaperRegular", regular_path))
    if "EPaperBold" not in registered:
        if bold_path and os.path.exists(bold_path):
            pdfmetrics.registerFont(TTFont("EPaperBold", bold_path))
        else:
            pdfmetrics.registerFont(TTFont("EPaperBold", regular_path))
    logger.info(f"Registered e-paper fonts from {regular_path}")
    return FontSet(regular="EPaperRegular", bold="EPaperBold")


def wrap_text(text: str, font_name: str, font_size: float, width: float) -> List[str]:
    """
    Wrap text to a column width.

    Words wider than the column are broken by character so no line is wider
    than the column.
    """
    lines = []
    for line in simpleSplit(text or "", font_name, font_size, width):
        if pdfmetrics.stringWidth(line, font_name, font_size) <= width:
            lines.append(line)
            continue
        current = ""
        for char in line:
            if current and pdfmetrics.stringWidth(current + char, font_name, font_size) > width:
                lines.append(current)
                current = char.lstrip()
            else:
                current += char
        if current:
            lines.append(current)
    return lines


@dataclass
class PlacedArticle:
    article_id: Any
    key: Tuple[str, Any]
    title: str
    preview: str
    x: float
    y: float
    width: float
    height: float


@dataclass
class RenderedSection:
    section_type: str
    heading: Optional[str] = None
    placed: List[PlacedArticle] = field(default_factory=list)

    @property
    def article_count(self) -> int:
        return len(self.placed)


class SectionRenderer:
    """Draws template sections onto one page of a ReportLab canvas."""

    def __init__(self, canvas, template: Template, fonts: Optional[FontSet] = None,
                 truncation_suffix: Optional[str] = None):
        """
        Initialize the renderer.

        Args:
            canvas: reportlab.pdfgen.canvas.Canvas sized to the template page.
            template: Layout template being drawn.
            fonts: Font names to use. Defaults to Helvetica.
            truncation_suffix: Suffix appended to body previews.
        """
        self.canvas = canvas
        self.template = template
        self.fonts = fonts or FontSet()
        self.truncation_suffix = TRUNCATION_SUFFIX if truncation_suffix is None else truncation_suffix
        self.page_height = template.page_size.height
        self.weather_rect: Optional[Rect] = None
        # Bottom edge overrides for sections that share space with the weather block
        self.section_limits = {}

    def _draw_lines(self, text: str, font_name: str, font_size: float, x: float, top: float,
                    width: float, bottom: float, line_gap: float = 1) -> float:
        """
        Draw wrapped text downward from top, skipping lines that would cross bottom.

        Returns:
            Height the full wrapped text occupies, drawn or not.
        """
        lines = wrap_text(text, font_name, font_size, width)
        leading = font_size * 1.2 + line_gap
        self.canvas.setFont(font_name, font_size)
        for i, line in enumerate(lines):
            line_top = top + i * leading
            if line_top + leading > bottom:
                break
            self.canvas.drawString(x, self.page_height - (line_top + font_size), line)
        return len(lines) * leading

    def _draw_rule(self, x: float, y: float, width: float, line_width: float) -> None:
        self.canvas.setStrokeColor(black)
        self.canvas.setLineWidth(line_width)
        self.canvas.line(x, self.page_height - y, x + width, self.page_height - y)

    def _place_article(self, article: Article, x: float, top: float, width: float, bottom: float,
                       title_size: float, body_size: float, budget: int,
                       title_gap: float, title_spacing: float) -> Tuple[PlacedArticle, float]:
        title_height = self._draw_lines(article.title, self.fonts.bold, title_size,
                                        x, top, width, bottom, line_gap=title_gap)
        preview = truncate_preview(article.content, budget, self.truncation_suffix)
        body_top = top + title_height + title_spacing
        body_height = self._draw_lines(preview, self.fonts.regular, body_size,
                                       x, body_top, width, bottom)
        used = title_height + title_spacing + body_height
        placed = PlacedArticle(
            article_id=article.id,
            key=article.key,
            title=article.title,
            preview=preview,
            x=x,
            y=top,
            width=width,
            height=min(used, bottom - top),
        )
        return placed, used

    def render_section(self, section: Section, articles: List[Article]) -> RenderedSection:
        """
        Render a section's assigned articles inside its rectangle.

        Args:
            section: Section to draw.
            articles: Articles assigned by the distributor.

        Returns:
            What was drawn. Empty input and static sections draw nothing.
        """
        rendered = RenderedSection(section_type=section.type)
        if section.is_static or not articles:
            return rendered

        cap = min(section.max_articles, STRATEGY_CAPS.get(section.layout, section.max_articles))
        articles = articles[:cap]
        if not articles:
            return rendered

        rect = section.position
        top = rect.y
        bottom = self.section_limits.get(section.type, rect.bottom)

        if section.type != "main":
            rendered.heading = SECTION_TITLES.get(section.type, section.type)
            self._draw_lines(rendered.heading, self.fonts.bold, SECTION_HEADING_SIZE,
                             rect.x, top, rect.width, bottom)
            top += SECTION_HEADING_SPACE

        height = bottom - top
        if height <= 0:
            logger.warning(f"Section '{section.type}' has no room below its heading")
            return rendered

        layout = getattr(self, f"_layout_{section.layout}")
        rendered.placed = layout(articles, rect.x, top, rect.width, height)
        logger.debug(f"Rendered {len(rendered.placed)}/{len(articles)} articles in '{section.type}'")
        return rendered

    def _layout_single(self, articles: List[Article], x: float, y: float,
                       width: float, height: float) -> List[PlacedArticle]:
        bottom = y + height
        min_space = min(SINGLE_MIN_SPACE, height)
        cursor = y
        placed = []
        for article in articles:
            if bottom - cursor < min_space:
                break
            item, used = self._place_article(article, x, cursor, width, bottom,
                                             title_size=12, body_size=10,
                                             budget=TRUNCATION_BUDGETS["single"],
                                             title_gap=2, title_spacing=5)
            placed.append(item)
            cursor += used + 15
        return placed

    def _layout_double(self, articles: List[Article], x: float, y: float,
                       width: float, height: float) -> List[PlacedArticle]:
        column_width = (width - COLUMN_GUTTER) / 2
        bottom = y + height
        min_space = min(DOUBLE_MIN_SPACE, height)
        placed = []
        for i, article in enumerate(articles):
            column_x = x if i % 2 == 0 else x + column_width + COLUMN_GUTTER
            row_top = y + (i // 2) * DOUBLE_ROW_HEIGHT
            if bottom - row_top < min_space:
                break
            row_bottom = min(row_top + DOUBLE_ROW_HEIGHT, bottom)
            item, _ = self._place_article(article, column_x, row_top, column_width, row_bottom,
                                          title_size=11, body_size=9,
                                          budget=TRUNCATION_BUDGETS["double"],
                                          title_gap=2, title_spacing=3)
            placed.append(item)
        return placed

    def _layout_triple(self, articles: List[Article], x: float, y: float,
                       width: float, height: float) -> List[PlacedArticle]:
        column_width = (width - 2 * COLUMN_GUTTER) / 3
        bottom = y + height
        placed = []
        for i, article in enumerate(articles[:3]):
            column_x = x + i * (column_width + COLUMN_GUTTER)
            item, _ = self._place_article(article, column_x, y, column_width, bottom,
                                          title_size=10, body_size=8,
                                          budget=TRUNCATION_BUDGETS["triple"],
                                          title_gap=1, title_spacing=3)
            placed.append(item)
        return placed

    def _layout_grid(self, articles: List[Article], x: float, y: float,
                     width: float, height: float) -> List[PlacedArticle]:
        cols, rows = 2, 2
        cell_width = (width - COLUMN_GUTTER) / cols
        cell_height = (height - COLUMN_GUTTER) / rows
        placed = []
        for i, article in enumerate(articles[:cols * rows]):
            cell_x = x + (i % cols) * (cell_width + COLUMN_GUTTER)
            cell_y = y + (i // cols) * (cell_height + COLUMN_GUTTER)
            item, _ = self._place_article(article, cell_x, cell_y, cell_width, cell_y + cell_height,
                                          title_size=10, body_size=8,
                                          budget=TRUNCATION_BUDGETS["grid"],
                                          title_gap=1, title_spacing=3)
            placed.append(item)
        return placed

    def render_header(self, title: str, date_text: str) -> bool:
        """Draw the masthead: title, Bengali date, edition and a divider. False if the template has no header."""
        section = self.template.find_section("header")
        if section is None:
            return False

        rect = section.position
        self.canvas.setFillColor(black)

        title_size, masthead = self._fit_masthead(title, rect.width)
        self.canvas.setFont(self.fonts.bold, title_size)
        if masthead:
            self.canvas.drawCentredString(rect.x + rect.width / 2,
                                          self.page_height - (rect.y + title_size), masthead)

        half = rect.width / 2
        info_leading = 12 * 1.2 + 1
        # Short headers pull the date line up so it stays inside the band
        info_top = min(rect.y + MASTHEAD_INFO_OFFSET, rect.bottom - info_leading - 1)
        self._draw_lines(f"তারিখ: {format_bengali_date(date_text)}", self.fonts.regular, 12,
                         rect.x, info_top, half, rect.bottom)
        self.canvas.setFont(self.fonts.regular, 12)
        self.canvas.drawRightString(rect.right, self.page_height - (info_top + 12),
                                    f"সংস্করণ: {date_text}")

        self._draw_rule(rect.x, rect.bottom - 2, rect.width, 2)
        return True

    def _fit_masthead(self, title: str, width: float) -> Tuple[float, str]:
        """Largest masthead size at which the title fits one line; the first line otherwise."""
        lines = []
        for size in MASTHEAD_SIZES:
            lines = wrap_text(title, self.fonts.bold, size, width)
            if len(lines) <= 1:
                return size, lines[0] if lines else ""
        logger.warning(f"Masthead title too long for one line, showing '{lines[0]}'")
        return MASTHEAD_SIZES[-1], lines[0]

    def render_footer(self, date_text: str, site_attribution: Optional[str] = None) -> bool:
        """Draw the footer: divider, site attribution, page number and date. False if the template has no footer."""
        section = self.template.find_section("footer")
        if section is None:
            return False

        rect = section.position
        self._draw_rule(rect.x, rect.y, rect.width, 1)

        half = rect.width / 2
        self._draw_lines(site_attribution or SITE_ATTRIBUTION, self.fonts.regular, 8,
                         rect.x, rect.y + 10, half, rect.bottom)
        self.canvas.setFont(self.fonts.regular, 8)
        self.canvas.drawRightString(rect.right, self.page_height - (rect.y + 18),
                                    f"পৃষ্ঠা ১ | {format_bengali_date(date_text)}")
        return True

    def reserve_weather(self) -> Optional[Rect]:
        """
        Pick the rectangle the weather block will occupy.

        The lowest free band of the content box tall enough for the block is
        used. Failing that, the block takes the bottom of the lowest article
        section, and that section's articles stop above it.

        Returns:
            The reserved rectangle, or None if the page has no room.
        """
        if self.weather_rect is not None:
            return self.weather_rect

        box = self.template.content_box
        needed = WEATHER_HEIGHT + 2 * WEATHER_GAP
        cursor = box.y
        gaps = []
        for section in sorted(self.template.sections, key=lambda s: s.position.y):
            if section.position.y - cursor >= needed:
                gaps.append(cursor)
            cursor = max(cursor, section.position.bottom)
        if box.bottom - cursor >= needed:
            gaps.append(cursor)

        if gaps:
            self.weather_rect = Rect(box.x, gaps[-1] + WEATHER_GAP, box.width, WEATHER_HEIGHT)
            return self.weather_rect

        hosts = [
            section for section in self.template.sections
            if not section.is_static and section.position.height >= needed + SECTION_HEADING_SPACE
        ]
        if not hosts:
            logger.warning(f"No room for the weather block on layout '{self.template.id}'")
            return None

        host = max(hosts, key=lambda s: s.position.bottom)
        rect = host.position
        self.weather_rect = Rect(rect.x, rect.bottom - WEATHER_HEIGHT, rect.width, WEATHER_HEIGHT)
        self.section_limits[host.type] = self.weather_rect.y - WEATHER_GAP
        logger.debug(f"Weather block takes the bottom of '{host.type}'")
        return self.weather_rect

    def render_weather(self, title: Optional[str] = None, text: Optional[str] = None) -> bool:
        """Draw the static weather block in its reserved rectangle."""
        rect = self.reserve_weather()
        if rect is None:
            return False

        title_height = self._draw_lines(title or WEATHER_TITLE, self.fonts.bold, 10,
                                        rect.x, rect.y, rect.width, rect.bottom, line_gap=0)
        self._draw_lines(text or WEATHER_TEXT, self.fonts.regular, 8,
                         rect.x, rect.y + title_height, rect.width, rect.bottom, line_gap=0)
        return True
