"""
E-Paper Generator Module

This module orchestrates one e-paper generation run: resolve the layout
template, fetch articles and breaking news, distribute them over the
template's sections, render the page and persist the PDF.

Every failure is converted into a GenerationResult with success=False; no
exception leaves EPaperGenerator.generate.
"""

import io
import logging
from dataclasses import replace
from datetime import date, timedelta
from typing import List, Dict, Any, Optional, Tuple

import jinja2
from reportlab.pdfgen import canvas

from epaper.archive.archive_page import ArchivePageGenerator
from epaper.archive.edition_archive import EditionArchive
from epaper.article_source.article_source import ArticleSource
from epaper.config import (
    RECORD_EDITIONS, HTML_INDEX, DAILY_EDITION, EXTRA_TEMPLATES, SITE_ATTRIBUTION
)
from epaper.errors import (
    EPaperError, InvalidOptions, NoArticlesFound, RenderFailure, PersistFailure, SourceFetchFailure
)
from epaper.generation.storage import EPaperStorage
from epaper.layout.distributor import distribute, placed_count
from epaper.layout.template_registry import Template, TemplateRegistry, build_default_registry
from epaper.models import Article, GenerationOptions, GenerationResult, GenerationStage
from epaper.pdf_rendering.section_renderer import (
    FontSet, RenderedSection, SectionRenderer, register_fonts
)

logger = logging.getLogger(__name__)

MAX_BATCH_DAYS = 31


class EPaperGenerator:
    """Document assembler for template-driven e-paper editions."""

    def __init__(self, registry: Optional[TemplateRegistry] = None,
                 article_source: Optional[ArticleSource] = None,
                 storage: Optional[EPaperStorage] = None,
                 archive: Optional[EditionArchive] = None,
                 archive_page: Optional[ArchivePageGenerator] = None,
                 fonts: Optional[FontSet] = None,
                 record_editions: Optional[bool] = None,
                 html_index: Optional[bool] = None):
        """
        Initialize the generator.

        Args:
            registry: Layout templates. Defaults to the built-in and configured ones.
            article_source: Source of candidate articles and breaking news.
            storage: Where rendered PDFs are written.
            archive: Edition bookkeeping in the content store.
            archive_page: HTML listing rebuilt after each edition.
            fonts: Fonts to draw with. Defaults to the configured TTFs or Helvetica.
            record_editions: Record successful editions in the archive.
            html_index: Rebuild the HTML listing after successful editions.
        """
        self.registry = registry or build_default_registry(EXTRA_TEMPLATES)
        self.article_source = article_source or ArticleSource()
        self.storage = storage or EPaperStorage()
        self.archive = archive or EditionArchive(getattr(self.article_source, "client", None))
        self.record_editions = RECORD_EDITIONS if record_editions is None else record_editions
        self.html_index = HTML_INDEX if html_index is None else html_index
        if archive_page is None and self.html_index:
            archive_page = ArchivePageGenerator(self.storage)
        self.archive_page = archive_page
        self.fonts = fonts or register_fonts()

    def list_templates(self) -> List[Dict[str, str]]:
        return self.registry.list_templates()

    def generate(self, options: GenerationOptions) -> GenerationResult:
        """
        Generate one e-paper edition.

        Args:
            options: Title, date, layout and article selection for the edition.

        Returns:
            GenerationResult echoing the title and date. On success it carries
            the PDF URL and the number of articles placed.
        """
        stage = GenerationStage.PENDING
        logger.info(f"Starting e-paper generation: '{options.title}' {options.date} ({options.layout})")

        try:
            template = self.registry.get_template(options.layout)

            stage = self._advance(stage, GenerationStage.FETCHING, options)
            articles, breaking = self._fetch(options)

            stage = self._advance(stage, GenerationStage.DISTRIBUTING, options)
            distribution = distribute(articles, breaking, template)

            stage = self._advance(stage, GenerationStage.RENDERING, options)
            pdf_bytes, rendered = self._render(template, distribution, options)

            stage = self._advance(stage, GenerationStage.PERSISTING, options)
            pdf_url = self.storage.save(options.date, pdf_bytes)

            stage = self._advance(stage, GenerationStage.DONE, options)

        except EPaperError as e:
            return self._failure(options, str(e), stage)
        except Exception as e:
            # Anything unexpected maps onto the error taxonomy by the stage it happened in
            if stage in (GenerationStage.PENDING, GenerationStage.FETCHING):
                error = SourceFetchFailure(str(e))
            elif stage == GenerationStage.PERSISTING:
                error = PersistFailure(str(e))
            else:
                error = RenderFailure(str(e))
            logger.exception(f"Unexpected error while {stage.value}")
            return self._failure(options, f"{type(error).__name__}: {str(e)}", stage)

        section_counts = {section_type: len(items) for section_type, items in distribution.items()}
        result = GenerationResult(
            success=True,
            title=options.title,
            date=options.date,
            article_count=placed_count(distribution),
            pdf_url=pdf_url,
            section_counts=section_counts,
        )
        self._after_success(result)
        self._log_summary(result, rendered)
        return result

    def _advance(self, current: GenerationStage, new: GenerationStage,
                 options: GenerationOptions) -> GenerationStage:
        logger.debug(f"[{options.date}] {current.value} -> {new.value}")
        return new

    def _failure(self, options: GenerationOptions, error: str,
                 stage: GenerationStage) -> GenerationResult:
        self._advance(stage, GenerationStage.FAILED, options)
        logger.error(f"E-paper generation failed while {stage.value}: {error}")
        return GenerationResult.failure(options, error, stage)

    def _fetch(self, options: GenerationOptions) -> Tuple[List[Article], List[Article]]:
        """
        Fetch the candidate pool and, when requested, the breaking news.

        Raises:
            NoArticlesFound: The candidate pool is empty.
        """
        articles = self.article_source.fetch_candidates(options)
        breaking = []
        if options.include_breaking_news:
            breaking = self.article_source.fetch_breaking_news()
        logger.info(f"Fetched {len(articles)} articles and {len(breaking)} breaking news items")
        if not articles:
            raise NoArticlesFound()
        return articles, breaking

    def preview(self, options: GenerationOptions) -> bytes:
        """
        Render an edition without storing or recording it.

        Raises:
            EPaperError: The layout is unknown, no articles matched, or drawing failed.
        """
        template = self.registry.get_template(options.layout)
        articles, breaking = self._fetch(options)
        distribution = distribute(articles, breaking, template)
        pdf_bytes, _ = self._render(template, distribution, options)
        logger.info(f"Rendered preview of {options.date} ({len(pdf_bytes)} bytes)")
        return pdf_bytes

    def _render(self, template: Template, distribution: Dict[str, List[Article]],
                options: GenerationOptions) -> Tuple[bytes, List[RenderedSection]]:
        """
        Draw header, body sections, weather and footer into an in-memory PDF.

        Raises:
            RenderFailure: ReportLab failed to draw or serialize the page.
        """
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=(template.page_size.width, template.page_size.height))
        pdf.setTitle(options.title)
        pdf.setAuthor(SITE_ATTRIBUTION)
        pdf.setSubject(f"{template.name} {options.date}")

        renderer = SectionRenderer(pdf, template, self.fonts)
        rendered = []
        try:
            renderer.render_header(options.title, options.date)
            if options.include_weather:
                renderer.reserve_weather()
            for section in template.sections:
                if section.is_static:
                    continue
                rendered.append(renderer.render_section(section, distribution.get(section.type, [])))
            if options.include_weather:
                renderer.render_weather()
            renderer.render_footer(options.date)
            pdf.showPage()
            pdf.save()
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise RenderFailure(f"Error rendering {template.id} layout: {str(e)}")

        return buffer.getvalue(), rendered

    def _after_success(self, result: GenerationResult) -> None:
        # The PDF already exists at this point; bookkeeping errors only warn
        if self.record_editions:
            try:
                self.archive.record(result.title, result.date, result.pdf_url)
            except SourceFetchFailure as e:
                logger.warning(f"Edition generated but not recorded: {str(e)}")

        if self.html_index and self.archive_page is not None:
            try:
                self.archive_page.generate()
            except (OSError, jinja2.TemplateError) as e:
                logger.warning(f"Could not rebuild archive page: {str(e)}")

    def _log_summary(self, result: GenerationResult, rendered: List[RenderedSection]) -> None:
        logger.info("=" * 50)
        logger.info("E-PAPER GENERATION SUMMARY")
        logger.info("=" * 50)
        logger.info(f"Title: {result.title}")
        logger.info(f"Date: {result.date}")
        logger.info(f"Articles placed: {result.article_count}")
        for section in rendered:
            assigned = result.section_counts.get(section.section_type, 0)
            logger.info(f"  {section.section_type}: {section.article_count} drawn of {assigned} assigned")
        logger.info(f"Output: {result.pdf_url}")
        logger.info("=" * 50)

    def generate_batch(self, start_date: str, end_date: str,
                       base_options: GenerationOptions) -> List[GenerationResult]:
        """
        Generate one edition per day from start_date to end_date inclusive.

        Raises:
            InvalidOptions: The dates are malformed, reversed, or span too many days.
        """
        try:
            start = date.fromisoformat(start_date)
            end = date.fromisoformat(end_date)
        except (TypeError, ValueError):
            raise InvalidOptions("startDate and endDate must be YYYY-MM-DD dates")
        if end < start:
            raise InvalidOptions("endDate is before startDate")
        days = (end - start).days + 1
        if days > MAX_BATCH_DAYS:
            raise InvalidOptions(f"Batch generation is limited to {MAX_BATCH_DAYS} days")

        results = []
        for offset in range(days):
            day = (start + timedelta(days=offset)).isoformat()
            results.append(self.generate(replace(base_options, date=day)))
        logger.info(f"Batch generation finished: {sum(r.success for r in results)}/{days} succeeded")
        return results

    def daily_options(self, date_text: str, overrides: Optional[Dict[str, Any]] = None) -> GenerationOptions:
        """
        Options for an edition built from the configured daily defaults.

        Raises:
            InvalidOptions: The merged settings are not valid options.
        """
        settings = dict(DAILY_EDITION)
        settings.update(overrides or {})
        settings["date"] = date_text
        return GenerationOptions.from_dict(settings)

    def generate_daily_edition(self, today: Optional[date] = None,
                               defaults: Optional[Dict[str, Any]] = None) -> Optional[GenerationResult]:
        """
        Generate today's edition with the configured defaults.

        Returns:
            The result, or None when today's edition is already recorded.
        """
        today = today or date.today()
        date_text = today.isoformat()

        if self.record_editions and self.archive.has_edition(date_text):
            logger.info(f"Edition for {date_text} already exists, skipping")
            return None

        return self.generate(self.daily_options(date_text, defaults))
