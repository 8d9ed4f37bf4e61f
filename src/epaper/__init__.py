"""
E-Paper Main Module

This is the main module for the e-paper generator, which lays out the day's
Bengali news articles on a printable page template and publishes the
resulting PDF.
"""

import logging
import sys
import argparse
import json
from datetime import date
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

__version__ = "0.2.0"

# Initialize Rich console
console = Console()

logger = logging.getLogger(__name__)


def setup_logging(debug: bool = False, log_file: Optional[str] = 'epaper.log') -> None:
    """Install the Rich console handler (and a log file) on the root logger."""
    handlers = [RichHandler(rich_tracebacks=True, console=console, show_time=True, show_path=False)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )
    if debug:
        logger.debug("Debug logging enabled")


def build_parser() -> argparse.ArgumentParser:
    from epaper.config import build_args_parser

    parser = argparse.ArgumentParser(
        description="Bengali e-paper generator",
        parents=[build_args_parser()],
    )
    parser.add_argument("--version", action="version", version=f"epaper {__version__}")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("templates", help="List the available layout templates")
    subparsers.add_parser("categories", help="List the active article categories")

    for name, help_text in (("preview", "Show the articles an edition would include"),
                            ("generate", "Generate an e-paper edition")):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("--title", required=True, help="Edition title printed in the header")
        command.add_argument("--date", default=date.today().isoformat(), help="Edition date (YYYY-MM-DD)")
        command.add_argument("--layout", default="traditional", help="Layout template id")
        command.add_argument("--max-articles", type=int, default=None, help="Maximum candidate articles")
        command.add_argument("--include-category", action="append", default=[],
                             help="Only use articles from this category (repeatable)")
        command.add_argument("--exclude-category", action="append", default=[],
                             help="Skip articles from this category (repeatable)")
        command.add_argument("--no-breaking-news", action="store_true", help="Leave out breaking news")
        command.add_argument("--weather", action="store_true", help="Add the weather box")

    subparsers.add_parser("daily", help="Generate today's edition with the configured defaults")
    subparsers.add_parser("serve", help="Run the HTTP API and serve generated files")

    return parser


def _options_from_args(args):
    from epaper.config import DEFAULT_MAX_ARTICLES
    from epaper.models import GenerationOptions

    return GenerationOptions.from_dict({
        "title": args.title,
        "date": args.date,
        "layout": args.layout,
        "maxArticles": args.max_articles or DEFAULT_MAX_ARTICLES,
        "includeCategories": args.include_category,
        "excludeCategories": args.exclude_category,
        "includeBreakingNews": not args.no_breaking_news,
        "includeWeather": args.weather,
    })


def _print_result(result) -> int:
    if result.success:
        console.print(f"[bold green]E-paper generated:[/] {result.pdf_url} "
                      f"({result.article_count} articles)")
        return 0
    console.print(f"[bold red]Generation failed:[/] {result.error}")
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the e-paper command line."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(debug=args.debug)

    from epaper.errors import EPaperError
    from epaper.generation.epaper_generator import EPaperGenerator

    try:
        generator = EPaperGenerator()

        if args.command == "templates":
            table = Table(title="Layout templates")
            table.add_column("id")
            table.add_column("name")
            table.add_column("description")
            for template in generator.list_templates():
                table.add_row(template["id"], template["name"], template["description"])
            console.print(table)
            return 0

        if args.command == "categories":
            for name in generator.article_source.list_categories():
                console.print(name)
            return 0

        if args.command == "preview":
            preview = generator.article_source.preview_articles(_options_from_args(args))
            console.print_json(json.dumps(preview, ensure_ascii=False, default=str))
            return 0

        if args.command == "generate":
            return _print_result(generator.generate(_options_from_args(args)))

        if args.command == "daily":
            result = generator.generate_daily_edition()
            if result is None:
                console.print("Today's edition already exists")
                return 0
            return _print_result(result)

        if args.command == "serve":
            from epaper.web_server import run_server
            return 0 if run_server(generator=generator, port=args.port) else 1

    except EPaperError as e:
        logger.error(str(e))
        return 1

    parser.error(f"Unknown command {args.command}")


if __name__ == "__main__":
    sys.exit(main())
