#!/usr/bin/env python3
"""
Docker entrypoint script for the e-paper generator.

This script handles running the generator in Docker, with options
to generate the daily edition, serve the API and generated files, or both.
"""

import argparse
import logging
import time
import threading

from rich.console import Console
from rich.logging import RichHandler

from epaper.generation.epaper_generator import EPaperGenerator
from epaper.web_server import run_server

# Initialize Rich console
console = Console()

# Setup logging with Rich
logging.basicConfig(
    level=logging.INFO,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(rich_tracebacks=True, console=console, show_time=True, show_path=False)
    ]
)

logger = logging.getLogger(__name__)


def generate_daily_edition(generator):
    result = generator.generate_daily_edition()
    if result is None:
        return
    if result.success:
        logger.info(f"Daily edition published at {result.pdf_url}")
    else:
        logger.error(f"Daily edition failed: {result.error}")


def run_content_generation(generator, interval=None):
    """
    Run the daily edition generation.

    Args:
        generator: EPaperGenerator to run.
        interval: If set, check for a new edition periodically at this interval (in hours).
                 If None, run once and exit.
    """
    if interval is None:
        # Run once
        logger.info("Generating the daily edition once")
        generate_daily_edition(generator)
        return

    # Run periodically
    interval_seconds = interval * 3600  # convert hours to seconds
    logger.info(f"Checking for a new daily edition every {interval} hours")

    while True:
        try:
            generate_daily_edition(generator)
            logger.info(f"Next check in {interval} hours")
            time.sleep(interval_seconds)
        except KeyboardInterrupt:
            logger.info("Edition generation stopped by user")
            break
        except Exception as e:
            logger.error(f"Error in edition generation: {str(e)}")
            # Wait a bit before retrying
            time.sleep(60)


def main():
    """Main entry point for the Docker container."""
    parser = argparse.ArgumentParser(description="E-Paper Generator Docker Container")
    parser.add_argument(
        "--mode",
        choices=["generate", "serve", "both"],
        default="both",
        help="Operation mode: generate the daily edition, serve the API, or both"
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Interval (in hours) to periodically generate the daily edition. If not set, generate once."
    )

    args, _ = parser.parse_known_args()

    generator = EPaperGenerator()

    if args.mode == "generate":
        run_content_generation(generator, args.interval)

    elif args.mode == "serve":
        run_server(generator=generator)

    elif args.mode == "both":
        if args.interval:
            # Generate in a separate thread while the server runs
            generator_thread = threading.Thread(
                target=run_content_generation,
                args=(generator, args.interval),
                daemon=True
            )
            generator_thread.start()
        else:
            generate_daily_edition(generator)

        # Run the web server in the main thread
        run_server(generator=generator)


if __name__ == "__main__":
    main()
