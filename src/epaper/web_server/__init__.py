"""
Web Server Module

This module provides an HTTP server exposing the e-paper generation API and
serving the output directory, so the pdfUrl returned by a generation can be
downloaded directly.
"""

import logging
import re
import sys
import json
from dataclasses import dataclass, field
from datetime import date
from http.server import ThreadingHTTPServer, SimpleHTTPRequestHandler
from functools import partial
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union
from urllib.parse import urlparse, parse_qs

from rich.console import Console
from rich.logging import RichHandler

from epaper.config import OUTPUT_DIR, WEB_SERVER_PORT, DEFAULT_MAX_ARTICLES
from epaper.errors import EPaperError, InvalidOptions, SourceFetchFailure
from epaper.models import GenerationOptions

# Initialize Rich console for the web server
console = Console()

logger = logging.getLogger(__name__)

API_PREFIX = "/api/epaper"

PREVIEW_FILENAME = "epaper-preview.pdf"


@dataclass
class RawResponse:
    """Non-JSON API response: a file body or a bare redirect."""
    body: bytes = b""
    content_type: str = "application/octet-stream"
    headers: Dict[str, str] = field(default_factory=dict)


ApiResponse = Tuple[int, Union[Dict[str, Any], RawResponse]]


class EPaperAPI:
    """Request handling for the e-paper API, independent of the HTTP plumbing."""

    def __init__(self, generator):
        """
        Args:
            generator: EPaperGenerator serving the requests.
        """
        self.generator = generator
        self.article_source = generator.article_source
        self.archive = generator.archive
        self.routes = {
            ("GET", "/templates"): self.get_templates,
            ("GET", "/categories"): self.get_categories,
            ("GET", "/history"): self.get_history,
            ("GET", "/latest"): self.get_latest,
            ("POST", "/preview-articles"): self.preview_articles,
            ("POST", "/generate"): self.generate,
            ("POST", "/generate-batch"): self.generate_batch,
            ("POST", "/preview"): self.preview,
            ("POST", "/auto-generate"): self.auto_generate,
        }
        # Routes with path parameters, passed to the handler positionally
        self.pattern_routes = [
            ("GET", re.compile(r"^/download/([^/]+)$"), self.download),
        ]

    def handle(self, method: str, path: str, query: Dict[str, Any], body: Any) -> ApiResponse:
        """
        Dispatch an API request.

        Args:
            method: HTTP method.
            path: Path below the API prefix, e.g. "/generate".
            query: Parsed query string.
            body: Parsed JSON body, or None.

        Returns:
            Tuple of (HTTP status, JSON payload or RawResponse).
        """
        path = path.rstrip("/") or "/"
        route = self.routes.get((method, path))
        params = ()
        if route is None:
            for route_method, pattern, handler in self.pattern_routes:
                match = pattern.match(path)
                if route_method == method and match:
                    route, params = handler, match.groups()
                    break
        if route is None:
            return 404, {"success": False, "message": "API endpoint not found"}
        try:
            return route(query, body, *params)
        except InvalidOptions as e:
            return 400, {"success": False, "message": str(e)}
        except Exception as e:
            logger.exception(f"Error handling {method} {path}")
            return 500, {"success": False, "message": "Internal server error", "error": str(e)}

    def get_templates(self, query, body) -> ApiResponse:
        return 200, {"success": True, "templates": self.generator.list_templates()}

    def get_categories(self, query, body) -> ApiResponse:
        return 200, {"success": True, "categories": self.article_source.list_categories()}

    def preview_articles(self, query, body) -> ApiResponse:
        options = GenerationOptions.from_dict(body, default_max_articles=DEFAULT_MAX_ARTICLES)
        preview = self.article_source.preview_articles(options)
        return 200, {"success": True, "articles": preview["articles"], "totalCount": preview["totalCount"]}

    def generate(self, query, body) -> ApiResponse:
        options = GenerationOptions.from_dict(body, default_max_articles=DEFAULT_MAX_ARTICLES)
        result = self.generator.generate(options)
        if result.success:
            return 200, {
                "success": True,
                "message": "E-paper generated successfully",
                "data": {
                    "pdfUrl": result.pdf_url,
                    "title": result.title,
                    "date": result.date,
                    "articleCount": result.article_count,
                },
            }
        return 400, {
            "success": False,
            "message": result.error or "Generation failed",
            "data": {
                "title": result.title,
                "date": result.date,
                "articleCount": result.article_count,
            },
        }

    def generate_batch(self, query, body) -> ApiResponse:
        if not isinstance(body, dict):
            raise InvalidOptions("Request body must be a JSON object")
        start_date = body.get("startDate")
        end_date = body.get("endDate")
        if not start_date or not end_date:
            raise InvalidOptions("Missing required fields: startDate and endDate")

        template_fields = dict(body)
        template_fields.setdefault("date", start_date)
        base_options = GenerationOptions.from_dict(template_fields, default_max_articles=DEFAULT_MAX_ARTICLES)
        results = self.generator.generate_batch(start_date, end_date, base_options)
        return 200, {
            "success": True,
            "message": f"Generated {sum(r.success for r in results)} of {len(results)} e-papers",
            "results": [r.to_dict() for r in results],
        }

    def get_history(self, query, body) -> ApiResponse:
        try:
            page = int(query.get("page", ["1"])[0])
            limit = int(query.get("limit", ["10"])[0])
        except ValueError:
            raise InvalidOptions("page and limit must be integers")
        try:
            history = self.archive.history(page, limit)
        except SourceFetchFailure as e:
            logger.error(f"Error fetching e-paper history: {str(e)}")
            return 500, {"success": False, "message": "Failed to fetch e-paper history", "error": str(e)}
        return 200, {"success": True, **history}

    def get_latest(self, query, body) -> ApiResponse:
        try:
            epaper = self.archive.latest()
        except SourceFetchFailure as e:
            logger.error(f"Error fetching latest e-paper: {str(e)}")
            return 500, {"success": False, "message": "Failed to fetch latest e-paper", "error": str(e)}
        if epaper is None:
            return 404, {"success": False, "message": "No e-paper found"}
        return 200, {"success": True, "epaper": epaper}

    def preview(self, query, body) -> ApiResponse:
        if not isinstance(body, dict):
            raise InvalidOptions("Request body must be a JSON object")
        options = self.generator.daily_options(body.get("date") or date.today().isoformat(), body)
        try:
            pdf_bytes = self.generator.preview(options)
        except InvalidOptions:
            raise
        except EPaperError as e:
            logger.error(f"Error generating preview: {str(e)}")
            return 400, {"success": False, "message": str(e)}
        return 200, RawResponse(
            body=pdf_bytes,
            content_type="application/pdf",
            headers={"Content-Disposition": f'inline; filename="{PREVIEW_FILENAME}"'},
        )

    def download(self, query, body, epaper_id) -> ApiResponse:
        try:
            epaper = self.archive.get(epaper_id)
        except SourceFetchFailure as e:
            logger.error(f"Error downloading e-paper {epaper_id}: {str(e)}")
            return 500, {"success": False, "message": "Failed to download e-paper", "error": str(e)}
        if epaper is None:
            return 404, {"success": False, "message": "E-paper not found"}
        if not epaper.get("pdf_url"):
            return 404, {"success": False, "message": "PDF file not found"}
        return 302, RawResponse(headers={"Location": epaper["pdf_url"]})

    def auto_generate(self, query, body) -> ApiResponse:
        result = self.generator.generate_daily_edition()
        if result is None:
            return 200, {"success": True, "message": "Today's e-paper already exists"}
        if not result.success:
            return 500, {
                "success": False,
                "message": "Failed to auto-generate e-paper",
                "error": result.error,
            }
        return 200, {
            "success": True,
            "message": "Today's e-paper generated successfully",
            "data": {
                "pdfUrl": result.pdf_url,
                "title": result.title,
                "date": result.date,
                "articleCount": result.article_count,
            },
        }


class EPaperRequestHandler(SimpleHTTPRequestHandler):
    """HTTP request handler that serves the output directory and the e-paper API."""

    def __init__(self, output_directory, api, *args, **kwargs):
        self.output_directory = output_directory
        self.api = api
        super().__init__(*args, directory=output_directory, **kwargs)

    def log_request(self, code='-', size='-'):
        """Log requests through the Rich console, colour-coded by status class."""
        status_code = str(getattr(code, "value", code))
        path = self.path

        # Color-code status codes
        if status_code.startswith('2'):  # 2xx Success
            status_style = "[bold green]"
        elif status_code.startswith('3'):  # 3xx Redirection
            status_style = "[bold blue]"
        elif status_code.startswith('4'):  # 4xx Client Error
            status_style = "[bold yellow]"
        elif status_code.startswith('5'):  # 5xx Server Error
            status_style = "[bold red]"
        else:
            status_style = "[bold]"

        console.log(f"[cyan]{self.client_address[0]}[/cyan] - {self.command} {path} - {status_style}{status_code}[/]")

    def log_message(self, format, *args):
        logger.debug(format % args)

    def do_OPTIONS(self):
        self.send_response(204)
        self.send_header('Access-Control-Allow-Origin', '*')
        self.send_header('Access-Control-Allow-Methods', 'GET, POST, OPTIONS')
        self.send_header('Access-Control-Allow-Headers', 'Content-Type')
        self.end_headers()

    def do_GET(self):
        """Handle GET requests, including API endpoints."""
        parsed_path = urlparse(self.path)

        if parsed_path.path.startswith(API_PREFIX + '/'):
            return self.handle_api_request("GET", parsed_path, None)

        # Default behavior for non-API requests
        return super().do_GET()

    def do_POST(self):
        """Handle POST requests; only API endpoints accept them."""
        parsed_path = urlparse(self.path)

        if not parsed_path.path.startswith(API_PREFIX + '/'):
            return self.send_api_response(404, {"success": False, "message": "API endpoint not found"})

        length = int(self.headers.get('Content-Length') or 0)
        raw_body = self.rfile.read(length) if length else b""
        try:
            body = json.loads(raw_body.decode('utf-8')) if raw_body else {}
        except (UnicodeDecodeError, json.JSONDecodeError):
            return self.send_api_response(400, {"success": False, "message": "Request body must be valid JSON"})

        return self.handle_api_request("POST", parsed_path, body)

    def handle_api_request(self, method, parsed_path, body):
        """Route an API request and send its JSON response."""
        path = parsed_path.path[len(API_PREFIX):]
        status, payload = self.api.handle(method, path, parse_qs(parsed_path.query), body)
        if isinstance(payload, RawResponse):
            return self.send_raw_response(status, payload)
        return self.send_api_response(status, payload)

    def send_api_response(self, status, data):
        """Send a JSON response for API requests."""
        response = json.dumps(data, ensure_ascii=False).encode('utf-8')

        self.send_response(status)
        self.send_header('Content-Type', 'application/json; charset=utf-8')
        self.send_header('Content-Length', str(len(response)))
        self.send_header('Access-Control-Allow-Origin', '*')  # Enable CORS
        self.end_headers()
        self.wfile.write(response)

    def send_raw_response(self, status, raw):
        """Send a file body or redirect produced by the API."""
        self.send_response(status)
        self.send_header('Content-Type', raw.content_type)
        self.send_header('Content-Length', str(len(raw.body)))
        self.send_header('Access-Control-Allow-Origin', '*')
        for name, value in raw.headers.items():
            self.send_header(name, value)
        self.end_headers()
        if self.command != 'HEAD':
            self.wfile.write(raw.body)


def make_server(generator, output_directory=None, host: str = '0.0.0.0',
                port: Optional[int] = None) -> ThreadingHTTPServer:
    """
    Build the HTTP server without starting it.

    Args:
        generator: EPaperGenerator handling API requests.
        output_directory: Directory to serve. Defaults to the generator's storage root.
        host: Interface to bind.
        port: Port to bind; 0 picks a free one.
    """
    output_dir = Path(output_directory or generator.storage.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    server_port = WEB_SERVER_PORT if port is None else port

    handler = partial(EPaperRequestHandler, str(output_dir.resolve()), EPaperAPI(generator))
    return ThreadingHTTPServer((host, server_port), handler)


def run_server(output_directory=None, port=None, generator=None):
    """
    Run the HTTP server for the e-paper API and generated files.

    Args:
        output_directory: Directory containing the generated files.
        port: Port to run the server on.
        generator: EPaperGenerator to use. Built from configuration if omitted.
    """
    if generator is None:
        from epaper.generation.epaper_generator import EPaperGenerator
        generator = EPaperGenerator()

    output_dir = Path(output_directory or generator.storage.output_dir or OUTPUT_DIR)

    try:
        server = make_server(generator, output_dir, port=port)
    except OSError as e:
        logger.error(f"Error starting HTTP server: {str(e)}")
        return False

    server_port = server.server_address[1]
    try:
        logger.info(f"Starting HTTP server on port {server_port}, serving content from {output_dir}")
        logger.info(f"API available at http://localhost:{server_port}{API_PREFIX}/templates")
        server.serve_forever()
        return True
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        return True
    finally:
        server.server_close()


if __name__ == "__main__":
    # Setup logging with Rich
    logging.basicConfig(
        level=logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(rich_tracebacks=True, console=console, show_time=True, show_path=False)
        ]
    )

    # Get port from command line argument if provided
    port = int(sys.argv[1]) if len(sys.argv) > 1 and sys.argv[1].isdigit() else None

    run_server(port=port)
