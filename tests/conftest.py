import json
from datetime import datetime, timedelta, timezone

import pytest
import requests

from epaper.archive.edition_archive import EditionArchive
from epaper.content_store.supabase_client import SupabaseClient
from epaper.errors import SourceFetchFailure
from epaper.generation.epaper_generator import EPaperGenerator
from epaper.generation.storage import EPaperStorage
from epaper.layout.template_registry import build_default_registry
from epaper.models import Article, BREAKING_NEWS_SOURCE
from epaper.pdf_rendering.section_renderer import FontSet

NOW = datetime(2025, 5, 1, 9, 0, tzinfo=timezone.utc)


def make_article(article_id, title=None, content=None, **kwargs) -> Article:
    return Article(
        id=article_id,
        title=title or f"Headline {article_id}",
        content=content if content is not None else f"Body text of article {article_id}. " * 5,
        published_at=kwargs.pop("published_at", NOW - timedelta(hours=article_id if isinstance(article_id, int) else 1)),
        category=kwargs.pop("category", "জাতীয়"),
        **kwargs,
    )


def make_breaking(item_id, content=None) -> Article:
    text = content or f"Breaking item {item_id}"
    return Article(id=item_id, title=text, content=text, is_breaking=True,
                   category="জরুরি খবর", source=BREAKING_NEWS_SOURCE, priority=100)


class FakeContentStore:
    """In-memory stand-in for SupabaseClient that records every call."""

    def __init__(self, tables=None, fail_tables=()):
        self.tables = {name: list(rows) for name, rows in (tables or {}).items()}
        self.fail_tables = set(fail_tables)
        self.selects = []
        self.inserts = []
        self.updates = []
        self._next_id = 1

    def select(self, table, columns="*", filters=None, order=None, limit=None,
               offset=None, count=False):
        self.selects.append({
            "table": table, "columns": columns, "filters": list(filters or []),
            "order": list(order or []), "limit": limit, "offset": offset, "count": count,
        })
        if table in self.fail_tables:
            raise SourceFetchFailure(f"{table} unavailable")
        rows = list(self.tables.get(table, []))
        for column, expression in filters or []:
            if expression.startswith("eq."):
                expected = expression[3:]
                rows = [row for row in rows if str(row.get(column)).lower() == expected.lower()]
        total = len(rows)
        start = offset or 0
        rows = rows[start:start + limit] if limit is not None else rows[start:]
        return rows, (total if count else None)

    def insert(self, table, row):
        if table in self.fail_tables:
            raise SourceFetchFailure(f"{table} unavailable")
        stored = dict(row, id=self._next_id)
        self._next_id += 1
        self.tables.setdefault(table, []).append(stored)
        self.inserts.append((table, stored))
        return stored

    def update(self, table, values, filters):
        if table in self.fail_tables:
            raise SourceFetchFailure(f"{table} unavailable")
        self.updates.append((table, values, list(filters)))
        excluded_id = None
        for column, expression in filters:
            if column == "id" and expression.startswith("neq."):
                excluded_id = int(expression[4:])
        for row in self.tables.get(table, []):
            if row.get("id") != excluded_id:
                row.update(values)


def make_response(status=200, body=None, headers=None, content=None) -> requests.Response:
    """Build a requests Response; content, when given, is the raw body."""
    response = requests.Response()
    response.status_code = status
    if content is None:
        content = json.dumps(body if body is not None else []).encode("utf-8")
    response._content = content
    response.headers.update(headers or {})
    response.url = "https://project.supabase.co/rest/v1/test"
    return response


class FakeSession:
    """requests.Session stand-in returning one canned response."""

    def __init__(self, response=None, error=None):
        # Error responses are falsy, so test for None explicitly
        self.response = response if response is not None else make_response()
        self.error = error
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def make_client(session) -> SupabaseClient:
    return SupabaseClient("https://project.supabase.co/", "service-key", timeout=5, session=session)


class FakeArticleSource:
    """Article source returning fixed pools."""

    def __init__(self, articles=None, breaking=None, categories=None):
        self.articles = list(articles or [])
        self.breaking = list(breaking or [])
        self.categories = categories or ["জাতীয়", "খেলাধুলা"]
        self.client = FakeContentStore()
        self.candidate_calls = []
        self.breaking_calls = 0

    def fetch_candidates(self, options):
        self.candidate_calls.append(options)
        return self.articles[:options.max_articles]

    def fetch_breaking_news(self, limit=None):
        self.breaking_calls += 1
        return list(self.breaking)

    def list_categories(self):
        return list(self.categories)

    def preview_articles(self, options, content_length=None):
        articles = self.fetch_candidates(options)
        previews = [{"id": a.id, "title": a.title, "content": a.content[:200]} for a in articles]
        return {"articles": previews, "totalCount": len(previews)}


class RecordingCanvas:
    """Minimal canvas that records text placement instead of drawing."""

    def __init__(self):
        self.strings = []
        self.lines = []
        self.font = None

    def setFont(self, name, size):
        self.font = (name, size)

    def drawString(self, x, y, text):
        self.strings.append(("left", x, y, text, self.font))

    def drawCentredString(self, x, y, text):
        self.strings.append(("centre", x, y, text, self.font))

    def drawRightString(self, x, y, text):
        self.strings.append(("right", x, y, text, self.font))

    def setStrokeColor(self, color):
        pass

    def setFillColor(self, color):
        pass

    def setLineWidth(self, width):
        pass

    def line(self, x1, y1, x2, y2):
        self.lines.append((x1, y1, x2, y2))

    def texts(self):
        return [text for _, _, _, text, _ in self.strings]


@pytest.fixture
def storage(tmp_path):
    return EPaperStorage(tmp_path / "public", "generated-epapers", "/generated-epapers")


@pytest.fixture
def content_store():
    return FakeContentStore()


@pytest.fixture
def make_generator(storage, content_store):
    def factory(articles=None, breaking=None, **kwargs):
        source = kwargs.pop("article_source", None) or FakeArticleSource(articles, breaking)
        options = {
            "registry": build_default_registry(),
            "article_source": source,
            "storage": storage,
            "archive": EditionArchive(content_store),
            "fonts": FontSet(),
            "record_editions": False,
            "html_index": False,
        }
        options.update(kwargs)
        return EPaperGenerator(**options)
    return factory
