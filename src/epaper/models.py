"""
Data types shared by the article source, the distributor, the renderer and
the generator.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

from epaper.errors import InvalidOptions

ARTICLES_SOURCE = "articles"
BREAKING_NEWS_SOURCE = "breaking_news"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a Supabase timestamp ("2025-05-01T08:30:00Z", "+00:00" offsets) into a datetime."""
    if isinstance(value, datetime):
        return value
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


@dataclass(frozen=True)
class Article:
    id: Any
    title: str
    content: str = ""
    image_url: Optional[str] = None
    published_at: Optional[datetime] = None
    is_breaking: bool = False
    category: Optional[str] = None
    author: Optional[str] = None
    is_featured: bool = False
    view_count: int = 0
    priority: int = 0
    source: str = ARTICLES_SOURCE

    @property
    def key(self) -> Tuple[str, Any]:
        # ids are only unique per table
        return (self.source, self.id)


class GenerationStage(enum.Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    DISTRIBUTING = "distributing"
    RENDERING = "rendering"
    PERSISTING = "persisting"
    DONE = "done"
    FAILED = "failed"


def _string_list(value: Any, name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if str(item).strip()]
    raise InvalidOptions(f"'{name}' must be a list of strings")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass
class GenerationOptions:
    title: str
    date: str
    layout: str
    include_categories: List[str] = field(default_factory=list)
    exclude_categories: List[str] = field(default_factory=list)
    max_articles: int = 10
    include_breaking_news: bool = False
    include_weather: bool = False
    included_sections: List[str] = field(default_factory=list)
    recency_days: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_max_articles: int = 10) -> "GenerationOptions":
        """
        Build options from a request body.

        Accepts the camelCase field names used by the admin console
        (includeCategories, maxArticles, ...) as well as snake_case.

        Raises:
            InvalidOptions: A required field is missing or a value is malformed.
        """
        if not isinstance(data, dict):
            raise InvalidOptions("Request body must be a JSON object")

        def pick(camel: str, snake: str, default: Any = None) -> Any:
            if camel in data:
                return data[camel]
            return data.get(snake, default)

        title = data.get("title")
        date_text = data.get("date")
        layout = data.get("layout")
        if not title or not date_text or not layout:
            raise InvalidOptions("Missing required fields: title, date, and layout")

        try:
            date.fromisoformat(str(date_text))
        except ValueError:
            raise InvalidOptions(f"Invalid date '{date_text}', expected YYYY-MM-DD")

        max_articles = pick("maxArticles", "max_articles", default_max_articles)
        try:
            max_articles = int(max_articles)
        except (TypeError, ValueError):
            raise InvalidOptions(f"Invalid maxArticles '{max_articles}'")
        if max_articles < 1:
            raise InvalidOptions("maxArticles must be at least 1")

        recency_days = pick("recencyDays", "recency_days")
        if recency_days is not None:
            try:
                recency_days = int(recency_days)
            except (TypeError, ValueError):
                raise InvalidOptions(f"Invalid recencyDays '{recency_days}'")

        return cls(
            title=str(title),
            date=str(date_text),
            layout=str(layout),
            include_categories=_string_list(pick("includeCategories", "include_categories"), "includeCategories"),
            exclude_categories=_string_list(pick("excludeCategories", "exclude_categories"), "excludeCategories"),
            max_articles=max_articles,
            include_breaking_news=_as_bool(pick("includeBreakingNews", "include_breaking_news", False)),
            include_weather=_as_bool(pick("includeWeather", "include_weather", False)),
            included_sections=_string_list(pick("includedSections", "included_sections"), "includedSections"),
            recency_days=recency_days,
        )


@dataclass
class GenerationResult:
    success: bool
    title: str
    date: str
    article_count: int = 0
    pdf_url: Optional[str] = None
    error: Optional[str] = None
    failed_stage: Optional[GenerationStage] = None
    section_counts: Dict[str, int] = field(default_factory=dict)
    # Terminal stage of the run: DONE or FAILED
    stage: GenerationStage = GenerationStage.DONE

    @classmethod
    def failure(cls, options: GenerationOptions, error: str,
                stage: Optional[GenerationStage] = None) -> "GenerationResult":
        return cls(success=False, title=options.title, date=options.date,
                   article_count=0, error=error, failed_stage=stage,
                   stage=GenerationStage.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "success": self.success,
            "title": self.title,
            "date": self.date,
            "articleCount": self.article_count,
        }
        if self.pdf_url:
            data["pdfUrl"] = self.pdf_url
        if self.error:
            data["error"] = self.error
        return data
