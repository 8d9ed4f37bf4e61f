"""
Article Source Module

This module pulls the candidate article pool and the active breaking news
items from the content store, mapped into Article values the distributor
can treat uniformly. Query failures are logged and turned into empty
results; the generator reports them as "no articles found".
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Dict, Any, Optional, Callable

from epaper.config import (
    RECENCY_DAYS, BREAKING_NEWS_LIMIT, PREVIEW_CONTENT_LENGTH, FALLBACK_CATEGORIES
)
from epaper.content_store.supabase_client import SupabaseClient, quote_list
from epaper.errors import SourceFetchFailure
from epaper.models import (
    Article, GenerationOptions, parse_timestamp, ARTICLES_SOURCE, BREAKING_NEWS_SOURCE
)

logger = logging.getLogger(__name__)

BREAKING_CATEGORY = "জরুরি খবর"
NEWS_DESK_AUTHOR = "সংবাদ ডেস্ক"
BREAKING_PRIORITY = 100

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def priority_sort_key(article: Article):
    """Featured first, then most viewed, then most recent."""
    published = article.published_at or _EPOCH
    if published.tzinfo is None:
        published = published.replace(tzinfo=timezone.utc)
    return (not article.is_featured, -article.view_count, -published.timestamp())


class ArticleSource:
    """Fetches articles and breaking news for a generation run."""

    def __init__(self, client=None, recency_days: Optional[int] = None,
                 breaking_news_limit: Optional[int] = None,
                 fallback_categories: Optional[List[str]] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize the ArticleSource.

        Args:
            client: Content store client exposing select(). Defaults to SupabaseClient.
            recency_days: Default recency window in days.
            breaking_news_limit: Breaking news items pulled per run.
            fallback_categories: Category names used when the store is unreachable.
            clock: Returns the current UTC time, injectable for tests.
        """
        self.client = client or SupabaseClient()
        self.recency_days = recency_days or RECENCY_DAYS
        self.breaking_news_limit = breaking_news_limit or BREAKING_NEWS_LIMIT
        self.fallback_categories = list(fallback_categories or FALLBACK_CATEGORIES)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

        # Statistics for reporting
        self.stats = {
            'candidate_queries': 0,
            'breaking_queries': 0,
            'fetch_errors': 0,
            'articles_fetched': 0,
            'breaking_fetched': 0,
            'malformed_rows': 0,
        }

    def fetch_candidates(self, options: GenerationOptions) -> List[Article]:
        """
        Fetch the published articles eligible for an edition.

        Args:
            options: Generation options supplying category filters, cap and recency.

        Returns:
            Articles ordered by (featured desc, view count desc, published desc),
            or an empty list if the query failed.
        """
        self.stats['candidate_queries'] += 1
        recency_days = options.recency_days or self.recency_days
        threshold = self.clock() - timedelta(days=recency_days)

        filters = [
            ("status", "eq.published"),
            ("published_at", f"gte.{threshold.isoformat()}"),
        ]
        if options.include_categories:
            filters.append(("categories.name", f"in.{quote_list(options.include_categories)}"))
        if options.exclude_categories:
            filters.append(("categories.name", f"not.in.{quote_list(options.exclude_categories)}"))

        try:
            rows, _ = self.client.select(
                "articles",
                columns="*,categories!inner(name)",
                filters=filters,
                order=[("is_featured", True), ("view_count", True), ("published_at", True)],
                limit=options.max_articles,
            )
        except SourceFetchFailure as e:
            logger.error(f"Error fetching articles: {str(e)}")
            self.stats['fetch_errors'] += 1
            return []

        articles = self._map_rows(rows, self._article_from_row, "article")
        articles = self._apply_category_filters(articles, options)
        articles.sort(key=priority_sort_key)
        articles = articles[:options.max_articles]

        self.stats['articles_fetched'] += len(articles)
        logger.info(f"Fetched {len(articles)} candidate articles (last {recency_days} days)")
        return articles

    def fetch_breaking_news(self, limit: Optional[int] = None) -> List[Article]:
        """
        Fetch the currently active breaking news items, most recent first.

        Args:
            limit: Maximum number of items. Defaults to the configured limit.

        Returns:
            Breaking items in Article shape, or an empty list if the query failed.
        """
        self.stats['breaking_queries'] += 1
        try:
            rows, _ = self.client.select(
                "breaking_news",
                filters=[("is_active", "eq.true")],
                order=[("created_at", True)],
                limit=limit or self.breaking_news_limit,
            )
        except SourceFetchFailure as e:
            logger.error(f"Error fetching breaking news: {str(e)}")
            self.stats['fetch_errors'] += 1
            return []

        articles = self._map_rows(rows, self._breaking_from_row, "breaking news")
        self.stats['breaking_fetched'] += len(articles)
        logger.info(f"Fetched {len(articles)} active breaking news items")
        return articles

    def list_categories(self) -> List[str]:
        """
        List active category names.

        Never fails: falls back to the fixed default list when the store is
        unreachable or has no categories.
        """
        try:
            rows, _ = self.client.select(
                "categories",
                columns="name",
                filters=[("is_active", "eq.true")],
                order=[("sort_order", False), ("name", False)],
            )
        except SourceFetchFailure as e:
            logger.warning(f"Error fetching categories, using defaults: {str(e)}")
            return list(self.fallback_categories)

        names = [row["name"] for row in rows if isinstance(row.get("name"), str) and row["name"].strip()]
        if not names:
            logger.info("No categories in content store, using defaults")
            return list(self.fallback_categories)
        return names

    def preview_articles(self, options: GenerationOptions,
                         content_length: Optional[int] = None) -> Dict[str, Any]:
        """
        Show what an edition would include before generating it.

        Returns:
            Dictionary with 'articles' (id, title, category, author,
            publish_date, truncated content) and 'totalCount'.
        """
        content_length = content_length or PREVIEW_CONTENT_LENGTH
        articles = self.fetch_candidates(options)
        if options.include_breaking_news:
            articles = self.fetch_breaking_news() + articles

        previews = [
            {
                "id": article.id,
                "title": article.title,
                "category": article.category,
                "author": article.author,
                "publish_date": article.published_at.isoformat() if article.published_at else None,
                "content": article.content[:content_length],
            }
            for article in articles
        ]
        return {"articles": previews, "totalCount": len(previews)}

    def _apply_category_filters(self, articles: List[Article],
                                options: GenerationOptions) -> List[Article]:
        # Same filters as the query, applied to the rows actually returned
        if options.include_categories:
            allowed = set(options.include_categories)
            articles = [a for a in articles if a.category in allowed]
        if options.exclude_categories:
            excluded = set(options.exclude_categories)
            articles = [a for a in articles if a.category not in excluded]
        return articles

    def _map_rows(self, rows: List[Dict[str, Any]], mapper: Callable[[Dict[str, Any]], Article],
                  kind: str) -> List[Article]:
        """Map store rows to Articles, logging and skipping rows that do not convert."""
        articles = []
        for row in rows:
            try:
                articles.append(mapper(row))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping malformed {kind} row {row.get('id')!r}: {str(e)}")
                self.stats['malformed_rows'] += 1
        return articles

    @staticmethod
    def _article_from_row(row: Dict[str, Any]) -> Article:
        category = row.get("categories") or row.get("category") or {}
        return Article(
            id=row.get("id"),
            title=row.get("title") or "",
            content=row.get("content") or row.get("excerpt") or "",
            image_url=row.get("image_url"),
            published_at=parse_timestamp(row.get("published_at")),
            is_breaking=bool(row.get("is_breaking", False)),
            category=category.get("name") if isinstance(category, dict) else category,
            author=row.get("author"),
            is_featured=bool(row.get("is_featured", False)),
            view_count=int(row.get("view_count") or 0),
            priority=int(row.get("priority") or 0),
            source=ARTICLES_SOURCE,
        )

    @staticmethod
    def _breaking_from_row(row: Dict[str, Any]) -> Article:
        content = row.get("content") or ""
        return Article(
            id=row.get("id"),
            # Breaking items often carry only a one-line content field
            title=row.get("title") or content,
            content=content,
            published_at=parse_timestamp(row.get("created_at")),
            is_breaking=True,
            category=BREAKING_CATEGORY,
            author=NEWS_DESK_AUTHOR,
            priority=BREAKING_PRIORITY,
            source=BREAKING_NEWS_SOURCE,
        )
