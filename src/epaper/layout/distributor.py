"""
Distributor Module

This module assigns fetched articles to the sections of a layout template.
Breaking news fills the breaking section first; the general pool, already
ordered by priority, is then dealt out to the remaining sections in their
declaration order.
"""

import logging
from typing import List, Dict

from epaper.layout.template_registry import Template
from epaper.models import Article

logger = logging.getLogger(__name__)


def distribute(articles: List[Article], breaking_articles: List[Article],
               template: Template) -> Dict[str, List[Article]]:
    """
    Assign articles to template sections.

    Args:
        articles: General candidate pool, ordered by priority.
        breaking_articles: Active breaking news, most recent first.
        template: Layout template to fill.

    Returns:
        Mapping from section type to its assigned articles, with an entry
        (possibly empty) for every section that can carry articles.
    """
    distribution: Dict[str, List[Article]] = {}
    placed_keys = set()

    breaking_section = template.find_section("breaking")
    if breaking_section is not None and breaking_section.max_articles > 0:
        assigned = breaking_articles[:breaking_section.max_articles]
        distribution["breaking"] = list(assigned)
        placed_keys.update(article.key for article in assigned)
        dropped = len(breaking_articles) - len(assigned)
        if dropped > 0:
            logger.debug(f"Breaking section full, {dropped} breaking items left out")

    pool = [
        article for article in articles
        if not article.is_breaking and article.key not in placed_keys
    ]
    cursor = 0

    for section in template.sections:
        if section.is_static or section.type == "breaking":
            continue
        if section.max_articles <= 0:
            distribution[section.type] = []
            continue
        assigned = pool[cursor:cursor + section.max_articles]
        distribution[section.type] = assigned
        cursor += len(assigned)

    if breaking_section is not None and "breaking" not in distribution:
        distribution["breaking"] = []

    logger.debug("Distribution: " + ", ".join(
        f"{section_type}={len(items)}" for section_type, items in distribution.items()
    ))
    return distribution


def placed_count(distribution: Dict[str, List[Article]]) -> int:
    """Total number of articles assigned across all sections."""
    return sum(len(items) for items in distribution.values())
