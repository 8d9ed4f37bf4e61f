"""
Edition Archive Module

Records generated editions in the content store's ``epapers`` table so the
reader site can list them and mark the latest one.
"""

import logging
import math
from typing import Dict, Any, Optional

from epaper.errors import SourceFetchFailure

logger = logging.getLogger(__name__)


class EditionArchive:
    """Bookkeeping of generated editions in the epapers table."""

    def __init__(self, client):
        """
        Args:
            client: Content store client exposing select(), insert() and update().
        """
        self.client = client

    def record(self, title: str, publish_date: str, pdf_url: str) -> Dict[str, Any]:
        """
        Insert an edition as the latest one and clear the flag on all others.

        Raises:
            SourceFetchFailure: The store rejected the insert or update.
        """
        epaper = self.client.insert("epapers", {
            "title": title,
            "publish_date": publish_date,
            "pdf_url": pdf_url,
            "image_url": pdf_url,
            "is_latest": True,
        })
        if epaper.get("id") is not None:
            self.client.update("epapers", {"is_latest": False},
                               [("id", f"neq.{epaper['id']}"), ("is_latest", "eq.true")])
        logger.info(f"Recorded edition {publish_date} in epapers table")
        return epaper

    def has_edition(self, publish_date: str) -> bool:
        """True if an edition is recorded for the date. Store errors count as no edition."""
        try:
            rows, _ = self.client.select("epapers", columns="id",
                                         filters=[("publish_date", f"eq.{publish_date}")], limit=1)
        except SourceFetchFailure as e:
            logger.warning(f"Could not check existing editions: {str(e)}")
            return False
        return bool(rows)

    def history(self, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """
        Paginated listing of recorded editions, newest first.

        Raises:
            SourceFetchFailure: The query failed.
        """
        page = max(1, int(page))
        limit = max(1, int(limit))
        rows, total = self.client.select(
            "epapers",
            order=[("publish_date", True)],
            limit=limit,
            offset=(page - 1) * limit,
            count=True,
        )
        total = total or 0
        return {
            "epapers": rows,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "totalPages": math.ceil(total / limit),
            },
        }

    def latest(self) -> Optional[Dict[str, Any]]:
        rows, _ = self.client.select("epapers", filters=[("is_latest", "eq.true")],
                                     order=[("publish_date", True)], limit=1)
        return rows[0] if rows else None

    def get(self, epaper_id: str) -> Optional[Dict[str, Any]]:
        """
        Look up one recorded edition by id.

        Raises:
            SourceFetchFailure: The query failed.
        """
        rows, _ = self.client.select("epapers", filters=[("id", f"eq.{epaper_id}")], limit=1)
        return rows[0] if rows else None
