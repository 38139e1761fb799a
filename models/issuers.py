from __future__ import annotations

import uuid

from sqlalchemy import Column, Integer, String

from models import Base


class Issuer(Base):
    """Security issuer listed on the exchange page.

    `sl_key` is the natural key taken from the issuer's link on the listing
    page; it deduplicates issuers across crawls. Rows are created by the
    crawler but never updated by it, so `name` and `sector_id` may be curated
    by hand.
    """

    __tablename__ = "issuers"

    # Stored as a hex string for SQLite portability.
    id = Column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)

    name = Column(String, nullable=True)

    sl_key = Column(String, unique=True, nullable=False, index=True)

    # Assigned outside the crawler.
    sector_id = Column(Integer, nullable=True)
