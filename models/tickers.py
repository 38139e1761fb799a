from __future__ import annotations

from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint

from models import Base


class Ticker(Base):
    __tablename__ = "tickers"
    __table_args__ = (
        UniqueConstraint(
            "ticker_symbol", "issuer_id", name="uq_tickers_ticker_symbol_issuer_id"
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    ticker_symbol = Column(String, nullable=False, index=True)

    issuer_id = Column(
        String(32),
        ForeignKey("issuers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Display name as shown on the listing page when the ticker was first seen.
    sl_name = Column(String, nullable=False)
