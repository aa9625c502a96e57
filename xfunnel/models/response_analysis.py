from datetime import datetime

from sqlalchemy import BigInteger, Boolean, DateTime, Float, Integer, String, Text
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from xfunnel.db.base import Base


class ResponseAnalysis(Base):
    """One analyzed answer-engine response to one query.

    Written by the upstream analysis pipeline; this service only reads it.
    """

    __tablename__ = "response_analysis"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    company_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    company_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    query_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    query_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    answer_engine: Mapped[str] = mapped_column(String(50), nullable=False)  # openai | claude | google_search | ...

    # Grouping dimensions (free text, not normalized upstream)
    buying_journey_stage: Mapped[str | None] = mapped_column(String(50), nullable=True)
    geographic_region: Mapped[str | None] = mapped_column(String(100), nullable=True)
    icp_vertical: Mapped[str | None] = mapped_column(String(255), nullable=True)
    buyer_persona: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Analysis results
    sentiment_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    ranking_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    company_mentioned: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    recommended: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    solution_analysis: Mapped[dict | str | None] = mapped_column(JSONB, nullable=True)  # {"has_feature": "YES"}
    rank_list: Mapped[str | None] = mapped_column(Text, nullable=True)  # "1. Acme\n2. Beta"
    mentioned_companies: Mapped[list[str] | None] = mapped_column(ARRAY(Text), nullable=True)
    citations_parsed: Mapped[dict | None] = mapped_column(JSONB, nullable=True)  # {"urls": [...]}

    # Ingestion
    analysis_batch_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
