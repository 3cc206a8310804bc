# cronq/core/models/records_pg.py
"""Tables owned by the subsystems the handlers collaborate with.

They share the task table's declarative base so one create_all initialises
a fresh database.
"""

from __future__ import annotations
from datetime import date, datetime, timezone
from typing import Any, Optional
from uuid import uuid4
from sqlalchemy import Date, DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from cronq.core.models.task_pg import Base, JsonDocument


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


class ContentQueueModel(Base):
    """Draft content waiting for editorial review."""

    __tablename__ = 'cronq_content_queue'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    content_type: Mapped[str] = mapped_column(String(64), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[dict[str, Any]] = mapped_column(JsonDocument, nullable=False, default=dict)
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default='pending')
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )


class TicketModel(Base):
    """
    Auto-generated support / error ticket.

    - ticket_type: 'error', 'support', ...
    - severity: 'low' .. 'critical'
    - error_details: json # free-form; investigation writes the 'analysis' key
    """

    __tablename__ = 'cronq_tickets'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ticket_type: Mapped[str] = mapped_column(String(32), nullable=False, default='error')
    severity: Mapped[str] = mapped_column(String(16), nullable=False, default='medium')
    source: Mapped[str] = mapped_column(String(64), nullable=False, default='unknown')
    status: Mapped[str] = mapped_column(String(20), nullable=False, default='open')
    error_details: Mapped[Optional[dict[str, Any]]] = mapped_column(JsonDocument, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )
    resolved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class KnowledgeArticleModel(Base):
    __tablename__ = 'cronq_knowledge_articles'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[dict[str, Any]] = mapped_column(JsonDocument, nullable=False, default=dict)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    tags: Mapped[list[str]] = mapped_column(JsonDocument, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default='draft')
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow,
    )


class SystemHealthModel(Base):
    __tablename__ = 'cronq_system_health'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    component: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    details: Mapped[Optional[dict[str, Any]]] = mapped_column(JsonDocument, nullable=True)
    checked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, index=True,
    )


class GrowthMetricModel(Base):
    __tablename__ = 'cronq_growth_metrics'

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    metric_type: Mapped[str] = mapped_column(String(64), nullable=False)
    metric_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
