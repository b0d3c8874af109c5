"""
Cascade Connect - Dashboard API
================================

Claim statistics for the staff dashboard and the admin backend status
pages (database, deploys and the outbound email log).
"""

from collections import Counter
from datetime import datetime
from typing import Optional
from uuid import UUID

import httpx
import structlog
from fastapi import APIRouter, Query
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError

from cascade_connect.api.deps import CurrentAdminUser, DbSession, Netlify, StaffUser
from cascade_connect.core.claims import is_open
from cascade_connect.core.database import Base, as_utc, utcnow
from cascade_connect.core.models import Claim, ClaimStatus, EmailLog, EmailStatus, Homeowner, UserRole
from cascade_connect.core.schemas import (
    DashboardStats,
    DatabaseStats,
    DeployInfo,
    DeploysResponse,
    EmailLogListResponse,
    EmailLogResponse,
    EmailLogStats,
    TableStat,
)

router = APIRouter(tags=["Dashboard"])
logger = structlog.get_logger()


# ==========================================================================
# Claim Statistics
# ==========================================================================

@router.get("/dashboard/stats", response_model=DashboardStats, summary="Claim statistics")
async def dashboard_stats(
    current_user: StaffUser,
    db: DbSession,
    homeowner_id: Optional[UUID] = Query(None),
    builder_group_id: Optional[UUID] = Query(None),
) -> DashboardStats:
    query = select(Claim)

    if current_user.role == UserRole.BUILDER:
        builder_group_id = current_user.builder_group_id
    if homeowner_id:
        query = query.where(Claim.homeowner_id == homeowner_id)
    if builder_group_id:
        query = query.where(
            Claim.homeowner_id.in_(
                select(Homeowner.id).where(Homeowner.builder_group_id == builder_group_id)
            )
        )

    claims = list((await db.execute(query)).scalars().all())
    open_claims = [c for c in claims if is_open(c)]

    now = utcnow()
    ages = [(now - as_utc(c.date_submitted)).total_seconds() / 86400 for c in open_claims]

    return DashboardStats(
        total=len(claims),
        open=len(open_claims),
        scheduled=sum(1 for c in claims if c.status == ClaimStatus.SCHEDULED),
        completed=len(claims) - len(open_claims),
        avg_days_open=round(sum(ages) / len(ages), 1) if ages else 0.0,
        by_status=dict(Counter(c.status.value for c in claims)),
        by_classification=dict(Counter(c.classification for c in claims)),
    )


# ==========================================================================
# Backend Status
# ==========================================================================

@router.get("/backend/database", response_model=DatabaseStats, summary="Database statistics")
async def database_stats(current_user: CurrentAdminUser, db: DbSession) -> DatabaseStats:
    """Row counts per table; size and connections on PostgreSQL only."""
    tables: list[TableStat] = []
    for table in Base.metadata.sorted_tables:
        rows = (await db.execute(select(func.count()).select_from(table))).scalar() or 0
        tables.append(TableStat(table=table.name, rows=rows))

    dialect = db.get_bind().dialect.name
    size_bytes = None
    connections = None

    if dialect == "postgresql":
        try:
            async with db.begin_nested():
                size_bytes = (
                    await db.execute(text("SELECT pg_database_size(current_database())"))
                ).scalar()
        except SQLAlchemyError as e:
            logger.warning("database_size_unavailable", error=str(e))
        try:
            async with db.begin_nested():
                connections = (
                    await db.execute(text(
                        "SELECT count(*) FROM pg_stat_activity WHERE datname = current_database()"
                    ))
                ).scalar()
        except SQLAlchemyError as e:
            logger.warning("connection_stats_unavailable", error=str(e))

    return DatabaseStats(
        dialect=dialect,
        tables=tables,
        total_rows=sum(t.rows for t in tables),
        database_size_bytes=size_bytes,
        active_connections=connections,
    )


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


@router.get("/backend/deploys", response_model=DeploysResponse, summary="Recent deploys")
async def recent_deploys(
    current_user: CurrentAdminUser,
    netlify: Netlify,
    limit: int = Query(10, ge=1, le=50),
) -> DeploysResponse:
    if not netlify.enabled:
        return DeploysResponse(configured=False)

    try:
        deploys = await netlify.list_deploys(limit)
    except httpx.HTTPError as e:
        logger.error("deploys_fetch_failed", error=str(e))
        return DeploysResponse(configured=True)

    return DeploysResponse(
        configured=True,
        deploys=[
            DeployInfo(
                id=d.get("id", ""),
                state=d.get("state", "unknown"),
                branch=d.get("branch"),
                created_at=_parse_time(d.get("created_at")),
                deploy_url=d.get("deploy_ssl_url") or d.get("deploy_url"),
                error_message=d.get("error_message"),
            )
            for d in deploys
        ],
    )


@router.get("/backend/email-logs", response_model=EmailLogListResponse, summary="Outbound email log")
async def email_logs(
    current_user: CurrentAdminUser,
    db: DbSession,
    start_date: Optional[datetime] = Query(None, description="Sent at or after"),
    end_date: Optional[datetime] = Query(None, description="Sent at or before"),
    limit: int = Query(500, ge=1, le=1000),
) -> EmailLogListResponse:
    query = select(EmailLog)
    if start_date:
        query = query.where(EmailLog.created_at >= start_date)
    if end_date:
        query = query.where(EmailLog.created_at <= end_date)
    result = await db.execute(query.order_by(EmailLog.created_at.desc()).limit(limit))
    logs = result.scalars().all()

    counts = dict(
        (await db.execute(select(EmailLog.status, func.count()).group_by(EmailLog.status))).all()
    )

    return EmailLogListResponse(
        logs=[EmailLogResponse.model_validate(log) for log in logs],
        stats=EmailLogStats(
            total=sum(counts.values()),
            sent=counts.get(EmailStatus.SENT, 0),
            failed=counts.get(EmailStatus.FAILED, 0),
            read=counts.get(EmailStatus.READ, 0),
        ),
    )
