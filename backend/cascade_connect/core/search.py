"""
Cascade Connect - Global Search
================================

Cross-entity search behind the staff command bar.

Queries are split into whitespace tokens; a row matches when every
token hits at least one of its searchable columns. Each result gets a
relevance score (base 50 plus per-field bonuses, capped at 100) and the
merged list is sorted by score.
"""

from datetime import timedelta
from typing import Iterable, Optional
from uuid import UUID

import structlog
from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from cascade_connect.core.claims import format_claim_number
from cascade_connect.core.database import as_utc, utcnow
from cascade_connect.core.models import (
    Appointment,
    ChannelType,
    Claim,
    Homeowner,
    InternalChannel,
    InternalMessage,
    MessageThread,
    User,
)
from cascade_connect.core.schemas import SearchResult

logger = structlog.get_logger()

MIN_QUERY_LENGTH = 2
RESULTS_PER_TYPE = 10
BASE_SCORE = 50
MAX_SCORE = 100
ALL_TYPES = ("homeowner", "claim", "event", "message")


def tokenize(query: str) -> list[str]:
    return [t for t in query.strip().split() if t]


def token_filter(tokens: Iterable[str], columns: list) -> list:
    """AND across tokens of OR across columns."""
    return [
        or_(*[column.ilike(f"%{token}%") for column in columns])
        for token in tokens
    ]


def _contains(value: Optional[str], token: str) -> bool:
    return bool(value) and token in value.lower()


def _snippet(text: Optional[str], length: int) -> str:
    if not text:
        return ""
    return text if len(text) <= length else text[:length].rstrip() + "..."


def _cap(score: int) -> int:
    return min(score, MAX_SCORE)


class SearchService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def search(self, query: str, types: Optional[Iterable[str]] = None) -> list[SearchResult]:
        query = (query or "").strip()
        if len(query) < MIN_QUERY_LENGTH:
            return []

        wanted = set(types or ALL_TYPES)
        tokens = [t.lower() for t in tokenize(query)]
        results: list[SearchResult] = []

        if "homeowner" in wanted:
            results.extend(await self.search_homeowners(tokens))
        if "claim" in wanted:
            results.extend(await self.search_claims(tokens))
        if "event" in wanted:
            results.extend(await self.search_appointments(query))
        if "message" in wanted:
            results.extend(await self.search_chat_messages(tokens))
            results.extend(await self.search_threads(tokens))

        results.sort(key=lambda r: r.score, reverse=True)
        logger.debug("search_completed", query=query, results=len(results))
        return results

    # ==================== Homeowners ====================

    async def search_homeowners(self, tokens: list[str]) -> list[SearchResult]:
        columns = [
            Homeowner.name,
            Homeowner.first_name,
            Homeowner.last_name,
            Homeowner.email,
            Homeowner.phone,
            Homeowner.address,
            Homeowner.job_name,
        ]
        result = await self.db.execute(
            select(Homeowner)
            .where(and_(*token_filter(tokens, columns)))
            .order_by(Homeowner.name)
            .limit(RESULTS_PER_TYPE)
        )

        results = []
        for h in result.scalars().all():
            score = BASE_SCORE
            for token in tokens:
                if _contains(h.name, token):
                    score += 15
                if _contains(h.job_name, token):
                    score += 12
                if _contains(h.email, token):
                    score += 10
                if _contains(h.address, token):
                    score += 8

            subtitle = " • ".join(p for p in (h.job_name, h.address) if p)
            results.append(SearchResult(
                type="homeowner",
                id=str(h.id),
                title=h.name,
                subtitle=subtitle,
                url=f"#homeowners?homeownerId={h.id}",
                icon="User",
                score=_cap(score),
            ))
        return results

    # ==================== Claims ====================

    async def search_claims(self, tokens: list[str]) -> list[SearchResult]:
        columns = [
            Claim.title,
            Claim.description,
            Claim.claim_number,
            Claim.homeowner_name,
            Claim.job_name,
            Claim.address,
            Homeowner.name,
            Homeowner.job_name,
        ]
        result = await self.db.execute(
            select(Claim, Homeowner)
            .outerjoin(Homeowner, Homeowner.id == Claim.homeowner_id)
            .where(and_(*token_filter(tokens, columns)))
            .order_by(Claim.date_submitted.desc())
            .limit(RESULTS_PER_TYPE)
        )

        results = []
        for claim, homeowner in result.all():
            job_name = claim.job_name or (homeowner.job_name if homeowner else None)
            score = BASE_SCORE
            for token in tokens:
                if _contains(claim.title, token):
                    score += 15
                if _contains(claim.description, token):
                    score += 12
                if _contains(claim.claim_number, token):
                    score += 13
                if _contains(job_name, token):
                    score += 12

            number = format_claim_number(claim)
            parts = [
                job_name or claim.homeowner_name or "",
                f"#{number}",
                claim.status.value,
                _snippet(claim.description, 100),
            ]
            results.append(SearchResult(
                type="claim",
                id=str(claim.id),
                title=claim.title,
                subtitle=" • ".join(p for p in parts if p),
                url=f"#claims?claimId={claim.id}",
                icon="FileText",
                score=_cap(score),
            ))
        return results

    # ==================== Appointments ====================

    async def search_appointments(self, query: str) -> list[SearchResult]:
        pattern = f"%{query}%"
        now = utcnow()
        result = await self.db.execute(
            select(Appointment)
            .where(
                or_(Appointment.title.ilike(pattern), Appointment.description.ilike(pattern)),
                Appointment.start_time >= now - timedelta(days=30),
            )
            .order_by(Appointment.start_time)
            .limit(RESULTS_PER_TYPE)
        )

        lowered = query.lower()
        results = []
        for appt in result.scalars().all():
            if _contains(appt.title, lowered):
                score = 90
            elif _contains(appt.description, lowered):
                score = 70
            else:
                score = 60
            start = as_utc(appt.start_time)
            if start > now:
                score += 10

            results.append(SearchResult(
                type="event",
                id=str(appt.id),
                title=appt.title,
                subtitle=start.strftime("%b %d, %Y %I:%M %p"),
                url=f"#schedule?appointmentId={appt.id}",
                icon="Calendar",
                score=_cap(score),
            ))
        return results

    # ==================== Team Chat ====================

    async def search_chat_messages(self, tokens: list[str]) -> list[SearchResult]:
        columns = [InternalMessage.content, InternalChannel.name, User.name]
        result = await self.db.execute(
            select(InternalMessage, InternalChannel, User)
            .join(InternalChannel, InternalChannel.id == InternalMessage.channel_id)
            .outerjoin(User, User.id == InternalMessage.sender_id)
            .where(
                InternalMessage.is_deleted.is_(False),
                and_(*token_filter(tokens, columns)),
            )
            .order_by(InternalMessage.created_at.desc())
            .limit(RESULTS_PER_TYPE)
        )

        results = []
        for message, channel, sender in result.all():
            sender_name = sender.name if sender else "Unknown"
            content = (message.content or "").lower()
            score = BASE_SCORE
            for token in tokens:
                if content.startswith(token):
                    score += 15
                elif token in content:
                    score += 12
                if _contains(channel.name, token):
                    score += 10
                if _contains(sender_name, token):
                    score += 8

            if channel.type == ChannelType.DM:
                context = await self._dm_context(channel, sender)
            else:
                context = f"#{channel.name}"

            channel_ref = channel.name if channel.type == ChannelType.DM else str(channel.id)
            results.append(SearchResult(
                type="message",
                id=str(message.id),
                title=_snippet(message.content, 80),
                subtitle=f"{sender_name} • {context}",
                url=f"#team-chat?channelId={channel_ref}&messageId={message.id}",
                icon="MessageSquare",
                score=_cap(score),
            ))
        return results

    async def _dm_context(self, channel: InternalChannel, sender: Optional[User]) -> str:
        participants = channel.dm_participants or []
        other_hex = next((p for p in participants if not sender or p != sender.id.hex), None)
        if other_hex is None:
            return "Direct message"
        other = await self.db.get(User, UUID(hex=other_hex))
        return f"DM with {other.name}" if other else "Direct message"

    # ==================== Homeowner Threads ====================

    async def search_threads(self, tokens: list[str]) -> list[SearchResult]:
        columns = [
            MessageThread.subject,
            Homeowner.name,
            Homeowner.first_name,
            Homeowner.last_name,
            Homeowner.job_name,
            Homeowner.address,
        ]
        result = await self.db.execute(
            select(MessageThread, Homeowner)
            .join(Homeowner, Homeowner.id == MessageThread.homeowner_id)
            .where(and_(*token_filter(tokens, columns)))
            .order_by(MessageThread.last_message_at.desc())
            .limit(RESULTS_PER_TYPE)
        )

        results = []
        for thread, homeowner in result.all():
            score = BASE_SCORE
            for token in tokens:
                if _contains(thread.subject, token):
                    score += 15
                if _contains(homeowner.job_name, token):
                    score += 12
                if _contains(homeowner.name, token):
                    score += 10
                if _contains(homeowner.address, token):
                    score += 8

            results.append(SearchResult(
                type="message",
                id=str(thread.id),
                title=thread.subject,
                subtitle=" • ".join(p for p in (homeowner.name, homeowner.job_name) if p),
                url=f"#messages?threadId={thread.id}",
                icon="Mail",
                score=_cap(score),
            ))
        return results
