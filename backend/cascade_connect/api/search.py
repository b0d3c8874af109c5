"""
Cascade Connect - Search API
=============================

Global search across homeowners, claims, schedule and messages.
"""

from typing import Optional

from fastapi import APIRouter, Query

from cascade_connect.api.deps import CurrentAdminUser, DbSession
from cascade_connect.core.schemas import SearchResponse
from cascade_connect.core.search import ALL_TYPES, SearchService

router = APIRouter(prefix="/search", tags=["Search"])


@router.get("", response_model=SearchResponse, summary="Global search")
async def global_search(
    current_user: CurrentAdminUser,
    db: DbSession,
    query: str = Query("", description="At least 2 characters"),
    types: Optional[str] = Query(None, description="Comma-separated: homeowner,claim,event,message"),
) -> SearchResponse:
    wanted = None
    if types:
        wanted = [t.strip() for t in types.split(",") if t.strip() in ALL_TYPES]

    results = await SearchService(db).search(query, wanted)
    return SearchResponse(query=query.strip(), results=results, total=len(results))
