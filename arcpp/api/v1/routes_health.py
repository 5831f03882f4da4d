"""
Liveness and cache statistics
"""
from fastapi import APIRouter, Depends

from arcpp.api.deps import get_summary_cache
from arcpp.services.cache import TieredSummaryCache

router = APIRouter()

@router.get("/ping")
async def ping():
    return {"ok": True}

@router.get("/cache/stats")
async def get_cache_stats(cache: TieredSummaryCache = Depends(get_summary_cache)):
    """Cached key counts and memory use"""
    stats = await cache.stats()
    return {"success": True, **stats}
