import fnmatch
import json
from typing import Any, Dict, Iterable, List, Optional, Tuple

import redis.asyncio as aioredis
from loguru import logger
from pydantic import TypeAdapter, ValidationError
from redis.exceptions import RedisError

from arcpp.core.config import settings
from arcpp.core.constants import PSMS_KEY_PREFIX, SEED_VERSION_KEY, SUMMARY_KEY_PREFIX
from arcpp.core.exceptions import CacheUnavailableError
from arcpp.schemas import DatasetPsmCount, ProteinSummary, SummaryPage

_psm_rows = TypeAdapter(List[DatasetPsmCount])


class KeyValueStore:
    """String key-value store used by the summary cache"""

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError()

    async def get_many(self, keys: List[str]) -> List[Optional[str]]:
        raise NotImplementedError()

    async def set(self, key: str, value: str):
        raise NotImplementedError()

    async def set_many(self, items: List[Tuple[str, str]]):
        """Write all items in one round-trip"""
        raise NotImplementedError()

    async def keys(self, pattern: str) -> List[str]:
        raise NotImplementedError()

    async def ping(self) -> bool:
        raise NotImplementedError()

    async def memory_used_bytes(self) -> int:
        return 0

    async def close(self):
        pass


class RedisKeyValueStore(KeyValueStore):
    def __init__(self, redis_client):
        self.redis_client = redis_client

    @classmethod
    def from_url(cls, url: Optional[str] = None) -> "RedisKeyValueStore":
        client = aioredis.from_url(
            url or settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=settings.CACHE_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.CACHE_SOCKET_TIMEOUT,
        )
        return cls(client)

    async def get(self, key: str) -> Optional[str]:
        try:
            return await self.redis_client.get(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Cache get error for {key}: {e}") from e

    async def get_many(self, keys: List[str]) -> List[Optional[str]]:
        if not keys:
            return []
        try:
            return await self.redis_client.mget(keys)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Cache mget error: {e}") from e

    async def set(self, key: str, value: str):
        try:
            await self.redis_client.set(key, value)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Cache set error for {key}: {e}") from e

    async def set_many(self, items: List[Tuple[str, str]]):
        if not items:
            return
        try:
            async with self.redis_client.pipeline(transaction=False) as pipe:
                for key, value in items:
                    pipe.set(key, value)
                await pipe.execute()
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Cache pipeline error: {e}") from e

    async def keys(self, pattern: str) -> List[str]:
        try:
            return [key async for key in self.redis_client.scan_iter(match=pattern, count=1000)]
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Cache scan error for {pattern}: {e}") from e

    async def ping(self) -> bool:
        try:
            return bool(await self.redis_client.ping())
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Cache ping error: {e}") from e

    async def memory_used_bytes(self) -> int:
        try:
            info = await self.redis_client.info("memory")
        except (RedisError, OSError) as e:
            raise CacheUnavailableError(f"Cache info error: {e}") from e
        return int(info.get("used_memory", 0))

    async def close(self):
        await self.redis_client.aclose()


class MemoryKeyValueStore(KeyValueStore):
    """Process-local store, for tests and for running without Redis"""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(data or {})
        self.available = True
        self.write_calls = 0

    def _check(self):
        if not self.available:
            raise CacheUnavailableError("Memory store marked unavailable")

    async def get(self, key: str) -> Optional[str]:
        self._check()
        return self.data.get(key)

    async def get_many(self, keys: List[str]) -> List[Optional[str]]:
        self._check()
        return [self.data.get(k) for k in keys]

    async def set(self, key: str, value: str):
        self._check()
        self.write_calls += 1
        self.data[key] = value

    async def set_many(self, items: List[Tuple[str, str]]):
        self._check()
        self.write_calls += 1
        self.data.update(items)

    async def keys(self, pattern: str) -> List[str]:
        self._check()
        return [k for k in self.data if fnmatch.fnmatchcase(k, pattern)]

    async def ping(self) -> bool:
        self._check()
        return True

    async def memory_used_bytes(self) -> int:
        self._check()
        return sum(len(k) + len(v) for k, v in self.data.items())


def create_key_value_store(backend: Optional[str] = None) -> KeyValueStore:
    backend = (backend or settings.CACHE_BACKEND).lower()
    if backend == "memory":
        return MemoryKeyValueStore()
    if backend == "redis":
        return RedisKeyValueStore.from_url()
    raise ValueError(f"Unknown cache backend: {backend}")


def summary_matches(summary: ProteinSummary, query: str) -> bool:
    """Case-insensitive substring match over the searchable summary fields"""
    query = query.strip().lower()
    if not query:
        return True
    fields = [summary.hvo_id, summary.uniprot_id, summary.description]
    fields.extend(summary.datasets)
    fields.extend(summary.modifications)
    return any(query in (f or "").lower() for f in fields)


class TieredSummaryCache:
    """Read-through cache of protein summaries and per-dataset PSM counts.

    Entries are always written whole. Store failures surface as
    :class:`CacheUnavailableError` so callers can fall back to the database.
    """

    def __init__(self, store: KeyValueStore, write_batch_size: Optional[int] = None, seed_version: Optional[str] = None):
        self.store = store
        self.write_batch_size = write_batch_size or settings.CACHE_WRITE_BATCH_SIZE
        self.seed_version = seed_version or settings.SEED_VERSION

    @staticmethod
    def summary_key(protein_id: str) -> str:
        return f"{SUMMARY_KEY_PREFIX}{protein_id}"

    @staticmethod
    def psms_key(protein_id: str) -> str:
        return f"{PSMS_KEY_PREFIX}{protein_id}"

    async def get(self, protein_id: str) -> Optional[ProteinSummary]:
        """Get summary from cache"""
        raw = await self.store.get(self.summary_key(protein_id))
        if raw is None:
            return None
        try:
            return ProteinSummary.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Undecodable cache entry for {protein_id}: {e}")
            return None

    async def set(self, protein_id: str, summary: ProteinSummary):
        await self.store.set(self.summary_key(protein_id), summary.model_dump_json(by_alias=True))

    async def get_psms_by_dataset(self, protein_id: str) -> Optional[List[DatasetPsmCount]]:
        raw = await self.store.get(self.psms_key(protein_id))
        if raw is None:
            return None
        try:
            return _psm_rows.validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Undecodable PSM entry for {protein_id}: {e}")
            return None

    async def set_psms_by_dataset(self, protein_id: str, rows: List[DatasetPsmCount]):
        await self.store.set(self.psms_key(protein_id), _psm_rows.dump_json(rows, by_alias=True).decode())

    async def write_raw(self, items: Iterable[Tuple[str, str]]) -> int:
        """Pipeline pre-serialized ``(key, value)`` pairs in batches"""
        batch = []
        written = 0
        for item in items:
            batch.append(item)
            if len(batch) >= self.write_batch_size:
                await self.store.set_many(batch)
                written += len(batch)
                batch = []
        if batch:
            await self.store.set_many(batch)
            written += len(batch)
        return written

    async def set_many(self, summaries: Iterable[ProteinSummary]) -> int:
        return await self.write_raw(
            (self.summary_key(s.hvo_id), s.model_dump_json(by_alias=True)) for s in summaries
        )

    async def set_entries(self, entries: Iterable[Tuple[ProteinSummary, List[DatasetPsmCount]]]) -> int:
        """Write summary and PSM breakdown of each protein"""
        items = []
        for summary, psm_rows in entries:
            items.append((self.summary_key(summary.hvo_id), summary.model_dump_json(by_alias=True)))
            items.append((self.psms_key(summary.hvo_id), _psm_rows.dump_json(psm_rows, by_alias=True).decode()))
        return await self.write_raw(items)

    async def _summary_keys(self, species_prefix: str) -> List[str]:
        keys = await self.store.keys(f"{SUMMARY_KEY_PREFIX}{species_prefix}*")
        return sorted(keys)

    def _decode_rows(self, raws: List[Optional[str]]) -> List[ProteinSummary]:
        rows = []
        for raw in raws:
            if raw is None:
                continue
            try:
                rows.append(ProteinSummary.model_validate_json(raw))
            except ValidationError as e:
                raise CacheUnavailableError(f"Undecodable summary entry: {e}") from e
        return rows

    async def search_summaries(self, query: str, species_prefix: str) -> List[ProteinSummary]:
        """Linear scan of the species' summaries, sorted by protein id"""
        keys = await self._summary_keys(species_prefix)
        rows = self._decode_rows(await self.store.get_many(keys))
        return [row for row in rows if summary_matches(row, query or "")]

    async def search_all(self, query: str, species_prefix: str) -> List[str]:
        return [row.hvo_id for row in await self.search_summaries(query, species_prefix)]

    async def page(self, species_prefix: str, offset: int = 0, limit: int = 25) -> SummaryPage:
        keys = await self._summary_keys(species_prefix)
        page_keys = keys[offset:offset + limit]
        rows = self._decode_rows(await self.store.get_many(page_keys))
        return SummaryPage(total=len(keys), rows=rows)

    async def is_seeded(self) -> bool:
        return await self.store.get(SEED_VERSION_KEY) == self.seed_version

    async def mark_seeded(self):
        await self.store.set(SEED_VERSION_KEY, self.seed_version)

    async def export_namespace(self, key_prefix: str) -> Dict[str, Any]:
        """``{protein_id: decoded value}`` for every key under ``key_prefix``"""
        keys = sorted(await self.store.keys(f"{key_prefix}*"))
        raws = await self.store.get_many(keys)
        exported = {}
        for key, raw in zip(keys, raws):
            if raw is None:
                continue
            exported[key[len(key_prefix):]] = json.loads(raw)
        return exported

    async def stats(self) -> Dict[str, Any]:
        try:
            summary_keys = await self.store.keys(f"{SUMMARY_KEY_PREFIX}*")
            psm_keys = await self.store.keys(f"{PSMS_KEY_PREFIX}*")
            memory = await self.store.memory_used_bytes()
            seeded = await self.is_seeded()
        except CacheUnavailableError as e:
            logger.warning(f"Cache stats unavailable: {e}")
            return {
                "totalProteinsCached": 0,
                "totalSummariesCached": 0,
                "redisConnected": False,
                "seeded": False,
                "memoryUsedMB": 0,
            }
        return {
            "totalProteinsCached": len(psm_keys),
            "totalSummariesCached": len(summary_keys),
            "redisConnected": True,
            "seeded": seeded,
            "memoryUsedMB": round(memory / (1024 * 1024), 2),
        }
