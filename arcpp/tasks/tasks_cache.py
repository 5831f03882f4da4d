"""
Celery tasks that fill and dump the protein summary cache.

All jobs are idempotent: every key is replaced whole, and re-running a job
simply rewrites the same entries.
"""
import asyncio
import json
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import aiofiles
from pydantic import ValidationError

from arcpp.analysis.summary import ProteinSummaryBuilder
from arcpp.core.celery_app import celery_app
from arcpp.core.config import settings
from arcpp.core.constants import PSMS_KEY_PREFIX, SUMMARY_KEY_PREFIX
from arcpp.core.exceptions import CacheUnavailableError
from arcpp.core.logging_conf import logger
from arcpp.core.species import resolve_species
from arcpp.db.repository import SqlAlchemyProteinRepository
from arcpp.db.session import check_connection, create_engine, create_session_factory
from arcpp.schemas import ProteinSummary
from arcpp.services.cache import TieredSummaryCache, create_key_value_store

PSM_SEED_FILE = "redis-seed-psms.json"
SUMMARY_SEED_FILE = "redis-seed-summaries.json"


async def populate_cache(
    repository,
    cache: TieredSummaryCache,
    species_id: str,
    batch_size: Optional[int] = None,
    progress: Optional[Callable[[int, int], None]] = None,
) -> Dict[str, Any]:
    """Build and store every summary and PSM breakdown of a species"""
    species = resolve_species(species_id)
    if species is None:
        raise ValueError(f"Unknown species: {species_id}")

    batch_size = batch_size or settings.POPULATE_BATCH_SIZE
    builder = ProteinSummaryBuilder(repository)
    start = time.perf_counter()

    proteins = await repository.list_species_proteins(species.id_prefix)
    logger.info(f"Populating summary cache for {len(proteins)} {species.display_name} proteins")

    processed = 0
    total_batches = (len(proteins) + batch_size - 1) // batch_size
    for i in range(0, len(proteins), batch_size):
        batch = proteins[i:i + batch_size]
        entries = await builder.build_cache_entries(batch)
        await cache.set_entries(entries)
        processed += len(entries)
        logger.info(f"Batch {i // batch_size + 1}/{total_batches}: cached {processed}/{len(proteins)} proteins")
        if progress:
            progress(processed, len(proteins))

    await cache.mark_seeded()
    elapsed = time.perf_counter() - start
    logger.info(f"Cache population complete: {processed} proteins in {elapsed:.2f}s")
    return {"species": species.display_name, "proteins": processed, "elapsed_seconds": round(elapsed, 2)}


async def _read_json(path: Path) -> Optional[Dict[str, Any]]:
    if not path.exists():
        logger.warning(f"{path} not found, skipping")
        return None
    async with aiofiles.open(path, "r", encoding="utf-8") as f:
        return json.loads(await f.read())


async def seed_cache(cache: TieredSummaryCache, data_dir: Optional[str] = None, force: bool = False) -> Dict[str, Any]:
    """Load exported seed files unless the cache already holds this seed version"""
    if not force and await cache.is_seeded():
        logger.info(f"Cache already seeded (v{cache.seed_version}), skipping")
        return {"skipped": True, "psms": 0, "summaries": 0}

    data_path = Path(data_dir or settings.SEED_DATA_DIR)
    start = time.perf_counter()

    psm_count = 0
    psm_map = await _read_json(data_path / PSM_SEED_FILE)
    if psm_map:
        psm_count = await cache.write_raw(
            (cache.psms_key(pid), json.dumps(value)) for pid, value in psm_map.items()
        )

    summary_count = 0
    summary_map = await _read_json(data_path / SUMMARY_SEED_FILE)
    if summary_map:
        items = []
        for pid, value in summary_map.items():
            try:
                summary = ProteinSummary.model_validate(value)
            except ValidationError as e:
                logger.warning(f"Skipping invalid seed summary for {pid}: {e}")
                continue
            items.append((cache.summary_key(pid), summary.model_dump_json(by_alias=True)))
        summary_count = await cache.write_raw(items)

    await cache.mark_seeded()
    elapsed = time.perf_counter() - start
    logger.info(f"Cache seeding complete: {psm_count} PSM + {summary_count} summary entries in {elapsed:.2f}s")
    return {"skipped": False, "psms": psm_count, "summaries": summary_count}


async def export_cache(cache: TieredSummaryCache, data_dir: Optional[str] = None) -> Dict[str, Any]:
    """Dump cached entries into the seed files read by :func:`seed_cache`"""
    data_path = Path(data_dir or settings.SEED_DATA_DIR)
    data_path.mkdir(exist_ok=True, parents=True)

    counts = {}
    for key_prefix, filename, label in (
        (PSMS_KEY_PREFIX, PSM_SEED_FILE, "psms"),
        (SUMMARY_KEY_PREFIX, SUMMARY_SEED_FILE, "summaries"),
    ):
        exported = await cache.export_namespace(key_prefix)
        counts[label] = len(exported)
        if not exported:
            logger.info(f"No {label} entries cached, skipping {filename}")
            continue
        async with aiofiles.open(data_path / filename, "w", encoding="utf-8") as f:
            await f.write(json.dumps(exported))
        logger.info(f"Wrote {data_path / filename} ({len(exported)} entries)")
    return counts


async def wait_for_cache(store, retries: int = 0, interval: float = 2.0):
    """Ping the cache store, retrying up to ``retries`` times"""
    for attempt in range(retries + 1):
        try:
            await store.ping()
            return
        except CacheUnavailableError:
            if attempt >= retries:
                raise
            logger.info(f"Cache not ready, retrying ({attempt + 1}/{retries})...")
            await asyncio.sleep(interval)


@asynccontextmanager
async def cache_resources(with_database: bool = True, wait_retries: int = 0, wait_interval: float = 2.0):
    """Repository and cache for jobs running outside the API process"""
    engine = None
    repository = None
    store = create_key_value_store()
    try:
        if with_database:
            engine = create_engine()
            await check_connection(engine)
            repository = SqlAlchemyProteinRepository(create_session_factory(engine))
        await wait_for_cache(store, wait_retries, wait_interval)
        yield repository, TieredSummaryCache(store)
    finally:
        await store.close()
        if engine is not None:
            await engine.dispose()


async def run_populate(species_id: str, progress=None) -> Dict[str, Any]:
    async with cache_resources() as (repository, cache):
        return await populate_cache(repository, cache, species_id, progress=progress)


async def run_seed(data_dir: Optional[str] = None, force: bool = False, wait_retries: int = 0) -> Dict[str, Any]:
    async with cache_resources(with_database=False, wait_retries=wait_retries) as (_, cache):
        return await seed_cache(cache, data_dir, force=force)


async def run_export(data_dir: Optional[str] = None) -> Dict[str, Any]:
    async with cache_resources(with_database=False) as (_, cache):
        return await export_cache(cache, data_dir)


@celery_app.task(bind=True)
def populate_summary_cache(self, species_id: str = "haloferax_volcanii") -> Dict[str, Any]:
    """Rebuild the summary cache of one species from the database"""

    def update_progress(done: int, total: int):
        self.update_state(
            state="PROGRESS",
            meta={"current": done, "total": total, "progress": int(done / total * 100) if total else 100}
        )

    try:
        result = asyncio.run(run_populate(species_id, progress=update_progress))
        return {"status": "success", "result": result}
    except Exception as e:
        logger.error(f"Summary cache population for {species_id} failed: {e}")
        raise


@celery_app.task
def seed_cache_from_files(data_dir: Optional[str] = None, force: bool = False) -> Dict[str, Any]:
    """Load the exported seed files into the cache"""
    return asyncio.run(run_seed(data_dir, force=force))


@celery_app.task
def export_cache_to_files(data_dir: Optional[str] = None) -> Dict[str, Any]:
    """Write cached entries to seed files"""
    return asyncio.run(run_export(data_dir))
