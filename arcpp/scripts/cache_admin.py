"""
Run the summary cache jobs without a celery worker.

    python -m arcpp.scripts.cache_admin populate --species haloferax_volcanii
    python -m arcpp.scripts.cache_admin seed --data-dir ./data --wait 15
    python -m arcpp.scripts.cache_admin export --data-dir ./data
"""
import argparse
import asyncio
import json
import sys

from arcpp.core.logging_conf import logger, setup_logging
from arcpp.tasks.tasks_cache import run_export, run_populate, run_seed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Populate, seed or export the protein summary cache")
    sub = parser.add_subparsers(dest="command", required=True)

    populate = sub.add_parser("populate", help="build summaries from the database")
    populate.add_argument("--species", default="haloferax_volcanii")

    seed = sub.add_parser("seed", help="load exported seed files unless already seeded")
    seed.add_argument("--data-dir", default=None)
    seed.add_argument("--force", action="store_true", help="reload even if the seed version matches")
    seed.add_argument("--wait", type=int, default=15, help="retries while waiting for the cache")

    export = sub.add_parser("export", help="write cached entries to seed files")
    export.add_argument("--data-dir", default=None)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()

    if args.command == "populate":
        job = run_populate(args.species)
    elif args.command == "seed":
        job = run_seed(args.data_dir, force=args.force, wait_retries=args.wait)
    else:
        job = run_export(args.data_dir)

    try:
        result = asyncio.run(job)
    except Exception as e:
        logger.error(f"Cache {args.command} failed: {e}")
        return 1
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
