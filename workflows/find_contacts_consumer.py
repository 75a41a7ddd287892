#!/usr/bin/env python3
"""Contact finder consumer - polls SQS and finds decision-maker emails per prospect.

Modes:
1. SQS mode (default): bounded worker pool over the contact finder queue
2. Direct mode (--direct): run one domain end to end (for testing)
3. Cache admin: --cache-stats, --clear-cache DOMAIN|all
4. Enqueue: --enqueue --prospect-id ID --domain DOMAIN [--url URL]

Usage:
    # SQS consumer mode (production)
    uv run python workflows/find_contacts_consumer.py
    uv run python workflows/find_contacts_consumer.py --concurrency 5 --forever

    # Direct mode (no SQS, nothing written to the DB unless --save)
    uv run python workflows/find_contacts_consumer.py --direct --domain acme.com --url https://acme.com/blog/post

    # Cache admin
    uv run python workflows/find_contacts_consumer.py --cache-stats
    uv run python workflows/find_contacts_consumer.py --clear-cache acme.com
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import asyncio
import signal

import httpx
from loguru import logger

from db.client import close_db, init_db
from infra.cache_store import create_cache_store
from services.contacts.cache import ContactCache
from services.contacts.config import PipelineSettings
from services.contacts.queue import SQSContactQueue
from services.contacts.repo import BlocklistRepo, ContactRepo, MockBlocklist, MockContactRepo
from services.contacts.service import ContactJob, create_contact_finder
from services.contacts.worker import run_worker_pool


def _http_client(settings: PipelineSettings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=settings.http_timeout_seconds,
        limits=httpx.Limits(max_connections=settings.worker_concurrency * 4),
    )


async def run_sqs_consumer(settings: PipelineSettings, concurrency: int, forever: bool):
    """Run the SQS consumer loop."""
    if not settings.sqs_queue_url:
        logger.error("SQS_CONTACT_FINDER_QUEUE_URL not set. Use --direct for local testing.")
        return

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    queue = SQSContactQueue(settings.sqs_queue_url, region=settings.aws_region)
    store = create_cache_store(settings.redis_url)
    await init_db()
    try:
        async with _http_client(settings) as client:
            service = create_contact_finder(settings, client, store, ContactRepo(), BlocklistRepo())
            await run_worker_pool(
                queue,
                service,
                concurrency=concurrency,
                max_jobs_per_second=settings.max_jobs_per_second,
                max_empty_polls=None if forever else 3,
                stop_event=stop,
            )
    finally:
        await store.close()
        await close_db()


async def run_direct(settings: PipelineSettings, domain: str, url: str, prospect_id: str, save: bool):
    """Direct mode - one job without SQS."""
    store = create_cache_store(settings.redis_url)
    if save:
        await init_db()
        repo, blocklist = ContactRepo(), BlocklistRepo()
    else:
        repo, blocklist = MockContactRepo(), MockBlocklist()
    try:
        async with _http_client(settings) as client:
            service = create_contact_finder(settings, client, store, repo, blocklist)
            result = await service.process_job(ContactJob(prospect_id=prospect_id, domain=domain, url=url))
    finally:
        await store.close()
        if save:
            await close_db()

    print(f"\n{'='*50}")
    print(f"RESULTS: {domain or url}")
    print(f"{'='*50}")
    if result.contacts:
        for c in result.contacts:
            print(
                f"  -> {c.email} | {c.name or '?'} | {c.title or '?'} | "
                f"score={c.confidence_score} ({c.tier}) | src={c.source} | verified={c.verification_status or '-'}"
            )
    else:
        print("  (no contacts)")
    print(
        f"\n  Saved: {result.found} | Cost: {result.total_cost_cents}c | "
        f"Sources: {', '.join(result.sources_used) or '-'} | Cached: {result.cached}"
    )
    if result.needs_manual_search:
        print("  Needs manual search: no contact scored above the selection threshold")


async def show_cache_stats(settings: PipelineSettings):
    store = create_cache_store(settings.redis_url)
    try:
        stats = await ContactCache(store, settings.cache_ttl_seconds).get_stats()
    finally:
        await store.close()
    print(f"\n{'='*50}")
    print("CONTACT CACHE")
    print(f"{'='*50}")
    for key, value in stats.items():
        print(f"  {key:<22} {value}")


async def clear_cache(settings: PipelineSettings, target: str):
    store = create_cache_store(settings.redis_url)
    try:
        cache = ContactCache(store, settings.cache_ttl_seconds)
        removed = await cache.clear_all() if target == "all" else await cache.clear_domain_cache(target)
    finally:
        await store.close()
    print(f"Removed {removed} cache entries")


def enqueue(settings: PipelineSettings, prospect_id: str, domain: str, url: str):
    queue = SQSContactQueue(settings.sqs_queue_url, region=settings.aws_region)
    queue.enqueue_jobs([ContactJob(prospect_id=prospect_id, domain=domain, url=url)])


def main():
    parser = argparse.ArgumentParser(description="Contact finder consumer")
    parser.add_argument("--concurrency", type=int, default=None, help="Concurrent jobs (default: WORKER_CONCURRENCY)")
    parser.add_argument("--forever", action="store_true", help="Keep polling when the queue is empty")
    parser.add_argument("--direct", action="store_true", help="Process one domain without SQS")
    parser.add_argument("--enqueue", action="store_true", help="Send one job to the queue")
    parser.add_argument("--domain", type=str, help="Prospect domain")
    parser.add_argument("--url", type=str, help="Seed article URL")
    parser.add_argument("--prospect-id", type=str, default="direct", help="Prospect id")
    parser.add_argument("--save", action="store_true", help="Direct mode: write contacts to the DB")
    parser.add_argument("--cache-stats", action="store_true", help="Show contact cache stats")
    parser.add_argument("--clear-cache", type=str, metavar="DOMAIN", help="Clear cache for a domain, or 'all'")
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.debug else "INFO", format="<level>{level: <8}</level> | {message}")

    settings = PipelineSettings.from_env()

    if args.cache_stats:
        asyncio.run(show_cache_stats(settings))
    elif args.clear_cache:
        asyncio.run(clear_cache(settings, args.clear_cache))
    elif args.enqueue or args.direct:
        if not (args.domain or args.url):
            parser.error("--domain or --url is required")
        if args.enqueue:
            enqueue(settings, args.prospect_id, args.domain, args.url)
        else:
            asyncio.run(run_direct(settings, args.domain, args.url, args.prospect_id, args.save))
    else:
        concurrency = args.concurrency or settings.worker_concurrency
        asyncio.run(run_sqs_consumer(settings, concurrency, args.forever))


if __name__ == "__main__":
    main()
