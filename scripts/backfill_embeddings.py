#!/usr/bin/env python3
"""
Embedding Backfill Script

Embeds stored dumps that have text but no embedding, so they can serve as
extraction context. Run after switching embedding mode or model, or after
dumps were captured while the embedding service was unavailable.

Usage:
    python scripts/backfill_embeddings.py [--dry-run] [--user USER_ID] [--limit N]
"""

import sys
import argparse
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def main():
    parser = argparse.ArgumentParser(description="Embed dumps that are missing an embedding")
    parser.add_argument("--dry-run", action="store_true", help="Print what would be done without executing")
    parser.add_argument("--user", type=str, default=None, help="Only backfill this user's dumps")
    parser.add_argument("--limit", type=int, default=0, help="Stop after this many dumps (0 = all)")
    args = parser.parse_args()

    from sift.common.config import load_config
    from sift.common.embedding_service import EmbeddingService
    from sift.common.logging_setup import configure_logging
    from sift.common.store import SiftStore

    config = load_config()
    configure_logging(config.log_level)

    print("[Backfill] Initializing embedding service...")
    print(f"[Backfill] Mode: {config.embedding.mode}, model: {config.embedding.model}")
    embedding_svc = EmbeddingService.from_config(config.embedding, google_api_key=config.llm.google_api_key or None)

    if not embedding_svc.is_available:
        print("[Backfill] ERROR: Embedding service not available")
        sys.exit(1)

    store = SiftStore(Path(config.store.db_path).expanduser())
    dumps = store.list_unembedded_dumps(user_id=args.user)
    if args.limit:
        dumps = dumps[:args.limit]

    total = len(dumps)
    print(f"[Backfill] Found {total} dumps without embeddings")

    if args.dry_run:
        print("[Backfill] DRY RUN - no changes will be made")
        for dump in dumps[:20]:
            print(f"[Backfill]   {dump.id} ({dump.user_id}): {dump.content_text[:60]!r}")
        return

    embedded = 0
    errors = 0
    for dump in dumps:
        vector = embedding_svc.embed(dump.content_text)
        if not vector:
            print(f"[Backfill] WARNING: No embedding for {dump.id}")
            errors += 1
            continue
        store.set_dump_embedding(dump.id, vector)
        embedded += 1

    store.close()
    print(f"[Backfill] Complete: {embedded} embedded, {errors} errors, {total} total")


if __name__ == "__main__":
    main()
