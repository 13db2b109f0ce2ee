#!/usr/bin/env python3
"""
Archive query utility: shows what the composer would retrieve for a persona.
"""

import argparse
import sys
from pathlib import Path

# Allow running from a source checkout
sys.path.insert(0, str(Path(__file__).parent.parent))

from lorememory.core.config import ARCHIVE_TOP_K, get_chunker, get_embedding_gateway, get_vector_store
from lorememory.core.errors import LoreMemoryError
from lorememory.memory.archive import ArchiveService
from lorememory.vector.store_client import VectorStoreClient


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Query the lore archive for a persona")
    parser.add_argument("role", nargs="?", default="link", help="Persona / archive id (default: link)")
    parser.add_argument("query", nargs="?", default="Who are you?", help="Query text")
    parser.add_argument("--top-k", type=int, default=ARCHIVE_TOP_K, help="Number of hits to show")
    args = parser.parse_args(argv)

    print(f"Role: {args.role}")
    print(f"Query: {args.query}")
    print("---")

    archive = ArchiveService(get_chunker(), get_embedding_gateway(), VectorStoreClient(get_vector_store()))
    try:
        hits = archive.persona_facts(args.query, args.role, top_k=args.top_k)
    except LoreMemoryError as e:
        print(f"ERROR: {e.message}")
        return 1

    if not hits:
        print("No results. The archive may not contain lore for this persona.")
        return 0

    print(f"Found {len(hits)} results:\n")
    for i, hit in enumerate(hits, 1):
        score = f"{hit.score:.4f}" if hit.score is not None else "n/a"
        print(f"[{i}] score: {score}")
        print(f"text: {(hit.text or '')[:200]}...")
        print("---")
    return 0


if __name__ == "__main__":
    sys.exit(main())
