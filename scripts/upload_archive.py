#!/usr/bin/env python3
"""
Archive upload utility.

Chunks a lore document, embeds each chunk and upserts it into the vector store.
The file name (without extension) becomes the archive id, i.e. the persona the
lore belongs to.
"""

import argparse
import json
import sys
from pathlib import Path

# Allow running from a source checkout
sys.path.insert(0, str(Path(__file__).parent.parent))

from lorememory.core.config import get_chunker, get_embedding_gateway, get_vector_store
from lorememory.core.errors import LoreMemoryError
from lorememory.memory.archive import ArchiveService
from lorememory.vector.store_client import VectorStoreClient


def build_archive() -> ArchiveService:
    return ArchiveService(
        get_chunker(),
        get_embedding_gateway(),
        VectorStoreClient(get_vector_store()),
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Upload a lore document into the archive",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s archives/mipha.md                  # Archive id "mipha"
  %(prog)s notes.txt --id zelda --type event  # Explicit id and type
        """
    )
    parser.add_argument("path", help="Path to the lore document")
    parser.add_argument("--id", dest="source_id", help="Archive id (default: file name without extension)")
    parser.add_argument("--type", default="character", help="Archive record type (default: character)")
    args = parser.parse_args(argv)

    path = Path(args.path)
    if not path.is_file():
        print(f"ERROR: File not found: {path}")
        return 1

    content = path.read_text(encoding="utf-8")
    source_id = args.source_id or path.stem

    print(f"Splitting document: {source_id}")
    archive = build_archive()
    chunks = archive.chunker.split(content, source_id)
    print(f"Split into {len(chunks)} chunks")

    print("Uploading to vector store...")
    try:
        count = archive.ingest(content, source_id, type=args.type)
    except LoreMemoryError as e:
        print(f"ERROR: {e.message}")
        if e.payload is not None:
            print(json.dumps(e.payload, indent=2, ensure_ascii=False, default=str))
        return 1

    print(f"✓ Uploaded {count} vectors")
    return 0


if __name__ == "__main__":
    sys.exit(main())
