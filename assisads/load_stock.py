#!/usr/bin/env python3
"""
Assis Ads stock loader

Stocking happens out of band: this reads one credential per line from a
text file and adds each line as an unsold unit of the given product type
to the configured store (SQL via DATABASE_URL, or Redis via REDIS_URL).

Usage:
  DATABASE_URL=sqlite:///./assis.db \\
    python -m assisads.load_stock --type facebook accounts.txt

  REDIS_URL=redis://127.0.0.1:6379 \\
    python -m assisads.load_stock --backend redis --type proxy proxies.txt

Notes:
- Blank lines and lines starting with '#' are skipped.
- The offline store has a fixed placeholder pool and cannot be stocked.
"""

import argparse
import asyncio
import os
import sys
from typing import List, Iterable

import redis.asyncio as redis

from .catalog import PRODUCT_TYPES
from .infra.sql import make_async_engine
from .model.db import Base
from .model.store import new_stores


def read_contents(lines: Iterable[str]) -> List[str]:
    out = []
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        out.append(line)
    return out


async def load_sql(database_url: str, product_type: str,
                   contents: List[str]) -> List[int]:
    engine, SessionAsync, gated = make_async_engine(database_url)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with SessionAsync() as session:
            st = new_stores("pg", db=session, gated=gated)
            return await st.inventory.stock(product_type, contents)
    finally:
        await engine.dispose()


async def load_redis(redis_url: str, product_type: str,
                     contents: List[str]) -> List[int]:
    r = redis.from_url(redis_url, decode_responses=True)
    try:
        st = new_stores("redis", r=r)
        return await st.inventory.stock(product_type, contents)
    finally:
        await r.aclose()


def main():
    ap = argparse.ArgumentParser(description="Assis Ads stock loader")
    ap.add_argument("file", help="Text file, one credential per line")
    ap.add_argument("--type", required=True, choices=PRODUCT_TYPES,
                    help="Product type the units are sold as")
    ap.add_argument("--backend", choices=("pg", "redis"), default="pg",
                    help="Store to load into")
    args = ap.parse_args()

    with open(args.file, encoding="utf-8") as f:
        contents = read_contents(f)
    if not contents:
        print("Nothing to load.")
        return

    if args.backend == "pg":
        url = os.getenv("DATABASE_URL", "")
        if not url:
            print("NEED DATABASE_URL!")
            sys.exit(1)
        ids = asyncio.run(load_sql(url, args.type, contents))
    else:
        url = os.getenv("REDIS_URL", "")
        if not url:
            print("NEED REDIS_URL!")
            sys.exit(1)
        ids = asyncio.run(load_redis(url, args.type, contents))

    print(f"✅ {len(ids)} {args.type} units stocked "
          f"(ids {ids[0]}..{ids[-1]})")


if __name__ == "__main__":
    main()
