import asyncio
import sys
from pathlib import Path

# -------------------------------------------------------------------------
# Put the repository root (the folder holding `core`, `models` and
# `services`) on the import path so the script runs from anywhere.
# -------------------------------------------------------------------------
repo_root = Path(__file__).resolve().parents[1]   # `scripts/..` → repo root
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from collections import Counter

from core.config import get_settings
from core.logging import configure_logging
from services.scraper.http_client import HttpClient
from services.sources.registry import build_extractors


async def main() -> None:
    settings = get_settings()
    configure_logging("WARNING")

    async with HttpClient(settings) as http:
        extractors = build_extractors(settings, http, only=sys.argv[1:] or None)
        results = await asyncio.gather(*(e.extract() for e in extractors))

    for result in results:
        reasons = Counter(s.reason.split(":", 1)[0] for s in result.skipped)
        print(f"{result.source:<28} results={len(result.results):<3} skipped={len(result.skipped):<4} {dict(reasons)}")
        for link in result.results[:3]:
            print(f"    {link.title[:70]}  →  {link.url}")
        for record in result.skipped:
            if record.reason.startswith("error:"):
                print(f"    ❌ {record.reason}")


if __name__ == "__main__":
    asyncio.run(main())
