from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

import httpx

from app.settings import Settings
from ingest.scheduler import TOPICS, HazardMonitor


async def collect(settings: Settings, topic: str | None) -> dict:
    async with httpx.AsyncClient(follow_redirects=True) as client:
        monitor = HazardMonitor(settings, client)
        if topic is None:
            await monitor.refresh_all()
            return monitor.current_snapshot()
        await monitor.refresh_topic(topic)
        result = monitor.topic_result(topic)
        return result.to_dict() if result is not None else {}


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run one refresh cycle and print JSON.")
    parser.add_argument("--topic", choices=TOPICS, default=None)
    parser.add_argument("--indent", type=int, default=2)
    args = parser.parse_args(argv)

    settings = Settings()
    logging.basicConfig(level=settings.log_level.upper(), stream=sys.stderr)

    data = asyncio.run(collect(settings, args.topic))
    print(json.dumps(data, indent=args.indent or None, ensure_ascii=False))


if __name__ == "__main__":
    main()
