"""Run one pipeline pass from the command line (for external cron/event triggers).

Usage:
    python -m stockpulse alerts
    python -m stockpulse digest
    python -m stockpulse sentiment AAPL

Prints the run summary as JSON. Exit code 0 unless the pass was skipped
because a previous run still holds the lease.
"""

import argparse
import asyncio
import json
import sys

from stockpulse.core.log import setup_logging
from stockpulse.core.orchestrator import build_orchestrator
from stockpulse.db.database import Base, engine


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="stockpulse")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("alerts", help="evaluate pending price alerts once")
    sub.add_parser("digest", help="send the daily news digest once")
    p_sent = sub.add_parser("sentiment", help="print headline sentiment for a symbol")
    p_sent.add_argument("symbol")
    args = parser.parse_args(argv)

    logger = setup_logging()
    Base.metadata.create_all(bind=engine)
    orch = build_orchestrator()

    if args.command == "sentiment":
        result = asyncio.run(orch.sentiment_for(args.symbol))
        print(json.dumps(result.model_dump() if result else None))
        return 0

    run = orch.run_price_alerts if args.command == "alerts" else orch.run_daily_digest
    summary = asyncio.run(run())
    print(json.dumps(summary.to_dict(), indent=2))
    logger.info("%s: completed (attempted=%d, failed=%d)", args.command, summary.attempted, summary.failed)
    return 1 if summary.skipped else 0


if __name__ == "__main__":
    sys.exit(main())
