"""
Run, list or fetch competitive analyses from CLI.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys

from app.services.competitive_analysis_service import CompetitiveAnalysisService
from competitive.errors import AnalysisSubmissionError


def main() -> int:
    parser = argparse.ArgumentParser(description="Run or inspect competitive analyses.")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--url", dest="url", help="Site URL to submit for a new analysis.")
    group.add_argument("--list", dest="list_all", action="store_true", help="List known analyses.")
    group.add_argument("--id", dest="analysis_id", help="Fetch one analysis by identifier.")
    parser.add_argument("--log-level", dest="log_level", default="WARNING", help="Root log level.")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    service = CompetitiveAnalysisService()

    if args.url:
        try:
            result = service.run_analysis(args.url)
        except AnalysisSubmissionError as exc:
            print(json.dumps({"error": exc.message, "kind": exc.kind.value}, indent=2), file=sys.stderr)
            return 1
        payload = result.to_storage()
    elif args.list_all:
        listing = service.list_analyses()
        payload = {
            "source": listing.source.value,
            "analyses": [analysis.to_storage() for analysis in listing.analyses],
        }
    else:
        result = service.get_analysis(args.analysis_id)
        if result is None:
            print(json.dumps({"error": f"Analysis '{args.analysis_id}' not found."}, indent=2), file=sys.stderr)
            return 1
        payload = result.to_storage()

    print(json.dumps(payload, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
