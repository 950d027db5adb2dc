"""CLI entry: python -m audit [scenario.json|scenario.yaml]"""

import argparse
import logging
import sys
from pathlib import Path

from engine.errors import EngineError
from engine.inputs import load_scenario
from audit.runner import DEFAULT_SCENARIO, run_all_checks
from audit.report import format_text_report, verdict, write_json_report


def main(argv=None):
    parser = argparse.ArgumentParser(prog="python -m audit")
    parser.add_argument("scenario", nargs="?", default=str(DEFAULT_SCENARIO),
                        help="scenario file (JSON or YAML)")
    parser.add_argument("-o", "--output", default=None,
                        help="JSON report path (default output/audit_report.json)")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print("Running projection...")
    try:
        audit_data = run_all_checks(scenario=load_scenario(args.scenario))
    except EngineError as exc:
        print(f"Projection failed: {type(exc).__name__}: {exc}", file=sys.stderr)
        return 1

    # Print text report
    print(format_text_report(audit_data))

    # Write JSON
    output = args.output or (
        Path(__file__).resolve().parent.parent / "output" / "audit_report.json")
    json_path = write_json_report(audit_data, output)
    print(f"\nJSON report written to: {json_path}")
    return 0 if verdict(audit_data["summary"]) == "BALANCED" else 2


if __name__ == "__main__":
    sys.exit(main())
