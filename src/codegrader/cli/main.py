"""
codegrader command-line interface.

Imports a roster export and a bulk submission archive, reconciles them,
optionally generates AI commentary for every matched student, and writes the
grade worksheet back out.
"""

import argparse
import logging
import sys
from typing import List, Optional

from ..commentary import generate_commentary, test_connection
from ..config import GraderConfig
from ..exceptions import CodeGraderError, LLMError
from ..llm import LLMClient, validate_api_key
from ..prompt_builder import build_criteria_prompt, build_custom_prompt
from ..session import GradingSession

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    p = argparse.ArgumentParser(description="codegrader - submission ingestion and grade reconciliation")

    # Inputs
    p.add_argument("--roster", default=None, help="Roster CSV/TSV exported from the LMS")
    p.add_argument("--submissions", default=None, help="Bulk submission archive (.zip)")
    p.add_argument("--assignment-name", default="", help="Assignment name (used for the export filename)")
    p.add_argument("--max-points", type=float, default=None, help="Override maximum points")

    # LLM configuration
    p.add_argument(
        "--generate-commentary",
        "--use-llm",
        dest="use_llm",
        action="store_true",
        help="Generate AI commentary for every student with a submission",
    )
    p.add_argument("--openai-model", default=None, help="OpenAI model to use")
    p.add_argument("--openai-key", default=None, help="OpenAI API key")
    p.add_argument("--temperature", type=float, default=None, help="LLM temperature")
    p.add_argument("--prompt-file", default=None, help="Custom commentary instructions (text file)")
    p.add_argument("--delay", type=float, default=None, help="Seconds between LLM requests")
    p.add_argument("--test-connection", action="store_true", help="Check the OpenAI key and exit")

    # Output options
    p.add_argument(
        "--export",
        default=None,
        help="Write the grade worksheet here (default: <assignment_name>_grades.csv)",
    )
    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    return p.parse_args(argv)


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        return f.read()


def _build_client(args: argparse.Namespace, cfg: GraderConfig) -> LLMClient:
    key_error = validate_api_key(args.openai_key) if args.openai_key else None
    if key_error:
        raise LLMError(key_error)

    return LLMClient(
        api_key=args.openai_key,
        model=args.openai_model or cfg.model_name,
        temperature=args.temperature if args.temperature is not None else cfg.temperature,
        max_output_tokens=cfg.max_tokens,
    )


def _build_generator(args: argparse.Namespace, session: GradingSession):
    client = _build_client(args, session.config)

    if args.prompt_file:
        template = build_custom_prompt(_read_text(args.prompt_file))
    else:
        template = build_criteria_prompt(session.catalog.items)

    context = session.assignment_name

    def generator(code: str):
        return generate_commentary(client, code, "", template, context)

    return generator


def run(args: argparse.Namespace) -> int:
    config = GraderConfig(batch_delay_s=args.delay) if args.delay is not None else GraderConfig()
    if args.test_connection:
        error = test_connection(_build_client(args, config))
        if error:
            print(f"✗ Connection failed: {error}")
            return 1
        print("✓ Connection OK")
        return 0

    if not args.roster:
        raise CodeGraderError("Missing --roster")

    session = GradingSession(config)
    session.assignment_name = args.assignment_name

    roster = session.import_roster(_read_text(args.roster))
    print(f"Roster: {len(roster.records)} students")
    for w in roster.warnings:
        print(f"WARNING: {w}")

    if args.max_points is not None:
        session.max_points = args.max_points
    print(f"Max points: {session.max_points:g}")

    if args.submissions:
        imported = session.import_submissions(args.submissions)
        print(f"Layout: {imported.parsed.shape or 'unknown'}")
        print(imported.status)
        for err in imported.errors:
            print(f"  - {err}")

    rc = 0
    if args.use_llm:
        generator = _build_generator(args, session)
        result = session.generate_batch_commentary(generator)

        print(f"\n{'='*60}")
        print("AI FEEDBACK SUMMARY")
        print(f"{'='*60}")
        print(f"Total: {result.total}")
        print(f"Succeeded: {result.succeeded}")
        print(f"Failed: {result.failed}")

        if result.failures:
            print("\nFailures:")
            for name, msg in result.failures:
                print(f"  - {name}: {msg}")
            rc = 1

    out_path = args.export or session.export_filename()
    with open(out_path, "w", encoding="utf-8", newline="") as f:
        f.write(session.export_roster())
    print(f"✓ Wrote {out_path}")

    return rc


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        return run(args)
    except (CodeGraderError, OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
