"""CLI entry point for the talent matching engine."""

import argparse
import asyncio
import json
import logging
import sqlite3
import sys

from src.core.config import Settings
from src.core.db import init_db
from src.core.errors import MatchingError
from src.core.schemas import MatchingMode, RankedResults, ShortlistResult
from src.core.seed import SeedData, load_seed
from src.embeddings.generator import EmbeddingGenerator
from src.embeddings.store import EmbeddingStore, refresh_vectors
from src.matching.service import MatchingService


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        default="config/settings.yaml",
        help="Path to settings YAML file (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (DEBUG) logging",
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Talent matching engine - rank students for companies and projects",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- seed ---
    seed_parser = subparsers.add_parser("seed", help="Load records from a YAML seed file")
    seed_parser.add_argument(
        "--file",
        default="config/seed.yaml",
        help="Path to seed YAML (default: config/seed.yaml)",
    )
    _add_common(seed_parser)

    # --- search ---
    search_parser = subparsers.add_parser("search", help="Rank students for a free-text prompt")
    search_parser.add_argument("prompt", help="Free-text search prompt")
    search_parser.add_argument(
        "--mode",
        default=MatchingMode.COMPANY_SEARCH.value,
        choices=[m.value for m in MatchingMode],
        help="Matching mode (default: company_search)",
    )
    search_parser.add_argument("--plan", help="Subscription plan (default: the company's plan)")
    search_parser.add_argument("--company", help="Searching company id")
    search_parser.add_argument("--project", help="Project id (required for project_shortlisting)")
    search_parser.add_argument("--limit", type=int, help="Return at most this many results")
    search_parser.add_argument(
        "--export",
        choices=["json"],
        help="Export results to format (json)",
    )
    _add_common(search_parser)

    # --- shortlist ---
    shortlist_parser = subparsers.add_parser("shortlist", help="Auto-shortlist a project")
    shortlist_parser.add_argument("project", help="Project id")
    _add_common(shortlist_parser)

    # --- eligibility ---
    eligibility_parser = subparsers.add_parser(
        "eligibility", help="Show whether a project can be auto-shortlisted",
    )
    eligibility_parser.add_argument("project", help="Project id")
    _add_common(eligibility_parser)

    # --- manual-shortlist ---
    manual_parser = subparsers.add_parser(
        "manual-shortlist", help="Replace a project's shortlist with chosen applications",
    )
    manual_parser.add_argument("project", help="Project id")
    manual_parser.add_argument("applications", nargs="+", help="Application ids, in rank order")
    manual_parser.add_argument("--by", default="cli", help="Who performed the override")
    manual_parser.add_argument(
        "--admin", action="store_true", help="Bypass the plan permission check",
    )
    _add_common(manual_parser)

    # --- refresh-vectors ---
    refresh_parser = subparsers.add_parser(
        "refresh-vectors", help="Generate embeddings for stale or missing students",
    )
    refresh_parser.add_argument("--force", action="store_true", help="Regenerate every vector")
    refresh_parser.add_argument("--limit", type=int, help="Process at most this many students")
    _add_common(refresh_parser)

    # --- match-projects ---
    match_parser = subparsers.add_parser(
        "match-projects", help="Rank live projects for one student",
    )
    match_parser.add_argument("student", help="Student id")
    match_parser.add_argument("--query", help="Optional search text to boost matching projects")
    match_parser.add_argument("--limit", type=int, default=10, help="Max projects (default: 10)")
    _add_common(match_parser)

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def print_results(results: RankedResults) -> None:
    meta = results.metadata
    stage = meta.stage.value if meta.stage else "none"
    print(f"\n'{results.query}' ({results.mode.value}, plan {results.plan})")
    print(f"  Pool: {meta.pool_size} from stage '{stage}', vectors used: {meta.vectors_used}")
    print(f"  Returned {meta.returned} of {meta.total_matches} in {meta.processing_time_ms:.0f}ms")

    for c in results.candidates:
        m = c.match
        print(f"  {c.rank:>2}. {c.name} ({c.major or '-'}, {c.university or '-'})")
        print(f"      match {m.match_score:.0f}  overall {m.overall_score:.0f}  "
              f"{m.confidence.value}/{m.recommended_action.value}  cost {c.credit_cost}")
        print(f"      {'; '.join(m.match_reasons)}")
        if c.email:
            print(f"      {c.email}")
        if c.insights is not None:
            print(f"      {c.insights.summary} {c.insights.recommendation}")

    for s in results.suggestions:
        print(f"  Suggestion: {s}")
    if results.upgrade_prompt:
        print(f"  {results.upgrade_prompt}")
    print(f"  Credits: {results.credits.available}/{results.credits.monthly_credits}")


def print_shortlist(result: ShortlistResult) -> None:
    label = "manual" if result.manual else ("cached" if result.cached else "new")
    print(f"\nShortlist for {result.project_id} ({label}, "
          f"{result.total_applications} applications)")
    for c in result.candidates:
        print(f"  {c.rank:>2}. {c.name}  compatibility {c.match.overall_score:.0f}")


async def cmd_search(args: argparse.Namespace, service: MatchingService) -> None:
    results = await service.search(
        args.prompt,
        mode=MatchingMode(args.mode),
        plan=args.plan,
        company_id=args.company,
        project_id=args.project,
        limit=args.limit,
    )
    if args.export == "json":
        print(json.dumps(results.model_dump(mode="json"), indent=2))
    else:
        print_results(results)


async def cmd_shortlist(args: argparse.Namespace, service: MatchingService) -> None:
    result = await service.shortlist_project(args.project)
    if result is None:
        e = service.get_eligibility(args.project)
        print(f"Project {args.project} is not eligible yet: {e.current}/{e.required} "
              f"applications, about {e.estimated_days_to_eligibility} days to go.")
        return
    print_shortlist(result)


async def cmd_manual_shortlist(args: argparse.Namespace, service: MatchingService) -> None:
    result = await service.manual_shortlist(
        args.project, args.applications, args.by, admin=args.admin,
    )
    print_shortlist(result)


async def cmd_refresh_vectors(
    args: argparse.Namespace, settings: Settings, conn: sqlite3.Connection,
) -> None:
    generator = EmbeddingGenerator.from_config(settings.embedding)
    store = EmbeddingStore(conn, settings.embedding)
    summary = await refresh_vectors(
        conn, store, generator, settings.embedding, force=args.force, limit=args.limit,
    )
    print(f"Vectors: {summary.processed} processed, {summary.successful} ok, "
          f"{summary.failed} failed, {summary.skipped} up to date")


def cmd_match_projects(args: argparse.Namespace, service: MatchingService) -> None:
    matches = service.match_projects(args.student, query=args.query, limit=args.limit)
    print(f"\nProjects for {args.student}:")
    for m in matches:
        print(f"  {m.match_score:>3.0f}  {m.title} ({m.category or '-'})  {'; '.join(m.match_reasons)}")


async def run(args: argparse.Namespace, settings: Settings) -> None:
    conn = init_db(settings.database.path)
    try:
        if args.command == "seed":
            counts = load_seed(conn, SeedData.from_yaml(args.file))
            print("Seeded " + ", ".join(f"{n} {table}" for table, n in counts.items()))
        elif args.command == "refresh-vectors":
            await cmd_refresh_vectors(args, settings, conn)
        else:
            service = MatchingService.from_settings(conn, settings)
            if args.command == "search":
                await cmd_search(args, service)
            elif args.command == "shortlist":
                await cmd_shortlist(args, service)
            elif args.command == "eligibility":
                e = service.get_eligibility(args.project)
                print(f"Eligible: {e.eligible} ({e.current}/{e.required}, "
                      f"{e.remaining_needed} needed, ~{e.estimated_days_to_eligibility} days)")
            elif args.command == "manual-shortlist":
                await cmd_manual_shortlist(args, service)
            elif args.command == "match-projects":
                cmd_match_projects(args, service)
    finally:
        conn.close()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_yaml(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        asyncio.run(run(args, settings))
    except (FileNotFoundError, ValueError, MatchingError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
