"""CLI entry point for the LLM record triage engine."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from triage.core.config import Settings
from triage.core.context import EvaluationContext
from triage.core.db import init_db
from triage.core.schemas import Domain
from triage.llm.catalog import list_models
from triage.pipeline.decisions import evaluate, evaluate_full, score, triage
from triage.pipeline.orchestrator import PageOutcome, finish_session, run_page
from triage.pipeline.session_store import SessionStateError, SessionStore
from triage.platforms.jsonl import JsonlRecordSource

_PROTOCOLS = ("filter", "triage", "full", "score")


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
        description="LLM record triage - evaluate job and people records against your criteria",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # --- session subcommand ---
    session_parser = subparsers.add_parser("session", help="Manage the scraping session")
    session_sub = session_parser.add_subparsers(dest="action", required=True)

    start_parser = session_sub.add_parser("start", help="Start a new session")
    _add_common(start_parser)
    start_parser.add_argument(
        "--mode",
        choices=[d.value for d in Domain],
        default=Domain.JOBS.value,
        help="Record domain (default: jobs)",
    )
    start_parser.add_argument("--pages", type=int, default=1, help="Number of pages to scrape")
    start_parser.add_argument("--start-page", type=int, default=1, help="First page number")
    start_parser.add_argument("--search", default="", help="Search locator (URL or query)")
    start_parser.add_argument(
        "--format",
        action="append",
        dest="formats",
        help="Output format id; repeat for several (default from config)",
    )
    start_parser.add_argument(
        "--skip-viewed",
        action="store_true",
        help="Skip records already marked as viewed",
    )
    start_parser.add_argument("--ai", action="store_true", help="Enable AI filtering")
    start_parser.add_argument(
        "--full-ai",
        action="store_true",
        help="Enable two-stage triage (card, then full record after 'maybe')",
    )

    for action, help_text in (
        ("status", "Show the session state"),
        ("stop", "Stop the session, keeping the buffer"),
        ("clear", "Delete the session and its buffer"),
    ):
        _add_common(session_sub.add_parser(action, help=help_text))

    export_parser = session_sub.add_parser("export", help="Write buffered records as JSON")
    _add_common(export_parser)
    export_parser.add_argument("--output", help="Output file (default: stdout)")
    export_parser.add_argument(
        "--finish",
        action="store_true",
        help="Clear the session after exporting",
    )

    # --- run-page subcommand ---
    run_parser = subparsers.add_parser("run-page", help="Process the current page of the session")
    _add_common(run_parser)
    run_parser.add_argument("--records", required=True, help="JSONL file with the page's records")
    run_parser.add_argument(
        "--last-page",
        action="store_true",
        help="Treat this page as the last one available",
    )

    # --- evaluate subcommand ---
    eval_parser = subparsers.add_parser("evaluate", help="Evaluate one record text")
    _add_common(eval_parser)
    eval_parser.add_argument(
        "--domain",
        choices=[d.value for d in Domain],
        default=Domain.JOBS.value,
        help="Record domain (default: jobs)",
    )
    eval_parser.add_argument(
        "--protocol",
        choices=_PROTOCOLS,
        default="filter",
        help="Evaluation protocol (default: filter)",
    )
    eval_parser.add_argument("--file", help="Read the record text from a file (default: stdin)")

    # --- models subcommand ---
    models_parser = subparsers.add_parser("models", help="List the provider's models")
    _add_common(models_parser)
    models_parser.add_argument("--refresh", action="store_true", help="Bypass the cache")

    return parser.parse_args(argv)


def setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def cmd_session(args: argparse.Namespace, settings: Settings) -> None:
    """Handle the session subcommands."""
    conn = init_db(settings.database.path)
    store = SessionStore(conn)
    try:
        if args.action == "start":
            toggles = settings.session.toggles.model_copy()
            if args.ai:
                if args.mode == Domain.JOBS.value:
                    toggles.ai_enabled = True
                else:
                    toggles.people_ai_enabled = True
            if args.full_ai:
                if args.mode == Domain.JOBS.value:
                    toggles.ai_enabled = toggles.full_ai_enabled = True
                else:
                    toggles.people_ai_enabled = toggles.people_full_ai_enabled = True
            options = settings.session.to_options(
                mode=args.mode,
                target_page_count=args.pages,
                start_page=args.start_page,
                search_locator=args.search,
                formats=args.formats,
                include_viewed=False if args.skip_viewed else None,
                toggles=toggles.model_dump(),
            )
            record = store.start(options)
            print(f"Session started: {record.mode.value}, {record.cursor.target_page_count} page(s) "
                  f"from page {record.cursor.start_page}.")
        elif args.action == "status":
            _print_status(store)
        elif args.action == "stop":
            store.stop()
            print(f"Session stopped. {store.buffer_length()} record(s) buffered.")
        elif args.action == "clear":
            store.clear()
            print("Session cleared.")
        elif args.action == "export":
            records = finish_session(store) if args.finish else store.buffer()
            output = json.dumps(records, indent=2, ensure_ascii=False)
            if args.output:
                Path(args.output).write_text(output + "\n", encoding="utf-8")
                print(f"{len(records)} record(s) written to {args.output}")
            else:
                print(output)
    finally:
        conn.close()


def _print_status(store: SessionStore) -> None:
    record = store.load()
    state = "active" if record.active else "idle"
    print(f"Session: {state}")
    print(f"  Mode: {record.mode.value}")
    print(f"  Page: {record.cursor.current_page} "
          f"({record.cursor.pages_scraped}/{record.cursor.target_page_count}, "
          f"started at {record.cursor.start_page})")
    print(f"  Item: {record.page.item_index}/{len(record.page.item_ids)}")
    print(f"  Formats: {', '.join(record.formats) or '-'}")
    print(f"  Include viewed: {'yes' if record.include_viewed else 'no'}")
    print(f"  Toggles: {record.toggles.model_dump()}")
    print(f"  Buffered records: {len(record.buffer)}")
    for domain in Domain:
        c = record.counters.for_domain(domain)
        print(f"  {domain.value}: {c.records_processed} processed, "
              f"{c.ai_evaluated} AI-evaluated, {c.ai_accepted} AI-accepted")


async def cmd_run_page(args: argparse.Namespace, settings: Settings) -> PageOutcome:
    """Process one page; the caller navigates and runs again on next_page."""
    conn = init_db(settings.database.path)
    store = SessionStore(conn)
    try:
        session = store.load()
        source = JsonlRecordSource(args.records, session.mode, has_next=not args.last_page)
        async with EvaluationContext(settings) as ctx:
            outcome = await run_page(ctx, store, source)

        if outcome is PageOutcome.FINISHED:
            records = store.buffer()
            store.stop()
            print(f"Session finished: {len(records)} record(s) buffered. "
                  "Run 'session export' to write them.")
        elif outcome is PageOutcome.NEXT_PAGE:
            page = store.load().cursor.current_page
            print(f"Page done. Next page: {page}")
        else:
            print("Session is not active.")
        return outcome
    finally:
        conn.close()


async def cmd_evaluate(args: argparse.Namespace, settings: Settings) -> None:
    """Run one evaluation and print the decision as JSON."""
    text = Path(args.file).read_text(encoding="utf-8") if args.file else sys.stdin.read()
    domain = Domain(args.domain)
    async with EvaluationContext(settings) as ctx:
        if args.protocol == "filter":
            decision = await evaluate(ctx, text)
        elif args.protocol == "triage":
            decision = await triage(ctx, text, domain)
        elif args.protocol == "full":
            decision = await evaluate_full(ctx, text, domain)
        else:
            decision = await score(ctx, text)
    print(decision.model_dump_json(indent=2))


async def cmd_models(args: argparse.Namespace, settings: Settings) -> None:
    conn = init_db(settings.database.path)
    try:
        async with EvaluationContext(settings) as ctx:
            models = await list_models(ctx, conn, refresh=args.refresh)
    finally:
        conn.close()
    if not models:
        print("No models available.")
        return
    for m in models:
        print(f"{m.id}\t{m.name}")


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = Settings.from_yaml(args.config)
    except (FileNotFoundError, ValueError) as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.command == "session":
            cmd_session(args, settings)
        elif args.command == "run-page":
            asyncio.run(cmd_run_page(args, settings))
        elif args.command == "evaluate":
            asyncio.run(cmd_evaluate(args, settings))
        elif args.command == "models":
            asyncio.run(cmd_models(args, settings))
    except (FileNotFoundError, ValueError, SessionStateError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
