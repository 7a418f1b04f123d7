"""CLI interface for Vocab SRS.

Usage:
    python -m vocab_srs add ITEM_ID [ITEM_ID ...]   Start studying learning items
    python -m vocab_srs due                         Show how many cards are due
    python -m vocab_srs review                      Start a review session
    python -m vocab_srs stats                       Show your statistics
"""

import argparse
import asyncio
import logging
import time
from pathlib import Path

from srs_engine.config import settings, utcnow
from srs_engine.database import async_session, create_tables, engine
from srs_engine.sql_store import SqlCardStore
from srs_engine.srs.errors import ConcurrencyConflict, StoreError
from srs_engine.srs.progress import ProgressAggregator
from srs_engine.srs.queue import QueueConfig, count_due
from srs_engine.srs.scheduler import MAX_QUALITY, MIN_QUALITY, SM2Scheduler
from srs_engine.srs.session import ReviewSession, start_session

QUALITY_LABELS = {0: "Again", 1: "Hard", 2: "Unsure", 3: "Good", 4: "Perfect"}


async def ensure_db() -> SqlCardStore:
    """Create the database file and tables if they don't exist."""
    if engine.url.get_backend_name() == "sqlite" and engine.url.database:
        Path(engine.url.database).parent.mkdir(parents=True, exist_ok=True)
    await create_tables()
    return SqlCardStore(async_session)


async def cmd_add(args: argparse.Namespace) -> None:
    """Create cards for items the learner starts studying."""
    store = await ensure_db()
    scheduler = SM2Scheduler()
    now = utcnow()

    for item_id in args.item_ids:
        if await store.find_by_item(args.user, item_id):
            print(f"  '{item_id}' is already being studied.")
            continue
        await store.add(scheduler.new_card(args.user, item_id, now))
        print(f"  Added '{item_id}' (card ready for review)")


async def cmd_due(args: argparse.Namespace) -> None:
    """Show how many cards are due."""
    store = await ensure_db()
    due, new = count_due(await store.load(args.user), utcnow())
    print(f"  {due} cards due, {new} new cards available")


def _read_quality() -> int | None:
    while True:
        raw = input(f"  Rate [{MIN_QUALITY}-{MAX_QUALITY}, q=quit]: ").strip().lower()
        if raw == "q":
            return None
        if raw.isdigit() and MIN_QUALITY <= int(raw) <= MAX_QUALITY:
            return int(raw)
        print("  Please enter a number between 0 and 4.")


async def _review_loop(session: ReviewSession) -> None:
    total = session.remaining
    while not session.is_complete:
        card = session.current_card
        position = total - session.remaining + 1
        label = f"  [{position}/{total}] {card.item_id}"
        if card.is_new:
            label += " (NEW)"
        print(label)

        start_time = time.monotonic()
        if input("  Press Enter to reveal (q=quit) ").strip().lower() == "q":
            session.abandon()
            print("\n  Session ended early.")
            return
        elapsed = time.monotonic() - start_time
        session.reveal_answer()

        outcomes = session.scheduler.preview(card, utcnow())
        print(
            "  "
            + "  ".join(
                f"{q}={QUALITY_LABELS[q]} ({outcomes[q].interval_days}d)" for q in sorted(outcomes)
            )
        )

        quality = _read_quality()
        if quality is None:
            session.abandon()
            print("\n  Session ended early.")
            return

        while True:
            try:
                updated = await session.submit_response(quality, elapsed)
            except ConcurrencyConflict:
                print("  This card was updated elsewhere. Reload and try again.")
                session.abandon()
                return
            except StoreError as exc:
                print(f"  Could not save your answer: {exc}")
                if input("  Retry? [Y/n] ").strip().lower() == "n":
                    session.abandon()
                    return
                continue
            break
        print(f"  Next review in {updated.interval_days} days ({updated.state.value})\n")


async def cmd_review(args: argparse.Namespace) -> None:
    """Run an interactive review session."""
    store = await ensure_db()
    config = QueueConfig(max_cards=args.max_cards, new_cards_per_session=args.new_cards)
    session = await start_session(store, args.user, config=config)

    if session is None:
        print("\nNo cards due for review. You're all caught up!")
        return

    print("\n  Review Session")
    print(f"  {session.remaining} cards queued\n")
    print("  Ratings: " + "  ".join(f"{q}={label}" for q, label in QUALITY_LABELS.items()))
    print()

    try:
        await _review_loop(session)
    except (EOFError, KeyboardInterrupt):
        if not session.is_complete:
            session.abandon()

    summary = session.summary
    await store.save_session(summary)

    print("\n  Session Complete!" if not summary.was_abandoned else "\n  Session Summary")
    print(
        f"  Reviewed: {summary.cards_reviewed}  Correct: {summary.correct_count}  "
        f"Accuracy: {summary.accuracy * 100:.0f}%  "
        f"Time: {summary.total_duration_minutes:.1f} min\n"
    )


async def cmd_stats(args: argparse.Namespace) -> None:
    """Show learner statistics."""
    store = await ensure_db()
    report = ProgressAggregator().report(
        cards=await store.load(args.user),
        responses=await store.load_logs(args.user),
        sessions=await store.load_sessions(args.user),
        now=utcnow(),
    )
    accuracy = f"{report.accuracy * 100:.0f}%" if report.accuracy is not None else "-"

    print(f"\n  {settings.app_name} Statistics")
    print(f"  {'Total cards:':<20} {report.total_cards}")
    for state, count in report.cards_by_state.items():
        print(f"  {state.capitalize() + ':':<20} {count}")
    print(f"  {'Due now:':<20} {report.cards_due}")
    print(f"  {'Overdue:':<20} {report.overdue}")
    print(f"  {'Average easiness:':<20} {report.average_easiness:.2f}")
    print(f"  {'Average interval:':<20} {report.average_interval:.1f} days")
    print(f"  {'Total reviews:':<20} {report.total_reviews}")
    print(f"  {'Accuracy:':<20} {accuracy}")
    print(f"  {'Streak:':<20} {report.streak_days} days")
    print(f"  {'Trend:':<20} {report.trend.value}")
    print()


async def _run(command, args: argparse.Namespace) -> None:
    try:
        await command(args)
    finally:
        await engine.dispose()


def main() -> None:
    """Entry point for the Vocab SRS CLI application."""
    parser = argparse.ArgumentParser(
        prog="vocab_srs",
        description="Vocabulary spaced repetition scheduler",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    parser.add_argument("-u", "--user", default=settings.default_user_id, help="Learner id")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # add
    add_parser = subparsers.add_parser("add", help="Start studying learning items")
    add_parser.add_argument("item_ids", nargs="+", help="Learning item ids")

    # due
    subparsers.add_parser("due", help="Show cards due for review")

    # review
    review_parser = subparsers.add_parser("review", help="Start a review session")
    review_parser.add_argument(
        "--max-cards", type=int, default=settings.max_reviews_per_session, help="Max cards per session"
    )
    review_parser.add_argument(
        "--new-cards", type=int, default=settings.new_cards_per_session, help="Max new cards"
    )

    # stats
    subparsers.add_parser("stats", help="Show your statistics")

    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    if not args.command:
        parser.print_help()
        return

    cmd_map = {
        "add": cmd_add,
        "due": cmd_due,
        "review": cmd_review,
        "stats": cmd_stats,
    }

    asyncio.run(_run(cmd_map[args.command], args))


if __name__ == "__main__":
    main()
