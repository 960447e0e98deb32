"""Command-line interface for inspecting and editing the memory store.

Provides subcommands for stats, facts, search, graph export, context
preview, scheduled jobs and clearing the conversation.
"""

import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .config import apply_env, load_config
from .memory import MemoryManager

T = TypeVar("T")


def _get_manager() -> MemoryManager:
    """Create a MemoryManager from the config file and environment."""
    config = apply_env(load_config())
    return MemoryManager.open(config)


def _run(manager: MemoryManager, work: Callable[[], Awaitable[T]]) -> T:
    """Run async work, then let background embeddings finish."""

    async def runner() -> T:
        try:
            return await work()
        finally:
            await manager.wait_for_embeddings()
            aclose = getattr(manager.embeddings.provider, "aclose", None)
            if aclose is not None:
                await aclose()

    return asyncio.run(runner())


def _truncate(text: str, width: int) -> str:
    text = text.replace("\n", " ")
    if len(text) > width:
        return text[: width - 3] + "..."
    return text


def cmd_stats(args: argparse.Namespace) -> int:
    """Show memory statistics."""
    manager = _get_manager()
    try:
        stats = manager.get_stats()
    finally:
        manager.close()

    print(f"\nDatabase: {manager.config.db_path}")
    print("-" * 40)
    print(f"Messages:        {stats.message_count}")
    print(f"Estimated tokens: {stats.estimated_tokens}")
    print(f"Summaries:       {stats.summary_count}")
    print(f"Facts:           {stats.fact_count}")
    print(f"Embedded facts:  {stats.embedded_fact_count}")
    print(f"Jobs:            {stats.job_count}")
    print(f"Embeddings:      {'enabled' if manager.embeddings_enabled else 'disabled'}")
    return 0


def cmd_facts(args: argparse.Namespace) -> int:
    """List stored facts."""
    manager = _get_manager()
    try:
        if args.category:
            facts = manager.get_facts_by_category(args.category)
        else:
            facts = manager.get_all_facts()
    finally:
        manager.close()

    if not facts:
        print("No facts stored.")
        return 0

    print(f"\n{'ID':<6} {'Category':<14} {'Subject':<20} Content")
    print("-" * 80)
    for fact in facts:
        print(
            f"{fact.id:<6} {fact.category:<14} {_truncate(fact.subject, 20):<20} "
            f"{_truncate(fact.content, 38)}"
        )

    print(f"\nTotal: {len(facts)} fact(s)")
    return 0


def cmd_remember(args: argparse.Namespace) -> int:
    """Save or update a fact."""
    category = args.category.strip()
    subject = args.subject.strip()
    content = args.content.strip()
    if not (category and subject and content):
        print("Error: category, subject and content must not be empty.")
        return 1

    manager = _get_manager()
    try:
        fact_id = manager.save_fact(category, subject, content)
        if manager.embeddings_enabled:
            _run(manager, manager.wait_for_embeddings)
    finally:
        manager.close()

    print(f"Remembered fact {fact_id}: {category}/{subject}")
    return 0


def cmd_forget(args: argparse.Namespace) -> int:
    """Delete a fact by id."""
    manager = _get_manager()
    try:
        deleted = manager.delete_fact(args.id)
    finally:
        manager.close()

    if not deleted:
        print(f"Error: Fact {args.id} not found.")
        return 1

    print(f"Forgot fact {args.id}")
    return 0


def cmd_search(args: argparse.Namespace) -> int:
    """Hybrid search over facts."""
    manager = _get_manager()

    async def search():
        # Backfill first so fresh facts have vectors.
        await manager.wait_for_embeddings()
        return await manager.search_facts_hybrid(args.query)

    try:
        results = _run(manager, search)
    finally:
        manager.close()

    if not results:
        print("No relevant facts found.")
        return 0

    print(f"\n{'Score':<7} {'Vector':<7} {'Keyword':<8} {'Category':<14} Fact")
    print("-" * 80)
    for r in results:
        print(
            f"{r.score:<7.2f} {r.vector_score:<7.2f} {r.keyword_score:<8.2f} "
            f"{r.fact.category:<14} {_truncate(f'{r.fact.subject}: {r.fact.content}', 42)}"
        )
    return 0


def cmd_graph(args: argparse.Namespace) -> int:
    """Print the fact graph as JSON."""
    manager = _get_manager()
    try:
        graph = manager.get_facts_graph_data()
    finally:
        manager.close()

    print(json.dumps(graph.to_dict(), indent=2, ensure_ascii=False))
    return 0


def cmd_context(args: argparse.Namespace) -> int:
    """Preview the conversation context for a token budget."""
    manager = _get_manager()
    try:
        context = _run(manager, lambda: manager.get_conversation_context(args.budget))
    except Exception as e:
        print(f"Error: Failed to build context: {e}")
        return 1
    finally:
        manager.close()

    for message in context.messages:
        print(f"[{message['role']}] {message['content']}\n")

    print("-" * 40)
    print(f"Messages: {len(context.messages)}")
    print(f"Tokens: {context.total_tokens}")
    print(f"Summarized: {context.summarized_count}")
    return 0


def cmd_jobs(args: argparse.Namespace) -> int:
    """List scheduled jobs."""
    manager = _get_manager()
    try:
        jobs = manager.get_jobs(enabled_only=not args.all)
    finally:
        manager.close()

    if not jobs:
        print("No jobs found.")
        return 0

    print(f"\n{'Name':<20} {'Schedule':<16} {'Channel':<10} {'Status':<9} Prompt")
    print("-" * 80)
    for job in jobs:
        status = "enabled" if job.enabled else "disabled"
        print(
            f"{job.name:<20} {job.schedule:<16} {job.channel:<10} {status:<9} "
            f"{_truncate(job.prompt, 22)}"
        )

    print(f"\nTotal: {len(jobs)} job(s)")
    return 0


def cmd_clear(args: argparse.Namespace) -> int:
    """Delete all messages and summaries. Facts are kept."""
    manager = _get_manager()
    try:
        count = manager.get_message_count()
        manager.clear_conversation()
    finally:
        manager.close()

    print(f"Cleared {count} message(s)")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the memory CLI."""
    parser = argparse.ArgumentParser(
        prog="recollect",
        description="Inspect and edit the recollect memory store",
    )

    subparsers = parser.add_subparsers(dest="command", help="Sub-command help")

    subparsers.add_parser("stats", help="Show memory statistics")

    facts_parser = subparsers.add_parser("facts", help="List stored facts")
    facts_parser.add_argument(
        "-c", "--category",
        help="Only list facts in this category",
    )

    remember_parser = subparsers.add_parser("remember", help="Save or update a fact")
    remember_parser.add_argument("category", help="Fact category (e.g. user_info)")
    remember_parser.add_argument("subject", help="Fact subject within the category")
    remember_parser.add_argument("content", help="Fact content")

    forget_parser = subparsers.add_parser("forget", help="Delete a fact")
    forget_parser.add_argument("id", type=int, help="ID of the fact to delete")

    search_parser = subparsers.add_parser("search", help="Hybrid search over facts")
    search_parser.add_argument("query", help="Search query")

    subparsers.add_parser("graph", help="Print the fact graph as JSON")

    context_parser = subparsers.add_parser("context", help="Preview the conversation context")
    context_parser.add_argument(
        "-b", "--budget",
        type=int,
        help="Token budget (defaults to the configured budget)",
    )

    jobs_parser = subparsers.add_parser("jobs", help="List scheduled jobs")
    jobs_parser.add_argument(
        "-a", "--all",
        action="store_true",
        help="Include disabled jobs",
    )

    subparsers.add_parser("clear", help="Delete all messages and summaries")

    return parser


def run_cli(argv: list[str] | None = None) -> int:
    """Run the memory CLI with given arguments.

    Args:
        argv: Command-line arguments. Uses sys.argv[1:] if None.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "stats": cmd_stats,
        "facts": cmd_facts,
        "remember": cmd_remember,
        "forget": cmd_forget,
        "search": cmd_search,
        "graph": cmd_graph,
        "context": cmd_context,
        "jobs": cmd_jobs,
        "clear": cmd_clear,
    }

    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    return handler(args)


if __name__ == "__main__":
    sys.exit(run_cli())
