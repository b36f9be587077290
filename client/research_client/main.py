"""Command line entrypoint for the research run client."""

from __future__ import annotations

import argparse
import sys
from contextlib import aclosing
from functools import partial
from pathlib import Path
from typing import Optional, Sequence

import anyio

from research_client.api.auth import CredentialProvider, provider_from_settings
from research_client.api.client import ResearchApiClient
from research_client.core.errors import ResearchClientError
from research_client.core.logging import configure_logging
from research_client.core.settings import Settings, get_settings
from research_client.models.enums import SessionStatus
from research_client.services import report_builder
from research_client.services.export_gateway import ExportGateway
from research_client.services.history import RunHistory
from research_client.services.run_store import RunStore
from research_client.services.session import RunSession, SessionState, stage_progress
from research_client.services.storage import FileStorage


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="research-client",
        description="Launch research runs, follow their progress and export reports.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    start = sub.add_parser("start", help="Start a research run and follow it until it ends.")
    start.add_argument("query", help="Research question to submit.")
    start.add_argument("--preview", action="store_true", help="Print the report preview when the run ends.")

    history = sub.add_parser("history", help="List past runs from the local registry.")
    history.add_argument("--remote", action="store_true", help="Also list runs reported by the backend.")

    report = sub.add_parser("report", help="Rebuild the report of a past run.")
    report.add_argument("run_id")
    report.add_argument("--topic", default=None, help="Report topic; defaults to the run's query.")
    report.add_argument(
        "--format",
        choices=("preview", "markdown", "pdf"),
        default="preview",
    )
    report.add_argument("--output", type=Path, default=None, help="File or directory to write to.")
    return parser


def build_store(settings: Settings) -> RunStore:
    return RunStore(FileStorage(settings.store_dir), key=settings.store_key)


def format_progress(state: SessionState) -> str:
    stages = ", ".join(
        f"{item.stage.label}: {item.status.value}" for item in stage_progress(state.log, state.status)
    )
    return f"[{state.status.value}] {len(state.log)} events | {stages}"


async def cmd_start(
    args: argparse.Namespace,
    settings: Settings,
    store: RunStore,
    api: ResearchApiClient,
    credentials: CredentialProvider,
) -> int:
    session = RunSession(args.query, api, store, credentials, settings=settings)
    state = await session.start()
    if state.status is SessionStatus.ERROR:
        print(f"Run could not be started: {session.failure}", file=sys.stderr)
        return 1
    print(f"Run {state.run_id} started")
    async with aclosing(session.follow()) as states:
        async for state in states:
            print(format_progress(state))
    print(f"Run {session.run_id}: {session.status.value}")
    if args.preview:
        print(report_builder.to_preview(report_builder.build(args.query, session.log)))
    return 0 if session.status is SessionStatus.DONE else 1


async def cmd_history(
    args: argparse.Namespace,
    settings: Settings,
    store: RunStore,
    api: ResearchApiClient,
    credentials: CredentialProvider,
) -> int:
    history = RunHistory(store, api, settings=settings)
    if args.remote:
        overview = await history.overview(credentials)
        records, remote = overview.local, overview.remote
    else:
        records, remote = history.local(), None

    if not records:
        print("No local runs.")
    for record in records:
        finished = record.finished_at.isoformat() if record.finished_at else "-"
        print(
            f"{record.id}  {record.status.value:<7}  {record.started_at.isoformat()}  "
            f"{finished}  {record.event_count:>4} events  {record.query}"
        )
    if args.remote:
        print("")
        if remote is None:
            print(f"Server history unavailable: {overview.remote_error}")
            return 1
        for run in remote:
            created = run.created_at.isoformat() if run.created_at else "-"
            completed = run.completed_at.isoformat() if run.completed_at else "-"
            print(f"{run.id}  {run.status:<9}  {created}  {completed}")
    return 0


async def cmd_report(
    args: argparse.Namespace,
    settings: Settings,
    store: RunStore,
    api: ResearchApiClient,
    credentials: CredentialProvider,
) -> int:
    history = RunHistory(store, api, settings=settings)
    document = await history.rebuild_report(args.run_id, credentials, topic=args.topic)
    if args.format == "preview":
        print(report_builder.to_preview(document), end="")
        return 0
    gateway = ExportGateway(api, settings=settings)
    if args.format == "markdown":
        artifact = await gateway.export_portable(document, args.output)
    else:
        artifact = await gateway.export_rendered(document, credentials, args.output)
    print(f"Saved {artifact.path} ({artifact.size} bytes)")
    return 0


COMMANDS = {
    "start": cmd_start,
    "history": cmd_history,
    "report": cmd_report,
}


async def run_command(
    args: argparse.Namespace,
    settings: Settings,
    store: Optional[RunStore] = None,
    api: Optional[ResearchApiClient] = None,
    credentials: Optional[CredentialProvider] = None,
) -> int:
    store = store or build_store(settings)
    credentials = credentials or provider_from_settings(settings)
    client = api or ResearchApiClient(settings)
    try:
        return await COMMANDS[args.command](args, settings, store, client, credentials)
    except (ResearchClientError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        if api is None:
            await client.close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings)
    return anyio.run(partial(run_command, args, settings))


if __name__ == "__main__":
    sys.exit(main())
