"""CLI for managing tracker projects, checklists and timelines."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from tracker.generation import generate_for_project
from tracker.models import ProjectConfig
from tracker.storage import StorageArea, get_storage_area
from tracker.store import ItemAction, ItemChange, OperationResult, ProjectStore
from tracker.timeline import (
    project_to_json,
    sort_events,
    timeline_to_json,
    timeline_to_markdown,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)-5.5s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("project", "timeline-json", "timeline-markdown")


def open_store(storage: StorageArea | None = None) -> ProjectStore:
    """Load the project store from the configured storage area."""
    store = ProjectStore(storage or get_storage_area())
    store.load()
    return store


def report(result: OperationResult) -> int:
    """Print a status message and return the matching exit code."""
    stream = sys.stdout if result.ok else sys.stderr
    print(result.status.text, file=stream)
    return 0 if result.ok else 1


def list_projects(store: ProjectStore) -> int:
    projects = store.list_projects()
    if not projects:
        print("No projects yet. Create one with: create NAME")
        return 0
    for project in projects:
        marker = "*" if project.id == store.current_project_id else " "
        done = sum(1 for item in project.checklist if item.checked)
        print(
            f"{marker} {project.id}  {project.name}  "
            f"({done}/{len(project.checklist)} done, {len(project.timeline)} events)"
        )
    return 0


def show_checklist(store: ProjectStore) -> int:
    project = store.current_project
    if project is None:
        print("No active project.", file=sys.stderr)
        return 1
    print(f"{project.name} [{project.project_stage or 'unspecified'}]")
    if not project.checklist:
        print("  (no checklist yet)")
    for item in project.checklist:
        box = "[x]" if item.checked else "[ ]"
        print(f"  {box} {item.id}  {item.category}: {item.text}")
    return 0


def show_timeline(store: ProjectStore, limit: int | None = None) -> int:
    project = store.current_project
    if project is None:
        print("No active project.", file=sys.stderr)
        return 1
    events = sort_events(project.timeline)
    if limit:
        events = events[:limit]
    if not events:
        print("No timeline events")
    for event in events:
        print(f"{event.timestamp}  {event.item_text}: {event.message}")
    return 0


def export_project(
    store: ProjectStore, export_format: str, output: Path | None = None
) -> int:
    project = store.current_project
    if project is None:
        print("No active project.", file=sys.stderr)
        return 1

    if export_format == "project":
        content = project_to_json(project)
    elif export_format == "timeline-json":
        content = timeline_to_json(project.timeline)
    else:
        content = timeline_to_markdown(project.timeline, title=f"{project.name} timeline")

    if output is None:
        print(content)
    else:
        output.write_text(content, encoding="utf-8")
        print(f"Exported {export_format} to {output}")
    return 0


def import_project(store: ProjectStore, path: Path, name: str | None) -> int:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"Cannot read {path}: {e}", file=sys.stderr)
        return 1
    return report(store.import_project(content, name=name))


async def generate_command(
    store: ProjectStore,
    research_plan: str,
    project_stage: str | None,
    config: ProjectConfig,
) -> int:
    """Generate a checklist for the current project."""
    from tracker.openrouter.client import OpenRouterClient

    project = store.current_project
    if project is None:
        print("No active project.", file=sys.stderr)
        return 1

    try:
        client = OpenRouterClient()
    except ValueError as e:
        print(str(e), file=sys.stderr)
        return 1

    print("Generating checklist from your research plan...")
    result = await generate_for_project(
        store, client, project.id, research_plan, project_stage, config
    )
    if not result.ok:
        print(result.status.text, file=sys.stderr)
        return 1
    print(result.status.text)
    return show_checklist(store)


def main(argv: list[str] | None = None, storage: StorageArea | None = None) -> int:
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="GenAI reproducibility tracker: projects, checklists, timelines"
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("list", help="List projects")

    create_parser = subparsers.add_parser("create", help="Create a project")
    create_parser.add_argument("name", help="Project name")

    switch_parser = subparsers.add_parser("switch", help="Make a project current")
    switch_parser.add_argument("project_id", help="Project id (see list)")

    delete_parser = subparsers.add_parser("delete", help="Delete a project")
    delete_parser.add_argument("project_id", help="Project id (see list)")
    delete_parser.add_argument(
        "--yes",
        action="store_true",
        help="Confirm deletion (the project and its timeline are destroyed)",
    )

    import_parser = subparsers.add_parser(
        "import", help="Create a project from an exported project JSON file"
    )
    import_parser.add_argument("path", type=Path, help="Exported project file")
    import_parser.add_argument("--name", help="Name for the new project")

    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate a checklist for the current project (resets its timeline)",
    )
    plan_group = generate_parser.add_mutually_exclusive_group(required=True)
    plan_group.add_argument("--plan", "-p", type=str, help="Research plan text")
    plan_group.add_argument(
        "--plan-file", "-f", type=Path, help="File containing the research plan"
    )
    generate_parser.add_argument("--stage", "-s", type=str, help="Project stage")
    generate_parser.add_argument("--model-name", type=str, default="")
    generate_parser.add_argument("--system-prompt", type=str, default="")
    generate_parser.add_argument("--temperature", type=float, default=0.7)
    generate_parser.add_argument("--max-tokens", type=int, default=900)
    generate_parser.add_argument("--top-p", type=float, default=1.0)

    subparsers.add_parser("show", help="Show the current checklist")

    add_parser = subparsers.add_parser("add-item", help="Add a custom checklist item")
    add_parser.add_argument("text", help="Requirement text")
    add_parser.add_argument("--category", "-c", default="General")

    toggle_parser = subparsers.add_parser("toggle", help="Toggle an item's completion")
    toggle_parser.add_argument("item_id")

    note_parser = subparsers.add_parser(
        "note", help="Record a note on an item in the timeline"
    )
    note_parser.add_argument("item_id")
    note_parser.add_argument("text")

    log_parser = subparsers.add_parser("log", help="Log a custom change for an item")
    log_parser.add_argument("item_id")
    log_parser.add_argument("message")

    remove_parser = subparsers.add_parser("remove", help="Remove an item")
    remove_parser.add_argument("item_id")

    timeline_parser = subparsers.add_parser("timeline", help="Show the timeline")
    timeline_parser.add_argument("--limit", "-n", type=int, help="Show only N events")

    export_parser = subparsers.add_parser("export", help="Export the current project")
    export_parser.add_argument(
        "--format", choices=EXPORT_FORMATS, default="project", dest="export_format"
    )
    export_parser.add_argument("--output", "-o", type=Path, help="Output file")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    store = open_store(storage)

    if args.command == "list":
        return list_projects(store)
    if args.command == "create":
        return report(store.create_project(args.name))
    if args.command == "switch":
        return report(store.switch_project(args.project_id))
    if args.command == "delete":
        if not args.yes:
            print("Refusing to delete without --yes", file=sys.stderr)
            return 1
        return report(store.delete_project(args.project_id))
    if args.command == "import":
        return import_project(store, args.path, args.name)
    if args.command == "generate":
        if args.plan_file:
            try:
                plan = args.plan_file.read_text(encoding="utf-8")
            except OSError as e:
                print(f"Cannot read {args.plan_file}: {e}", file=sys.stderr)
                return 1
        else:
            plan = args.plan
        try:
            config = ProjectConfig(
                model_name=args.model_name,
                system_prompt=args.system_prompt,
                temperature=args.temperature,
                max_tokens=args.max_tokens,
                top_p=args.top_p,
            )
        except ValueError as e:
            print(f"Invalid model configuration: {e}", file=sys.stderr)
            return 1
        return asyncio.run(generate_command(store, plan, args.stage, config))
    if args.command == "show":
        return show_checklist(store)
    if args.command == "add-item":
        return report(store.add_custom_item(args.text, args.category))
    if args.command == "toggle":
        return report(
            store.mutate_item(None, args.item_id, ItemChange(ItemAction.TOGGLE))
        )
    if args.command == "note":
        return report(
            store.mutate_item(
                None, args.item_id, ItemChange(ItemAction.COMMIT_NOTES, text=args.text)
            )
        )
    if args.command == "log":
        return report(
            store.mutate_item(
                None, args.item_id, ItemChange(ItemAction.LOG, text=args.message)
            )
        )
    if args.command == "remove":
        return report(
            store.mutate_item(None, args.item_id, ItemChange(ItemAction.REMOVE))
        )
    if args.command == "timeline":
        return show_timeline(store, args.limit)
    if args.command == "export":
        return export_project(store, args.export_format, args.output)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
