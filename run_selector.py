#!/usr/bin/env python3
"""Command line front end for the photo selector.

Usage:
    python run_selector.py create-project "Summer 2026" --prompt "Prefer candid shots"
    python run_selector.py upload 1 ~/Pictures/beach/*.jpg
    python run_selector.py estimate 1
    python run_selector.py analyze 1
    python run_selector.py list-photos 1
    python run_selector.py group 1
    python run_selector.py best-of-group 1 3
    python run_selector.py select 1 4 7
    python run_selector.py export 1
"""
import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent))

from models.events import AnalysisProgress, UploadProgress
from pipeline import cost, export, grouping, ingest, projects, scoring
from settings import Settings
from store.photo_store import PhotoStore
from utils.openai_utils import validate_api_key

logger = logging.getLogger("run_selector")


def _log_upload(progress: UploadProgress) -> None:
    logger.info("[%d/%d] %s", progress.current, progress.total, progress.filename)


def _log_analysis(progress: AnalysisProgress) -> None:
    logger.info("[%d/%d] %s", progress.current, progress.total, progress.message)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Score, group and export photos with a vision model.")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("create-project", help="Create a project")
    p.add_argument("name")
    p.add_argument("--prompt", default=None, help="Extra evaluation criteria for scoring")

    sub.add_parser("list-projects", help="List projects with photo counts")

    p = sub.add_parser("update-project", help="Rename a project or change its evaluation criteria")
    p.add_argument("project_id", type=int)
    p.add_argument("name")
    p.add_argument("--prompt", default=None, help="Extra evaluation criteria for scoring")

    p = sub.add_parser("list-photos", help="List photos of a project, best first")
    p.add_argument("project_id", type=int)

    p = sub.add_parser("upload", help="Ingest photo files into a project")
    p.add_argument("project_id", type=int)
    p.add_argument("files", nargs="+", type=Path)

    for name, help_text in (
        ("estimate", "Estimate the cost of scoring unscored photos"),
        ("analyze", "Score unscored photos"),
        ("group", "Detect similar-photo groups"),
        ("clear-groups", "Remove all similarity groups"),
        ("export", "Export selected photos as JPEG"),
        ("delete-project", "Delete a project and its files"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("project_id", type=int)

    p = sub.add_parser("best-of-group", help="Show the best photo of a similarity group")
    p.add_argument("project_id", type=int)
    p.add_argument("group_id", type=int)

    p = sub.add_parser("select", help="Mark photos for export")
    p.add_argument("photo_ids", nargs="+", type=int)
    p.add_argument("--clear", action="store_true", help="Unselect instead")

    p = sub.add_parser("delete-photo", help="Delete a photo and its files")
    p.add_argument("photo_id", type=int)

    sub.add_parser("templates", help="List prompt templates")

    p = sub.add_parser("save-template", help="Add a prompt template, or edit one with --id")
    p.add_argument("name")
    p.add_argument("prompt")
    p.add_argument("--id", dest="template_id", type=int, default=None)

    p = sub.add_parser("delete-template", help="Delete a user prompt template")
    p.add_argument("template_id", type=int)

    sub.add_parser("validate-key", help="Check that the configured API key is accepted")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = Settings()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.command == "validate-key":
        ok = validate_api_key(settings.openai_api_key, settings.vision_model)
        logger.info("API key %s", "accepted" if ok else "rejected")
        return 0 if ok else 1

    with PhotoStore(settings.db_path) as store:
        try:
            return _dispatch(args, store, settings)
        except LookupError as exc:
            logger.error("%s", exc)
            return 1


def _dispatch(args: argparse.Namespace, store: PhotoStore, settings: Settings) -> int:
    if args.command == "create-project":
        project = projects.create_project(store, settings, args.name, args.prompt)
        print(project.id)

    elif args.command == "list-projects":
        for p in store.list_projects():
            print(f"{p.id:>4}  {p.name:<30} {p.photo_count:>5} photos  "
                  f"{p.scored_count:>5} scored  {p.selected_count:>5} selected")

    elif args.command == "update-project":
        project = store.update_project(args.project_id, args.name, args.prompt)
        print(f"{project.id}  {project.name}")

    elif args.command == "list-photos":
        store.require_project(args.project_id)
        for photo in store.list_photos(args.project_id):
            score = "  -  " if photo.score is None else f"{photo.score:5.1f}"
            group = "" if photo.similarity_group_id is None else f"  group {photo.similarity_group_id}"
            mark = "*" if photo.selected else " "
            print(f"{photo.id:>5} {mark} {score}  {photo.original_filename}{group}")

    elif args.command == "upload":
        summary = ingest.ingest_files(store, settings, args.project_id, args.files, on_progress=_log_upload)
        print(f"{summary.uploaded} uploaded, {summary.duplicates} duplicates, {summary.failed} failed")

    elif args.command == "estimate":
        estimate = cost.estimate_for_project(store, args.project_id, settings.scoring_batch_size)
        print(f"{estimate.photo_count} photos in {estimate.batch_count} batches: "
              f"~{estimate.estimated_input_tokens} input / {estimate.estimated_output_tokens} "
              f"output tokens, {estimate.formatted_cost}")

    elif args.command == "analyze":
        scored = scoring.run(store, settings, args.project_id, on_progress=_log_analysis)
        print(f"{scored} photos scored")

    elif args.command == "group":
        groups = grouping.run(store, settings, args.project_id, on_progress=_log_analysis)
        print(f"{groups} groups")

    elif args.command == "clear-groups":
        grouping.clear(store, args.project_id)

    elif args.command == "best-of-group":
        best = grouping.best_of_group(store, args.project_id, args.group_id)
        if best is None:
            logger.error("No group %d in project %d", args.group_id, args.project_id)
            return 1
        score = "unscored" if best.score is None else f"{best.score:.1f}"
        print(f"{best.id}  {best.original_filename}  {score}")

    elif args.command == "select":
        changed = store.set_selected(args.photo_ids, not args.clear)
        print(f"{changed} photos updated")

    elif args.command == "export":
        result = export.run(store, settings, args.project_id)
        print(f"{result.count} exported, {result.skipped} skipped → {result.export_path}")

    elif args.command == "templates":
        for template in store.list_templates():
            kind = "preset" if template.is_preset else "user"
            print(f"{template.id:>4}  {kind:<6}  {template.name}: {template.prompt}")

    elif args.command == "save-template":
        template = store.save_template(args.name, args.prompt, args.template_id)
        if template is None:
            logger.error("No editable template %d", args.template_id)
            return 1
        print(template.id)

    elif args.command == "delete-template":
        if not store.delete_template(args.template_id):
            logger.error("No user template %d", args.template_id)
            return 1

    elif args.command == "delete-photo":
        projects.delete_photo(store, args.photo_id)

    elif args.command == "delete-project":
        if not projects.delete_project(store, settings, args.project_id):
            logger.error("Project not found: %d", args.project_id)
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
