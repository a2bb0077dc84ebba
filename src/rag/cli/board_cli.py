"""
Board RAG CLI - Index unit text and ask questions about a board.

Usage:
    board-rag index --manifest units.json [--retries 3]
    board-rag ask --board-id B --query "What does the fox do?" [--manifest units.json]
    board-rag summary --board-id B [--manifest units.json]

The in-memory store only lives for one process: with the memory backend,
pass --manifest to `ask` and `summary` so the units are indexed first.

Manifest format:
{
    "version": "1.0",
    "units": [
        {"unit_id": "U1", "board_id": "B", "text": "The quick brown fox."},
        {"unit_id": "U2", "board_id": "B", "path": "notes/u2.txt"}
    ],
    "groups": {"B": {"G1": ["U1"]}}
}
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..contracts.retrieval_contracts import ChatRequest
from ..core.config import RagConfig
from ..core.exceptions import RagError
from ..core.logging import configure_logging
from ..retrieval.chat import StaticGroupResolver
from ..runtime import RagRuntime
from ..utils.retry import RetryConfig, retry_with_backoff


logger = logging.getLogger(__name__)


@dataclass
class UnitManifest:
    """Units to index, with optional group membership per board."""
    version: str
    units: List[Dict[str, Any]]
    groups: Dict[str, Dict[str, List[str]]] = field(default_factory=dict)
    base_dir: Path = field(default_factory=Path.cwd)

    @classmethod
    def from_file(cls, path: str) -> "UnitManifest":
        """Load manifest from file; unit paths resolve against its directory."""
        manifest_path = Path(path)
        with open(manifest_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        manifest = cls.from_dict(data)
        manifest.base_dir = manifest_path.parent
        return manifest

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UnitManifest":
        """Create from dictionary."""
        return cls(
            version=data.get("version", "1.0"),
            units=data.get("units", []),
            groups=data.get("groups", {}),
        )

    def load_text(self, unit: Dict[str, Any]) -> str:
        """Return a unit's inline text, or read it from its path."""
        if "text" in unit:
            return unit["text"] or ""
        if "path" in unit:
            return (self.base_dir / unit["path"]).read_text(encoding="utf-8")
        raise ValueError(f"Unit {unit.get('unit_id')} has neither 'text' nor 'path'")


def index_manifest(
    runtime: RagRuntime,
    manifest: UnitManifest,
    retries: int = 1,
) -> Dict[str, Any]:
    """
    Index every unit of a manifest through the ingestion pipeline.

    Each unit is retried up to `retries` attempts on transient provider
    failures.

    Returns:
        Dict with the indexed units and the failures
    """
    retry_config = RetryConfig(max_attempts=max(retries, 1))
    indexed = []
    failed = []

    for unit in manifest.units:
        unit_id = unit["unit_id"]
        board_id = unit["board_id"]

        try:
            text = manifest.load_text(unit)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load text for unit {unit_id}: {e}")
            failed.append({"unit_id": unit_id, "reason": str(e)})
            continue

        outcome = retry_with_backoff(
            lambda: runtime.pipeline.on_unit_text_available(unit_id, board_id, text).result(),
            retry_config,
            operation_name=f"index {unit_id}",
        )

        if outcome.success:
            indexed.append(outcome.result.to_dict())
        else:
            error = outcome.error
            reason = error.reason() if isinstance(error, RagError) else str(error)
            failed.append({"unit_id": unit_id, "reason": reason, "attempts": outcome.attempts})

    return {"indexed": indexed, "failed": failed}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="board-rag",
        description="Index board content and answer questions about it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML config file"
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        help="Path to .env file (default: ./.env when present)"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--structured-logs",
        action="store_true",
        help="Emit JSON log lines"
    )

    subparsers = parser.add_subparsers(dest="command")

    index_parser = subparsers.add_parser("index", help="Index the units of a manifest")
    index_parser.add_argument(
        "--manifest",
        type=str,
        required=True,
        help="Path to unit manifest JSON file"
    )
    index_parser.add_argument(
        "--retries",
        type=int,
        default=1,
        help="Attempts per unit on transient provider failures (default: 1)"
    )

    ask_parser = subparsers.add_parser("ask", help="Ask a question about a board")
    ask_parser.add_argument("--board-id", type=str, required=True, help="Board to ask")
    ask_parser.add_argument("--query", type=str, required=True, help="Question text")
    ask_parser.add_argument(
        "--unit-id",
        dest="unit_ids",
        action="append",
        default=None,
        help="Restrict to this unit (repeatable)"
    )
    ask_parser.add_argument(
        "--group-id",
        dest="group_ids",
        action="append",
        default=None,
        help="Restrict to the units of this group (repeatable)"
    )
    ask_parser.add_argument(
        "--manifest",
        type=str,
        default=None,
        help="Index this manifest before asking"
    )

    summary_parser = subparsers.add_parser("summary", help="Summarize a board")
    summary_parser.add_argument("--board-id", type=str, required=True, help="Board to summarize")
    summary_parser.add_argument(
        "--manifest",
        type=str,
        default=None,
        help="Index this manifest before summarizing"
    )

    return parser


def main(
    argv: Optional[List[str]] = None,
    runtime_factory: Callable[..., RagRuntime] = RagRuntime.from_config,
) -> int:
    """CLI entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    log_level = logging.DEBUG if args.verbose else logging.INFO
    configure_logging(level=log_level, structured=args.structured_logs)

    if not args.command:
        parser.print_help()
        return 2

    try:
        config = RagConfig(config_path=args.config, env_file=args.env_file)
    except RagError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    manifest = None
    if args.manifest:
        try:
            manifest = UnitManifest.from_file(args.manifest)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load manifest: {e}")
            return 2

    group_resolver = StaticGroupResolver(manifest.groups) if manifest else None

    try:
        runtime = runtime_factory(config, group_resolver=group_resolver)
    except RagError as e:
        logger.error(f"Failed to start runtime: {e.reason()}")
        return 1

    with runtime:
        try:
            if args.command == "index":
                result = index_manifest(runtime, manifest, retries=args.retries)
                print(json.dumps(result, indent=2))
                return 1 if result["failed"] else 0

            if manifest is not None:
                result = index_manifest(runtime, manifest)
                if result["failed"]:
                    logger.warning(f"{len(result['failed'])} units failed to index")

            if args.command == "ask":
                answer = runtime.chat_service.chat(
                    ChatRequest(
                        board_id=args.board_id,
                        query=args.query,
                        unit_ids=args.unit_ids,
                        group_ids=args.group_ids,
                    )
                )
                print(json.dumps(answer.to_dict(), indent=2))
                return 0

            if args.command == "summary":
                print(runtime.chat_service.summarize(args.board_id))
                return 0

        except RagError as e:
            logger.error(f"{args.command} failed: {e.reason()}")
            return 1

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
