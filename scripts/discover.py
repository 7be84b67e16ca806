#!/usr/bin/env python3
"""Discover skill candidates from Claude Code session history.

Usage:
    python scripts/discover.py                     Scan and list candidates
    python scripts/discover.py --rescan            Force full rescan
    python scripts/discover.py --exclude=a,b       Skip projects
    python scripts/discover.py --write-drafts DIR  Write drafts for the top candidates
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from skill_discovery.config import DiscoveryConfig
from skill_discovery.corpus_scanner import SessionProcessingError
from skill_discovery.embeddings import CachedEmbedder, EmbeddingProvider, HeuristicEmbedder, OpenAIEmbedder
from skill_discovery.pipeline import DiscoveryPipeline, DiscoveryReport
from skill_discovery.ranker import ExistingArtifact, format_candidate_table
from skill_discovery.scan_state import ScanStateWriteError

logger = logging.getLogger("skill_discovery.discover")


def build_embedder(kind: str) -> EmbeddingProvider | None:
    """Create the embedding provider selected on the command line."""
    if kind == "none":
        return None
    if kind == "openai":
        try:
            return CachedEmbedder(OpenAIEmbedder())
        except ValueError as e:
            logger.warning(f"{e} Falling back to heuristic embeddings.")
    return CachedEmbedder(HeuristicEmbedder())


def load_existing_artifacts(skills_dirs: list[Path]) -> list[ExistingArtifact]:
    """Existing skill names, one per subdirectory."""
    artifacts = []
    for skills_dir in skills_dirs:
        if not skills_dir.is_dir():
            continue
        for child in sorted(skills_dir.iterdir()):
            if child.is_dir():
                artifacts.append(ExistingArtifact(name=child.name))
    return artifacts


def write_drafts(report: DiscoveryReport, output_dir: Path, top: int) -> list[Path]:
    written = []
    for draft in DiscoveryPipeline.drafts(report.candidates, top=top):
        skill_dir = output_dir / draft.name
        skill_dir.mkdir(parents=True, exist_ok=True)
        path = skill_dir / "SKILL.md"
        path.write_text(draft.content, encoding="utf-8")
        written.append(path)
    return written


def report_to_dict(report: DiscoveryReport) -> dict:
    return {
        "scan": report.scan.model_dump(by_alias=True),
        "patterns_found": report.patterns_found,
        "noise_removed": report.noise_removed,
        "epsilon": report.epsilon,
        "warnings": report.warnings,
        "candidates": [
            {
                "pattern_key": c.pattern_key,
                "suggested_name": c.suggested_name,
                "description": c.description,
                "score": round(c.final_score, 4),
                "occurrences": c.occurrences,
                "projects": sorted(c.evidence.projects_seen),
                "cluster_size": len(c.cluster.members) if c.cluster else 1,
            }
            for c in report.candidates
        ],
    }


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Discover skill candidates from session history")
    parser.add_argument("--exclude", default="", help="Comma-separated project slugs to skip")
    parser.add_argument("--rescan", action="store_true", help="Force full rescan, ignore watermarks")
    parser.add_argument("--top", type=int, default=5, help="Number of drafts to write")
    parser.add_argument(
        "--embeddings",
        choices=["heuristic", "openai", "none"],
        default="heuristic",
        help="Embedding provider for clustering and deduplication",
    )
    parser.add_argument(
        "--skills-dir",
        action="append",
        type=Path,
        default=None,
        help="Directory of existing skills to deduplicate against (repeatable)",
    )
    parser.add_argument("--write-drafts", type=Path, default=None, metavar="DIR")
    parser.add_argument("--config", type=Path, default=None, help="Config file path")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    config = DiscoveryConfig.load(args.config)
    pipeline = DiscoveryPipeline(config, embedder=build_embedder(args.embeddings))

    skills_dirs = args.skills_dir or [Path(config.claude_base_dir).expanduser() / "skills"]
    exclude = [p for p in args.exclude.split(",") if p]

    try:
        report = await pipeline.run(
            exclude_projects=exclude,
            force_rescan=args.rescan,
            existing_artifacts=load_existing_artifacts(skills_dirs),
        )
    except SessionProcessingError as e:
        saved = "" if e.save_error else " (progress before it was saved)"
        print(f"Discovery failed: {e}{saved}", file=sys.stderr)
        return 1
    except ScanStateWriteError as e:
        print(f"Discovery failed: {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps(report_to_dict(report), indent=2))
    else:
        print(f"Scan summary: {report.summary()}")
        for warning in report.warnings:
            print(f"Warning: {warning}")
        print()
        print(format_candidate_table(report.candidates))

    if args.write_drafts and report.candidates:
        for path in write_drafts(report, args.write_drafts, args.top):
            print(f"Created skill draft: {path}")

    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
