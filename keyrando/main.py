"""keyrando CLI entry point."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from keyrando.annotations import load_annotations, load_preset
from keyrando.config import Config, load_config
from keyrando.errors import AssignmentError
from keyrando.generator import assign_with_retry
from keyrando.output import export_json, export_spoiler_log


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the keyrando command."""
    parser = argparse.ArgumentParser(
        description="keyrando - Assign key items to areas with completable logic",
    )
    parser.add_argument(
        "config",
        type=Path,
        nargs="?",
        default=None,
        help="Path to config.toml (optional, uses defaults if not provided)",
    )
    parser.add_argument(
        "--annotations",
        type=Path,
        default=None,
        help="Annotation YAML file (overrides config)",
    )
    parser.add_argument(
        "--preset",
        type=Path,
        default=None,
        help="Preset YAML file with forced key item placements (overrides config)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output directory (default: config's output_dir). "
        "Files are written to <output>/<seed>/",
    )
    parser.add_argument(
        "--spoiler",
        action="store_true",
        help="Generate spoiler log file",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Random seed (overrides config, 0 = auto-reroll)",
    )
    parser.add_argument(
        "--max-attempts",
        type=int,
        default=100,
        help="Max assignment attempts for auto-reroll (default: 100)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Verbose output, explaining every placement",
    )

    args = parser.parse_args(argv)

    # Load or create config
    if args.config:
        try:
            config = load_config(args.config)
            if args.verbose:
                print(f"Loaded config from {args.config}")
        except FileNotFoundError:
            print(f"Error: Config file not found: {args.config}", file=sys.stderr)
            return 1
    else:
        config = Config()
        if args.verbose:
            print("Using default configuration")

    # Override seed if provided
    if args.seed is not None:
        config.seed = args.seed

    # Determine output directory: CLI > config
    output_dir = args.output if args.output is not None else Path(config.paths.output_dir)

    annotations_path = args.annotations or Path(config.paths.annotations_file)
    try:
        ann = load_annotations(annotations_path)
    except FileNotFoundError:
        print(f"Error: Annotations file not found: {annotations_path}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"Error: Invalid annotations: {e}", file=sys.stderr)
        return 1
    if args.verbose:
        print(
            f"Loaded {len(ann.areas)} areas, {len(ann.events)} events, "
            f"{len(ann.items)} items, {len(ann.slots)} slots from {annotations_path}"
        )

    preset = None
    preset_path = args.preset or (
        Path(config.paths.preset_file) if config.paths.preset_file else None
    )
    if preset_path:
        try:
            preset = load_preset(preset_path)
        except FileNotFoundError:
            print(f"Error: Preset file not found: {preset_path}", file=sys.stderr)
            return 1
        if args.verbose:
            print(f"Loaded {len(preset)} forced placements from {preset_path}")

    if args.verbose:
        mode = "fixed seed" if config.seed != 0 else "auto-reroll"
        print(f"Assigning key items ({mode})...")

    try:
        result = assign_with_retry(
            config,
            ann,
            preset=preset,
            max_attempts=args.max_attempts,
            explain=args.verbose,
        )
    except AssignmentError as e:
        print(f"Error: Assignment failed: {e}", file=sys.stderr)
        return 1

    if args.verbose and result.validation.warnings:
        print("Validation warnings:")
        for warning in result.validation.warnings:
            print(f"  - {warning}")

    if args.verbose or config.seed == 0:
        print(f"Assigned {len(result.placements)} key items with seed {result.seed}")
        print(f"  Attempts: {result.attempts}")

    # Create output directory: <output>/<seed>/
    seed_dir = output_dir / str(result.seed)
    seed_dir.mkdir(parents=True, exist_ok=True)

    json_path = seed_dir / "assignment.json"
    export_json(result, json_path)
    print(f"Written: {json_path}")

    if args.spoiler:
        spoiler_path = seed_dir / "spoiler.txt"
        export_spoiler_log(result, ann, spoiler_path)
        print(f"Written: {spoiler_path}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
