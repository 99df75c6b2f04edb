"""JSON export and spoiler log for key item assignments."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from keyrando.annotations import Annotations
from keyrando.generator import AssignmentResult


def assignment_to_dict(result: AssignmentResult) -> dict[str, Any]:
    """Convert an assignment result to a JSON-serializable dictionary.

    Item keys are written as ``type:id`` strings and location scopes by
    name. Sets are written as sorted lists so output is stable.

    Args:
        result: The assignment result to convert.

    Returns:
        Dictionary ready to be serialized to JSON.
    """
    a = result.assignment
    return {
        "seed": result.seed,
        "attempts": result.attempts,
        "priority": [str(key) for key in a.priority],
        "required_events": sorted(a.required_events),
        "assign": {
            str(key): sorted(areas)
            for key, areas in sorted(a.assign.items(), key=lambda e: str(e[0]))
        },
        "restricted_items": {
            str(key): [str(scope) for scope in scopes]
            for key, scopes in sorted(
                a.restricted_items.items(), key=lambda e: str(e[0])
            )
        },
        "effective_location": {
            str(scope): area
            for scope, area in sorted(
                a.effective_location.items(), key=lambda e: str(e[0])
            )
        },
        "location_lateness": {
            name: round(value, 4)
            for name, value in sorted(a.location_lateness.items())
        },
        "included_areas": {
            name: sorted(areas) for name, areas in sorted(a.included_areas.items())
        },
        "placements": [
            {"item": p.item, "area": p.area, "forced": p.forced}
            for p in result.placements
        ],
    }


def export_json(result: AssignmentResult, output_path: Path) -> None:
    """Export an assignment result to a JSON file.

    Args:
        result: The assignment result to export
        output_path: Path to write the JSON file
    """
    data = assignment_to_dict(result)
    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def export_spoiler_log(
    result: AssignmentResult, ann: Annotations, output_path: Path
) -> None:
    """Export human-readable spoiler log.

    Args:
        result: The assignment result to export
        ann: Annotations, for item names
        output_path: Path to write the spoiler log
    """
    a = result.assignment
    names = ann.item_names_by_key()
    lines: list[str] = []

    lines.append("=" * 60)
    lines.append(f"KEYRANDO SPOILER (seed: {result.seed})")
    lines.append(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    lines.append("=" * 60)
    lines.append(f"Key items: {len(result.placements)}")
    lines.append("")

    lines.append("Placement order:")
    for i, p in enumerate(result.placements, start=1):
        suffix = " (forced)" if p.forced else ""
        lines.append(f"  {i:3}. {p.item} -> {p.area}{suffix}")
    lines.append("")

    lines.append("Priority:")
    lines.append("  " + ", ".join(names.get(key, str(key)) for key in a.priority))
    lines.append("")

    lines.append("Area lateness:")
    for name, value in sorted(a.location_lateness.items(), key=lambda e: (e[1], e[0])):
        lines.append(f"  {value:.3f}  {name}")
    lines.append("")

    if a.effective_location:
        lines.append("Effective locations:")
        for scope, area in sorted(a.effective_location.items(), key=lambda e: str(e[0])):
            lines.append(f"  {scope} -> {area}")
        lines.append("")

    if result.validation.warnings:
        lines.append("Warnings:")
        for warning in result.validation.warnings:
            lines.append(f"  - {warning}")
        lines.append("")

    with open(output_path, "w", encoding="utf-8") as f:
        f.write("\n".join(lines))
