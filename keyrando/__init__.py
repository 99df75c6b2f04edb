"""keyrando - completable key item placement for item randomizers."""

__version__ = "0.1.0"

from keyrando.annotations import (
    AreaAnnotation,
    Annotations,
    ItemAnnotation,
    ItemKey,
    ItemRestriction,
    LocationScope,
    SlotAnnotation,
    UniqueCategory,
    load_annotations,
    load_preset,
)
from keyrando.collapse import CollapseResult, collapse_reqs
from keyrando.config import Config, KeyItemsConfig, PathsConfig, load_config
from keyrando.errors import AssignmentError, HardLoopError
from keyrando.expr import FALSE, TRUE, And, Const, Expr, Named, Or, parse_expr
from keyrando.generator import AssignmentResult, assign_keyitems, assign_with_retry
from keyrando.graph import KeyItemGraph, Node
from keyrando.output import assignment_to_dict, export_json, export_spoiler_log
from keyrando.permutation import Assignment, KeyItemsPermutation, Placement
from keyrando.validator import ValidationResult, validate_assignment

__all__ = [
    # Expressions
    "And",
    "Const",
    "Expr",
    "FALSE",
    "Named",
    "Or",
    "TRUE",
    "parse_expr",
    # Annotations
    "AreaAnnotation",
    "Annotations",
    "ItemAnnotation",
    "ItemKey",
    "ItemRestriction",
    "LocationScope",
    "SlotAnnotation",
    "UniqueCategory",
    "load_annotations",
    "load_preset",
    # Config
    "Config",
    "KeyItemsConfig",
    "PathsConfig",
    "load_config",
    # Graph
    "KeyItemGraph",
    "Node",
    "CollapseResult",
    "collapse_reqs",
    # Assignment
    "Assignment",
    "AssignmentError",
    "HardLoopError",
    "KeyItemsPermutation",
    "Placement",
    "AssignmentResult",
    "assign_keyitems",
    "assign_with_retry",
    # Validator
    "ValidationResult",
    "validate_assignment",
    # Output
    "assignment_to_dict",
    "export_json",
    "export_spoiler_log",
]
