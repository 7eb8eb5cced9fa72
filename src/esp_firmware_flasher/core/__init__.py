"""
Core module for the ESP32 firmware flasher.

This module provides the single source of truth for:
- Outcome codes and result objects (results.py)
- Compatibility warnings and progress events (messages.py, compatibility.py)
- Address and size parsing (parsing.py)
- Backup path resolution (backup.py)
- Partition plan assembly and erase ranges (partitions.py, erase.py)
- Backup and update workflows (actions.py)

The CLI should call into this module rather than implementing its own logic.
"""

from .results import ExitCode, OperationResult, WorkflowState
from .messages import (
    MessageLevel,
    WarningCode,
    WarningItem,
    Phase,
    ProgressEvent,
    ProgressCallback,
)
from .parsing import parse_deployment_address, parse_partition_table_size
from .compatibility import check_compatibility, resolve_target_name
from .backup import resolve_backup_path, default_backup_file_name
from .partitions import PartitionPlan, apply_runtime_override, place_application
from .erase import EraseRange, compute_erase_range, round_up_to_sector
from .actions import backup_flash, update_firmware

__all__ = [
    # Results
    "ExitCode",
    "OperationResult",
    "WorkflowState",
    # Messages
    "MessageLevel",
    "WarningCode",
    "WarningItem",
    "Phase",
    "ProgressEvent",
    "ProgressCallback",
    # Parsing
    "parse_deployment_address",
    "parse_partition_table_size",
    # Validation
    "check_compatibility",
    "resolve_target_name",
    # Backup
    "resolve_backup_path",
    "default_backup_file_name",
    # Plan
    "PartitionPlan",
    "apply_runtime_override",
    "place_application",
    "EraseRange",
    "compute_erase_range",
    "round_up_to_sector",
    # Actions
    "backup_flash",
    "update_firmware",
]
