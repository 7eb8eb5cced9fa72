"""
Outcome codes and result objects for core operations.

Every workflow step reports one member of the closed ``ExitCode`` set.
Workflows wrap the terminal code in an ``OperationResult`` that both the CLI
and library callers can display consistently.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Any

from .messages import WarningItem


class ExitCode(Enum):
    """Closed set of operation outcomes. ``OK`` is the only success member."""
    OK = "OK"

    # Transport / device
    E4001 = "E4001"
    E4002 = "E4002"
    E4003 = "E4003"
    E4004 = "E4004"
    E4005 = "E4005"

    # Arguments / files / package
    E9002 = "E9002"
    E9003 = "E9003"
    E9004 = "E9004"
    E9007 = "E9007"
    E9008 = "E9008"
    E9009 = "E9009"
    E9011 = "E9011"
    E9012 = "E9012"

    @property
    def is_ok(self) -> bool:
        return self is ExitCode.OK

    @property
    def description(self) -> str:
        return EXIT_CODE_DESCRIPTIONS[self]


EXIT_CODE_DESCRIPTIONS: Dict[ExitCode, str] = {
    ExitCode.OK: "No error",
    ExitCode.E4001: "Unsupported flash size for the firmware package",
    ExitCode.E4002: "Failed to erase flash",
    ExitCode.E4003: "Failed to write flash",
    ExitCode.E4004: "Failed to read flash",
    ExitCode.E4005: "Device not responding",
    ExitCode.E9002: "Couldn't create the backup directory",
    ExitCode.E9003: "Couldn't delete the existing backup file",
    ExitCode.E9004: "Backup file specified without a backup path",
    ExitCode.E9007: "Failed to download or extract the firmware package",
    ExitCode.E9008: "Application file not found",
    ExitCode.E9009: "Invalid deployment address",
    ExitCode.E9011: "Runtime (CLR) file not found",
    ExitCode.E9012: "Runtime (CLR) file must be a .bin file",
}


class WorkflowState(Enum):
    """Where an update/deploy workflow stopped."""
    IDLE = "idle"
    VALIDATING = "validating"
    PLAN_BUILT = "plan_built"
    ERASING = "erasing"
    WRITING = "writing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class OperationResult:
    """
    Unified result object for the backup and update workflows.

    Attributes:
        code: Terminal outcome of the workflow
        operation: Name of the operation (e.g., "backup_flash", "update_firmware")
        target: Resolved firmware target name
        state: Last workflow state reached
        warnings: Advisory compatibility warnings (never change ``code``)
        partitions: Final address -> file plan that was (or would be) written
        metadata: Additional operation-specific data
        logs: Captured log lines from the operation
    """
    code: ExitCode
    operation: str
    target: str = ""
    state: WorkflowState = WorkflowState.IDLE
    warnings: List[WarningItem] = field(default_factory=list)
    partitions: Dict[int, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    logs: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.code.is_ok

    def add_warning(self, warning: WarningItem) -> None:
        """Add an advisory warning."""
        self.warnings.append(warning)

    def fail(self, code: ExitCode) -> "OperationResult":
        """Record a failure outcome and move to the failed state."""
        self.code = code
        self.state = WorkflowState.FAILED
        return self

    def to_summary(self) -> str:
        """
        Generate a human-readable summary string.

        Suitable for CLI output or simple logging.
        """
        status = "SUCCESS" if self.ok else "FAILED"
        lines = [f"[{status}] {self.operation}"]

        if not self.ok:
            lines.append(f"  Code: {self.code.value} ({self.code.description})")
        if self.target:
            lines.append(f"  Target: {self.target}")

        if self.partitions:
            lines.append("  Partitions:")
            for address, path in sorted(self.partitions.items()):
                lines.append(f"    0x{address:06X} {path}")

        if self.warnings:
            lines.append("  Warnings:")
            for warn in self.warnings:
                lines.append(f"    - {warn.title}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "ok": self.ok,
            "code": self.code.value,
            "operation": self.operation,
            "target": self.target,
            "state": self.state.value,
            "warnings": [w.to_dict() for w in self.warnings],
            "partitions": {f"0x{a:X}": p for a, p in sorted(self.partitions.items())},
            "metadata": self.metadata,
            "logs": self.logs,
        }

    @classmethod
    def success(cls, operation: str, target: str = "", **kwargs) -> "OperationResult":
        """Create a successful result."""
        kwargs.setdefault("state", WorkflowState.DONE)
        return cls(code=ExitCode.OK, operation=operation, target=target, **kwargs)

    @classmethod
    def failure(cls, operation: str, code: ExitCode, target: str = "", **kwargs) -> "OperationResult":
        """Create a failed result."""
        kwargs.setdefault("state", WorkflowState.FAILED)
        return cls(code=code, operation=operation, target=target, **kwargs)
