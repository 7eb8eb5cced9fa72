"""
Standardized warning and progress messages for the ESP32 firmware flasher.

Provides structured warning items with stable codes and progress events that
the CLI (or any other front end) can display consistently. The core never
writes to the console itself.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Any, Optional


class MessageLevel(Enum):
    """Severity level for messages."""
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    SUCCESS = "success"


class WarningCode(Enum):
    """Stable warning codes for compatibility checks."""
    W_DEVICE_UNSUPPORTED = "W_DEVICE_UNSUPPORTED"
    W_REVISION_MISMATCH = "W_REVISION_MISMATCH"
    W_MISSING_CAPABILITY = "W_MISSING_CAPABILITY"


# Default remediation hints for each warning code
WARNING_REMEDIATIONS: Dict[WarningCode, str] = {
    WarningCode.W_DEVICE_UNSUPPORTED:
        "Most likely it won't boot. Check that an ESP32 device is connected.",
    WarningCode.W_REVISION_MISMATCH:
        "Use the 'ESP32_WROOM_32' target instead.",
    WarningCode.W_MISSING_CAPABILITY:
        "Use a target without BLE in the name.",
}


@dataclass
class WarningItem:
    """
    Structured warning message with stable code.

    Attributes:
        level: Severity (INFO, WARN, ERROR)
        code: Stable warning code for programmatic handling
        title: Short, user-facing title
        detail: Longer explanation of the issue
        remediation: Suggested action to resolve the issue
    """
    level: MessageLevel
    code: WarningCode
    title: str
    detail: str = ""
    remediation: str = ""

    def __post_init__(self):
        """Set default remediation if not provided."""
        if not self.remediation and self.code in WARNING_REMEDIATIONS:
            self.remediation = WARNING_REMEDIATIONS[self.code]

    @classmethod
    def warn(
        cls,
        code: WarningCode,
        title: str,
        detail: str = "",
        remediation: str = "",
    ) -> "WarningItem":
        """Create a WARN-level warning."""
        return cls(MessageLevel.WARN, code, title, detail, remediation)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON/display."""
        return {
            "level": self.level.value,
            "code": self.code.value,
            "title": self.title,
            "detail": self.detail,
            "remediation": self.remediation,
        }

    def to_cli_string(self, verbose: bool = False) -> str:
        """Format for CLI output."""
        if verbose:
            lines = [f"[{self.code.value}] {self.title}"]
            if self.detail:
                lines.append(f"   {self.detail}")
            if self.remediation:
                lines.append(f"   -> {self.remediation}")
            return "\n".join(lines)
        return self.title


class Phase(Enum):
    """Workflow phase a progress event belongs to."""
    BACKUP = "backup"
    VALIDATE = "validate"
    RESOLVE = "resolve"
    PLAN = "plan"
    ERASE = "erase"
    WRITE = "write"


@dataclass(frozen=True)
class ProgressEvent:
    """Single progress notification emitted by a workflow."""
    phase: Phase
    level: MessageLevel
    message: str


ProgressCallback = Callable[[ProgressEvent], None]


def emit(
    callback: Optional[ProgressCallback],
    phase: Phase,
    level: MessageLevel,
    message: str,
) -> None:
    """Send a progress event if a callback is registered."""
    if callback is not None:
        callback(ProgressEvent(phase, level, message))
