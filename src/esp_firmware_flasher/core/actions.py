"""
Core workflow actions for the ESP32 firmware flasher.

This module exposes the two entry workflows the CLI (or any other front end)
calls: backing up the whole flash, and updating firmware and/or deploying an
application. Each step reports an ExitCode; the first failure ends the
workflow and becomes its outcome.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from esp_firmware_flasher.device import DeviceInfo
from esp_firmware_flasher.firmware import FirmwarePackage, FirmwarePackageError, FirmwareResolver
from esp_firmware_flasher.targets import PartitionTableSize
from esp_firmware_flasher.transport import FlashTransport
from .backup import resolve_backup_path
from .compatibility import check_compatibility, resolve_target_name
from .erase import compute_erase_range
from .messages import MessageLevel, Phase, ProgressCallback, emit
from .partitions import PartitionPlan, apply_runtime_override, check_runtime_file, place_application
from .results import ExitCode, OperationResult, WorkflowState

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class _ListLogHandler(logging.Handler):
    """Capture log records into a list of formatted strings."""

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.records = []
        self.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(self.format(record))


@contextmanager
def _capture_logs(logger_name: str = "esp_firmware_flasher"):
    """Capture logs for core operations into a list."""
    target_logger = logging.getLogger(logger_name)
    handler = _ListLogHandler()
    previous_level = target_logger.level
    if previous_level in (logging.NOTSET, logging.WARNING, logging.ERROR, logging.CRITICAL):
        target_logger.setLevel(logging.INFO)
    target_logger.addHandler(handler)
    try:
        yield handler.records
    finally:
        target_logger.removeHandler(handler)
        target_logger.setLevel(previous_level)


def backup_flash(
    transport: FlashTransport,
    device: DeviceInfo,
    backup_dir: Optional[PathLike] = None,
    file_name: Optional[str] = None,
    progress_cb: Optional[ProgressCallback] = None,
    now: Optional[datetime] = None,
) -> OperationResult:
    """
    Dump the whole device flash to a file.

    Args:
        transport: Flash transport connected to the device
        device: Connected device snapshot
        backup_dir: Destination directory (created when missing)
        file_name: Destination file name; default is built from the device
        progress_cb: Optional callback receiving ProgressEvent objects
        now: Clock override for the default file name

    Returns:
        OperationResult with:
            - code: OK, E9002, E9003, E9004 or the transport read outcome
            - metadata["backup_path"]: resolved dump path
    """
    with _capture_logs() as logs:
        code, backup_file = resolve_backup_path(device, backup_dir, file_name, now)
        if not code.is_ok:
            logger.error(f"Backup path resolution failed: {code.description}")
            emit(progress_cb, Phase.BACKUP, MessageLevel.ERROR, code.description)
            return OperationResult.failure("backup_flash", code, logs=logs)

        emit(progress_cb, Phase.BACKUP, MessageLevel.INFO,
             f"Backing up the firmware to {backup_file}...")
        logger.info(f"Reading {device.flash_size} bytes of flash into {backup_file}")

        code = transport.read_flash(backup_file, device.flash_size)
        if not code.is_ok:
            logger.error(f"Flash backup failed: {code.description}")
            emit(progress_cb, Phase.BACKUP, MessageLevel.ERROR, code.description)
            result = OperationResult.failure("backup_flash", code, logs=logs)
            result.metadata["backup_path"] = str(backup_file)
            return result

        emit(progress_cb, Phase.BACKUP, MessageLevel.SUCCESS,
             f"Flash backup saved to {backup_file.name}")
        result = OperationResult.success("backup_flash", logs=logs)
        result.metadata["backup_path"] = str(backup_file)
        result.metadata["bytes_len"] = device.flash_size
        return result


async def update_firmware(
    transport: FlashTransport,
    resolver: FirmwareResolver,
    device: DeviceInfo,
    target: Optional[str] = None,
    update_fw: bool = True,
    fw_version: Optional[str] = None,
    preview: bool = False,
    application_path: Optional[PathLike] = None,
    deployment_address: Optional[str] = None,
    clr_file: Optional[PathLike] = None,
    partition_table_size: Optional[PartitionTableSize] = None,
    progress_cb: Optional[ProgressCallback] = None,
) -> OperationResult:
    """
    Complete update workflow: validate -> resolve -> plan -> erase -> write.

    With ``update_fw`` the firmware package is downloaded, the chip is fully
    erased and the package partitions are written. Without it (deploy-only)
    only the application image is written, after erasing just the region it
    goes to.

    Cancelling the task only interrupts the package download: erase and
    write run without yielding to the event loop.

    Args:
        transport: Flash transport connected to the device
        resolver: Firmware package source
        device: Connected device snapshot
        target: Firmware target name; the default target when empty
        update_fw: Download and write the firmware package
        fw_version: Package version; latest when None
        preview: Use preview packages
        application_path: Application image to deploy
        deployment_address: "0x"-prefixed address for deploy-only mode
        clr_file: Local runtime image replacing the package one
        partition_table_size: Partition table to use; from flash size when None
        progress_cb: Optional callback receiving ProgressEvent objects

    Returns:
        OperationResult with code, final state, warnings and partitions
    """
    with _capture_logs() as logs:
        result = OperationResult(
            code=ExitCode.OK,
            operation="update_firmware",
            state=WorkflowState.VALIDATING,
            logs=logs,
        )

        target = resolve_target_name(target)
        result.target = target

        for warning in check_compatibility(device, target):
            result.add_warning(warning)
            emit(progress_cb, Phase.VALIDATE, MessageLevel.WARN, warning.to_cli_string(verbose=True))

        if clr_file:
            code = check_runtime_file(clr_file)
            if not code.is_ok:
                return _fail(result, code, Phase.VALIDATE, progress_cb)

        package: Optional[FirmwarePackage] = None
        if update_fw:
            emit(progress_cb, Phase.RESOLVE, MessageLevel.INFO,
                 f"Resolving firmware package for {target} ({fw_version or 'latest'})...")
            try:
                package = await resolver.resolve(
                    target, fw_version, preview, partition_table_size, device.flash_size
                )
            except FirmwarePackageError as e:
                logger.error(str(e))
                return _fail(result, e.code, Phase.RESOLVE, progress_cb)
            result.metadata["package"] = str(package.location)
            plan = package.plan()
        else:
            plan = PartitionPlan()

        if clr_file:
            code = apply_runtime_override(plan, clr_file)
            if not code.is_ok:
                return _fail(result, code, Phase.PLAN, progress_cb)

        address = 0
        if application_path:
            code, app_address = place_application(
                plan,
                application_path,
                update_fw,
                deployment_address=deployment_address,
                package_deployment_address=package.deployment_address if package else None,
            )
            if not code.is_ok:
                return _fail(result, code, Phase.PLAN, progress_cb)
            address = app_address

        result.partitions = plan.to_dict()
        result.state = WorkflowState.PLAN_BUILT
        logger.info(f"Partition plan: {plan!r}")

        # Erase and write form one critical section: no await below this line.
        result.state = WorkflowState.ERASING
        emit(progress_cb, Phase.ERASE, MessageLevel.INFO, "Erasing flash...")
        if update_fw:
            code = transport.erase_all()
        else:
            try:
                bootloader = resolver.locate(target, fw_version, preview).bootloader_path
                erase_range = compute_erase_range(False, address, bootloader)
            except FirmwarePackageError as e:
                logger.error(str(e))
                return _fail(result, e.code, Phase.ERASE, progress_cb)
            except OSError as e:
                logger.error(f"Cannot read bootloader image: {e}")
                return _fail(result, ExitCode.E9007, Phase.ERASE, progress_cb)
            result.metadata["erase_range"] = str(erase_range)
            code = transport.erase_range(erase_range.address, erase_range.length)

        if not code.is_ok:
            return _fail(result, code, Phase.ERASE, progress_cb)
        emit(progress_cb, Phase.ERASE, MessageLevel.SUCCESS, "OK")

        result.state = WorkflowState.WRITING
        emit(progress_cb, Phase.WRITE, MessageLevel.INFO, "Flashing firmware...")
        code = transport.write_plan(plan)
        if not code.is_ok:
            return _fail(result, code, Phase.WRITE, progress_cb)

        emit(progress_cb, Phase.WRITE, MessageLevel.SUCCESS, "OK")
        result.state = WorkflowState.DONE
        return result


def _fail(
    result: OperationResult,
    code: ExitCode,
    phase: Phase,
    progress_cb: Optional[ProgressCallback],
) -> OperationResult:
    logger.error(f"{result.operation} failed during {phase.value}: {code.value} {code.description}")
    emit(progress_cb, phase, MessageLevel.ERROR, f"{code.value}: {code.description}")
    return result.fail(code)
