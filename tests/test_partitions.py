"""Tests for partition plan assembly."""

from esp_firmware_flasher.core.partitions import (
    PartitionPlan,
    apply_runtime_override,
    place_application,
)
from esp_firmware_flasher.core.results import ExitCode


class TestPartitionPlan:
    """Address-keyed override semantics."""

    def test_same_address_keeps_latest_entry(self):
        plan = PartitionPlan()
        plan.set(0x10000, "first.bin")
        plan.set(0x10000, "second.bin")
        assert len(plan) == 1
        assert plan[0x10000] == "second.bin"

    def test_sorted_items_by_address(self):
        plan = PartitionPlan({0x10000: "clr.bin", 0x1000: "boot.bin", 0x8000: "part.bin"})
        assert [a for a, _ in plan.sorted_items()] == [0x1000, 0x8000, 0x10000]

    def test_replace_all_leaves_single_entry(self):
        plan = PartitionPlan({0x1000: "boot.bin", 0x8000: "part.bin"})
        plan.replace_all(0x1B0000, "app.bin")
        assert plan.to_dict() == {0x1B0000: "app.bin"}


class TestRuntimeOverride:
    """Local nanoCLR image substitution."""

    def test_missing_file(self, tmp_path):
        plan = PartitionPlan({0x10000: "pkg.bin"})
        assert apply_runtime_override(plan, tmp_path / "nope.bin") == ExitCode.E9011
        assert plan[0x10000] == "pkg.bin"

    def test_wrong_extension(self, tmp_path):
        clr = tmp_path / "nanoCLR.hex"
        clr.write_bytes(b"\x00")
        plan = PartitionPlan({0x10000: "pkg.bin"})
        assert apply_runtime_override(plan, clr) == ExitCode.E9012
        assert plan[0x10000] == "pkg.bin"

    def test_replaces_runtime_entry_only(self, tmp_path):
        clr = tmp_path / "nanoCLR.bin"
        clr.write_bytes(b"\x00")
        plan = PartitionPlan({0x1000: "boot.bin", 0x10000: "pkg.bin"})
        assert apply_runtime_override(plan, clr) == ExitCode.OK
        assert plan.to_dict() == {0x1000: "boot.bin", 0x10000: str(clr)}

    def test_adds_runtime_to_empty_plan(self, tmp_path):
        clr = tmp_path / "nanoCLR.bin"
        clr.write_bytes(b"\x00")
        plan = PartitionPlan()
        assert apply_runtime_override(plan, clr) == ExitCode.OK
        assert plan.to_dict() == {0x10000: str(clr)}


class TestPlaceApplication:
    """Application image placement."""

    def test_missing_application(self, tmp_path):
        plan = PartitionPlan({0x1000: "boot.bin"})
        code, address = place_application(plan, tmp_path / "app.bin", False, "0x1B0000")
        assert code == ExitCode.E9008
        assert address is None
        assert plan.to_dict() == {0x1000: "boot.bin"}

    def test_invalid_deploy_addresses(self, tmp_path):
        app = tmp_path / "app.bin"
        app.write_bytes(b"\x00")
        for bad in (None, "", "1B0000", "0x", "0xZZ", "x1B0000", "0x-10", "0x1B 00"):
            plan = PartitionPlan()
            code, address = place_application(plan, app, False, bad)
            assert code == ExitCode.E9009, bad
            assert address is None

    def test_deploy_only_uses_given_address(self, tmp_path):
        app = tmp_path / "app.bin"
        app.write_bytes(b"\x00")
        plan = PartitionPlan({0x10000: "clr.bin"})
        code, address = place_application(plan, app, False, "0x1b0000")
        assert code == ExitCode.OK
        assert address == 0x1B0000
        assert plan.to_dict() == {0x1B0000: str(app.resolve())}

    def test_update_uses_package_address_and_drops_package(self, tmp_path):
        app = tmp_path / "app.bin"
        app.write_bytes(b"\x00")
        plan = PartitionPlan({0x1000: "boot.bin", 0x8000: "part.bin", 0x10000: "clr.bin"})
        code, address = place_application(
            plan, app, True, deployment_address="garbage", package_deployment_address=0x110000
        )
        assert code == ExitCode.OK
        assert address == 0x110000
        assert plan.to_dict() == {0x110000: str(app.resolve())}
