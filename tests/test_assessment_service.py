from unittest.mock import Mock
import pytest
from config.settings import settings
from core.errors import FactUnavailableError
from core.reasons import DisqualifyReason
from models.assessment import VmFactFailure
from services.assessment_service import UNMATCHED_VM_ERROR, AssessmentService


@pytest.fixture
def client(make_host_facts, make_vm_facts):
    fake = Mock()
    fake.get_host_facts.return_value = make_host_facts()
    fake.list_vm_facts.return_value = [
        make_vm_facts(name="Lab-01"),
        make_vm_facts(name="lab-02", dynamic_memory_enabled=True),
        VmFactFailure(name="lab-03", error="Access is denied."),
    ]
    return fake


def test_full_run(client):
    report = AssessmentService(client).run()

    assert report.host.host_nested_support is True
    assert [vm.name for vm in report.vms] == ["Lab-01", "lab-02", "lab-03"]
    assert [vm.supports_nesting for vm in report.vms] == [True, False, False]
    assert report.nested_supported is False


def test_host_only_skips_vm_enumeration(client):
    report = AssessmentService(client).run(host_only=True)

    client.list_vm_facts.assert_not_called()
    assert report.vms_scanned is False
    assert report.vms == []
    assert report.nested_supported is True


def test_vm_filter_is_case_insensitive(client):
    service = AssessmentService(client)

    report = service.run(vm_names=["lab-01", "missing"])

    assert [vm.name for vm in report.vms] == ["Lab-01", "missing"]
    assert service.unmatched_vm_names == ["missing"]
    assert report.vms[0].supports_nesting is True


def test_unmatched_vm_name_is_not_supported(client):
    report = AssessmentService(client).run(vm_names=["typo"])

    assert len(report.vms) == 1
    missing = report.vms[0]
    assert missing.name == "typo"
    assert missing.supports_nesting is False
    assert missing.reasons == [DisqualifyReason.VM_FACTS_UNAVAILABLE]
    assert missing.facts_error == UNMATCHED_VM_ERROR
    assert report.nested_supported is False


def test_host_facts_failure_propagates(client):
    client.get_host_facts.side_effect = FactUnavailableError("host facts", "Access is denied.")

    with pytest.raises(FactUnavailableError):
        AssessmentService(client).run()


def test_vm_enumeration_failure_keeps_host_assessment(client):
    client.list_vm_facts.side_effect = FactUnavailableError("VM list", "Get-VM failed")

    report = AssessmentService(client).run()

    assert report.host.host_nested_support is True
    assert report.vms == []
    assert "Get-VM failed" in report.vm_enumeration_error
    assert report.nested_supported is False


def test_thresholds_come_from_settings(client, monkeypatch):
    monkeypatch.setattr(settings, "MIN_NESTED_BUILD", 30000)

    report = AssessmentService(client).run(host_only=True)

    assert report.host.reasons == [DisqualifyReason.BUILD_TOO_OLD]


def test_mock_mode_end_to_end(monkeypatch):
    monkeypatch.setattr(settings, "MOCK_MODE", True)

    report = AssessmentService().run()

    assert report.host.host_nested_support is True
    by_name = {vm.name: vm for vm in report.vms}
    assert by_name["nested-lab-01"].supports_nesting is True
    assert by_name["build-agent-02"].reasons == [DisqualifyReason.DYNAMIC_MEMORY_ENABLED]
    assert by_name["legacy-dc-01"].reasons == [
        DisqualifyReason.EXTENSIONS_NOT_EXPOSED,
        DisqualifyReason.CHECKPOINT_PRESENT,
        DisqualifyReason.SAVED_STATE,
    ]
    assert by_name["test-vm-04"].reasons == [DisqualifyReason.EXTENSIONS_NOT_EXPOSED]
