import pytest
from analyzers.vm_rules import (
    check_checkpoint, check_dynamic_memory, check_extensions_exposed,
    check_saved_state, evaluate_vm, evaluate_vm_failure,
)
from core.reasons import DisqualifyReason
from models.assessment import VmFactFailure, VmState


def test_dynamic_memory_only(make_vm_facts):
    vm = evaluate_vm(make_vm_facts(dynamic_memory_enabled=True))

    assert vm.supports_nesting is False
    assert vm.reasons == [DisqualifyReason.DYNAMIC_MEMORY_ENABLED]
    assert vm.messages == [DisqualifyReason.DYNAMIC_MEMORY_ENABLED.describe()]


def test_supported_vm(make_vm_facts):
    vm = evaluate_vm(make_vm_facts())

    assert vm.supports_nesting is True
    assert vm.messages == []
    assert vm.state == VmState.RUNNING
    assert vm.snapshot_enabled is False
    assert vm.facts_error is None


@pytest.mark.parametrize("overrides", [
    {},
    {"dynamic_memory_enabled": True},
    {"state": VmState.SAVED, "parent_checkpoint_id": "abc"},
    {"state": VmState.OFF},
])
def test_unexposed_extensions_always_disqualify(make_vm_facts, overrides):
    vm = evaluate_vm(make_vm_facts(expose_virtualization_extensions=False, **overrides))

    assert vm.supports_nesting is False
    assert DisqualifyReason.EXTENSIONS_NOT_EXPOSED in vm.reasons
    assert any("ExposeVirtualizationExtensions" in m for m in vm.messages)


def test_all_four_rules_report(make_vm_facts):
    facts = make_vm_facts(
        expose_virtualization_extensions=False,
        dynamic_memory_enabled=True,
        parent_checkpoint_id="6f1c2a9e",
        state=VmState.SAVED,
    )

    vm = evaluate_vm(facts)

    assert vm.reasons == [
        DisqualifyReason.EXTENSIONS_NOT_EXPOSED,
        DisqualifyReason.DYNAMIC_MEMORY_ENABLED,
        DisqualifyReason.CHECKPOINT_PRESENT,
        DisqualifyReason.SAVED_STATE,
    ]
    assert len(vm.messages) == 4
    assert "6f1c2a9e" in vm.messages[2]


@pytest.mark.parametrize("state", [s for s in VmState if s != VmState.SAVED])
def test_only_saved_state_disqualifies(make_vm_facts, state):
    assert check_saved_state(make_vm_facts(state=state)).disqualifies is False


def test_saved_state(make_vm_facts):
    assert check_saved_state(make_vm_facts(state=VmState.SAVED)).reason == DisqualifyReason.SAVED_STATE


def test_checkpoint_rule(make_vm_facts):
    assert check_checkpoint(make_vm_facts()).disqualifies is False
    outcome = check_checkpoint(make_vm_facts(parent_checkpoint_id="snap-1"))
    assert outcome.reason == DisqualifyReason.CHECKPOINT_PRESENT


def test_single_rules_pass_for_good_vm(make_vm_facts):
    facts = make_vm_facts()
    for rule in (check_extensions_exposed, check_dynamic_memory, check_checkpoint, check_saved_state):
        assert rule(facts).disqualifies is False


def test_snapshot_enabled_from_checkpoint_count(make_vm_facts):
    vm = evaluate_vm(make_vm_facts(checkpoint_count=3))

    assert vm.snapshot_enabled is True
    # Checkpoints that the VM is not running from are informational.
    assert vm.supports_nesting is True


def test_snapshot_enabled_from_parent_checkpoint(make_vm_facts):
    vm = evaluate_vm(make_vm_facts(parent_checkpoint_id="snap-1"))

    assert vm.snapshot_enabled is True
    assert vm.supports_nesting is False


def test_evaluation_is_idempotent(make_vm_facts):
    facts = make_vm_facts(dynamic_memory_enabled=True, state=VmState.SAVED)
    assert evaluate_vm(facts).model_dump_json() == evaluate_vm(facts).model_dump_json()


def test_failure_entry_is_unsupported():
    vm = evaluate_vm_failure(VmFactFailure(name="broken", error="Access is denied."))

    assert vm.name == "broken"
    assert vm.supports_nesting is False
    assert vm.state == VmState.UNKNOWN
    assert vm.facts_error == "Access is denied."
    assert vm.reasons == [DisqualifyReason.VM_FACTS_UNAVAILABLE]
    assert "Access is denied." in vm.messages[0]
