"""
Per-VM rules for nested virtualization.

Every VM is evaluated on its own snapshot; nothing here looks at the host or
at other VMs.
"""
from loguru import logger
from core.reasons import DisqualifyReason, RuleOutcome
from models.assessment import VmAssessment, VmFactFailure, VmFacts, VmState


def check_extensions_exposed(facts: VmFacts) -> RuleOutcome:
    if not facts.expose_virtualization_extensions:
        return RuleOutcome.failed(DisqualifyReason.EXTENSIONS_NOT_EXPOSED, vm=facts.name)
    return RuleOutcome.passed()


def check_dynamic_memory(facts: VmFacts) -> RuleOutcome:
    if facts.dynamic_memory_enabled:
        return RuleOutcome.failed(DisqualifyReason.DYNAMIC_MEMORY_ENABLED)
    return RuleOutcome.passed()


def check_checkpoint(facts: VmFacts) -> RuleOutcome:
    if facts.parent_checkpoint_id is not None:
        return RuleOutcome.failed(DisqualifyReason.CHECKPOINT_PRESENT,
                                  checkpoint_id=facts.parent_checkpoint_id)
    return RuleOutcome.passed()


def check_saved_state(facts: VmFacts) -> RuleOutcome:
    if facts.state == VmState.SAVED:
        return RuleOutcome.failed(DisqualifyReason.SAVED_STATE)
    return RuleOutcome.passed()


def evaluate_vm(facts: VmFacts) -> VmAssessment:
    outcomes = [
        check_extensions_exposed(facts),
        check_dynamic_memory(facts),
        check_checkpoint(facts),
        check_saved_state(facts),
    ]
    fired = [o for o in outcomes if o.disqualifies]
    for o in fired:
        logger.debug(f"VM {facts.name}: {o.reason.value}")

    return VmAssessment(
        name=facts.name,
        expose_virtualization_extensions=facts.expose_virtualization_extensions,
        dynamic_memory_enabled=facts.dynamic_memory_enabled,
        snapshot_enabled=facts.checkpoint_count > 0 or facts.parent_checkpoint_id is not None,
        state=facts.state,
        supports_nesting=not fired,
        reasons=[o.reason for o in fired],
        messages=[o.message for o in fired],
    )


def evaluate_vm_failure(failure: VmFactFailure) -> VmAssessment:
    outcome = RuleOutcome.failed(DisqualifyReason.VM_FACTS_UNAVAILABLE, error=failure.error)
    return VmAssessment(
        name=failure.name,
        expose_virtualization_extensions=False,
        dynamic_memory_enabled=False,
        snapshot_enabled=False,
        state=VmState.UNKNOWN,
        supports_nesting=False,
        reasons=[outcome.reason],
        messages=[outcome.message],
        facts_error=failure.error,
    )
