from dataclasses import dataclass
from enum import Enum
from typing import Optional


class DisqualifyReason(str, Enum):
    # host
    BUILD_TOO_OLD = "build_too_old"
    BUILD_UNPARSEABLE = "build_unparseable"
    NO_HYPERVISOR = "no_hypervisor"
    BCD_NESTED_DISABLED = "bcd_nested_disabled"
    BCD_UNPARSEABLE = "bcd_unparseable"
    VBS_RUNNING = "vbs_running"
    VBS_REGISTRY_ENABLED = "vbs_registry_enabled"
    # vm
    EXTENSIONS_NOT_EXPOSED = "extensions_not_exposed"
    DYNAMIC_MEMORY_ENABLED = "dynamic_memory_enabled"
    CHECKPOINT_PRESENT = "checkpoint_present"
    SAVED_STATE = "saved_state"
    VM_FACTS_UNAVAILABLE = "vm_facts_unavailable"

    def describe(self, **detail) -> str:
        return MESSAGES[self].format(**detail)


MESSAGES = {
    DisqualifyReason.BUILD_TOO_OLD: (
        "Windows build {build} is older than build {minimum}, "
        "the first build that supports nested virtualization."
    ),
    DisqualifyReason.BUILD_UNPARSEABLE: (
        "Could not read a build number from '{label}'; "
        "the Windows build cannot be confirmed as supported."
    ),
    DisqualifyReason.NO_HYPERVISOR: (
        "The hypervisor is not running. Enable the Hyper-V role and reboot."
    ),
    DisqualifyReason.BCD_NESTED_DISABLED: (
        "Nested virtualization is disabled in the boot configuration "
        "(hypervisorloadoptions: {value})."
    ),
    DisqualifyReason.BCD_UNPARSEABLE: (
        "Could not parse the hypervisorloadoptions boot entry '{raw}'; "
        "nested virtualization cannot be confirmed as allowed."
    ),
    DisqualifyReason.VBS_RUNNING: (
        "Virtualization-based security is running and holds the "
        "processor virtualization extensions."
    ),
    DisqualifyReason.VBS_REGISTRY_ENABLED: (
        "Virtualization-based security is enabled in the registry "
        "(EnableVirtualizationBasedSecurity = 1) and starts on next boot."
    ),
    DisqualifyReason.EXTENSIONS_NOT_EXPOSED: (
        "Virtualization extensions are not exposed to the VM processor. "
        "Run: Set-VMProcessor -VMName '{vm}' -ExposeVirtualizationExtensions $true"
    ),
    DisqualifyReason.DYNAMIC_MEMORY_ENABLED: (
        "Dynamic memory is enabled; nested hypervisors need static memory."
    ),
    DisqualifyReason.CHECKPOINT_PRESENT: (
        "The VM runs from a checkpoint (parent checkpoint {checkpoint_id})."
    ),
    DisqualifyReason.SAVED_STATE: (
        "The VM is in a saved state; start it to apply nested settings."
    ),
    DisqualifyReason.VM_FACTS_UNAVAILABLE: (
        "VM configuration could not be read: {error}"
    ),
}


@dataclass(frozen=True)
class RuleOutcome:
    """Result of one rule: ``reason`` is None when the rule passed."""
    reason: Optional[DisqualifyReason] = None
    message: Optional[str] = None

    @property
    def disqualifies(self) -> bool:
        return self.reason is not None

    @classmethod
    def passed(cls) -> "RuleOutcome":
        return cls()

    @classmethod
    def failed(cls, reason: DisqualifyReason, **detail) -> "RuleOutcome":
        return cls(reason=reason, message=reason.describe(**detail))
