from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field
from core.reasons import DisqualifyReason


def parse_build_number(label: str) -> Optional[int]:
    """Leading dot-delimited component of a build label, e.g. 19041 from
    '19041.1.amd64fre.vb_release.191206-1406'."""
    head = (label or "").strip().split(".", 1)[0]
    if not head.isdecimal():
        return None
    return int(head)


class VmState(str, Enum):
    RUNNING = "Running"
    OFF = "Off"
    SAVED = "Saved"
    PAUSED = "Paused"
    STARTING = "Starting"
    STOPPING = "Stopping"
    SAVING = "Saving"
    PAUSING = "Pausing"
    RESUMING = "Resuming"
    OTHER = "Other"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, raw) -> "VmState":
        for state in cls:
            if str(raw).strip().lower() == state.value.lower():
                return state
        return cls.OTHER

class HostFacts(BaseModel):
    model_config = ConfigDict(frozen=True)

    computer_name: str
    manufacturer: str = ""
    model: str = ""
    os_name: str = ""
    installation_type: str = ""
    edition: str = ""
    build_label: str
    hypervisor_present: bool
    full_hyperv_role: bool
    hypervisor_load_options: Optional[str] = None
    ium_installed: bool
    vbs_running: bool
    vbs_registry_enabled: bool

    @computed_field
    @property
    def build_number(self) -> Optional[int]:
        return parse_build_number(self.build_label)

class VmFacts(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    dynamic_memory_enabled: bool
    state: VmState
    parent_checkpoint_id: Optional[str] = None
    expose_virtualization_extensions: bool
    checkpoint_count: int = 0

class VmFactFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    error: str

class HostAssessment(BaseModel):
    computer_name: str
    manufacturer: str
    model: str
    os_name: str
    installation_type: str
    edition: str
    build_label: str
    build_number: Optional[int] = None
    hypervisor_running: bool
    full_hyperv_role: bool
    host_nested_support: bool = True
    hypervisor_load_options_present: bool
    hypervisor_load_options_value: str = ""
    ium_installed: bool
    vbs_running: bool
    vbs_reg_enabled: bool
    build_supported: bool
    reasons: list[DisqualifyReason] = Field(default_factory=list)
    messages: list[str] = Field(default_factory=list)

class VmAssessment(BaseModel):
    name: str
    expose_virtualization_extensions: bool
    dynamic_memory_enabled: bool
    snapshot_enabled: bool
    state: VmState
    supports_nesting: bool = True
    reasons: list[DisqualifyReason] = Field(default_factory=list)
    messages: list[str] = Field(default_factory=list)
    facts_error: Optional[str] = None

class Report(BaseModel):
    host: HostAssessment
    vms: list[VmAssessment] = Field(default_factory=list)
    vms_scanned: bool = True
    vm_enumeration_error: Optional[str] = None
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def supported_vms(self):
        return [vm for vm in self.vms if vm.supports_nesting]

    @property
    def unsupported_vms(self):
        return [vm for vm in self.vms if not vm.supports_nesting]

    @computed_field
    @property
    def nested_supported(self) -> bool:
        return (
            self.host.host_nested_support
            and not self.unsupported_vms
            and self.vm_enumeration_error is None
        )
