import pytest
from models.assessment import HostFacts, VmFacts, VmState


@pytest.fixture
def make_host_facts():
    """Factory for a host that supports nesting unless overridden."""
    def _make(**overrides):
        values = dict(
            computer_name="HV-TEST-01",
            manufacturer="Contoso",
            model="Virtual Host 9000",
            os_name="Microsoft Windows Server 2022 Datacenter",
            installation_type="Server",
            edition="ServerDatacenter",
            build_label="19041.1.amd64fre.vb_release.191206-1406",
            hypervisor_present=True,
            full_hyperv_role=True,
            hypervisor_load_options=None,
            ium_installed=False,
            vbs_running=False,
            vbs_registry_enabled=False,
        )
        values.update(overrides)
        return HostFacts(**values)
    return _make


@pytest.fixture
def make_vm_facts():
    """Factory for a VM that supports nesting unless overridden."""
    def _make(**overrides):
        values = dict(
            name="vm-01",
            dynamic_memory_enabled=False,
            state=VmState.RUNNING,
            parent_checkpoint_id=None,
            expose_virtualization_extensions=True,
            checkpoint_count=0,
        )
        values.update(overrides)
        return VmFacts(**values)
    return _make
