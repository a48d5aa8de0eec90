from typing import Optional, Sequence
from loguru import logger
from config.settings import settings
from integrations.hyperv_client import HyperVClient
from analyzers.host_rules import evaluate_host
from core.aggregator import aggregate
from core.errors import FactUnavailableError
from models.assessment import Report, VmFactFailure

UNMATCHED_VM_ERROR = "no VM with this name on the host"

class AssessmentService:
    def __init__(self, client: Optional[HyperVClient] = None):
        self.client = client or HyperVClient()
        self.unmatched_vm_names: list[str] = []

    def run(self, host_only: bool = False,
            vm_names: Optional[Sequence[str]] = None) -> Report:
        """Assess the host and, unless ``host_only``, its VMs.

        Raises FactUnavailableError when host facts cannot be collected; VM
        failures are recorded in the report instead.
        """
        logger.info("Assessment started.")

        host_facts = self.client.get_host_facts()
        host = evaluate_host(
            host_facts,
            min_build=settings.MIN_NESTED_BUILD,
            disable_marker=settings.NESTED_DISABLE_MARKER,
        )
        logger.info(
            f"Host {host.computer_name}: nested support "
            f"{'yes' if host.host_nested_support else 'no'} ({len(host.messages)} issue(s))"
        )

        if host_only:
            report = aggregate(host, [], vms_scanned=False)
            logger.info("Assessment complete (host only).")
            return report

        enumeration_error = None
        try:
            vms = self.client.list_vm_facts()
        except FactUnavailableError as e:
            logger.error(f"VM enumeration failed: {e}")
            vms, enumeration_error = [], str(e)

        if vm_names:
            vms = self._filter(vms, vm_names)

        report = aggregate(host, vms, vm_enumeration_error=enumeration_error)
        logger.info("Assessment complete.")
        return report

    def _filter(self, vms, vm_names):
        wanted = {n.lower() for n in vm_names}
        found = {vm.name.lower() for vm in vms}
        self.unmatched_vm_names = [n for n in vm_names if n.lower() not in found]
        for name in self.unmatched_vm_names:
            logger.warning(f"No VM named '{name}' on this host.")
        selected = [vm for vm in vms if vm.name.lower() in wanted]
        # A requested VM that does not exist cannot be confirmed as supported.
        selected += [VmFactFailure(name=n, error=UNMATCHED_VM_ERROR) for n in self.unmatched_vm_names]
        return selected
