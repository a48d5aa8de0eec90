import json
import subprocess
from loguru import logger
from pydantic import ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential
from config.settings import settings
from core.errors import FactUnavailableError
from models.assessment import HostFacts, VmFactFailure, VmFacts, VmState

PS_HOST_FACTS = r'''
$ErrorActionPreference = 'Stop'
$ci = Get-ComputerInfo -Property CsName, CsManufacturer, CsModel, OsName, OsInstallationType, WindowsEditionId, WindowsBuildLabEx, HyperVisorPresent
$role = Get-WindowsOptionalFeature -Online -FeatureName Microsoft-Hyper-V
$ium = Get-WindowsOptionalFeature -Online -FeatureName IsolatedUserMode
$bcd = bcdedit /enum '{current}' | Select-String -Pattern '^\s*hypervisorloadoptions' | Select-Object -First 1
$dg = Get-CimInstance -ClassName Win32_DeviceGuard -Namespace root\Microsoft\Windows\DeviceGuard
$vbsReg = $null
if (Test-Path 'HKLM:\SYSTEM\CurrentControlSet\Control\DeviceGuard') {
    $vbsReg = (Get-ItemProperty -Path 'HKLM:\SYSTEM\CurrentControlSet\Control\DeviceGuard').EnableVirtualizationBasedSecurity
}
[pscustomobject]@{
    computer_name         = $ci.CsName
    manufacturer          = $ci.CsManufacturer
    model                 = $ci.CsModel
    os_name               = $ci.OsName
    installation_type     = $ci.OsInstallationType
    edition               = $ci.WindowsEditionId
    build_label           = $ci.WindowsBuildLabEx
    hypervisor_present    = [bool]$ci.HyperVisorPresent
    full_hyperv_role      = [bool]($role -and $role.State -eq 'Enabled')
    ium_installed         = [bool]($ium -and $ium.State -eq 'Enabled')
    hypervisor_load_options = if ($bcd) { $bcd.Line } else { $null }
    vbs_running           = [bool]($dg.VirtualizationBasedSecurityStatus -eq 2)
    vbs_registry_value    = $vbsReg
} | ConvertTo-Json -Depth 3
'''

PS_VM_FACTS = r'''
$ErrorActionPreference = 'Stop'
Get-VM | ForEach-Object {
    $vm = $_
    try {
        $proc = Get-VMProcessor -VM $vm
        $mem = Get-VMMemory -VM $vm
        $snaps = @(Get-VMSnapshot -VM $vm)
        [pscustomobject]@{
            name                             = $vm.Name
            error                            = $null
            expose_virtualization_extensions = [bool]$proc.ExposeVirtualizationExtensions
            dynamic_memory_enabled           = [bool]$mem.DynamicMemoryEnabled
            state                            = $vm.State.ToString()
            parent_checkpoint_id             = if ($vm.ParentSnapshotId) { $vm.ParentSnapshotId.ToString() } else { $null }
            checkpoint_count                 = $snaps.Count
        }
    } catch {
        [pscustomobject]@{ name = $vm.Name; error = $_.Exception.Message }
    }
} | ConvertTo-Json -Depth 3
'''


class HyperVClient:
    def __init__(self):
        self.mock = settings.MOCK_MODE
        self.executable = settings.POWERSHELL_EXE
        self.timeout = settings.POWERSHELL_TIMEOUT
        if self.mock:
            logger.warning("HyperVClient: MOCK MODE active.")
        else:
            logger.info(f"HyperVClient: querying local host via {self.executable}")

    # ------------------------------------------------------------------
    # Host
    # ------------------------------------------------------------------
    def get_host_facts(self) -> HostFacts:
        data = self._mock_host() if self.mock else self._run_json("host facts", PS_HOST_FACTS)
        if not isinstance(data, dict):
            raise FactUnavailableError("host facts", "PowerShell returned no host record")
        return self._to_host_facts(data)

    @staticmethod
    def _to_host_facts(data: dict) -> HostFacts:
        record = dict(data)
        # Only a value of exactly 1 turns VBS on at boot.
        record["vbs_registry_enabled"] = record.pop("vbs_registry_value", None) == 1
        for key in ("manufacturer", "model", "os_name", "installation_type", "edition"):
            record[key] = record.get(key) or ""
        try:
            facts = HostFacts(**record)
        except ValidationError as e:
            raise FactUnavailableError("host facts", f"incomplete host record ({e.error_count()} error(s))")
        logger.info(f"Host facts: {facts.computer_name}, build {facts.build_label}")
        return facts

    # ------------------------------------------------------------------
    # VMs: one record per VM, failures isolated per record
    # ------------------------------------------------------------------
    def list_vm_facts(self) -> list:
        data = self._mock_vms() if self.mock else self._run_json("VM list", PS_VM_FACTS)
        if data is None:
            records = []
        elif isinstance(data, dict):
            records = [data]
        else:
            records = data

        result = [self._to_vm_facts(r) for r in records]
        failed = sum(1 for r in result if isinstance(r, VmFactFailure))
        logger.info(f"VM facts: {len(result)} VM(s), {failed} unreadable")
        return result

    @staticmethod
    def _to_vm_facts(record):
        if not isinstance(record, dict):
            return VmFactFailure(name="<unknown>", error=f"unexpected record: {record!r}")
        name = record.get("name") or "<unnamed>"
        if record.get("error"):
            logger.warning(f"VM {name}: {record['error']}")
            return VmFactFailure(name=name, error=str(record["error"]))
        try:
            return VmFacts(
                name=name,
                dynamic_memory_enabled=record["dynamic_memory_enabled"],
                state=VmState.parse(record["state"]),
                parent_checkpoint_id=record.get("parent_checkpoint_id") or None,
                expose_virtualization_extensions=record["expose_virtualization_extensions"],
                checkpoint_count=record.get("checkpoint_count") or 0,
            )
        except (KeyError, ValidationError) as e:
            logger.warning(f"VM {name}: incomplete record ({e})")
            return VmFactFailure(name=name, error=f"incomplete VM record: {e}")

    # ------------------------------------------------------------------
    # PowerShell with retry on timeouts
    # ------------------------------------------------------------------
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type(subprocess.TimeoutExpired),
        reraise=True,
    )
    def _invoke(self, script: str) -> subprocess.CompletedProcess:
        return subprocess.run(
            [self.executable, "-NoProfile", "-NonInteractive", "-Command", script],
            capture_output=True,
            text=True,
            timeout=self.timeout,
        )

    def _run_json(self, fact: str, script: str):
        try:
            result = self._invoke(script)
        except subprocess.TimeoutExpired:
            logger.error(f"PowerShell timed out collecting {fact}")
            raise FactUnavailableError(fact, f"PowerShell timed out after {self.timeout}s")
        except OSError as e:
            logger.error(f"Cannot start {self.executable}: {e}")
            raise FactUnavailableError(fact, f"cannot start {self.executable}: {e}")

        if result.returncode != 0:
            detail = (result.stderr or "").strip() or f"exit code {result.returncode}"
            logger.error(f"PowerShell failed collecting {fact}: {detail}")
            raise FactUnavailableError(fact, detail)

        out = (result.stdout or "").strip()
        if not out:
            return None
        try:
            return json.loads(out)
        except json.JSONDecodeError as e:
            raise FactUnavailableError(fact, f"malformed PowerShell output: {e}")

    # ==================================================================
    # MOCK DATA
    # ==================================================================
    def _mock_host(self):
        return {
            "computer_name": "HV-LAB-01",
            "manufacturer": "Dell Inc.",
            "model": "PowerEdge R740",
            "os_name": "Microsoft Windows Server 2022 Datacenter",
            "installation_type": "Server",
            "edition": "ServerDatacenter",
            "build_label": "20348.1.amd64fre.fe_release.210507-1500",
            "hypervisor_present": True,
            "full_hyperv_role": True,
            "ium_installed": False,
            "hypervisor_load_options": None,
            "vbs_running": False,
            "vbs_registry_value": None,
        }

    def _mock_vms(self):
        return [
            {"name": "nested-lab-01", "error": None,
             "expose_virtualization_extensions": True, "dynamic_memory_enabled": False,
             "state": "Running", "parent_checkpoint_id": None, "checkpoint_count": 0},
            {"name": "build-agent-02", "error": None,
             "expose_virtualization_extensions": True, "dynamic_memory_enabled": True,
             "state": "Running", "parent_checkpoint_id": None, "checkpoint_count": 0},
            {"name": "legacy-dc-01", "error": None,
             "expose_virtualization_extensions": False, "dynamic_memory_enabled": False,
             "state": "Saved", "parent_checkpoint_id": "6f1c2a9e-3d4b-4c1a-9a57-0b1e2f3a4b5c",
             "checkpoint_count": 2},
            {"name": "test-vm-04", "error": None,
             "expose_virtualization_extensions": False, "dynamic_memory_enabled": False,
             "state": "Off", "parent_checkpoint_id": None, "checkpoint_count": 0},
        ]
