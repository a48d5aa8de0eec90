"""
Host rules for nested virtualization.

Each ``check_*`` function looks at one aspect of a ``HostFacts`` snapshot and
returns a ``RuleOutcome``. ``evaluate_host`` runs every rule in a fixed order,
never stopping at the first failure, and folds the outcomes into a
``HostAssessment``.
"""
import re
from typing import Optional
from loguru import logger
from core.reasons import DisqualifyReason, RuleOutcome
from models.assessment import HostAssessment, HostFacts

MIN_SUPPORTED_BUILD = 10552
DEFAULT_DISABLE_MARKER = "OFFERNESTEDVIRT=FALSE"

_LOAD_OPTIONS_RE = re.compile(
    r'^\s*hypervisorloadoptions\s+(?P<value>\S.*?)\s*$', re.IGNORECASE
)
_EQUALS_RE = re.compile(r'\s*=\s*')


def parse_load_options(raw: str) -> Optional[str]:
    """Value of a ``hypervisorloadoptions <value>`` bcdedit line, or None."""
    match = _LOAD_OPTIONS_RE.match(raw or "")
    if not match:
        return None
    return match.group("value")


def _normalize_option(text: str) -> str:
    return _EQUALS_RE.sub("=", text).upper()


def check_build(facts: HostFacts, min_build: int = MIN_SUPPORTED_BUILD) -> RuleOutcome:
    build = facts.build_number
    if build is None:
        return RuleOutcome.failed(DisqualifyReason.BUILD_UNPARSEABLE, label=facts.build_label)
    if build < min_build:
        return RuleOutcome.failed(DisqualifyReason.BUILD_TOO_OLD, build=build, minimum=min_build)
    return RuleOutcome.passed()


def check_hypervisor_present(facts: HostFacts) -> RuleOutcome:
    if not facts.hypervisor_present:
        return RuleOutcome.failed(DisqualifyReason.NO_HYPERVISOR)
    return RuleOutcome.passed()


def check_boot_load_options(facts: HostFacts,
                            disable_marker: str = DEFAULT_DISABLE_MARKER) -> RuleOutcome:
    if facts.hypervisor_load_options is None:
        return RuleOutcome.passed()
    value = parse_load_options(facts.hypervisor_load_options)
    if value is None:
        return RuleOutcome.failed(DisqualifyReason.BCD_UNPARSEABLE,
                                  raw=facts.hypervisor_load_options.strip())
    if _normalize_option(disable_marker) in _normalize_option(value):
        return RuleOutcome.failed(DisqualifyReason.BCD_NESTED_DISABLED, value=value)
    return RuleOutcome.passed()


def check_vbs_running(facts: HostFacts) -> RuleOutcome:
    if facts.vbs_running:
        return RuleOutcome.failed(DisqualifyReason.VBS_RUNNING)
    return RuleOutcome.passed()


def check_vbs_registry(facts: HostFacts) -> RuleOutcome:
    if facts.vbs_registry_enabled:
        return RuleOutcome.failed(DisqualifyReason.VBS_REGISTRY_ENABLED)
    return RuleOutcome.passed()


def evaluate_host(facts: HostFacts,
                  min_build: int = MIN_SUPPORTED_BUILD,
                  disable_marker: str = DEFAULT_DISABLE_MARKER) -> HostAssessment:
    # Full role and IUM are informational and have no rule of their own.
    outcomes = [
        check_build(facts, min_build),
        check_hypervisor_present(facts),
        check_boot_load_options(facts, disable_marker),
        check_vbs_running(facts),
        check_vbs_registry(facts),
    ]
    fired = [o for o in outcomes if o.disqualifies]
    for o in fired:
        logger.debug(f"Host {facts.computer_name}: {o.reason.value}")

    load_options_value = ""
    if facts.hypervisor_load_options is not None:
        load_options_value = parse_load_options(facts.hypervisor_load_options) or ""

    build = facts.build_number
    return HostAssessment(
        computer_name=facts.computer_name,
        manufacturer=facts.manufacturer,
        model=facts.model,
        os_name=facts.os_name,
        installation_type=facts.installation_type,
        edition=facts.edition,
        build_label=facts.build_label,
        build_number=build,
        hypervisor_running=facts.hypervisor_present,
        full_hyperv_role=facts.full_hyperv_role,
        host_nested_support=not fired,
        hypervisor_load_options_present=facts.hypervisor_load_options is not None,
        hypervisor_load_options_value=load_options_value,
        ium_installed=facts.ium_installed,
        vbs_running=facts.vbs_running,
        vbs_reg_enabled=facts.vbs_registry_enabled,
        build_supported=build is not None and build >= min_build,
        reasons=[o.reason for o in fired],
        messages=[o.message for o in fired],
    )
