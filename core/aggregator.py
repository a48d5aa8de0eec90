from typing import Optional, Sequence, Union
from loguru import logger
from analyzers.vm_rules import evaluate_vm, evaluate_vm_failure
from models.assessment import HostAssessment, Report, VmFactFailure, VmFacts


def aggregate(host: HostAssessment,
              vms: Sequence[Union[VmFacts, VmFactFailure]],
              vms_scanned: bool = True,
              vm_enumeration_error: Optional[str] = None) -> Report:
    """Evaluate every VM in input order and pair the results with the host.

    The host verdict is reported alongside, never folded into, each VM verdict.
    """
    assessments = []
    for entry in vms:
        if isinstance(entry, VmFactFailure):
            assessments.append(evaluate_vm_failure(entry))
        else:
            assessments.append(evaluate_vm(entry))

    report = Report(
        host=host,
        vms=assessments,
        vms_scanned=vms_scanned,
        vm_enumeration_error=vm_enumeration_error,
    )
    logger.info(
        f"Aggregated {len(assessments)} VM(s): "
        f"{len(report.supported_vms)} supported, {len(report.unsupported_vms)} unsupported."
    )
    return report
