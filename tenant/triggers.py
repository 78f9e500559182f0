"""
tenant/triggers.py -- Hand-off points to the external scan and report engines.

Scan execution and report rendering are not done in this process. When a
scan job or report is created, the API hands the stored record to a trigger;
a real deployment replaces the default implementations with ones that enqueue
work for the engine (which later reports back through
TenantStore.advance_scan_job / advance_report).

The defaults only log the hand-off.

submit() must not block for long: it runs inside the create request.
If it raises, the caller marks the job failed (see dispatch_scan /
dispatch_report) and the create request still succeeds.
"""

import logging
from typing import Protocol

from tenant.models import OrganizationId, Report, ScanJob
from tenant.store import TenantStore

logger = logging.getLogger("secaudit.tenant")


class ScanTrigger(Protocol):
    def submit(self, scan: ScanJob) -> None: ...


class ReportTrigger(Protocol):
    def submit(self, report: Report) -> None: ...


class LoggingScanTrigger:
    """Default scan trigger: records the request and queues nothing."""

    def submit(self, scan: ScanJob) -> None:
        logger.info("scan queued id=%s org=%s type=%s", scan.id, scan.organization_id, scan.type)


class LoggingReportTrigger:
    """Default report trigger: records the request and queues nothing."""

    def submit(self, report: Report) -> None:
        logger.info("report queued id=%s org=%s type=%s", report.id, report.organization_id, report.type)


def dispatch_scan(store: TenantStore, trigger: ScanTrigger, organization_id: OrganizationId, scan: ScanJob) -> ScanJob:
    """Submit a new scan job; mark it failed if the trigger raises.

    Returns the job as stored after the hand-off.
    """
    try:
        trigger.submit(scan)
    except Exception:
        logger.exception("scan trigger failed id=%s org=%s", scan.id, organization_id)
        return store.advance_scan_job(organization_id, scan.id, "failed") or scan
    return store.get_scan_job(organization_id, scan.id) or scan


def dispatch_report(
    store: TenantStore, trigger: ReportTrigger, organization_id: OrganizationId, report: Report
) -> Report:
    """Submit a new report; mark it failed if the trigger raises."""
    try:
        trigger.submit(report)
    except Exception:
        logger.exception("report trigger failed id=%s org=%s", report.id, organization_id)
        return store.advance_report(organization_id, report.id, "failed") or report
    return store.get_report(organization_id, report.id) or report
