"""
Nightly pattern/quality analysis over interaction outcomes.

Per tenant, outcomes from the trailing window are tallied per intent and an
intent is flagged as a weakness when it has enough samples and fails more
often than the configured rate. Each run emits at most one aggregated alert
per tenant listing every flagged intent.
"""

import json
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .dao import AlertSink, OutcomeRepository, require_tenant
from .schema import OutcomeRecord, WeaknessFinding, OUTCOME_UNSATISFIED, UNKNOWN_INTENT
from ..util.logging import logger


@dataclass
class BatchReport:
    """Result of one batch run across tenants."""
    ok: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    alerts: Dict[str, int] = field(default_factory=dict)
    findings: Dict[str, List[WeaknessFinding]] = field(default_factory=dict)

    @property
    def tenants_processed(self) -> int:
        return len(self.ok) + len(self.failed)


def extract_intent(record: OutcomeRecord) -> str:
    """
    Intent of an outcome record.

    The intent column wins; otherwise the `intent` key of the JSON metadata.
    Missing or malformed metadata yields "unknown".
    """
    if isinstance(record.intent, str) and record.intent.strip():
        return record.intent.strip()

    metadata = record.metadata
    if isinstance(metadata, (str, bytes)):
        try:
            metadata = json.loads(metadata)
        except (TypeError, ValueError):
            return UNKNOWN_INTENT

    if isinstance(metadata, dict):
        intent = metadata.get("intent")
        if isinstance(intent, str) and intent.strip():
            return intent.strip()

    return UNKNOWN_INTENT


def effective_records(records: Iterable[OutcomeRecord]) -> List[OutcomeRecord]:
    """
    Collapse correction chains to their latest record.

    A correction points at the record it supersedes via corrects_id; each
    chain is keyed by its root and the record with the highest id wins.
    """
    by_id = {record.id: record for record in records}

    def root_of(record: OutcomeRecord) -> int:
        seen = set()
        current = record
        while current.corrects_id is not None and current.corrects_id not in seen:
            seen.add(current.id)
            parent = by_id.get(current.corrects_id)
            if parent is None:
                return current.corrects_id
            current = parent
        return current.id

    latest: Dict[int, OutcomeRecord] = {}
    for record in by_id.values():
        root = root_of(record)
        if root not in latest or record.id > latest[root].id:
            latest[root] = record

    return sorted(latest.values(), key=lambda r: r.id)


def compute_findings(records: Iterable[OutcomeRecord], min_samples: int = 3,
                     failure_rate: float = 0.30) -> List[WeaknessFinding]:
    """
    Tally outcomes per intent and return the statistically gated weaknesses.

    Every effective record counts towards its intent's total; only
    'unsatisfied' counts as a failure. Sorted by rate, then total, descending.
    """
    tally: Dict[str, List[int]] = {}
    for record in effective_records(records):
        counts = tally.setdefault(extract_intent(record), [0, 0])
        counts[0] += 1
        if record.outcome == OUTCOME_UNSATISFIED:
            counts[1] += 1

    findings = []
    for intent, (total, unsatisfied) in tally.items():
        if total >= min_samples and unsatisfied / total > failure_rate:
            findings.append(WeaknessFinding(
                intent=intent,
                total=total,
                unsatisfied=unsatisfied,
                rate=round(unsatisfied / total, 4)
            ))

    findings.sort(key=lambda f: (-f.rate, -f.total, f.intent))
    return findings


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PatternAnalyzer:
    """Runs the weakness analysis for one tenant or a batch of tenants."""

    def __init__(self, outcomes: OutcomeRepository, alerts: AlertSink, min_samples: int = 3,
                 failure_rate: float = 0.30, window_hours: int = 24, max_workers: int = 1,
                 clock: Callable[[], datetime] = None):
        self.outcomes = outcomes
        self.alerts = alerts
        self.min_samples = min_samples
        self.failure_rate = failure_rate
        self.window_hours = window_hours
        self.max_workers = max(1, max_workers)
        self.clock = clock or _utcnow

    def window(self, now: datetime = None) -> Tuple[datetime, datetime]:
        until = now or self.clock()
        return until - timedelta(hours=self.window_hours), until

    def compute_findings(self, records: Iterable[OutcomeRecord]) -> List[WeaknessFinding]:
        return compute_findings(records, self.min_samples, self.failure_rate)

    def run_daily_pattern_analysis(self, tenant_id: str, now: datetime = None) -> List[WeaknessFinding]:
        """
        Analyze one tenant's trailing window and raise at most one alert.

        Returns:
            The weakness findings of this run (empty when nothing is flagged)
        """
        tenant_id = require_tenant(tenant_id)
        since, until = self.window(now)
        start = time.monotonic()

        records = self.outcomes.fetch_outcomes(tenant_id, since, until)
        findings = self.compute_findings(records)

        if findings:
            title, message = self._format_alert(findings)
            self.alerts.create_alert(tenant_id, title, message, {
                "findings": [asdict(f) for f in findings],
                "window_start": since.isoformat(),
                "window_end": until.isoformat(),
                "records": len(records),
                "min_samples": self.min_samples,
                "failure_rate": self.failure_rate
            })
            logger.log_alert(tenant_id, title, [f.intent for f in findings])

        logger.log_pattern_run(tenant_id, len(records), len(findings), details={
            "duration_ms": round((time.monotonic() - start) * 1000, 2)
        })
        return findings

    def run_batch(self, tenant_ids: Optional[List[str]] = None, now: datetime = None) -> BatchReport:
        """
        Run the analysis for every tenant; one tenant failing never stops the rest.

        Args:
            tenant_ids: Tenants to analyze; defaults to every tenant with
                outcomes in the window
        """
        since, until = self.window(now)
        if tenant_ids is None:
            tenant_ids = self.outcomes.tenants_with_outcomes(since, until)

        report = BatchReport()
        if not tenant_ids:
            logger.log_operation("pattern.batch", "success", {"tenants": 0})
            return report

        def run_one(tenant_id):
            try:
                return tenant_id, self.run_daily_pattern_analysis(tenant_id, until), None
            except Exception as e:
                return tenant_id, None, e

        if self.max_workers > 1 and len(tenant_ids) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="pattern") as pool:
                outcomes = list(pool.map(run_one, tenant_ids))
        else:
            outcomes = [run_one(tenant_id) for tenant_id in tenant_ids]

        for tenant_id, findings, error in outcomes:
            if error is not None:
                report.failed[str(tenant_id)] = f"{type(error).__name__}: {error}"
                logger.log_pattern_run(str(tenant_id), 0, 0, status="failed", details={"error": str(error)[:200]})
                continue
            report.ok.append(tenant_id)
            report.findings[tenant_id] = findings
            report.alerts[tenant_id] = 1 if findings else 0

        logger.log_operation("pattern.batch", "success" if not report.failed else "degraded", {
            "tenants": report.tenants_processed,
            "failed": len(report.failed),
            "alerts": sum(report.alerts.values())
        })
        return report

    @staticmethod
    def _format_alert(findings: List[WeaknessFinding]) -> Tuple[str, str]:
        title = f"{len(findings)} weak intent{'s' if len(findings) != 1 else ''} detected"
        lines = [
            f"- {f.intent}: {f.unsatisfied}/{f.total} unsatisfied ({f.rate:.0%})"
            for f in findings
        ]
        message = "Intents failing above the threshold in the last analysis window:\n" + "\n".join(lines)
        return title, message
