"""
SendReminders Lambda Handler

Daily reminder scheduler for community-support applications.

Trigger: EventBridge Scheduled Rule (e.g., cron(0 16 * * ? *) for daily)
Output: Reminder emails via SES; outcome recorded on each application

Flow:
1. Parse scheduled event (optional `jobs` and `dry_run` in detail)
2. Scan all applications via GSI1
3. For each job, select applications that are due (see predicates)
4. Send one templated email per due application
5. Record sent/failed outcome on the application
6. Return summary counts and per-application errors
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any

import structlog

from lambdas.send_reminders.predicates import evaluate
from portal.applications.reminders import ReminderKind, ReminderPolicy, build_policies, deliver
from portal.shared.config import get_settings
from portal.shared.exceptions import PortalError
from portal.shared.log_config import configure_logging
from portal.shared.models.dynamo import ApplicationRecord
from portal.shared.timeutil import now_ts
from portal.shared.tools import dynamodb

configure_logging()

log = structlog.get_logger()


@dataclass
class JobResult:
    """Summary of one reminder job."""

    kind: ReminderKind
    scanned: int = 0
    due: int = 0
    sent: int = 0
    failed: int = 0
    errors: list[dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scanned": self.scanned,
            "due": self.due,
            "sent": self.sent,
            "failed": self.failed,
            "errors": self.errors,
        }


def _parse_scheduled_event(event: dict[str, Any]) -> dict[str, Any]:
    """
    Parse the scheduled event for optional configuration.

    The rule may pass in its detail:
    - jobs: subset of ["documents", "cs_summary"]
    - dry_run: if true, evaluate but do not send or record anything
    """
    config: dict[str, Any] = {"jobs": list(ReminderKind), "dry_run": False}

    detail = event.get("detail", {})
    if isinstance(detail, str):
        try:
            detail = json.loads(detail)
        except json.JSONDecodeError:
            log.warning("scheduled_event_detail_unreadable")
            detail = {}

    if isinstance(detail, dict):
        config["dry_run"] = bool(detail.get("dry_run", False))
        requested = detail.get("jobs")
        if isinstance(requested, list):
            config["jobs"] = [kind for kind in ReminderKind if kind.value in requested]

    return config


def run_job(
    policy: ReminderPolicy,
    applications: list[ApplicationRecord],
    now: int,
    *,
    dry_run: bool = False,
) -> JobResult:
    """Evaluate every application and send the due reminders."""
    result = JobResult(kind=policy.kind, scanned=len(applications))

    for application in applications:
        decision = evaluate(application, policy, now)
        if not decision.due:
            continue
        result.due += 1

        if dry_run:
            log.info(
                "reminder_would_send",
                job=policy.kind.value,
                application_id=application.application_id,
            )
            continue

        try:
            deliver(application, policy, decision.missing_documents, now)
        except PortalError as e:
            result.failed += 1
            result.errors.append(
                {"application_id": application.application_id, "error": e.message}
            )
            log.error(
                "reminder_failed",
                job=policy.kind.value,
                application_id=application.application_id,
                error=str(e),
            )
            continue
        except Exception as e:
            result.failed += 1
            result.errors.append(
                {"application_id": application.application_id, "error": str(e)}
            )
            log.exception(
                "reminder_failed_unexpectedly",
                job=policy.kind.value,
                application_id=application.application_id,
            )
            continue

        result.sent += 1
        log.info(
            "reminder_sent",
            job=policy.kind.value,
            application_id=application.application_id,
            missing_count=len(decision.missing_documents),
        )

    return result


def lambda_handler(event: dict[str, Any], context: Any, *, now: int | None = None) -> dict[str, Any]:
    """
    Main Lambda handler for the daily reminder scan.

    Args:
        event: EventBridge scheduled event
        context: Lambda context
        now: Override of the current time (epoch seconds)

    Returns:
        Processing result summary
    """
    start_time = time.time()
    settings = get_settings()
    config = _parse_scheduled_event(event or {})
    now = now if now is not None else now_ts()

    log.info(
        "reminder_processing_started",
        jobs=[kind.value for kind in config["jobs"]],
        dry_run=config["dry_run"],
    )

    policies = build_policies(
        cooldown_days=settings.reminder_cooldown_days,
        max_reminders=settings.max_reminders,
    )
    results: dict[str, JobResult] = {}
    errors: list[str] = []

    try:
        applications = dynamodb.list_applications()
        for kind in config["jobs"]:
            results[kind.value] = run_job(
                policies[kind],
                applications,
                now,
                dry_run=config["dry_run"],
            )
    except Exception as e:
        log.exception("reminder_processing_failed", error=str(e))
        errors.append(f"Critical error: {e}")

    duration_ms = (time.time() - start_time) * 1000

    log.info(
        "reminder_processing_completed",
        sent=sum(r.sent for r in results.values()),
        failed=sum(r.failed for r in results.values()),
        duration_ms=duration_ms,
    )

    return {
        "statusCode": 500 if errors else 200,
        "body": {
            "message": "Reminder processing complete",
            "dry_run": config["dry_run"],
            "jobs": {name: r.to_dict() for name, r in results.items()},
            "errors": errors or None,
            "duration_ms": round(duration_ms, 2),
        },
    }
