"""
Admin review actions on applications.
"""

from typing import Any

import structlog

from portal.applications.documents import COMPLETED, CS_SUMMARY_FORMS, default_required_forms
from portal.shared.auth import AdminIdentity
from portal.shared.exceptions import NotFoundError
from portal.shared.models.dynamo import ApplicationRecord, FormEntry
from portal.shared.models.requests import ConfirmCsSummaryRequest
from portal.shared.state_machine import ApplicationStatus
from portal.shared.timeutil import now_ts
from portal.shared.tools import dynamodb

log = structlog.get_logger()

CS_SUMMARY_FORM = "CS Member Summary"


def confirmed_forms(application: ApplicationRecord) -> list[FormEntry]:
    """
    The pathway's required forms with the CS summary marked completed.

    Statuses already recorded on the application are kept, and forms
    outside the required list stay at the end.
    """
    existing = {form.name.strip(): form for form in application.forms if form.name.strip()}
    forms: list[FormEntry] = []
    for name in default_required_forms(application.pathway):
        if name in CS_SUMMARY_FORMS:
            forms.append(FormEntry(name=name, status=COMPLETED))
        else:
            forms.append(existing.get(name) or FormEntry(name=name))
    required = {form.name for form in forms}
    forms.extend(
        form for name, form in existing.items()
        if name not in required and name not in CS_SUMMARY_FORMS
    )
    return forms


def confirm_cs_summary(
    admin: AdminIdentity,
    request: ConfirmCsSummaryRequest,
    *,
    now: int | None = None,
) -> dict[str, Any]:
    """
    Record that an admin confirmed the member's CS summary.

    The application moves back to In Progress so the remaining
    documents can be collected.

    Raises:
        NotFoundError: Application missing or deleted
    """
    now = now if now is not None else now_ts()
    application = dynamodb.load_application(request.application_id)
    if application is None or application.deleted:
        raise NotFoundError("Application", request.application_id)

    confirmed_by = request.confirmed_by or admin.actor_label
    forms = confirmed_forms(application)
    update = dynamodb.build_update(
        {
            "status": ApplicationStatus.IN_PROGRESS.value,
            "forms": [form.model_dump(exclude_none=True) for form in forms],
            "cs_summary_complete": True,
            "cs_summary_completed_at": now,
            "cs_summary_confirmed_by": confirmed_by,
            "cs_summary_confirmed_by_admin": True,
            "last_updated": now,
        }
    )
    if not dynamodb.update_item(application.key(), update):
        raise NotFoundError("Application", request.application_id)

    log.info(
        "cs_summary_confirmed",
        application_id=application.application_id,
        admin_uid=admin.uid,
        confirmed_by=confirmed_by,
    )
    return {"application_id": application.application_id, "confirmed_by": confirmed_by}
