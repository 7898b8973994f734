"""
End-to-End Claim Lifecycle

Drives the HTTP handlers from draft visits through facility sign-off,
admin review and payment, to visit and claim deletion.
"""

import pytest

from lambdas.claim_events.handler import lambda_handler as claim_events_handler
from lambdas.delete_claims.handler import lambda_handler as delete_claims_handler
from lambdas.delete_visit.handler import lambda_handler as delete_visit_handler
from lambdas.save_visit_draft.handler import lambda_handler as save_visit_draft_handler
from lambdas.submit_signoff.handler import lambda_handler as submit_signoff_handler
from lambdas.update_claim_status.handler import lambda_handler as update_claim_status_handler
from tests.utils.records import ADMIN_EMAIL, ADMIN_UID, response_body


def _draft(visit_id: str, member_id: str, day: str = "2025-02-05") -> dict:
    return {
        "visitId": visit_id,
        "visitDate": day,
        "memberId": member_id,
        "memberName": f"Member {member_id}",
        "rcfeId": "rcfe-100",
        "rcfeName": "Sunrise Care Home",
        "answers": {"meetingLocation": "common room"},
    }


def _signoff(visit_ids: list[str], day: str = "2025-02-05") -> dict:
    return {
        "rcfeId": "rcfe-100",
        "claimDay": day,
        "selectedVisitIds": visit_ids,
        "staffName": "Nina Nurse",
        "staffTitle": "Administrator",
        "signature": "data:image/png;base64,c2lnbmVk",
        "geolocation": {"latitude": 34.05, "longitude": -118.25},
    }


@pytest.mark.integration
class TestClaimLifecycle:
    """Full claim lifecycle across handlers."""

    def test_draft_to_paid_to_deleted(self, portal_table, get_raw, api_event, make_token):
        sw = make_token()
        admin = make_token(uid=ADMIN_UID, email=ADMIN_EMAIL, name="Ada Admin", admin=True)
        root = make_token(uid="root-uid", email="root@example.com", name="Rita Root", superAdmin=True)

        def call(handler, body=None, *, token, query=None, method="POST"):
            response = handler(api_event(body, token=token, query=query, method=method), None)
            return response["statusCode"], response_body(response)

        # Step 1: social worker saves two draft questionnaires
        for visit_id, member_id in [("v1", "m1"), ("v2", "m2")]:
            status, body = call(save_visit_draft_handler, _draft(visit_id, member_id), token=sw)
            assert status == 200
            assert body["status"] == "draft"

        # Step 2: facility staff sign off, creating the day's claim
        status, body = call(submit_signoff_handler, _signoff(["v1", "v2"]), token=sw)
        assert status == 200
        claim_id = body["claim_id"]
        assert body["total_amount"] == 110
        assert body["location_verified"] is True
        assert get_raw("VISIT#v1")["status"] == "signed_off"

        # Signed-off visits can no longer be edited
        status, body = call(save_visit_draft_handler, _draft("v1", "m1"), token=sw)
        assert status == 409

        # The same member cannot be billed twice in a month
        call(save_visit_draft_handler, _draft("v3", "m1", "2025-02-12"), token=sw)
        status, body = call(submit_signoff_handler, _signoff(["v3"], "2025-02-12"), token=sw)
        assert status == 409
        assert body["details"][0]["existing_visit_id"] == "v1"

        # Step 3: admin asks for a correction, then pays
        status, _ = call(
            update_claim_status_handler,
            {"claimId": claim_id, "newStatus": "needs_correction", "reviewNotes": "Check room numbers"},
            token=admin,
        )
        assert status == 200
        assert get_raw(f"CLAIM#{claim_id}")["correction_reason"] == "Check room numbers"

        status, body = call(
            update_claim_status_handler,
            {"claimId": claim_id, "newStatus": "paid"},
            token=admin,
        )
        assert status == 200
        assert body["visits_updated"] == 2
        claim = get_raw(f"CLAIM#{claim_id}")
        assert claim["claim_paid"] is True
        assert "correction_reason" not in claim
        assert get_raw("VISIT#v2")["claim_paid"] is True

        status, body = call(
            claim_events_handler, token=admin, query={"claimId": claim_id}, method="GET"
        )
        assert status == 200
        assert sorted(e.get("to_status") for e in body["events"]) == [
            "needs_correction",
            "paid",
            "submitted",
        ]

        # Step 4: super admin removes one visit; totals and lock follow
        status, body = call(delete_visit_handler, {"visitId": "v2", "reason": "Duplicate"}, token=root)
        assert status == 200
        assert body["lock_released"] is True
        claim = get_raw(f"CLAIM#{claim_id}")
        assert claim["visit_ids"] == ["v1"]
        assert claim["total_amount"] == 65
        assert get_raw("MONTHLY_LOCK#m2_2025-02", "LOCK") is None
        assert get_raw("MONTHLY_LOCK#m1_2025-02", "LOCK") is not None

        # Step 5: super admin deletes the claim; the remaining visit is unlinked
        status, body = call(delete_claims_handler, {"claimIds": [claim_id], "reason": "Test data"}, token=root)
        assert status == 200
        assert body["deleted"] == 1
        assert body["visits_unlinked"] == 1
        assert get_raw(f"CLAIM#{claim_id}") is None
        visit = get_raw("VISIT#v1")
        assert "claim_id" not in visit
        assert visit["signed_off"] is True
