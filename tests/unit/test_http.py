"""
Test HTTP Envelope

Unit tests for API Gateway event parsing and the api_handler response
mapping.
"""

import base64
import json
from decimal import Decimal

import pytest

from portal.shared.exceptions import ConflictError, NotFoundError, ValidationError
from portal.shared.http import ApiRequest, api_handler, json_response, parse_event
from portal.shared.models.requests import DeleteVisitRequest
from portal.shared.state_machine import ClaimStatus


class TestParseEvent:
    """Tests for parse_event."""

    def test_json_body(self):
        request = parse_event(
            {
                "httpMethod": "post",
                "path": "/x",
                "headers": {"Authorization": "Bearer t"},
                "queryStringParameters": {"limit": "5"},
                "body": json.dumps({"visitId": "v1"}),
            }
        )
        assert request.method == "POST"
        assert request.body == {"visitId": "v1"}
        assert request.query_param("limit") == "5"

    def test_base64_body(self):
        raw = base64.b64encode(json.dumps({"a": 1}).encode()).decode()
        request = parse_event({"body": raw, "isBase64Encoded": True})
        assert request.body == {"a": 1}

    def test_dict_body_from_direct_invoke(self):
        assert parse_event({"body": {"a": 1}}).body == {"a": 1}

    def test_empty_body(self):
        request = parse_event({})
        assert request.body == {}
        assert request.query == {}

    def test_invalid_json(self):
        with pytest.raises(ValidationError, match="valid JSON"):
            parse_event({"body": "{not json"})

    def test_non_object_body(self):
        with pytest.raises(ValidationError, match="JSON object"):
            parse_event({"body": "[1, 2]"})


class TestApiRequest:
    """Tests for ApiRequest helpers."""

    def test_parse_reports_first_problem(self):
        request = ApiRequest(body={"visitId": "v1"})
        with pytest.raises(ValidationError) as exc_info:
            request.parse(DeleteVisitRequest)
        assert exc_info.value.message.startswith("reason")
        assert exc_info.value.status_code == 400

    def test_parse_value_error_message_unprefixed(self):
        from portal.shared.models.requests import DeleteClaimsRequest

        request = ApiRequest(body={"claimIds": [], "reason": "x"})
        with pytest.raises(ValidationError) as exc_info:
            request.parse(DeleteClaimsRequest)
        assert exc_info.value.message == "claimIds is required"

    def test_query_param_blank_is_default(self):
        request = ApiRequest(query={"claimId": "  "})
        assert request.query_param("claimId") is None
        assert request.query_param("limit", "50") == "50"


class TestApiHandler:
    """Tests for the api_handler decorator."""

    def test_success_payload(self):
        @api_handler("ok_op")
        def handler(request):
            return {"total_amount": Decimal("155"), "rate": Decimal("1.5"), "status": ClaimStatus.PAID}

        response = handler({"body": "{}"}, None)
        assert response["statusCode"] == 200
        assert response["headers"]["Content-Type"] == "application/json"
        assert json.loads(response["body"]) == {
            "success": True,
            "total_amount": 155,
            "rate": 1.5,
            "status": "paid",
        }

    def test_portal_error_mapped(self):
        @api_handler("missing_op")
        def handler(request):
            raise NotFoundError("claim", "c1")

        response = handler({}, None)
        assert response["statusCode"] == 404
        assert json.loads(response["body"]) == {"success": False, "error": "Claim not found"}

    def test_conflict_details_exposed(self):
        @api_handler("conflict_op")
        def handler(request):
            raise ConflictError("Blocked", details=[{"visit_id": "v1", "reason": "finalized"}])

        body = json.loads(handler({}, None)["body"])
        assert body["error"] == "Blocked"
        assert body["details"] == [{"visit_id": "v1", "reason": "finalized"}]

    def test_bad_json_is_400(self):
        @api_handler("json_op")
        def handler(request):
            return {}

        response = handler({"body": "nope"}, None)
        assert response["statusCode"] == 400

    def test_unexpected_error_is_500(self):
        @api_handler("crash_op")
        def handler(request):
            raise RuntimeError("boom")

        response = handler({}, None)
        assert response["statusCode"] == 500
        assert json.loads(response["body"]) == {"success": False, "error": "boom"}


def test_json_response_rejects_unknown_types():
    with pytest.raises(TypeError):
        json_response(200, {"value": object()})
