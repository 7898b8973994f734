"""
Pytest Configuration and Shared Fixtures

Provides moto AWS mocking, identity tokens, API Gateway events and
table helpers. Record factories live in tests/utils/records.py.
"""

import json
import os
from datetime import date, datetime, timezone
from typing import Any, Callable

import boto3
from botocore.exceptions import ClientError
import jwt
import pytest
from moto import mock_aws

# Set test environment before importing application modules
os.environ["CALAIM_DYNAMODB_TABLE_NAME"] = "TestCalAIMPortal"
os.environ["CALAIM_SES_FROM_ADDRESS"] = "test@example.com"
os.environ["CALAIM_AWS_REGION"] = "us-west-2"
os.environ["CALAIM_AUTH_JWT_SECRET"] = "test-identity-token-secret-0123456789abcdef"
os.environ["CALAIM_PORTAL_BASE_URL"] = "https://portal.test"
os.environ["AWS_DEFAULT_REGION"] = "us-west-2"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"

TABLE_NAME = "TestCalAIMPortal"


@pytest.fixture(autouse=True)
def fresh_settings():
    """Reload settings for every test so monkeypatched env vars apply."""
    from portal.shared.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# --- Time Fixtures ---


@pytest.fixture
def frozen_time() -> int:
    """Fixed Unix timestamp for deterministic tests."""
    return 1738800000  # 2025-02-06 00:00:00 UTC


@pytest.fixture
def frozen_datetime(frozen_time: int) -> datetime:
    """Fixed datetime for deterministic tests."""
    return datetime.fromtimestamp(frozen_time, tz=timezone.utc)


@pytest.fixture
def frozen_date(frozen_datetime: datetime) -> date:
    return frozen_datetime.date()


# --- AWS Mocking Fixtures ---


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    return {
        "aws_access_key_id": "testing",
        "aws_secret_access_key": "testing",
        "region_name": "us-west-2",
    }


def _create_portal_table(dynamodb) -> Any:
    """Create the portal table with GSI1 and GSI2, or empty it when it already exists."""
    try:
        table = dynamodb.create_table(
            TableName=TABLE_NAME,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
                {"AttributeName": "GSI1PK", "AttributeType": "S"},
                {"AttributeName": "GSI2PK", "AttributeType": "S"},
            ],
            GlobalSecondaryIndexes=[
                {
                    "IndexName": "GSI1",
                    "KeySchema": [
                        {"AttributeName": "GSI1PK", "KeyType": "HASH"},
                        {"AttributeName": "SK", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                    "ProvisionedThroughput": {
                        "ReadCapacityUnits": 5,
                        "WriteCapacityUnits": 5,
                    },
                },
                {
                    "IndexName": "GSI2",
                    "KeySchema": [
                        {"AttributeName": "GSI2PK", "KeyType": "HASH"},
                        {"AttributeName": "SK", "KeyType": "RANGE"},
                    ],
                    "Projection": {"ProjectionType": "ALL"},
                    "ProvisionedThroughput": {
                        "ReadCapacityUnits": 5,
                        "WriteCapacityUnits": 5,
                    },
                },
            ],
            ProvisionedThroughput={
                "ReadCapacityUnits": 5,
                "WriteCapacityUnits": 5,
            },
        )
        table.meta.client.get_waiter("table_exists").wait(TableName=TABLE_NAME)
    except ClientError as exc:
        if exc.response.get("Error", {}).get("Code") != "ResourceInUseException":
            raise
        table = dynamodb.Table(TABLE_NAME)
        response = table.scan(ProjectionExpression="PK, SK")
        with table.batch_writer() as batch:
            for item in response.get("Items", []):
                batch.delete_item(Key={"PK": item["PK"], "SK": item["SK"]})
    return table


@pytest.fixture
def mock_dynamodb(aws_credentials):
    """
    Create a mocked DynamoDB table.

    Creates the portal table with GSI1 (GSI1PK hash, SK range) and
    GSI2 (GSI2PK hash, SK range).
    """
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", **aws_credentials)
        _create_portal_table(dynamodb)
        yield dynamodb


@pytest.fixture
def mock_ses(aws_credentials):
    """Create a mocked SES client with verified identity."""
    with mock_aws():
        ses = boto3.client("ses", **aws_credentials)
        ses.verify_email_identity(EmailAddress="test@example.com")
        yield ses


@pytest.fixture
def mock_aws_all(aws_credentials):
    """
    Mock every AWS service the portal uses.

    Provides the portal table and a verified SES sender in one mock.
    """
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", **aws_credentials)
        _create_portal_table(dynamodb)

        ses = boto3.client("ses", **aws_credentials)
        ses.verify_email_identity(EmailAddress="test@example.com")

        yield {"dynamodb": dynamodb, "ses": ses}


@pytest.fixture
def portal_table(mock_aws_all):
    """The mocked portal table resource."""
    return mock_aws_all["dynamodb"].Table(TABLE_NAME)


# --- Identity Fixtures ---


@pytest.fixture
def make_token() -> Callable[..., str]:
    """Build signed bearer identity tokens."""
    from tests.utils.records import SW_EMAIL, SW_UID

    def _make(uid: str = SW_UID, email: str = SW_EMAIL, name: str = "Sam Worker", **claims: Any) -> str:
        payload = {"sub": uid, "email": email, "name": name, **claims}
        return jwt.encode(payload, os.environ["CALAIM_AUTH_JWT_SECRET"], algorithm="HS256")

    return _make


@pytest.fixture
def sw_identity():
    from portal.shared.auth import Identity
    from tests.utils.records import SW_EMAIL, SW_UID

    return Identity(uid=SW_UID, email=SW_EMAIL, name="Sam Worker")


@pytest.fixture
def admin_identity():
    from portal.shared.auth import AdminIdentity, Identity
    from tests.utils.records import ADMIN_EMAIL, ADMIN_UID

    return AdminIdentity(
        identity=Identity(uid=ADMIN_UID, email=ADMIN_EMAIL, name="Ada Admin", claims={"admin": True}),
        is_super_admin=False,
    )


@pytest.fixture
def super_admin_identity():
    from portal.shared.auth import AdminIdentity, Identity

    return AdminIdentity(
        identity=Identity(uid="root-uid", email="root@example.com", name="Rita Root"),
        is_super_admin=True,
    )


# --- Event Fixtures ---


@pytest.fixture
def api_event() -> Callable[..., dict[str, Any]]:
    """Build API Gateway proxy events."""

    def _event(
        body: dict[str, Any] | None = None,
        *,
        token: str | None = None,
        query: dict[str, str] | None = None,
        method: str = "POST",
    ) -> dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return {
            "httpMethod": method,
            "path": "/test",
            "headers": headers,
            "queryStringParameters": query,
            "body": json.dumps(body) if body is not None else None,
        }

    return _event


@pytest.fixture
def put_records(portal_table) -> Callable[..., None]:
    """Write records straight into the mocked table."""

    def _put(*records: Any) -> None:
        for record in records:
            portal_table.put_item(Item=record.to_dynamodb())

    return _put


@pytest.fixture
def get_raw(portal_table) -> Callable[[str, str], dict[str, Any] | None]:
    """Read a raw item by PK/SK."""

    def _get(pk: str, sk: str = "METADATA") -> dict[str, Any] | None:
        return portal_table.get_item(Key={"PK": pk, "SK": sk}).get("Item")

    return _get
