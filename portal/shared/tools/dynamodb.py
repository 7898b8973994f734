"""
DynamoDB Tools

Persistence helpers for the single CalAIM portal table: item reads,
GSI listings, conditional writes and multi-item transactions.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable

import boto3
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError
import structlog

from portal.shared.config import get_settings
from portal.shared.exceptions import ConditionalWriteError, DynamoDBError, RecordFormatError
from portal.shared.models.dynamo import (
    ApplicationRecord,
    ClaimEventRecord,
    ClaimRecord,
    ItemKey,
    MemberRecord,
    MonthlyLock,
    NotificationRecord,
    PortalRecord,
    VisitRecord,
)

log = structlog.get_logger()

# DynamoDB service limits
TRANSACTION_ITEM_LIMIT = 100
BATCH_GET_LIMIT = 100

_serializer = TypeSerializer()


def _get_table():
    """Get DynamoDB table resource."""
    settings = get_settings()
    dynamodb = boto3.resource("dynamodb", **settings.dynamodb_config)
    return dynamodb.Table(settings.dynamodb_table_name)


def _get_client():
    """Get DynamoDB client."""
    settings = get_settings()
    return boto3.client("dynamodb", **settings.dynamodb_config)


def _dynamodb_error(operation: str, e: ClientError, **context: Any) -> DynamoDBError:
    settings = get_settings()
    log.error(f"dynamodb_{operation}_failed", error=str(e), **context)
    return DynamoDBError(
        operation=operation,
        table_name=settings.dynamodb_table_name,
        error_message=str(e),
    )


# =====================================================
# Expression and transaction helpers
# =====================================================


@dataclass
class UpdateParts:
    """UpdateExpression with its placeholder maps."""

    expression: str
    names: dict[str, str] = field(default_factory=dict)
    values: dict[str, Any] = field(default_factory=dict)


def build_update(
    set_fields: dict[str, Any],
    remove_fields: Iterable[str] = (),
    add_fields: dict[str, Any] | None = None,
) -> UpdateParts:
    """
    Build an UpdateExpression from plain attribute maps.

    Placeholders are positional (#s0, :s0, #r0, #a0) so callers can add
    their own condition placeholders without collisions.
    """
    names: dict[str, str] = {}
    values: dict[str, Any] = {}
    clauses: list[str] = []

    set_parts = []
    for i, (name, value) in enumerate(set_fields.items()):
        names[f"#s{i}"] = name
        values[f":s{i}"] = value
        set_parts.append(f"#s{i} = :s{i}")
    if set_parts:
        clauses.append("SET " + ", ".join(set_parts))

    remove_parts = []
    for i, name in enumerate(f for f in remove_fields if f not in set_fields):
        names[f"#r{i}"] = name
        remove_parts.append(f"#r{i}")
    if remove_parts:
        clauses.append("REMOVE " + ", ".join(remove_parts))

    add_parts = []
    for i, (name, value) in enumerate((add_fields or {}).items()):
        names[f"#a{i}"] = name
        values[f":a{i}"] = value
        add_parts.append(f"#a{i} :a{i}")
    if add_parts:
        clauses.append("ADD " + ", ".join(add_parts))

    return UpdateParts(expression=" ".join(clauses), names=names, values=values)


def _serialize_values(values: dict[str, Any]) -> dict[str, Any]:
    return {k: _serializer.serialize(v) for k, v in values.items()}


def _with_expressions(
    op: dict[str, Any],
    condition: str | None,
    names: dict[str, str] | None,
    values: dict[str, Any] | None,
) -> dict[str, Any]:
    if condition:
        op["ConditionExpression"] = condition
    if names:
        op["ExpressionAttributeNames"] = names
    if values:
        op["ExpressionAttributeValues"] = _serialize_values(values)
    return op


def tx_put(
    item: dict[str, Any] | PortalRecord,
    *,
    condition: str | None = None,
    names: dict[str, str] | None = None,
    values: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Transaction Put entry."""
    if isinstance(item, PortalRecord):
        item = item.to_dynamodb()
    op = {
        "TableName": get_settings().dynamodb_table_name,
        "Item": {k: _serializer.serialize(v) for k, v in item.items()},
    }
    return {"Put": _with_expressions(op, condition, names, values)}


def tx_update(
    key: dict[str, str],
    update: UpdateParts,
    *,
    condition: str | None = "attribute_exists(PK)",
    names: dict[str, str] | None = None,
    values: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Transaction Update entry. Requires the item to exist unless told otherwise."""
    op = {
        "TableName": get_settings().dynamodb_table_name,
        "Key": {k: _serializer.serialize(v) for k, v in key.items()},
        "UpdateExpression": update.expression,
    }
    merged_names = {**update.names, **(names or {})}
    merged_values = {**update.values, **(values or {})}
    return {"Update": _with_expressions(op, condition, merged_names, merged_values)}


def tx_delete(
    key: dict[str, str],
    *,
    condition: str | None = None,
    names: dict[str, str] | None = None,
    values: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Transaction Delete entry."""
    op = {
        "TableName": get_settings().dynamodb_table_name,
        "Key": {k: _serializer.serialize(v) for k, v in key.items()},
    }
    return {"Delete": _with_expressions(op, condition, names, values)}


def transact_write(items: list[dict[str, Any]], *, operation: str) -> None:
    """
    Execute a multi-item write atomically.

    Args:
        items: Entries built with tx_put / tx_update / tx_delete
        operation: Name used in logs

    Raises:
        ConditionalWriteError: A condition failed or a concurrent transaction conflicted
        DynamoDBError: On other DynamoDB failures
    """
    settings = get_settings()
    if not items:
        return
    if len(items) > TRANSACTION_ITEM_LIMIT:
        raise DynamoDBError(
            operation="transact",
            table_name=settings.dynamodb_table_name,
            error_message=f"{len(items)} items exceed the transaction limit of {TRANSACTION_ITEM_LIMIT}",
        )

    log.debug("transact_write", operation=operation, item_count=len(items))

    try:
        _get_client().transact_write_items(TransactItems=items)
    except ClientError as e:
        code = e.response["Error"]["Code"]
        if code in ("TransactionCanceledException", "TransactionConflictException"):
            reasons = [
                str(reason.get("Code", "None"))
                for reason in e.response.get("CancellationReasons", [])
            ]
            log.warning(
                "transaction_cancelled",
                operation=operation,
                error_code=code,
                reasons=reasons,
            )
            raise ConditionalWriteError(
                table_name=settings.dynamodb_table_name,
                reasons=reasons,
            ) from e
        raise _dynamodb_error("transact", e, transaction=operation) from e


# =====================================================
# Generic item access
# =====================================================


def get_item(key: dict[str, str], *, consistent_read: bool = True) -> dict[str, Any] | None:
    """Load a raw item, or None when it does not exist."""
    table = _get_table()
    try:
        response = table.get_item(Key=key, ConsistentRead=consistent_read)
    except ClientError as e:
        raise _dynamodb_error("get", e, pk=key.get("PK")) from e
    return response.get("Item")


def batch_get_items(keys: list[dict[str, str]]) -> list[dict[str, Any]]:
    """
    Load many raw items by key.

    Missing items are simply absent from the result.
    """
    settings = get_settings()
    # BatchGetItem rejects duplicate keys
    keys = list({(k["PK"], k["SK"]): k for k in keys}.values())
    if not keys:
        return []

    dynamodb = boto3.resource("dynamodb", **settings.dynamodb_config)
    found: list[dict[str, Any]] = []

    for i in range(0, len(keys), BATCH_GET_LIMIT):
        request = {
            settings.dynamodb_table_name: {
                "Keys": keys[i : i + BATCH_GET_LIMIT],
                "ConsistentRead": True,
            }
        }
        try:
            while request:
                response = dynamodb.batch_get_item(RequestItems=request)
                found.extend(response.get("Responses", {}).get(settings.dynamodb_table_name, []))
                request = response.get("UnprocessedKeys") or {}
        except ClientError as e:
            raise _dynamodb_error("batch_get", e, key_count=len(keys)) from e

    return found


def put_record(
    record: PortalRecord,
    *,
    only_if_new: bool = False,
    condition: str | None = None,
    names: dict[str, str] | None = None,
    values: dict[str, Any] | None = None,
) -> bool:
    """
    Write a record.

    Returns False instead of raising when the write condition fails
    (for only_if_new: the item already exists).
    """
    table = _get_table()
    params: dict[str, Any] = {"Item": record.to_dynamodb()}
    if only_if_new:
        condition = "attribute_not_exists(PK)"
    if condition:
        params["ConditionExpression"] = condition
    if names:
        params["ExpressionAttributeNames"] = names
    if values:
        params["ExpressionAttributeValues"] = values
    try:
        table.put_item(**params)
        return True
    except ClientError as e:
        if condition and e.response["Error"]["Code"] == "ConditionalCheckFailedException":
            log.info("conditional_put_skipped", pk=record.pk)
            return False
        raise _dynamodb_error("put", e, pk=record.pk) from e


def update_item(
    key: dict[str, str],
    update: UpdateParts,
    *,
    condition: str | None = "attribute_exists(PK)",
    names: dict[str, str] | None = None,
    values: dict[str, Any] | None = None,
) -> bool:
    """
    Apply an update.

    Returns False when the condition fails, so callers can treat a
    missing or changed item as a skip.
    """
    table = _get_table()
    params: dict[str, Any] = {
        "Key": key,
        "UpdateExpression": update.expression,
    }
    merged_names = {**update.names, **(names or {})}
    merged_values = {**update.values, **(values or {})}
    if condition:
        params["ConditionExpression"] = condition
    if merged_names:
        params["ExpressionAttributeNames"] = merged_names
    if merged_values:
        params["ExpressionAttributeValues"] = merged_values

    try:
        table.update_item(**params)
        return True
    except ClientError as e:
        if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
            log.info("conditional_update_skipped", pk=key.get("PK"))
            return False
        raise _dynamodb_error("update", e, pk=key.get("PK")) from e


def delete_item(
    key: dict[str, str],
    *,
    condition: str | None = None,
    names: dict[str, str] | None = None,
    values: dict[str, Any] | None = None,
) -> bool:
    """Delete an item. Returns False when the condition fails."""
    table = _get_table()
    params: dict[str, Any] = {"Key": key}
    if condition:
        params["ConditionExpression"] = condition
    if names:
        params["ExpressionAttributeNames"] = names
    if values:
        params["ExpressionAttributeValues"] = values
    try:
        table.delete_item(**params)
        return True
    except ClientError as e:
        if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
            log.info("conditional_delete_skipped", pk=key.get("PK"))
            return False
        raise _dynamodb_error("delete", e, pk=key.get("PK")) from e


def _query_all(query_params: dict[str, Any], *, limit: int | None = None) -> list[dict[str, Any]]:
    table = _get_table()
    response = table.query(**query_params)
    items = response.get("Items", [])
    while "LastEvaluatedKey" in response and (limit is None or len(items) < limit):
        query_params["ExclusiveStartKey"] = response["LastEvaluatedKey"]
        response = table.query(**query_params)
        items.extend(response.get("Items", []))
    return items[:limit] if limit is not None else items


def _query_partition(
    index_name: str, attribute: str, value: str, *, limit: int | None = None
) -> list[dict[str, Any]]:
    try:
        return _query_all(
            {
                "IndexName": index_name,
                "KeyConditionExpression": f"{attribute} = :pk",
                "ExpressionAttributeValues": {":pk": value},
            },
            limit=limit,
        )
    except ClientError as e:
        raise _dynamodb_error("query", e, index=index_name, partition=value) from e


def query_index(gsi1pk: str, *, limit: int | None = None) -> list[dict[str, Any]]:
    """List every item sharing a GSI1 partition."""
    return _query_partition(get_settings().dynamodb_gsi1_name, "GSI1PK", gsi1pk, limit=limit)


def query_month_index(gsi2pk: str, *, limit: int | None = None) -> list[dict[str, Any]]:
    """List every item sharing a GSI2 (per-month) partition."""
    return _query_partition(get_settings().dynamodb_gsi2_name, "GSI2PK", gsi2pk, limit=limit)


# =====================================================
# Claims and visits
# =====================================================


def _parse_listing(model: type[PortalRecord], items: list[dict[str, Any]], **context: Any) -> list:
    """Parse listed items, skipping rows that no longer fit the model."""
    records = []
    for item in items:
        try:
            records.append(model.from_dynamodb(item))
        except RecordFormatError as e:
            log.error("record_skipped", error=e.message, **context)
    return records


def load_claim_item(claim_id: str) -> dict[str, Any] | None:
    """Raw claim item, as kept in deletion snapshots."""
    return get_item(ItemKey.claim(claim_id).to_key())


def load_claim(claim_id: str) -> ClaimRecord | None:
    item = load_claim_item(claim_id)
    return ClaimRecord.from_dynamodb(item) if item else None


def load_claims(claim_ids: list[str]) -> dict[str, ClaimRecord]:
    """Load claims by id; missing ids are absent from the mapping."""
    items = batch_get_items([ItemKey.claim(c).to_key() for c in claim_ids])
    claims = [ClaimRecord.from_dynamodb(item) for item in items]
    return {claim.claim_id: claim for claim in claims}


def load_visit_item(visit_id: str) -> dict[str, Any] | None:
    return get_item(ItemKey.visit(visit_id).to_key())


def load_visit(visit_id: str) -> VisitRecord | None:
    item = load_visit_item(visit_id)
    return VisitRecord.from_dynamodb(item) if item else None


def load_visits(visit_ids: list[str]) -> dict[str, VisitRecord]:
    """Load visits by id; missing ids are absent from the mapping."""
    items = batch_get_items([ItemKey.visit(v).to_key() for v in visit_ids])
    visits = [VisitRecord.from_dynamodb(item) for item in items]
    return {visit.visit_id: visit for visit in visits}


def list_social_worker_visits(social_worker_email: str) -> list[VisitRecord]:
    items = query_index(f"SW#{social_worker_email}")
    return _parse_listing(VisitRecord, items, social_worker=social_worker_email)


def list_month_visits(visit_month: str) -> list[VisitRecord]:
    items = query_month_index(f"VISIT_MONTH#{visit_month}")
    return _parse_listing(VisitRecord, items, visit_month=visit_month)


def list_month_claims(claim_month: str) -> list[ClaimRecord]:
    items = query_month_index(f"CLAIM_MONTH#{claim_month}")
    return _parse_listing(ClaimRecord, items, claim_month=claim_month)


def load_monthly_locks(pairs: list[tuple[str, str]]) -> dict[str, MonthlyLock]:
    """Load monthly locks keyed by lock key for (member_id, visit_month) pairs."""
    keys = [ItemKey.monthly_lock(member, month).to_key() for member, month in pairs]
    locks = [MonthlyLock.from_dynamodb(item) for item in batch_get_items(keys)]
    return {lock.lock_key: lock for lock in locks}


def list_claim_events(claim_id: str, *, limit: int = 50) -> list[ClaimEventRecord]:
    """List audit events for a claim, newest first."""
    try:
        items = _query_all(
            {
                "KeyConditionExpression": "PK = :pk AND begins_with(SK, :prefix)",
                "ExpressionAttributeValues": {
                    ":pk": f"CLAIM_EVENTS#{claim_id}",
                    ":prefix": "EVT#",
                },
                "ScanIndexForward": False,
                "Limit": limit,
            },
            limit=limit,
        )
    except ClientError as e:
        raise _dynamodb_error("query", e, claim_id=claim_id) from e
    return _parse_listing(ClaimEventRecord, items, claim_id=claim_id)


# =====================================================
# Applications
# =====================================================


def list_applications(*, include_deleted: bool = False) -> list[ApplicationRecord]:
    """List every application via GSI1 (GSI1PK = 'APPLICATIONS')."""
    items = query_index("APPLICATIONS")
    applications = _parse_listing(ApplicationRecord, items)
    if include_deleted:
        return applications
    return [app for app in applications if not app.deleted]


def load_application(application_id: str) -> ApplicationRecord | None:
    item = get_item(ItemKey.application(application_id).to_key())
    return ApplicationRecord.from_dynamodb(item) if item else None


# =====================================================
# Roles, settings, members, notifications
# =====================================================


def has_role(role: str, principal: str) -> bool:
    """Whether ROLE#<role> holds a USER#<principal> entry."""
    if not principal:
        return False
    return get_item({"PK": f"ROLE#{role}", "SK": f"USER#{principal}"}, consistent_read=False) is not None


def load_settings_document(name: str) -> dict[str, Any]:
    """Settings document SETTINGS#<name>, or an empty dict."""
    return get_item(ItemKey.settings(name).to_key(), consistent_read=False) or {}


def save_settings_document(name: str, values: dict[str, Any]) -> None:
    table = _get_table()
    try:
        table.put_item(Item={**values, **ItemKey.settings(name).to_key()})
    except ClientError as e:
        raise _dynamodb_error("put", e, settings_document=name) from e


def load_member(member_id: str) -> MemberRecord | None:
    item = get_item(ItemKey.member(member_id).to_key(), consistent_read=False)
    return MemberRecord.from_dynamodb(item) if item else None


def list_members() -> list[MemberRecord]:
    """Every cached member (GSI1PK = 'MEMBERS')."""
    return _parse_listing(MemberRecord, query_index("MEMBERS"))


def put_members(members: list[MemberRecord]) -> int:
    """Upsert cached members. Returns the number written."""
    table = _get_table()
    try:
        with table.batch_writer(overwrite_by_pkeys=["PK", "SK"]) as batch:
            for member in members:
                batch.put_item(Item=member.to_dynamodb())
    except ClientError as e:
        raise _dynamodb_error("batch_write", e, member_count=len(members)) from e
    return len(members)


def put_notification(record: NotificationRecord) -> None:
    put_record(record)


def list_notifications(recipient: str, *, limit: int = 50) -> list[NotificationRecord]:
    """Notifications for a recipient, newest first."""
    try:
        items = _query_all(
            {
                "KeyConditionExpression": "PK = :pk AND begins_with(SK, :prefix)",
                "ExpressionAttributeValues": {
                    ":pk": f"NOTIFICATIONS#{recipient}",
                    ":prefix": "NOTIF#",
                },
                "ScanIndexForward": False,
                "Limit": limit,
            },
            limit=limit,
        )
    except ClientError as e:
        raise _dynamodb_error("query", e, recipient=recipient) from e
    return _parse_listing(NotificationRecord, items, recipient=recipient)
