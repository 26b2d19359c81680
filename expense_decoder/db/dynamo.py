import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from expense_decoder.core.config import settings

logger = logging.getLogger(__name__)

# Initialize DynamoDB resource
dynamodb = boto3.resource("dynamodb", region_name=settings.DYNAMO_REGION)

# Get table references
expenses_table = dynamodb.Table(settings.DYNAMO_TABLE_EXPENSES)
insights_table = dynamodb.Table(settings.DYNAMO_TABLE_INSIGHTS)


def put_expense(expense_item: dict):
    """Insert a new expense for a user."""
    try:
        expenses_table.put_item(Item=_convert_for_dynamo(expense_item))
        return True
    except (BotoCoreError, ClientError) as e:
        logger.error(f"put_expense failed: {str(e)}")
        return False


def get_recent_expenses(user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
    """
    Most recent expenses for a user, newest date first.
    expense_id starts with the ISO date, so a descending query on the sort key is a date ordering.
    Storage errors propagate so the caller can report them.
    """
    response = expenses_table.query(
        KeyConditionExpression=Key("user_id").eq(user_id),
        ScanIndexForward=False,
        Limit=limit,
    )
    return [_from_dynamo(item) for item in response["Items"]]


def get_all_expenses(user_id: str) -> List[Dict[str, Any]]:
    """
    Full expense history for a user (no date filter), following pagination.
    Raises BotoCoreError / ClientError so callers can tell "no expenses" apart from "read failed".
    """
    items: List[Dict[str, Any]] = []
    query_kwargs = {
        "KeyConditionExpression": Key("user_id").eq(user_id),
        "ScanIndexForward": False,
    }
    while True:
        response = expenses_table.query(**query_kwargs)
        items.extend(_from_dynamo(item) for item in response["Items"])
        last_key = response.get("LastEvaluatedKey")
        if not last_key:
            return items
        query_kwargs["ExclusiveStartKey"] = last_key


def delete_expense(user_id: str, expense_id: str):
    """
    Delete a specific expense item. Returns False when no such item existed;
    storage errors propagate.
    """
    response = expenses_table.delete_item(
        Key={"user_id": user_id, "expense_id": expense_id},
        ReturnValues="ALL_OLD",
    )
    return "Attributes" in response


def put_insights(user_id: str, month_year: str, insights: List[Dict[str, Any]]):
    """
    Append an insight snapshot for a user and month. Snapshots are never updated;
    the sort key embeds the creation time so the latest one sorts last.
    """
    created_at = datetime.now(timezone.utc).isoformat()
    item = {
        "user_id": user_id,
        "snapshot_id": f"{month_year}#{created_at}",
        "month_year": month_year,
        "insights": insights,
        "created_at": created_at,
    }
    try:
        insights_table.put_item(Item=_convert_for_dynamo(item))
        return True
    except (BotoCoreError, ClientError) as e:
        logger.error(f"put_insights failed: {str(e)}")
        return False


def get_latest_insights(user_id: str, month_year: str) -> Optional[Dict[str, Any]]:
    """Most recently created insight snapshot for the given month, or None."""
    try:
        response = insights_table.query(
            KeyConditionExpression=Key("user_id").eq(user_id) &
                                   Key("snapshot_id").begins_with(f"{month_year}#"),
            ScanIndexForward=False,
            Limit=1,
        )
        return _from_dynamo(response["Items"][0]) if response["Items"] else None
    except (BotoCoreError, ClientError) as e:
        logger.error(f"get_latest_insights failed: {str(e)}")
        return None


def _convert_for_dynamo(obj: Any):
    """
    Recursively convert floats to Decimal for DynamoDB compatibility.
    """
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: _convert_for_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_convert_for_dynamo(v) for v in obj]
    return obj


def _from_dynamo(obj: Any):
    """
    Recursively convert Decimal instances back to native Python numeric types.
    """
    if isinstance(obj, list):
        return [_from_dynamo(item) for item in obj]
    if isinstance(obj, dict):
        return {k: _from_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    return obj
