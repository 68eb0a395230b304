"""DynamoDB media record store (table object faked)."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest
from botocore.exceptions import ClientError

from api.dal import MediaRecordStore
from common.errors import RecordUpdateError

pytestmark = pytest.mark.unit


class FakeTable:
    def __init__(self, error_code: Optional[str] = None) -> None:
        self.error_code = error_code
        self.calls: List[Dict[str, Any]] = []

    def update_item(self, **kwargs):
        self.calls.append(kwargs)
        if self.error_code:
            raise ClientError({"Error": {"Code": self.error_code, "Message": "boom"}}, "UpdateItem")
        return {}

    def get_item(self, Key):
        return {"Item": {"id": Key["id"], "processing_status": "pending"}}


def test_update_builds_set_expression() -> None:
    table = FakeTable()

    MediaRecordStore(table).update("m-1", {"processing_status": "processed", "width": 1920})

    call = table.calls[0]
    assert call["Key"] == {"id": "m-1"}
    assert call["UpdateExpression"] == "SET #k1 = :v1, #k2 = :v2"
    assert call["ExpressionAttributeNames"] == {"#k1": "processing_status", "#k2": "width"}
    assert call["ExpressionAttributeValues"] == {":v1": "processed", ":v2": 1920}
    assert call["ConditionExpression"] == "attribute_exists(id)"


def test_missing_record_is_ignored() -> None:
    table = FakeTable("ConditionalCheckFailedException")

    MediaRecordStore(table).update("ghost", {"processing_status": "processing"})

    assert len(table.calls) == 1


def test_other_failures_raise_typed_error() -> None:
    with pytest.raises(RecordUpdateError, match="Failed to update media record"):
        MediaRecordStore(FakeTable("ProvisionedThroughputExceededException")).update("m-1", {"a": 1})


def test_get_returns_item() -> None:
    assert MediaRecordStore(FakeTable()).get("m-1") == {"id": "m-1", "processing_status": "pending"}
