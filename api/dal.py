import logging
import time
from typing import Optional, Dict, Any

from botocore.exceptions import BotoCoreError, ClientError

from common.aws import media_table
from common.config import MEDIA_TABLE
from common.errors import RecordUpdateError

log = logging.getLogger("api")


def now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


class MediaRecordStore:
    """
    Point reads/writes on the media record table, keyed by "id".
    Each job only ever touches its own row.
    """

    def __init__(self, table=None, table_name: str = MEDIA_TABLE):
        self._table = table
        self.table_name = table_name

    @property
    def table(self):
        if self._table is None:
            self._table = media_table(self.table_name)
        return self._table

    def get(self, media_id: str) -> Optional[Dict[str, Any]]:
        resp = self.table.get_item(Key={"id": media_id})
        return resp.get("Item")

    def update(self, media_id: str, fields: Dict[str, Any]) -> None:
        fields = dict(fields)  # avoid mutating caller dict
        log.info("Updating media record %s: %s", media_id, fields)

        expr_items = []
        names: Dict[str, str] = {}
        values: Dict[str, Any] = {}

        # Build SET expression placeholders
        for i, (k, v) in enumerate(fields.items(), start=1):
            nk = f"#k{i}"
            vk = f":v{i}"
            names[nk] = k
            values[vk] = v
            expr_items.append(f"{nk} = {vk}")

        update_expr = "SET " + ", ".join(expr_items)

        try:
            # Only existing records are updated; the row is created by the uploader
            self.table.update_item(
                Key={"id": media_id},
                UpdateExpression=update_expr,
                ConditionExpression="attribute_exists(id)",
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values,
            )
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                log.warning("Media record %s does not exist; update ignored.", media_id)
                return
            raise RecordUpdateError(f"Failed to update media record: {e}") from e
        except BotoCoreError as e:
            raise RecordUpdateError(f"Failed to update media record: {e}") from e
