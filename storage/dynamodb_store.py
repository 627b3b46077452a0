"""DynamoDB store for date records."""
import logging
from typing import List, Optional

import boto3
from botocore.exceptions import ClientError

from reconciler.models import DateRecord
from storage.base import DateRecordStore, is_date_key

logger = logging.getLogger(__name__)


class DynamoDBDateStore(DateRecordStore):
    """One DynamoDB item per calendar date, keyed by 'date'."""

    def __init__(self, table_name: str):
        """
        Initialize DynamoDB resource and table reference.

        Args:
            table_name: Name of the DynamoDB table (hash key 'date')
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBDateStore for table: {table_name}")

    def load(self, date: str) -> Optional[DateRecord]:
        """
        Fetch the item for a date.

        Args:
            date: Date key (YYYY-MM-DD)

        Returns:
            DateRecord, or None if the item is missing or malformed
        """
        try:
            response = self.table.get_item(Key={'date': date})
        except ClientError as e:
            logger.error(f"Error reading date record {date}: {e}")
            raise

        item = response.get('Item')
        if item is None:
            return None

        return self._item_to_record(item)

    def save(self, date: str, record: DateRecord) -> None:
        """
        Write the item for a date, replacing any previous version.

        Raises:
            ClientError: If the write fails
        """
        item = self._record_to_item(date, record)
        try:
            self.table.put_item(Item=item)
        except ClientError as e:
            logger.error(f"Error writing date record {date}: {e}")
            raise

    def list_keys(self) -> List[str]:
        """
        Scan the table for all date keys.

        Returns:
            Sorted list of date keys
        """
        scan_kwargs = {
            'ProjectionExpression': '#d',
            'ExpressionAttributeNames': {'#d': 'date'},
        }
        keys = []

        try:
            response = self.table.scan(**scan_kwargs)
            keys.extend(item['date'] for item in response.get('Items', []))

            # Handle pagination
            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey'],
                    **scan_kwargs
                )
                keys.extend(item['date'] for item in response.get('Items', []))
        except ClientError as e:
            logger.error(f"Error scanning DynamoDB table: {e}")
            raise

        return sorted(key for key in keys if is_date_key(key))

    def _item_to_record(self, item: dict) -> Optional[DateRecord]:
        """
        Convert DynamoDB item to DateRecord.

        Args:
            item: DynamoDB item dictionary

        Returns:
            DateRecord or None if conversion fails
        """
        try:
            return DateRecord.from_dict(item)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(
                f"Failed to convert item {item.get('date')} to DateRecord: {e}"
            )
            return None

    def _record_to_item(self, date: str, record: DateRecord) -> dict:
        item = record.to_dict()
        item['date'] = date
        return item
