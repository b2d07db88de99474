"""
=============================================================================
DYNAMODB READING ARCHIVE - Amazon DynamoDB integration
=============================================================================

The billing core keeps only a bounded window of readings in memory. When
USE_DYNAMODB=true every recorded reading is also written to DynamoDB, and on
start-up the newest readings are loaded back so the in-memory window survives
a restart.

Table Schema:
-------------
Table: MeterReadings (DYNAMODB_TABLE_NAME)
- device_id (String)   - Partition Key - one meter per partition
- reading_key (String) - Sort Key      - "<timestamp>#<reading_id>"; unique per
                                         reading, so readings recorded in the
                                         same millisecond never overwrite
                                         each other
- timestamp (String)   - UTC ISO8601 with a Z suffix and millisecond precision,
                         so the key order is the chronological order
- reading_id, voltage, current, power (Number) - the reading itself
- created_at (String) - when the item was written

Example Item:
{
    "device_id": "meter-1",
    "reading_key": "2025-11-01T00:00:00.000Z#3f2c...",
    "timestamp": "2025-11-01T00:00:00.000Z",
    "reading_id": "3f2c...",
    "voltage": 221.4,
    "current": 2.31,
    "power": 0.5114,
    "created_at": "2025-11-01T00:00:00.412+00:00"
}

Failures are logged and reported through return values; they never
propagate into billing.
=============================================================================
"""

import logging
import os
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

# boto3 - AWS SDK for Python
import boto3
from boto3.dynamodb.conditions import Key

# ClientError - AWS API errors; BotoCoreError - credential/endpoint problems
from botocore.exceptions import BotoCoreError, ClientError

from backend.lib.slab_billing.io import format_timestamp, reading_from_dict
from backend.lib.slab_billing.models import Reading

logger = logging.getLogger(__name__)


def reading_key(timestamp: str, reading_id: str) -> str:
    """Sort key: chronological first, then the reading id to break ties."""
    return f"{timestamp}#{reading_id}"


class DynamoDBReadingArchive:
    """
    Write-through archive of meter readings.

    Usage:
        archive = DynamoDBReadingArchive()
        archive.create_table_if_not_exists()
        archive.put_reading(reading)
        history = archive.load_recent(100)
    """

    def __init__(self, table_name: str = None, device_id: str = None, dynamodb=None):
        """
        Args:
            table_name: Optional table name. Defaults to DYNAMODB_TABLE_NAME
                        from the environment, then 'MeterReadings'.
            device_id:  Partition key for this meter. Defaults to
                        DYNAMODB_DEVICE_ID, then 'meter-1'.
            dynamodb:   Optional boto3 DynamoDB resource (tests pass a fake).
        """
        self.table_name = table_name or os.getenv('DYNAMODB_TABLE_NAME', 'MeterReadings')
        self.device_id = device_id or os.getenv('DYNAMODB_DEVICE_ID', 'meter-1')
        self.region = os.getenv('AWS_REGION', 'us-east-1')

        if dynamodb is None:
            session_token = os.getenv('AWS_SESSION_TOKEN')
            dynamodb = boto3.resource(
                'dynamodb',
                region_name=self.region,
                aws_access_key_id=os.getenv('AWS_ACCESS_KEY_ID'),
                aws_secret_access_key=os.getenv('AWS_SECRET_ACCESS_KEY'),
                aws_session_token=session_token if session_token else None
            )
        self.dynamodb = dynamodb
        self.table = self.dynamodb.Table(self.table_name)

    def create_table_if_not_exists(self) -> bool:
        """
        Create the table on first use (on-demand billing).

        Returns:
            bool: True if the table exists or was created
        """
        try:
            self.table.load()
            logger.info("DynamoDB table '%s' exists", self.table_name)
            return True

        except ClientError as e:
            if e.response['Error']['Code'] != 'ResourceNotFoundException':
                logger.error("Error checking table '%s': %s", self.table_name, e)
                return False
        except BotoCoreError as e:
            logger.error("Error checking table '%s': %s", self.table_name, e)
            return False

        try:
            table = self.dynamodb.create_table(
                TableName=self.table_name,
                KeySchema=[
                    {'AttributeName': 'device_id', 'KeyType': 'HASH'},
                    {'AttributeName': 'reading_key', 'KeyType': 'RANGE'},
                ],
                AttributeDefinitions=[
                    {'AttributeName': 'device_id', 'AttributeType': 'S'},
                    {'AttributeName': 'reading_key', 'AttributeType': 'S'},
                ],
                BillingMode='PAY_PER_REQUEST'
            )
            # Wait for table to be fully created
            table.wait_until_exists()
            self.table = table
            logger.info("Created DynamoDB table '%s'", self.table_name)
            return True

        except (BotoCoreError, ClientError) as create_error:
            logger.error("Failed to create table '%s': %s", self.table_name, create_error)
            return False

    def put_reading(self, reading: Reading) -> bool:
        """
        Store a single reading.

        Note:
            DynamoDB requires Decimal for numbers, not float.
            We convert using str() to avoid floating-point precision issues.

        Returns:
            bool: True if successful, False otherwise
        """
        timestamp = format_timestamp(reading.timestamp)
        try:
            self.table.put_item(
                Item={
                    'device_id': self.device_id,
                    'reading_key': reading_key(timestamp, reading.id),
                    'timestamp': timestamp,
                    'reading_id': reading.id,
                    'voltage': Decimal(str(reading.voltage)),
                    'current': Decimal(str(reading.current)),
                    'power': Decimal(str(reading.power)),
                    'created_at': datetime.now(timezone.utc).isoformat()
                }
            )
            return True

        except (BotoCoreError, ClientError) as e:
            logger.error("Failed to archive reading %s: %s", reading.id, e)
            return False

    def load_recent(self, limit: int) -> List[Reading]:
        """
        Newest `limit` readings of this meter, oldest first.

        Queries the partition in descending sort-key order and follows
        LastEvaluatedKey until enough items are collected.
        """
        if limit <= 0:
            return []

        items = []
        kwargs = {
            'KeyConditionExpression': Key('device_id').eq(self.device_id),
            'ScanIndexForward': False,
            'Limit': limit,
        }
        try:
            response = self.table.query(**kwargs)
            items.extend(response.get('Items', []))
            while 'LastEvaluatedKey' in response and len(items) < limit:
                response = self.table.query(ExclusiveStartKey=response['LastEvaluatedKey'], **kwargs)
                items.extend(response.get('Items', []))

        except (BotoCoreError, ClientError) as e:
            logger.error("Failed to load readings for '%s': %s", self.device_id, e)
            return []

        readings = [self._to_reading(item) for item in items[:limit]]
        readings.reverse()
        return readings

    @staticmethod
    def _to_reading(item: dict) -> Reading:
        return reading_from_dict({
            'id': item['reading_id'],
            'voltage': item['voltage'],
            'current': item['current'],
            'power': item['power'],
            'timestamp': item['timestamp'],
        })


def archive_from_env() -> Optional[DynamoDBReadingArchive]:
    """
    Build the archive when USE_DYNAMODB=true, or None.

    If DynamoDB cannot be reached the app keeps running on the in-memory
    store only.
    """
    if os.getenv('USE_DYNAMODB', 'false').lower() != 'true':
        return None
    try:
        archive = DynamoDBReadingArchive()
        if not archive.create_table_if_not_exists():
            logger.warning("DynamoDB table unavailable. Using in-memory storage only.")
            return None
        logger.info("DynamoDB archive enabled (table '%s')", archive.table_name)
        return archive
    except (BotoCoreError, ClientError) as e:
        logger.warning("DynamoDB initialization failed: %s. Using in-memory storage only.", e)
        return None
