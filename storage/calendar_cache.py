"""DynamoDB-backed cache for calendar query results."""
import hashlib
import json
import logging
import time
from typing import Any, Dict, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class CalendarCache:
    """
    Key-value cache with per-entry expiry.

    Entries are stored as JSON under `cache_key`, with `expires_at` doubling
    as the table's TTL attribute. DynamoDB removes expired items lazily, so
    reads check the expiry themselves.
    """

    PREFIX = 'calendar_'
    TTL_DATES = 5 * 60
    TTL_COUNTS = 10 * 60

    KEY_FIELDS = (
        'show_past', 'search_query', 'date_start', 'date_end', 'time_start',
        'time_end', 'tax_filters', 'archive_taxonomy', 'archive_term_id',
        'geo_lat', 'geo_lng', 'geo_radius', 'geo_radius_unit', 'user_date_range',
    )

    def __init__(self, table_name: str):
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)

    def get(self, key: str) -> Optional[Any]:
        """
        Get a cached value.

        Returns:
            The cached value, or None on a miss, an expired entry or a
            read error
        """
        try:
            response = self.table.get_item(Key={'cache_key': key})
        except ClientError as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

        item = response.get('Item')
        if not item:
            return None
        if int(item.get('expires_at', 0)) <= int(time.time()):
            logger.debug(f"Cache entry {key} expired")
            return None

        return json.loads(item['value'])

    def set(self, key: str, value: Any, ttl: int) -> bool:
        """
        Store a JSON-serializable value for `ttl` seconds.

        Returns:
            True on success
        """
        try:
            self.table.put_item(Item={
                'cache_key': key,
                'value': json.dumps(value),
                'expires_at': int(time.time()) + int(ttl),
            })
        except ClientError as e:
            logger.warning(f"Cache write failed for {key}: {e}")
            return False
        return True

    @classmethod
    def generate_key(cls, params: Dict[str, Any], prefix: str) -> str:
        """
        Generate a cache key from query parameters.

        Args:
            params: Query parameters (QueryParams as a dict)
            prefix: Key prefix, e.g. 'dates' or 'counts'

        Returns:
            Full cache key
        """
        key_data = {name: params.get(name, '') for name in cls.KEY_FIELDS}
        key_data['tax_filters'] = {
            taxonomy: sorted(int(term_id) for term_id in term_ids)
            for taxonomy, term_ids in sorted((params.get('tax_filters') or {}).items())
        }
        override = params.get('tax_query_override')
        if override:
            key_data['tax_query_override'] = [
                {'taxonomy': clause['taxonomy'], 'terms': sorted(clause['terms'])}
                for clause in override
            ]

        digest = hashlib.md5(json.dumps(key_data, sort_keys=True, default=str).encode('utf-8')).hexdigest()
        return f"{cls.PREFIX}{prefix}_{digest}"

    def invalidate_all(self) -> int:
        """
        Delete every calendar cache entry.

        Returns:
            Count of deleted entries
        """
        scan_kwargs = {
            'FilterExpression': Attr('cache_key').begins_with(self.PREFIX),
            'ProjectionExpression': 'cache_key',
        }

        try:
            response = self.table.scan(**scan_kwargs)
            keys = [item['cache_key'] for item in response.get('Items', [])]

            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey'], **scan_kwargs
                )
                keys.extend(item['cache_key'] for item in response.get('Items', []))

            with self.table.batch_writer() as writer:
                for key in keys:
                    writer.delete_item(Key={'cache_key': key})

        except ClientError as e:
            logger.error(f"Error invalidating calendar cache: {e}")
            raise

        logger.info(f"Invalidated {len(keys)} calendar cache entries")
        return len(keys)
