"""DynamoDB manager for event storage operations."""
import logging
from typing import Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from processor.models import CalendarEvent, SyncResult
from processor.query_builder import EventQuery

logger = logging.getLogger(__name__)


class DynamoDBManager:
    """Manager for DynamoDB operations on the events table."""

    BATCH_SIZE = 25  # DynamoDB batch operation limit

    COMPARED_FIELDS = (
        'title', 'description', 'start_date', 'start_time', 'end_date',
        'end_time', 'venue_timezone', 'venue', 'venue_address', 'ticket_url',
        'price', 'performer', 'organizer', 'source_url', 'occurrence_dates',
        'terms', 'status', 'ttl',
    )

    def __init__(self, table_name: str):
        """
        Initialize DynamoDB client and table reference.

        Args:
            table_name: Name of the DynamoDB table
        """
        self.table_name = table_name
        self.dynamodb = boto3.resource('dynamodb')
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBManager for table: {table_name}")

    def _scan(self, **kwargs) -> List[dict]:
        """Scan the table, following LastEvaluatedKey pagination."""
        response = self.table.scan(**kwargs)
        items = response.get('Items', [])

        while 'LastEvaluatedKey' in response:
            response = self.table.scan(
                ExclusiveStartKey=response['LastEvaluatedKey'], **kwargs
            )
            items.extend(response.get('Items', []))

        return items

    def get_all_events(self) -> Dict[str, CalendarEvent]:
        """
        Retrieve all events from DynamoDB using Scan operation.

        Returns:
            Dictionary mapping event_id to CalendarEvent objects
        """
        logger.info("Scanning DynamoDB table for all events")
        events = {}

        try:
            for item in self._scan():
                event = self._item_to_event(item)
                if event:
                    events[event.event_id] = event

            logger.info(f"Retrieved {len(events)} events from DynamoDB")
            return events

        except ClientError as e:
            logger.error(f"Error scanning DynamoDB table: {e}")
            raise

    def find_events(self, query: EventQuery) -> List[CalendarEvent]:
        """
        Find events matching a query, in the query's sort order.

        Status and date clauses are pushed down as a filter expression;
        taxonomy and search clauses are evaluated on the results.

        Args:
            query: Event query built by EventQueryBuilder

        Returns:
            Matching events sorted by start datetime
        """
        try:
            items = self._scan(FilterExpression=query.to_filter_expression())
        except ClientError as e:
            logger.error(f"Error querying events: {e}")
            raise

        events = []
        for item in items:
            event = self._item_to_event(item)
            if event and query.matches(event):
                events.append(event)

        logger.debug(f"Query matched {len(events)} of {len(items)} scanned events")
        return query.sort(events)

    def count_events(self, current_datetime: str) -> Dict[str, int]:
        """
        Count published past and upcoming events.

        Args:
            current_datetime: Site-local 'YYYY-MM-DD HH:MM:SS'

        Returns:
            {'past': int, 'future': int}
        """
        published = Attr('status').eq('publish')
        try:
            past = self._count(published & Attr('end_datetime').lt(current_datetime))
            future = self._count(published & Attr('end_datetime').gte(current_datetime))
        except ClientError as e:
            logger.error(f"Error counting events: {e}")
            raise

        return {'past': past, 'future': future}

    def _count(self, condition) -> int:
        response = self.table.scan(FilterExpression=condition, Select='COUNT')
        total = response.get('Count', 0)

        while 'LastEvaluatedKey' in response:
            response = self.table.scan(
                FilterExpression=condition,
                Select='COUNT',
                ExclusiveStartKey=response['LastEvaluatedKey'],
            )
            total += response.get('Count', 0)

        return total

    def sync_events(self, new_events: List[CalendarEvent], window_start: str = '') -> SyncResult:
        """
        Synchronize events with DynamoDB.

        Compares newly imported events with existing events in DynamoDB,
        then performs additions, updates, and deletions as needed. Only
        stored events ending at or after window_start are deleted when
        missing from the import; older events expire through their TTL.

        Args:
            new_events: List of current events from import sources
            window_start: Site-local 'YYYY-MM-DD HH:MM:SS' the import covers
                from, or empty to treat every stored event as in the window

        Returns:
            SyncResult with counts of added, updated, deleted events
        """
        logger.info(f"Starting sync process with {len(new_events)} new events")
        errors = []

        try:
            existing_events = self.get_all_events()

            new_events_dict = {event.event_id: event for event in new_events}

            events_to_add = [
                event for event_id, event in new_events_dict.items()
                if event_id not in existing_events
            ]

            events_to_update = [
                event for event_id, event in new_events_dict.items()
                if event_id in existing_events and
                self._events_differ(event, existing_events[event_id])
            ]

            event_ids_to_delete = [
                event_id for event_id, event in existing_events.items()
                if event_id not in new_events_dict and
                event.end_datetime >= window_start
            ]

            logger.info(
                f"Sync plan: {len(events_to_add)} to add, "
                f"{len(events_to_update)} to update, "
                f"{len(event_ids_to_delete)} to delete"
            )

            added_count = 0
            updated_count = 0
            deleted_count = 0

            if events_to_add or events_to_update:
                write_count = self.batch_write_events(
                    events_to_add + events_to_update
                )
                added_count = min(write_count, len(events_to_add))
                updated_count = write_count - added_count

            if event_ids_to_delete:
                deleted_count = self.batch_delete_events(event_ids_to_delete)

            logger.info(
                f"Sync complete: {added_count} added, {updated_count} updated, "
                f"{deleted_count} deleted"
            )

            return SyncResult(
                added=added_count,
                updated=updated_count,
                deleted=deleted_count,
                errors=errors
            )

        except Exception as e:
            error_msg = f"Error during sync operation: {e}"
            logger.error(error_msg)
            errors.append(error_msg)
            return SyncResult(added=0, updated=0, deleted=0, errors=errors)

    def batch_write_events(self, events: List[CalendarEvent]) -> int:
        """
        Write events to DynamoDB in batches of 25 items.

        Args:
            events: List of CalendarEvent objects to write

        Returns:
            Count of successfully written events
        """
        if not events:
            return 0

        logger.info(f"Writing {len(events)} events to DynamoDB")
        success_count = 0

        for i in range(0, len(events), self.BATCH_SIZE):
            batch = events[i:i + self.BATCH_SIZE]

            try:
                with self.table.batch_writer() as writer:
                    for event in batch:
                        writer.put_item(Item=self._event_to_item(event))
                        success_count += 1

            except ClientError as e:
                logger.error(
                    f"Error writing batch {i // self.BATCH_SIZE + 1}: {e}"
                )
                continue

        logger.info(f"Successfully wrote {success_count} events")
        return success_count

    def batch_delete_events(self, event_ids: List[str]) -> int:
        """
        Delete events from DynamoDB in batches of 25 items.

        Args:
            event_ids: List of event IDs to delete

        Returns:
            Count of successfully deleted events
        """
        if not event_ids:
            return 0

        logger.info(f"Deleting {len(event_ids)} events from DynamoDB")
        success_count = 0

        for i in range(0, len(event_ids), self.BATCH_SIZE):
            batch = event_ids[i:i + self.BATCH_SIZE]

            try:
                with self.table.batch_writer() as writer:
                    for event_id in batch:
                        writer.delete_item(Key={'event_id': event_id})
                        success_count += 1

            except ClientError as e:
                logger.error(
                    f"Error deleting batch {i // self.BATCH_SIZE + 1}: {e}"
                )
                continue

        logger.info(f"Successfully deleted {success_count} events")
        return success_count

    def _item_to_event(self, item: dict) -> Optional[CalendarEvent]:
        """
        Convert DynamoDB item to CalendarEvent object.

        Args:
            item: DynamoDB item dictionary

        Returns:
            CalendarEvent object or None if conversion fails
        """
        try:
            return CalendarEvent(
                event_id=item['event_id'],
                title=item['title'],
                description=item.get('description', ''),
                start_date=item['start_date'],
                start_time=item.get('start_time', ''),
                end_date=item.get('end_date', item['start_date']),
                end_time=item.get('end_time', ''),
                venue_timezone=item.get('venue_timezone', ''),
                venue=item.get('venue', ''),
                venue_address=item.get('venue_address', ''),
                ticket_url=item.get('ticket_url'),
                price=item.get('price', ''),
                performer=item.get('performer', ''),
                organizer=item.get('organizer', ''),
                source_url=item.get('source_url'),
                occurrence_dates=list(item.get('occurrence_dates', [])),
                terms={
                    taxonomy: [int(term_id) for term_id in term_ids]
                    for taxonomy, term_ids in item.get('terms', {}).items()
                },
                status=item.get('status', 'publish'),
                last_updated=int(item.get('last_updated', 0)),
                ttl=int(item.get('ttl', 0)),
            )
        except (KeyError, ValueError, TypeError) as e:
            logger.warning(f"Failed to convert item to CalendarEvent: {e}")
            return None

    def _event_to_item(self, event: CalendarEvent) -> dict:
        """
        Convert CalendarEvent object to DynamoDB item.

        The derived start/end datetimes are stored so date filters can run
        as DynamoDB filter expressions.

        Args:
            event: CalendarEvent object

        Returns:
            DynamoDB item dictionary
        """
        item = {
            'event_id': event.event_id,
            'title': event.title,
            'description': event.description,
            'start_date': event.start_date,
            'start_time': event.start_time,
            'end_date': event.end_date or event.start_date,
            'end_time': event.end_time,
            'start_datetime': event.start_datetime,
            'end_datetime': event.end_datetime,
            'venue_timezone': event.venue_timezone,
            'venue': event.venue,
            'venue_address': event.venue_address,
            'price': event.price,
            'performer': event.performer,
            'organizer': event.organizer,
            'occurrence_dates': event.occurrence_dates,
            'terms': event.terms,
            'status': event.status,
            'last_updated': event.last_updated,
            'ttl': event.ttl,
        }

        # Add optional fields if present
        if event.ticket_url:
            item['ticket_url'] = event.ticket_url
        if event.source_url:
            item['source_url'] = event.source_url

        return item

    def _events_differ(self, event1: CalendarEvent, event2: CalendarEvent) -> bool:
        """
        Compare two events to determine if they differ.

        Compares all stored fields except the last_updated timestamp.
        """
        return any(
            getattr(event1, name) != getattr(event2, name)
            for name in self.COMPARED_FIELDS
        )
