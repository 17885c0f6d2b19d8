"""Shared fixtures for the test suite."""
import boto3
import pytest
from moto import mock_aws

from processor.models import CalendarEvent


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Fake AWS credentials so boto3 never reaches a real account."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def make_event():
    """Factory for CalendarEvent objects with sensible defaults."""
    counter = {'n': 0}

    def _make(**overrides):
        counter['n'] += 1
        fields = {
            'event_id': f"event-{counter['n']}",
            'title': f"Event {counter['n']}",
            'start_date': '2025-10-18',
            'start_time': '19:00:00',
            'end_date': '2025-10-18',
            'end_time': '22:00:00',
        }
        fields.update(overrides)
        return CalendarEvent(**fields)

    return _make


def create_events_table(dynamodb, name='test-calendar-events'):
    return dynamodb.create_table(
        TableName=name,
        KeySchema=[{'AttributeName': 'event_id', 'KeyType': 'HASH'}],
        AttributeDefinitions=[{'AttributeName': 'event_id', 'AttributeType': 'S'}],
        BillingMode='PAY_PER_REQUEST',
    )


def create_terms_table(dynamodb, name='test-calendar-terms'):
    return dynamodb.create_table(
        TableName=name,
        KeySchema=[
            {'AttributeName': 'taxonomy', 'KeyType': 'HASH'},
            {'AttributeName': 'term_id', 'KeyType': 'RANGE'},
        ],
        AttributeDefinitions=[
            {'AttributeName': 'taxonomy', 'AttributeType': 'S'},
            {'AttributeName': 'term_id', 'AttributeType': 'N'},
        ],
        BillingMode='PAY_PER_REQUEST',
    )


def create_cache_table(dynamodb, name='test-calendar-cache'):
    return dynamodb.create_table(
        TableName=name,
        KeySchema=[{'AttributeName': 'cache_key', 'KeyType': 'HASH'}],
        AttributeDefinitions=[{'AttributeName': 'cache_key', 'AttributeType': 'S'}],
        BillingMode='PAY_PER_REQUEST',
    )


@pytest.fixture
def dynamodb_tables():
    """Mocked events, terms and cache tables."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')
        yield {
            'events': create_events_table(dynamodb),
            'terms': create_terms_table(dynamodb),
            'cache': create_cache_table(dynamodb),
        }
