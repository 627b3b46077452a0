"""Unit tests for DynamoDB date store."""
import boto3
import pytest
from botocore.exceptions import ClientError
from moto import mock_aws

from reconciler.engine import EventReconciler
from reconciler.models import STATUS_ACTIVE, STATUS_CANCELLED, DateRecord, EventInput, StoredEvent
from storage.dynamodb_store import DynamoDBDateStore


@pytest.fixture
def aws_env(monkeypatch):
    """Point boto3 at a fake region and credentials."""
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')


@pytest.fixture
def dynamodb_table(aws_env):
    """Create a mock DynamoDB table for testing."""
    with mock_aws():
        dynamodb = boto3.resource('dynamodb', region_name='us-east-1')
        
        table = dynamodb.create_table(
            TableName='test-arena-events',
            KeySchema=[
                {'AttributeName': 'date', 'KeyType': 'HASH'}
            ],
            AttributeDefinitions=[
                {'AttributeName': 'date', 'AttributeType': 'S'}
            ],
            BillingMode='PAY_PER_REQUEST'
        )
        
        yield table


@pytest.fixture
def date_store(dynamodb_table):
    """Create DynamoDBDateStore instance with mock table."""
    return DynamoDBDateStore('test-arena-events')


@pytest.fixture
def sample_record():
    """Create a sample DateRecord for testing."""
    return DateRecord(
        date='2026-03-20',
        updated_at='2026-03-10T12:30:00',
        events=[
            StoredEvent(
                id='event-1',
                title='Test Event',
                time='18:00',
                url='https://example.com/event/event-1/'
            ),
            StoredEvent(
                id='event-2',
                title='Cancelled Event',
                time='20:00',
                url='https://example.com/event/event-2/',
                status=STATUS_CANCELLED,
                cancelled_at='2026-03-09T06:00:00'
            ),
        ]
    )


def test_list_keys_empty_table(date_store):
    """Test list_keys returns nothing for an empty table."""
    assert date_store.list_keys() == []


def test_load_missing(date_store):
    """Test load returns None for an unknown date."""
    assert date_store.load('2026-03-20') is None


def test_save_and_load(date_store, sample_record):
    """Test that a saved record loads back unchanged."""
    date_store.save('2026-03-20', sample_record)
    
    assert date_store.load('2026-03-20') == sample_record


def test_save_omits_absent_cancelled_at(date_store, dynamodb_table, sample_record):
    """Test that active events are stored without a cancelled_at attribute."""
    date_store.save('2026-03-20', sample_record)
    
    item = dynamodb_table.get_item(Key={'date': '2026-03-20'})['Item']
    assert 'cancelled_at' not in item['events'][0]
    assert item['events'][1]['cancelled_at'] == '2026-03-09T06:00:00'


def test_list_keys_sorted(date_store, sample_record):
    """Test that list_keys returns every date in order."""
    for date in ['2026-05-01', '2026-03-20', '2026-04-11']:
        date_store.save(date, sample_record)
    
    assert date_store.list_keys() == ['2026-03-20', '2026-04-11', '2026-05-01']


def test_list_keys_ignores_foreign_items(date_store, dynamodb_table, sample_record):
    """Test that items whose key is not a date are skipped."""
    date_store.save('2026-03-20', sample_record)
    dynamodb_table.put_item(Item={'date': 'meta'})
    
    assert date_store.list_keys() == ['2026-03-20']


def test_malformed_item_loads_as_none(date_store, dynamodb_table):
    """Test that a malformed item is treated as empty."""
    dynamodb_table.put_item(Item={
        'date': '2026-03-20',
        'updated_at': '2026-03-10T12:30:00',
        'events': [{'id': 'event-1'}]
    })
    
    assert date_store.load('2026-03-20') is None


def test_save_to_missing_table_raises(aws_env):
    """Test that a write failure is propagated."""
    with mock_aws():
        date_store = DynamoDBDateStore('no-such-table')
        
        with pytest.raises(ClientError):
            date_store.save('2026-03-20', DateRecord(date='2026-03-20', updated_at='x'))


def test_reconcile_against_dynamodb(date_store):
    """Test a full reconcile cycle backed by DynamoDB."""
    reconciler = EventReconciler(date_store)
    event = EventInput(
        id='event-1',
        title='Test Event',
        date='2099-01-15',
        time='18:00',
        url='https://example.com/event/event-1/'
    )
    
    reconciler.reconcile([event], ['2099-01'])
    reconciler.reconcile([], ['2099-01'])
    
    events = reconciler.get_all_events()
    assert len(events) == 1
    assert events[0].status == STATUS_CANCELLED
    assert events[0].cancelled_at is not None
    
    reconciler.reconcile([event], ['2099-01'])
    
    events = reconciler.get_all_events()
    assert events[0].status == STATUS_ACTIVE
    assert events[0].cancelled_at is None


def test_list_keys_ignores_impossible_dates(date_store, sample_record):
    """Test that a date-shaped key naming no real date is skipped."""
    date_store.save('2026-03-20', sample_record)
    date_store.save('2026-13-45', sample_record)
    
    assert date_store.list_keys() == ['2026-03-20']
