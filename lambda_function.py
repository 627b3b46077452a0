"""AWS Lambda handler for Arena Events Calendar Sync."""
import json
import logging
import os
import sys
import time
from typing import Dict, Any

from scraper.arena_calendar import ArenaCalendarScraper
from reconciler.engine import EventReconciler
from reconciler.models import STATUS_CANCELLED
from storage.base import DateRecordStore
from storage.dynamodb_store import DynamoDBDateStore
from storage.json_file_store import JsonFileDateStore


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""
    
    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }
        
        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)
        
        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.
    
    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()
    
    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)
    
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def build_store(backend: str) -> DateRecordStore:
    """
    Create the date record store selected by configuration.
    
    Args:
        backend: 'dynamodb' or 'file'
        
    Raises:
        ValueError: If the backend is unknown
    """
    backend = backend.lower()
    if backend == 'dynamodb':
        return DynamoDBDateStore(table_name=os.environ.get('TABLE_NAME', 'arena-events'))
    if backend == 'file':
        return JsonFileDateStore(data_dir=os.environ.get('DATA_DIR', 'data/events'))
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend!r}")


def _error_response(message: str, error: Exception, start_time: float, **extra) -> Dict[str, Any]:
    body = {
        'message': message,
        'error': str(error),
        'error_type': type(error).__name__,
    }
    body.update(extra)
    body['duration_seconds'] = round(time.time() - start_time, 2)
    return {'statusCode': 500, 'body': json.dumps(body)}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for Arena Events Calendar Sync.
    
    Args:
        event: EventBridge event payload
        context: Lambda context object
        
    Returns:
        Response dict with statusCode and summary statistics
    """
    # Read configuration from environment variables
    storage_backend = os.environ.get('STORAGE_BACKEND', 'dynamodb')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    months_ahead = int(os.environ.get('MONTHS_AHEAD', '12'))
    timeout_seconds = int(os.environ.get('TIMEOUT_SECONDS', '30'))
    
    setup_logging(log_level)
    logger = logging.getLogger(__name__)
    
    start_time = time.time()
    logger.info(
        "Lambda execution started",
        extra={
            'storage_backend': storage_backend,
            'months_ahead': months_ahead,
            'timeout_seconds': timeout_seconds
        }
    )
    
    try:
        scraper = ArenaCalendarScraper(timeout=timeout_seconds)
        reconciler = EventReconciler(build_store(storage_backend))
        
        try:
            logger.info("Fetching events from calendar")
            scrape_result = scraper.fetch_events(months_ahead=months_ahead)
            logger.info(
                f"Fetched {len(scrape_result.events)} events from "
                f"{len(scrape_result.fetched_months)} months"
            )
        except Exception as e:
            logger.error(
                f"Failed to fetch events from calendar: {str(e)}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return _error_response('Failed to fetch calendar events', e, start_time)
        
        # An empty scrape almost always means the site layout changed
        if not scrape_result.events:
            logger.error("No events found, check whether the website structure has changed")
            duration = time.time() - start_time
            return {
                'statusCode': 500,
                'body': json.dumps({
                    'message': 'No events found',
                    'fetched_months': scrape_result.fetched_months,
                    'duration_seconds': round(duration, 2)
                })
            }
        
        try:
            logger.info("Reconciling events with stored date records")
            sync_result = reconciler.reconcile(
                scrape_result.events,
                scrape_result.fetched_months
            )
        except Exception as e:
            # Dates written before the failure stay valid on their own
            logger.error(
                f"Error during reconcile: {str(e)}",
                extra={'error_type': type(e).__name__},
                exc_info=True
            )
            return _error_response(
                'Failed to reconcile events',
                e,
                start_time,
                note='Previously stored date records remain'
            )
        
        all_events = reconciler.get_all_events()
        cancelled_total = sum(1 for e in all_events if e.status == STATUS_CANCELLED)
        
        duration = time.time() - start_time
        
        logger.info(
            "Lambda execution completed successfully",
            extra={
                'duration_seconds': round(duration, 2),
                'events_added': sync_result.added,
                'events_updated': sync_result.updated,
                'events_reactivated': sync_result.reactivated,
                'events_cancelled': sync_result.cancelled,
                'dates_written': sync_result.dates_written
            }
        )
        
        return {
            'statusCode': 200,
            'body': json.dumps({
                'message': 'Sync completed successfully',
                'statistics': {
                    'events_scraped': len(scrape_result.events),
                    'months_fetched': len(scrape_result.fetched_months),
                    'events_added': sync_result.added,
                    'events_updated': sync_result.updated,
                    'events_reactivated': sync_result.reactivated,
                    'events_cancelled': sync_result.cancelled,
                    'dates_written': sync_result.dates_written,
                    'calendar_events_total': len(all_events),
                    'calendar_events_active': len(all_events) - cancelled_total,
                    'calendar_events_cancelled': cancelled_total,
                    'duration_seconds': round(duration, 2)
                }
            })
        }
        
    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _error_response('Sync failed', e, start_time)


if __name__ == '__main__':
    response = lambda_handler({}, None)
    print(response['body'])
    sys.exit(0 if response['statusCode'] == 200 else 1)
