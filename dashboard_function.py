"""Headless entry point for the event review dashboard."""
import argparse
import json
import logging
import os
import sys
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, TextIO

from api_client.events_api import EventsApiClient
from viewmodel.event_view_model import EventViewModel
from viewmodel.formatting import format_date, format_time
from viewmodel.models import StatusFilter
from viewmodel.notifications import Notifier


_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


class JsonFormatter(logging.Formatter):
    """One JSON object per record, including any ``extra=`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage()
        }
        entry.update(
            (key, value) for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith('_')
        )
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(log_level: str = 'INFO', stream: Optional[TextIO] = None) -> logging.Handler:
    """
    Send all log output through a single JSON handler.

    Args:
        log_level: Logging level name; unknown names fall back to INFO
        stream: Output stream (default: stderr)

    Returns:
        The installed handler
    """
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    return handler


@dataclass
class DashboardConfig:
    """Settings read from the environment."""
    api_url: str = 'http://localhost:8080'
    api_token: Optional[str] = None
    log_level: str = 'INFO'
    timeout_seconds: int = 30
    status_filter: StatusFilter = StatusFilter.ALL
    hide_single_events: bool = False


def load_config(environ: Optional[Mapping[str, str]] = None) -> DashboardConfig:
    """
    Read dashboard settings from environment variables.

    Raises:
        ValueError: If TIMEOUT_SECONDS or STATUS_FILTER is invalid
    """
    if environ is None:
        environ = os.environ

    return DashboardConfig(
        api_url=environ.get('EVENTS_API_URL', 'http://localhost:8080'),
        api_token=environ.get('EVENTS_API_TOKEN') or None,
        log_level=environ.get('LOG_LEVEL', 'INFO'),
        timeout_seconds=int(environ.get('TIMEOUT_SECONDS', '30')),
        status_filter=StatusFilter.parse(environ.get('STATUS_FILTER')),
        hide_single_events=environ.get('HIDE_SINGLE_EVENTS', '').strip().lower() in ('1', 'true', 'yes')
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Review calendar-sourced events")
    parser.add_argument(
        '--status-filter',
        choices=[status.value for status in StatusFilter],
        help="Only show approved or rejected events"
    )
    parser.add_argument(
        '--hide-single-events',
        action='store_true',
        default=None,
        help="Hide dates that have a single event"
    )
    action = parser.add_mutually_exclusive_group()
    action.add_argument('--approve', metavar='UID', help="Approve an event")
    action.add_argument('--reject', metavar='UID', help="Reject an event")
    parser.add_argument(
        '--recurrence-id',
        default='',
        help="Occurrence of a recurring event to approve or reject"
    )
    return parser


def _serialize_groups(view_model: EventViewModel) -> List[Dict[str, Any]]:
    today = view_model.today
    return [
        {
            'date': group.date,
            'heading': format_date(group.date, today),
            'count': len(group),
            'events': [
                {
                    'uid': event.uid,
                    'recurrence_id': event.recurrence_id,
                    'summary': event.summary,
                    'time': format_time(event.start_time),
                    'organization': event.organization,
                    'type': event.type,
                    'rejected': event.rejected,
                    'location': event.display_location,
                    'overlay': {name: record.to_dict() for name, record in event.overlay.items()}
                }
                for event in group.events
            ]
        }
        for group in view_model.grouped_events
    ]


def run_dashboard(
    argv: Optional[List[str]] = None,
    environ: Optional[Mapping[str, str]] = None
) -> Dict[str, Any]:
    """
    Load events, apply filters and optionally review one event.

    Args:
        argv: Command-line arguments (default: sys.argv[1:])
        environ: Environment mapping (default: os.environ)

    Returns:
        Response dict with statusCode and a JSON body
    """
    config = load_config(environ)
    args = build_parser().parse_args(argv)

    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)

    start_time = time.time()
    logger.info(
        "Dashboard run started",
        extra={
            'api_url': config.api_url,
            'timeout_seconds': config.timeout_seconds
        }
    )

    client = EventsApiClient(
        config.api_url,
        timeout=config.timeout_seconds,
        token=config.api_token
    )
    notifier = Notifier()
    view_model = EventViewModel(client, notifier=notifier)
    view_model.status_filter = (
        StatusFilter.parse(args.status_filter) if args.status_filter else config.status_filter
    )
    view_model.hide_single_events = (
        args.hide_single_events if args.hide_single_events is not None else config.hide_single_events
    )

    if not view_model.load():
        duration = time.time() - start_time
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Failed to load events',
                'notifications': [n.message for n in notifier.history],
                'duration_seconds': round(duration, 2)
            })
        }
    view_model.load_stats()

    review_failed = False
    if args.approve or args.reject:
        review_failed = not view_model.update_event_status(
            args.approve or args.reject,
            args.recurrence_id,
            approved=bool(args.approve)
        )

    duration = time.time() - start_time
    logger.info(
        "Dashboard run completed",
        extra={
            'duration_seconds': round(duration, 2),
            'total_events': view_model.total_events,
            'visible_events': view_model.visible_events,
            'review_failed': review_failed
        }
    )

    return {
        'statusCode': 500 if review_failed else 200,
        'body': json.dumps({
            'total_events': view_model.total_events,
            'visible_events': view_model.visible_events,
            'review_failed': review_failed,
            'stats': view_model.stats,
            'groups': _serialize_groups(view_model),
            'notifications': [
                {'message': n.message, 'level': n.level} for n in notifier.history
            ],
            'duration_seconds': round(duration, 2)
        })
    }


def main() -> int:
    response = run_dashboard()
    print(json.dumps(json.loads(response['body']), indent=2))
    return 0 if response['statusCode'] == 200 else 1


if __name__ == '__main__':
    sys.exit(main())
