"""
Command-line worker for deferred jobs.

Drains the job table outside the web process and gives operators the same
replay and retry tools as the admin routes.

Usage:
    python -m pushtrello.worker                 # poll until interrupted
    python -m pushtrello.worker --once          # drain one batch and exit
    python -m pushtrello.worker --replay 42     # re-run stored payload 42
    python -m pushtrello.worker --retry-job 7   # return failed job 7 to pending
    python -m pushtrello.worker --stats         # job counts per status
"""

import argparse
import json
import sys
import time

from pushtrello.container import get_services
from pushtrello.errors import PayloadNotFound
from pushtrello.logging_config import get_logger
from pushtrello.services.dispatcher import JobNotFound, JobNotRetryable

logger = get_logger(__name__)


def build_parser():
    parser = argparse.ArgumentParser(description="Process pushtrello deferred jobs")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--once", action="store_true",
                       help="Process one batch of due jobs and exit")
    group.add_argument("--replay", metavar="PAYLOAD_ID",
                       help="Queue a stored payload for processing again")
    group.add_argument("--retry-job", metavar="JOB_ID", type=int,
                       help="Return a failed job to pending")
    group.add_argument("--stats", action="store_true",
                       help="Print job counts per status as JSON")
    parser.add_argument("--batch-size", type=int, default=None,
                        help="Jobs per batch (default: DISPATCH_BATCH_SIZE)")
    return parser


def run_loop(services, batch_size, poll_seconds):
    logger.info("Worker started", batch_size=batch_size, poll_seconds=poll_seconds)
    try:
        while True:
            processed = services.dispatcher.process_pending(limit=batch_size)
            if not processed:
                time.sleep(poll_seconds)
    except KeyboardInterrupt:
        logger.info("Worker stopped")


def main(argv=None, app=None):
    args = build_parser().parse_args(argv)

    if app is None:
        from pushtrello import create_app
        app = create_app()

    with app.app_context():
        services = get_services(app)
        batch_size = args.batch_size or services.settings.dispatch_batch_size

        if args.stats:
            print(json.dumps(services.dispatcher.stats(), indent=2))
            return 0

        if args.replay is not None:
            try:
                job_id = services.batch_processor.replay(args.replay)
            except PayloadNotFound as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1
            print(f"Payload {args.replay} queued as job {job_id}")
            return 0

        if args.retry_job is not None:
            try:
                services.dispatcher.retry(args.retry_job)
            except (JobNotFound, JobNotRetryable) as e:
                print(f"Error: {e}", file=sys.stderr)
                return 1
            print(f"Job {args.retry_job} returned to pending")
            return 0

        if args.once:
            processed = services.dispatcher.process_pending(limit=batch_size)
            print(f"Processed {processed} job(s)")
            return 0

        run_loop(services, batch_size, services.settings.dispatch_poll_seconds)
        return 0


if __name__ == "__main__":
    sys.exit(main())
