from dataclasses import dataclass

from pushtrello.commits.batch import ACTION_CARD, PROCESS_PAYLOAD, BatchProcessor
from pushtrello.commits.executor import ActionExecutor
from pushtrello.commits.interpreter import MessageInterpreter
from pushtrello.commits.ledger import ActionLedger
from pushtrello.commits.markup import parse_message
from pushtrello.config import Settings
from pushtrello.github.store import PayloadStore
from pushtrello.services.dispatcher import Dispatcher
from pushtrello.services.log_digest import LogDigestService
from pushtrello.services.notifier import EmailNotifier
from pushtrello.services.system_log_service import SystemLogService
from pushtrello.trello.api import TrelloAPI

EXTENSION_KEY = "pushtrello"


@dataclass
class Services:
    """Components wired once per app from the frozen settings."""
    settings: Settings
    store: PayloadStore
    dispatcher: Dispatcher
    interpreter: MessageInterpreter
    batch_processor: BatchProcessor
    executor: ActionExecutor
    trello: TrelloAPI
    digest: LogDigestService


def build_services(settings: Settings, trello=None, parser=parse_message, notifier=None) -> Services:
    """
    Wire every component and register the job handlers.

    ``trello``, ``parser`` and ``notifier`` can be replaced (tests pass mocks).
    """
    if trello is None:
        trello = TrelloAPI(settings.trello_api_key, settings.trello_token, timeout=settings.trello_timeout_seconds)
    if notifier is None:
        notifier = EmailNotifier(
            settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            sender=settings.smtp_from,
        )

    store = PayloadStore()
    dispatcher = Dispatcher(
        max_retries=settings.job_max_retries,
        lease_seconds=settings.job_lease_seconds,
        eager=settings.dispatch_eager,
    )
    interpreter = MessageInterpreter(settings.max_comment_size, parser=parser)
    batch_processor = BatchProcessor(store, interpreter, dispatcher)
    executor = ActionExecutor(trello, ActionLedger(), system_log=SystemLogService)

    dispatcher.register(PROCESS_PAYLOAD, batch_processor.run_job)
    dispatcher.register(ACTION_CARD, executor.run_job)

    digest = LogDigestService(notifier, settings.admin_emails, window_hours=settings.log_digest_window_hours)

    return Services(
        settings=settings,
        store=store,
        dispatcher=dispatcher,
        interpreter=interpreter,
        batch_processor=batch_processor,
        executor=executor,
        trello=trello,
        digest=digest,
    )


def get_services(app) -> Services:
    return app.extensions[EXTENSION_KEY]
