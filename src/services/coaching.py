"""Wiring of the coaching engine components.

One ``CoachingServices`` instance is built per application and stored on
``app.state``; route handlers reach it through ``src.dependencies``.
"""

from __future__ import annotations

from dataclasses import dataclass

from src.coaching.adapters import FitrockrClient, HttpNotificationBackend, OpenAIChatClient
from src.coaching.aggregator import HealthAggregator
from src.coaching.base import HealthProvider
from src.coaching.identity import IdentityResolver, PostgresIdentityStore
from src.coaching.notify import NotificationDispatcher
from src.coaching.pipeline import CoachingPipeline
from src.coaching.sync.audit import AuditLog
from src.coaching.sync.scheduler import JobScheduler
from src.coaching.synthesizer import MessageSynthesizer
from src.config import Settings, get_settings


@dataclass
class CoachingServices:
    provider: HealthProvider
    audit_log: AuditLog
    dispatcher: NotificationDispatcher
    scheduler: JobScheduler
    pipeline: CoachingPipeline


def build_services(settings: Settings | None = None) -> CoachingServices:
    s = settings or get_settings()

    provider = FitrockrClient.from_settings(s)
    audit_log = AuditLog(capacity=s.audit_log_capacity)
    dispatcher = NotificationDispatcher(
        HttpNotificationBackend.from_settings(s),
        credentials={"email": s.notify_auth_email, "password": s.notify_auth_password},
    )
    scheduler = JobScheduler(
        dispatcher,
        audit_log,
        timezone=s.scheduler_timezone,
        query_limit=s.audit_query_limit,
    )
    synthesizer = MessageSynthesizer(
        OpenAIChatClient.from_settings(s),
        language=s.message_language,
        default_message=s.default_message,
    )
    pipeline = CoachingPipeline(
        provider=provider,
        resolver=IdentityResolver(PostgresIdentityStore()),
        aggregator=HealthAggregator(provider),
        synthesizer=synthesizer,
        dispatcher=dispatcher,
        audit_log=audit_log,
        lookback_days=s.manual_lookback_days,
    )
    return CoachingServices(
        provider=provider,
        audit_log=audit_log,
        dispatcher=dispatcher,
        scheduler=scheduler,
        pipeline=pipeline,
    )
