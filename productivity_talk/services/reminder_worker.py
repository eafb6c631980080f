"""Background worker that delivers due reminders by email."""

from __future__ import annotations

import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage
from typing import Awaitable, Callable
from urllib.parse import unquote, urlparse

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from productivity_talk.core.config import settings
from productivity_talk.db.models import Reminder, Video
from productivity_talk.db.session import SessionLocal
from productivity_talk.services.reminders import STATUS_DELIVERED, STATUS_FAILED, STATUS_PENDING
from productivity_talk.services.template_renderer import render_reminder_email

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EmailPayload:
    """Represents an outbound email message."""

    to: str
    subject: str
    body: str


Sender = Callable[[EmailPayload], Awaitable[None]]


async def logging_sender(payload: EmailPayload) -> None:
    """Fallback sender that only logs the reminder."""

    logger.info("Delivering reminder (log only)", extra={"to": payload.to, "subject": payload.subject})


def _build_smtp_sender(url: str, from_address: str) -> Sender:
    parsed = urlparse(url)
    if not parsed.hostname:
        raise ValueError("SMTP URL missing hostname")

    scheme = (parsed.scheme or "smtp").lower()
    host = parsed.hostname
    port = parsed.port or (465 if scheme == "smtps" else 587)
    username = unquote(parsed.username) if parsed.username else None
    password = unquote(parsed.password) if parsed.password else None
    use_ssl = scheme == "smtps"

    def _send(payload: EmailPayload) -> None:
        message = EmailMessage()
        message["From"] = from_address
        message["To"] = payload.to
        message["Subject"] = payload.subject
        message.set_content(payload.body)

        context = ssl.create_default_context()
        if use_ssl:
            with smtplib.SMTP_SSL(host, port, context=context) as smtp:
                if username:
                    smtp.login(username, password or "")
                smtp.send_message(message)
            return

        with smtplib.SMTP(host, port) as smtp:
            smtp.ehlo()
            smtp.starttls(context=context)
            smtp.ehlo()
            if username:
                smtp.login(username, password or "")
            smtp.send_message(message)

    async def _async_send(payload: EmailPayload) -> None:
        await asyncio.to_thread(_send, payload)

    return _async_send


def _compute_backoff(base_minutes: int, retry_count: int) -> timedelta:
    base_minutes = max(base_minutes, 1)
    exponent = max(retry_count - 1, 0)
    return timedelta(minutes=base_minutes * (2**exponent))


def _apply_delivery_success(reminder: Reminder) -> None:
    reminder.status = STATUS_DELIVERED
    reminder.retry_count = 0
    reminder.next_retry_at = None
    reminder.last_error = None
    reminder.delivered_at = datetime.now(timezone.utc)


def _apply_delivery_failure(reminder: Reminder, error: Exception) -> None:
    reminder.retry_count = (reminder.retry_count or 0) + 1
    reminder.last_error = str(error)

    if reminder.retry_count >= settings.notify_max_retry:
        reminder.status = STATUS_FAILED
        reminder.next_retry_at = None
        return

    reminder.status = STATUS_PENDING
    delay = _compute_backoff(settings.notify_backoff_minutes, reminder.retry_count)
    reminder.next_retry_at = datetime.now(timezone.utc) + delay


async def process_due_reminders(
    session: AsyncSession,
    *,
    batch_size: int = 20,
    sender: Sender | None = None,
    now: datetime | None = None,
) -> list[Reminder]:
    """Send every pending reminder whose fire time has passed."""

    now = now or datetime.now(timezone.utc)
    stmt = (
        select(Reminder)
        .options(selectinload(Reminder.user))
        .where(
            Reminder.status == STATUS_PENDING,
            Reminder.fire_at <= now,
            or_(Reminder.next_retry_at.is_(None), Reminder.next_retry_at <= now),
        )
        .order_by(Reminder.fire_at, Reminder.id)
        .limit(batch_size)
    )
    reminders = list((await session.execute(stmt)).scalars())

    active_sender = sender or logging_sender
    processed: list[Reminder] = []

    for reminder in reminders:
        if reminder.user is None or not reminder.user.email:
            _apply_delivery_failure(reminder, RuntimeError("Recipient email missing"))
            processed.append(reminder)
            continue

        video = await session.get(Video, reminder.video_id) if reminder.video_id else None
        rendered = render_reminder_email(reminder=reminder, video=video)
        payload = EmailPayload(to=reminder.user.email, subject=rendered.subject, body=rendered.body)

        try:
            await active_sender(payload)
            _apply_delivery_success(reminder)
        except Exception as exc:
            logger.exception("Failed to deliver reminder", extra={"reminder_id": reminder.id})
            _apply_delivery_failure(reminder, exc)

        processed.append(reminder)

    await session.flush()
    return processed


class ReminderWorker:
    """Background loop that dispatches due reminders."""

    def __init__(self) -> None:
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()
        self._sender: Sender | None = None

    def configure_sender(self) -> None:
        if settings.email_smtp_url and settings.email_from:
            try:
                self._sender = _build_smtp_sender(settings.email_smtp_url, settings.email_from)
                logger.info(
                    "Reminder worker configured SMTP sender",
                    extra={"host": urlparse(settings.email_smtp_url).hostname},
                )
                return
            except ValueError:
                logger.exception("Failed to configure SMTP sender")
        else:
            logger.info("No SMTP sender configured; reminders are only logged")
        self._sender = logging_sender

    async def _run(self) -> None:
        idle_sleep = 30
        active_sleep = 5

        while not self._stop_event.is_set():
            try:
                async with SessionLocal() as session:
                    reminders = await process_due_reminders(session, sender=self._sender)
                    if reminders:
                        await session.commit()
                    else:
                        await session.rollback()
            except Exception:  # pragma: no cover
                logger.exception("Reminder worker iteration failed")
                await asyncio.sleep(idle_sleep)
                continue

            await asyncio.sleep(active_sleep if reminders else idle_sleep)

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:  # pragma: no cover - event loop behaviour
            pass
        finally:
            self._task = None


reminder_worker = ReminderWorker()


def start_reminder_worker() -> None:
    """Start the reminder worker."""

    reminder_worker.configure_sender()
    reminder_worker.start()


async def stop_reminder_worker() -> None:
    """Stop the reminder worker."""

    await reminder_worker.stop()
