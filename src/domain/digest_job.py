"""
Expiry digest job - core business logic.

For every user:
1. Fetch the user's active items from the data store
2. Keep the items expiring tomorrow (UTC calendar date)
3. Render one digest email listing all of them
4. Send it and record the outcome

Only the initial user directory fetch is fatal (UserDirectoryError).
Per-user failures are caught, logged and counted in the RunSummary.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError, as_completed
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from .expiry import is_tomorrow, reference_tomorrow, to_utc_date, utc_now
from .models import ExpiringItem, RunSummary, User, UserDigestResult
from services import email as email_service
from integrations.supabase_store import DataStoreError

logger = logging.getLogger(__name__)

DEADLINE_EXCEEDED = "Run deadline exceeded before this user was processed"


class UserDirectoryError(Exception):
    """Raised when the list of users cannot be fetched. Aborts the run."""
    pass


class ExpiryDigestJob:
    """
    Sends one "expiring tomorrow" digest per user.

    Collaborators are passed in explicitly:
    - store: list_users() and list_active_items_for_user(user_id)
    - sender: send(to, subject, html) -> SendResult
    """

    def __init__(
        self,
        store: Any,
        sender: Any,
        login_url: str,
        max_workers: int = 1,
        run_timeout: Optional[float] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Args:
            store: Data store client
            sender: Email sender
            login_url: Sign-in link placed in every digest
            max_workers: Users processed concurrently (1 = sequential)
            run_timeout: Overall deadline in seconds (None = no deadline)
            clock: Returns the current instant (injectable for tests)
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self._store = store
        self._sender = sender
        self.login_url = login_url
        self.max_workers = max_workers
        self.run_timeout = run_timeout
        self._clock = clock

    @classmethod
    def from_config(cls, config, store: Any, sender: Any) -> 'ExpiryDigestJob':
        """Build a job from AppConfig around an existing store and sender."""
        return cls(
            store,
            sender,
            login_url=email_service.build_login_url(config.app_base_url),
            max_workers=config.max_workers,
            run_timeout=config.run_timeout,
        )

    def run(self) -> RunSummary:
        """
        Run the digest for all users.

        Returns:
            RunSummary with sent/failure counts and per-user details

        Raises:
            UserDirectoryError: If the user list cannot be fetched
        """
        start_time = time.monotonic()
        now = self._clock()
        tomorrow = reference_tomorrow(now)
        logger.info(f"Reference time: {now.isoformat()}, tomorrow (UTC): {tomorrow.isoformat()}")

        try:
            users = self._store.list_users()
        except DataStoreError as e:
            logger.error(f"Error fetching users: {e}")
            raise UserDirectoryError(f"Failed to fetch users: {e}") from e

        users = self._unique_by_email(users)
        logger.info(f"Processing {len(users)} user(s) with max_workers={self.max_workers}")

        deadline = start_time + self.run_timeout if self.run_timeout is not None else None

        if self.max_workers == 1 or len(users) <= 1:
            results = self._run_sequential(users, now, deadline)
        else:
            results = self._run_concurrent(users, now, deadline)

        summary = RunSummary()
        for result in results:
            summary.record(result)

        logger.info(
            f"Run complete in {time.monotonic() - start_time:.3f}s: "
            f"sent={summary.sent}, failures={summary.failures}"
        )
        return summary

    def _unique_by_email(self, users: List[User]) -> List[User]:
        seen = set()
        unique = []
        for user in users:
            key = user.email.strip().lower()
            if key in seen:
                logger.warning(f"Skipping user {user.id}: duplicate email {user.email}")
                continue
            seen.add(key)
            unique.append(user)
        return unique

    def _deadline_passed(self, deadline: Optional[float]) -> bool:
        return deadline is not None and time.monotonic() >= deadline

    def _run_sequential(
        self,
        users: List[User],
        now: datetime,
        deadline: Optional[float]
    ) -> List[UserDigestResult]:
        results = []
        for user in users:
            if self._deadline_passed(deadline):
                logger.error(f"Deadline exceeded, skipping user {user.email}")
                results.append(UserDigestResult(email=user.email, error_message=DEADLINE_EXCEEDED))
                continue
            results.append(self.process_user(user, now, deadline))
        return results

    def _run_concurrent(
        self,
        users: List[User],
        now: datetime,
        deadline: Optional[float]
    ) -> List[UserDigestResult]:
        # Results are collected on this thread only; workers share no state.
        results: Dict[int, UserDigestResult] = {}
        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix='digest')
        futures = {
            executor.submit(self.process_user, user, now, deadline): index
            for index, user in enumerate(users)
        }
        timeout = max(deadline - time.monotonic(), 0) if deadline is not None else None

        try:
            for future in as_completed(futures, timeout=timeout):
                results[futures[future]] = future.result()
        except FutureTimeoutError:
            logger.error(
                f"Deadline exceeded with {len(users) - len(results)} user(s) unfinished"
            )
        finally:
            # Running workers finish their current step (they skip the send once
            # the deadline has passed); queued ones are cancelled.
            executor.shutdown(wait=True, cancel_futures=True)

        for future, index in futures.items():
            if index not in results and future.done() and not future.cancelled():
                results[index] = future.result()

        ordered = []
        for index, user in enumerate(users):
            if index in results:
                ordered.append(results[index])
            else:
                ordered.append(UserDigestResult(email=user.email, error_message=DEADLINE_EXCEEDED))
        return ordered

    def process_user(
        self,
        user: User,
        now: datetime,
        deadline: Optional[float] = None
    ) -> UserDigestResult:
        """
        Fetch, filter, render and send for one user.

        Never raises: any failure is returned in the result. No email is sent
        once the deadline has passed.

        Args:
            user: User to process
            now: Reference instant of the run
            deadline: time.monotonic() value after which sending is skipped

        Returns:
            UserDigestResult for this user
        """
        if self._deadline_passed(deadline):
            return UserDigestResult(email=user.email, error_message=DEADLINE_EXCEEDED)

        logger.info(f"Processing user: {user.greeting_name} <{user.email}>")

        try:
            items = self._store.list_active_items_for_user(user.id)
        except Exception as e:
            logger.error(f"Error fetching products for user {user.id}: {e}")
            return UserDigestResult(email=user.email, error_message=str(e))

        result = UserDigestResult(email=user.email, total_items=len(items))
        tomorrow = reference_tomorrow(now)
        expiring = self._select_expiring(user, items, now, tomorrow)
        result.expiring_items = [entry.item.name for entry in expiring]

        if not expiring:
            logger.info(f"No expiring items for user {user.email} ({len(items)} active)")
            return result

        logger.info(f"Found {len(expiring)} expiring item(s) for user {user.email}")

        if self._deadline_passed(deadline):
            logger.error(f"Deadline exceeded, not sending reminder to {user.email}")
            result.error_message = DEADLINE_EXCEEDED
            return result

        try:
            html = email_service.render_digest_html(user, expiring, self.login_url)
            send_result = self._sender.send(user.email, email_service.DIGEST_SUBJECT, html)
        except Exception as e:
            logger.error(f"Failed to send reminder to {user.email}: {e}", exc_info=True)
            result.error_message = str(e)
            return result

        if send_result.success:
            result.email_sent = True
            logger.info(f"Sent reminder to {user.email}")
        else:
            result.error_message = send_result.error_message or "Email provider rejected the message"
            logger.error(f"Failed to send reminder to {user.email}: {result.error_message}")

        return result

    @staticmethod
    def _select_expiring(
        user: User,
        items: list,
        now: datetime,
        tomorrow: date
    ) -> List[ExpiringItem]:
        expiring = []
        for item in items:
            if item.is_deleted:
                continue
            if is_tomorrow(item.expiry_date, now):
                expiring.append(ExpiringItem(user=user, item=item, expiry_date=tomorrow))
            else:
                logger.debug(
                    f"Product {item.name} not expiring tomorrow, "
                    f"date: {item.expiry_date} ({to_utc_date(item.expiry_date)})"
                )
        return expiring
