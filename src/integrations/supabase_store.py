"""
Supabase data store access over PostgREST.

This module provides read-only access to the profiles and products tables
for the digest job.

Usage:
    from integrations.supabase_store import SupabaseStore

    store = SupabaseStore.from_config(config)
    try:
        users = store.list_users()
        items = store.list_active_items_for_user(users[0].id)
    finally:
        store.close()
"""

import logging
import time
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter

from domain.models import Item, User, item_from_row, user_from_row

logger = logging.getLogger(__name__)

PAGE_SIZE = 1000


class DataStoreError(Exception):
    """Raised when the data store cannot be read."""
    pass


class SupabaseStore:
    """
    Read-only PostgREST client for the profiles and products tables.

    Holds one requests.Session; call close() (or use as a context manager)
    when the run is over.
    """

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout: float = 10.0,
        pool_size: int = 4,
        session: Optional[requests.Session] = None
    ):
        """
        Args:
            base_url: Supabase project URL (https://<ref>.supabase.co)
            service_key: Service-role key
            timeout: Per-request timeout in seconds
            pool_size: Connection pool size (match the job's worker count)
            session: Pre-built session (tests)
        """
        if not base_url:
            raise ValueError("Supabase URL cannot be empty")
        if not service_key:
            raise ValueError("Supabase service key cannot be empty")

        self.rest_url = f"{base_url.rstrip('/')}/rest/v1"
        self.timeout = timeout

        if session is None:
            session = requests.Session()
            adapter = HTTPAdapter(pool_connections=1, pool_maxsize=max(pool_size, 1))
            session.mount('https://', adapter)
            session.mount('http://', adapter)
        session.headers.update({
            'apikey': service_key,
            'Authorization': f"Bearer {service_key}",
            'Accept': 'application/json',
        })
        self._session = session

    @classmethod
    def from_config(cls, config) -> 'SupabaseStore':
        """Build a store from AppConfig, sizing the pool to the worker count."""
        return cls(
            config.supabase_url,
            config.supabase_service_key,
            timeout=config.request_timeout,
            pool_size=config.max_workers,
        )

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> 'SupabaseStore':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _get(self, table: str, params: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        GET rows from a table.

        Raises:
            DataStoreError: On transport errors, HTTP errors or a non-list body
        """
        url = f"{self.rest_url}/{table}"
        start_time = time.time()

        try:
            response = self._session.get(url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Request to {table} failed: {e}")
            raise DataStoreError(f"Request to {table} failed: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                detail = body.get('message', response.text)
            else:
                detail = response.text
            logger.error(
                f"Query on {table} failed: status={response.status_code}, detail={detail}"
            )
            raise DataStoreError(
                f"Query on {table} failed with status {response.status_code}: {detail}"
            )

        try:
            rows = response.json()
        except ValueError as e:
            raise DataStoreError(f"Invalid JSON from {table}: {e}") from e

        if not isinstance(rows, list):
            raise DataStoreError(
                f"Unexpected response from {table}: expected a list, got {type(rows).__name__}"
            )

        logger.debug(f"Fetched {len(rows)} row(s) from {table} in {time.time() - start_time:.3f}s")
        return rows

    def list_users(self) -> List[User]:
        """
        Fetch every profile, page by page.

        Returns:
            List of User (rows without id/email are skipped)

        Raises:
            DataStoreError: If any page cannot be fetched
        """
        users = []
        offset = 0
        while True:
            rows = self._get('profiles', {
                'select': 'id,email,username,created_at',
                'order': 'id.asc',
                'limit': PAGE_SIZE,
                'offset': offset,
            })
            for row in rows:
                try:
                    users.append(user_from_row(row))
                except ValueError as e:
                    logger.warning(f"Skipping profile row: {e}")

            if len(rows) < PAGE_SIZE:
                break
            offset += PAGE_SIZE

        logger.info(f"Found {len(users)} users")
        return users

    def list_active_items_for_user(self, user_id: str) -> List[Item]:
        """
        Fetch a user's items that are not soft-deleted.

        Args:
            user_id: Owning user identifier

        Returns:
            List of Item ordered by expiry date

        Raises:
            DataStoreError: If the query fails
        """
        rows = self._get('products', {
            'select': '*',
            'user_id': f"eq.{user_id}",
            'deleted_at': 'is.null',
            'order': 'expiry_date.asc',
        })

        items = []
        for row in rows:
            try:
                items.append(item_from_row(row))
            except ValueError as e:
                logger.warning(f"Skipping product row for user {user_id}: {e}")
        return items
