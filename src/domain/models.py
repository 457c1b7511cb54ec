"""
Data models for the expiry digest domain.

Rows from the data store use snake_case column names (expiry_date,
deleted_at, username). The adapters at the bottom of this module are the
only place that knows about that shape.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Dict, Any

ITEM_CATEGORIES = ('food', 'medicine', 'cosmetics', 'other')
DELETION_REASONS = ('consumed', 'expired', 'discarded', 'other')


@dataclass(frozen=True)
class User:
    """
    Registered user, read from the profiles table.

    Attributes:
        id: Opaque user identifier
        email: Email address (send target and dedup key)
        display_name: Optional display name (profiles.username)
        created_at: Registration timestamp as stored
    """
    id: str
    email: str
    display_name: Optional[str] = None
    created_at: Optional[str] = None

    @property
    def greeting_name(self) -> str:
        """Display name, or the local part of the email when absent."""
        if self.display_name and self.display_name.strip():
            return self.display_name.strip()
        return self.email.split('@')[0]


@dataclass(frozen=True)
class Item:
    """
    Tracked perishable item, read from the products table.

    Attributes:
        id: Item identifier
        user_id: Owning user identifier
        name: Display name
        expiry_date: Expiry value as stored (parsed by domain.expiry)
        category: One of ITEM_CATEGORIES (default "other")
        created_at: Creation timestamp as stored
        notes: Free-form notes
        image: Image URL
        storage_instructions: Food storage instructions
        opened: Whether the item has been opened (default False)
        opened_date: When the item was opened
        dosage: Medicine dosage
        prescription_details: Medicine prescription details
        frequency: Medicine frequency
        open_after_use: Cosmetics period-after-opening
        deletion_reason: One of DELETION_REASONS when soft-deleted
        deleted_at: Soft-delete marker (None for active items)
    """
    id: str
    user_id: str
    name: str
    expiry_date: Optional[str] = None
    category: str = 'other'
    created_at: Optional[str] = None
    notes: Optional[str] = None
    image: Optional[str] = None
    storage_instructions: Optional[str] = None
    opened: bool = False
    opened_date: Optional[str] = None
    dosage: Optional[str] = None
    prescription_details: Optional[str] = None
    frequency: Optional[str] = None
    open_after_use: Optional[str] = None
    deletion_reason: Optional[str] = None
    deleted_at: Optional[str] = None

    @property
    def is_deleted(self) -> bool:
        """Check if the item carries a soft-delete marker."""
        return self.deleted_at is not None


@dataclass(frozen=True)
class ExpiringItem:
    """An item of a user that expires on the reference date."""
    user: User
    item: Item
    expiry_date: date


@dataclass
class SendResult:
    """
    Outcome of one outbound email.

    Attributes:
        success: Whether the provider accepted the message
        message_id: Provider message id (if accepted)
        error_message: Provider-specific failure reason (if rejected)
    """
    success: bool
    message_id: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class UserDigestResult:
    """
    Result of processing one user during a run.

    Attributes:
        email: User email address (key in the run details)
        total_items: Number of active items fetched
        expiring_items: Names of items expiring tomorrow
        email_sent: Whether a digest was sent
        error_message: Error description (item fetch or send failure)
    """
    email: str
    total_items: int = 0
    expiring_items: List[str] = field(default_factory=list)
    email_sent: bool = False
    error_message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error_message is not None

    def to_detail(self) -> Dict[str, Any]:
        """Detail entry for the run response body."""
        if self.failed and not self.expiring_items:
            return {'error': self.error_message}

        detail = {
            'totalProducts': self.total_items,
            'expiringItems': len(self.expiring_items),
            'expiringProducts': list(self.expiring_items),
            'emailSent': self.email_sent,
        }
        if self.error_message:
            detail['error'] = self.error_message
        return detail

    def __repr__(self) -> str:
        """Human-readable representation for logging."""
        if self.failed:
            return f"UserDigestResult(email={self.email}, error={self.error_message})"
        return (
            f"UserDigestResult(email={self.email}, expiring={len(self.expiring_items)}, "
            f"sent={self.email_sent})"
        )


@dataclass
class RunSummary:
    """
    Aggregate result of one job run. Never persisted.

    Attributes:
        sent: Number of digest emails sent
        failures: Number of per-user failures (item fetch or send)
        details: Per-user detail keyed by email address
    """
    sent: int = 0
    failures: int = 0
    details: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def message(self) -> str:
        return f"Reminders sent: {self.sent}, errors: {self.failures}"

    def record(self, result: UserDigestResult) -> None:
        """Fold one user's result into the counters."""
        if result.email_sent:
            self.sent += 1
        if result.failed:
            self.failures += 1
        self.details[result.email] = result.to_detail()

    def to_response_body(self) -> Dict[str, Any]:
        return {'message': self.message, 'details': self.details}


# ============================================================================
# Row adapters
# ============================================================================

def _optional_str(row: Dict[str, Any], key: str) -> Optional[str]:
    value = row.get(key)
    if value is None:
        return None
    return str(value)


def _optional_text(row: Dict[str, Any], key: str) -> Optional[str]:
    """Text column value; ValueError when the column holds a non-string."""
    value = row.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"Column '{key}' must be a string, got {type(value).__name__}")
    return value


def _check_row(row: Any, table: str) -> None:
    if not isinstance(row, dict):
        raise ValueError(f"{table} row must be an object, got {type(row).__name__}")


def user_from_row(row: Dict[str, Any]) -> User:
    """
    Map a profiles row to a User.

    Args:
        row: Row dict with id, email and optional username, created_at

    Returns:
        User: Mapped user (display_name None when username is blank)

    Raises:
        ValueError: If id or email is missing or a column has the wrong type
    """
    _check_row(row, 'Profile')
    user_id = row.get('id')
    email = (_optional_text(row, 'email') or '').strip()
    if not user_id:
        raise ValueError("Profile row is missing 'id'")
    if not email:
        raise ValueError(f"Profile row {user_id} is missing 'email'")

    username = _optional_text(row, 'username')
    return User(
        id=str(user_id),
        email=email,
        display_name=username.strip() if username and username.strip() else None,
        created_at=_optional_str(row, 'created_at'),
    )


def item_from_row(row: Dict[str, Any]) -> Item:
    """
    Map a products row to an Item.

    Unknown categories fall back to "other"; unknown deletion reasons to
    "other" when set. Missing optional columns become None (opened: False).

    Args:
        row: Row dict as returned by PostgREST

    Returns:
        Item: Mapped item

    Raises:
        ValueError: If id or name is missing or a column has the wrong type
    """
    _check_row(row, 'Product')
    item_id = row.get('id')
    name = _optional_text(row, 'name')
    if not item_id:
        raise ValueError("Product row is missing 'id'")
    if not name:
        raise ValueError(f"Product row {item_id} is missing 'name'")

    category = _optional_text(row, 'category') or 'other'
    if category not in ITEM_CATEGORIES:
        category = 'other'

    deletion_reason = _optional_text(row, 'deletion_reason')
    if deletion_reason is not None and deletion_reason not in DELETION_REASONS:
        deletion_reason = 'other'

    return Item(
        id=str(item_id),
        user_id=str(row.get('user_id') or ''),
        name=str(name),
        expiry_date=_optional_str(row, 'expiry_date'),
        category=category,
        created_at=_optional_str(row, 'created_at'),
        notes=_optional_text(row, 'notes'),
        image=_optional_text(row, 'image'),
        storage_instructions=_optional_text(row, 'storage_instructions'),
        opened=bool(row.get('opened') or False),
        opened_date=_optional_str(row, 'opened_date'),
        dosage=_optional_text(row, 'dosage'),
        prescription_details=_optional_text(row, 'prescription_details'),
        frequency=_optional_text(row, 'frequency'),
        open_after_use=_optional_text(row, 'open_after_use'),
        deletion_reason=deletion_reason,
        deleted_at=_optional_str(row, 'deleted_at'),
    )
