"""Buyer service — the only entry point that changes buyer state.

Every mutation runs the same steps in order:
    1. fetch the current row (fresh from the DB, never the session cache)
    2. authorize: only the owner may update or delete
    3. concurrency check: caller's updatedAt must equal the stored one
    4. validate the candidate record
    5. diff old vs new (updates)
    6. commit record change + history entry as one transaction,
       bumping updated_at
    7. return the fresh record

Unlike the ledger and store helpers, these functions commit (or roll back)
themselves. Conflicts are never retried here; the caller refetches.

An update whose payload changes nothing writes no history entry but still
bumps updated_at, so the token always moves on a successful write.
"""

import logging
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from leadbook.errors import Conflict, Forbidden, InternalError, NotFound, ValidationError
from leadbook.extensions import db
from leadbook.models.buyer import Buyer, as_utc, next_updated_at
from leadbook.services import buyer_store, history_service
from leadbook.services.validation import canonical_key, validate_buyer

logger = logging.getLogger(__name__)

# Never taken from a payload, whatever the caller sends.
READ_ONLY_KEYS = {
    "id",
    "ownerId",
    "owner",
    "createdAt",
    "updatedAt",
    "expectedUpdatedAt",
    "history",
}


@contextmanager
def _unit_of_work(description):
    """Commit on success; roll back and translate storage errors otherwise."""
    try:
        yield
        db.session.commit()
    except StaleDataError as e:
        db.session.rollback()
        logger.warning(f"Concurrent write detected while trying to {description}")
        raise Conflict() from e
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Failed to {description}: {e}", exc_info=True)
        raise InternalError(f"Could not {description}.") from e
    except Exception:
        db.session.rollback()
        raise


def parse_token(value):
    """Parse the caller's concurrency token into an aware UTC datetime.

    Raises:
        ValidationError: If the token is missing or not ISO-8601.
    """
    if isinstance(value, datetime):
        return as_utc(value)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError({"updatedAt": ["updatedAt is required"]})
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(
            {"updatedAt": ["updatedAt must be an ISO-8601 timestamp"]}
        ) from None
    return as_utc(parsed)


def _load_for_write(buyer_id, acting_user_id):
    buyer = buyer_store.get(buyer_id)
    if buyer is None:
        raise NotFound()
    if buyer.owner_id != acting_user_id:
        logger.warning(
            f"User {acting_user_id} tried to modify buyer {buyer_id} owned by {buyer.owner_id}"
        )
        raise Forbidden()
    return buyer


def _check_token(buyer, expected_updated_at):
    expected = parse_token(expected_updated_at)
    if as_utc(buyer.updated_at) != expected:
        logger.warning(
            f"Stale update for buyer {buyer.id}: expected {expected.isoformat()}, "
            f"stored {as_utc(buyer.updated_at).isoformat()}"
        )
        raise Conflict()


def get_buyer(buyer_id):
    """Load a buyer for reading. Any authenticated user may read any buyer.

    Raises:
        NotFound: If no buyer has this id.
    """
    buyer = buyer_store.get(buyer_id)
    if buyer is None:
        raise NotFound()
    return buyer


def insert_buyer(data, acting_user_id, action="created"):
    """Persist an already-validated BuyerData plus its history entry.

    Args:
        data: BuyerData from validate_buyer().
        acting_user_id: Becomes the owner.
        action: "created" (API) or "imported" (CSV).

    Returns:
        The created Buyer.
    """
    now = next_updated_at(None)
    buyer = data.apply_to(Buyer(owner_id=acting_user_id))
    buyer.created_at = now
    buyer.updated_at = now

    with _unit_of_work("create buyer"):
        buyer_store.insert(buyer)
        history_service.record(
            buyer.id, acting_user_id, action, data=data.to_payload()
        )

    logger.info(f"Buyer {buyer.id} {action} by {acting_user_id}")
    return buyer


def create_buyer(payload, acting_user_id):
    """Create a buyer owned by the acting user. Status always starts as NEW.

    Raises:
        ValidationError: If any field rule fails.
    """
    data = validate_buyer(payload or {}, include_status=False)
    return insert_buyer(data, acting_user_id, action="created")


def update_buyer(buyer_id, payload, expected_updated_at, acting_user_id):
    """Apply a (possibly partial) update under optimistic concurrency.

    Fields missing from `payload` keep their stored values; the merged
    record is validated as a whole so cross-field rules still hold.

    The history diff compares the whole stored record with the whole
    validated one, not only the keys in `payload`. A change the caller
    did not send but that validation implies is recorded too: switching
    propertyType to PLOT clears bhk, so the entry carries a bhk change.

    Args:
        buyer_id: Buyer UUID string.
        payload: Mapping of fields to change (camelCase or snake_case keys).
        expected_updated_at: The updatedAt the caller last saw.
        acting_user_id: Must be the owner.

    Returns:
        The updated Buyer.

    Raises:
        NotFound, Forbidden, Conflict, ValidationError, InternalError
    """
    buyer = _load_for_write(buyer_id, acting_user_id)
    _check_token(buyer, expected_updated_at)

    before = buyer.to_payload()
    changes_in = {
        canonical_key(key): value
        for key, value in (payload or {}).items()
        if canonical_key(key) not in READ_ONLY_KEYS
    }
    data = validate_buyer({**before, **changes_in}, include_status=True)
    changes = history_service.diff(before, data.to_payload())

    with _unit_of_work("update buyer"):
        token = next_updated_at(buyer.updated_at)
        data.apply_to(buyer)
        buyer.updated_at = token
        buyer_store.save(buyer)
        if changes:
            history_service.record(
                buyer.id, acting_user_id, "updated", changes=changes
            )

    if changes:
        logger.info(
            f"Buyer {buyer.id} updated by {acting_user_id}: {', '.join(sorted(changes))}"
        )
    else:
        logger.info(f"Buyer {buyer.id} saved by {acting_user_id} with no changes")
    return buyer


def delete_buyer(buyer_id, acting_user_id, expected_updated_at=None):
    """Delete a buyer and, by cascade, its history.

    A tombstone entry naming the buyer is written in the same transaction
    before the row goes. If `expected_updated_at` is given it is checked
    like an update; either way the DELETE itself is version-guarded.

    Raises:
        NotFound, Forbidden, Conflict, InternalError
    """
    buyer = _load_for_write(buyer_id, acting_user_id)
    if expected_updated_at is not None:
        _check_token(buyer, expected_updated_at)

    buyer_name = buyer.full_name
    with _unit_of_work("delete buyer"):
        history_service.record(
            buyer.id, acting_user_id, "deleted", buyer_name=buyer_name
        )
        # reload so the cascade also picks up the tombstone just flushed
        db.session.expire(buyer, ["history"])
        buyer_store.delete(buyer)

    logger.info(f"Buyer {buyer_id} ({buyer_name}) deleted by {acting_user_id}")
