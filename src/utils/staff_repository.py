"""Staff persistence.

This module stores staff records with SQLAlchemy. Lookups skip soft-deleted
records unless asked otherwise, and every write is a conditional update on
the record's version so concurrent writers cannot silently overwrite each
other.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session, sessionmaker

from core.database import session_scope
from core.exceptions import ConflictError, DuplicateEmailError, StaffNotFoundError
from models.staff import StaffModel
from schemas.staff import StaffMember, StaffStatus
from utils.converters import model_to_staff, patch_to_columns, staff_to_model

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return email.strip().lower()


class StaffRepository:
    """Manages staff records using SQLAlchemy."""

    def __init__(self, session_factory: sessionmaker):
        """Initialize StaffRepository.

        Args:
            session_factory: Shared SQLAlchemy session factory. A new session
                is opened for every call.
        """
        self._session_factory = session_factory

    def _query(self, db: Session, include_deleted: bool) -> Query:
        query = db.query(StaffModel)
        if not include_deleted:
            query = query.filter(StaffModel.status != StaffStatus.DELETED.value)
        return query

    def insert(self, staff: StaffMember) -> str:
        """Insert a new staff record.

        Args:
            staff: Record to insert. Its ``staff_id`` is ignored.

        Returns:
            The newly assigned staff id.

        Raises:
            DuplicateEmailError: If a non-deleted record already has the email.
        """
        email = normalize_email(staff.email)
        staff_id = str(uuid.uuid4())
        with session_scope(self._session_factory) as db:
            existing = (
                self._query(db, include_deleted=False)
                .filter(StaffModel.email == email)
                .first()
            )
            if existing:
                raise DuplicateEmailError(email)

            # Two concurrent inserts can both pass the check above; the
            # partial unique index catches the loser.
            try:
                db.add(staff_to_model(staff.model_copy(update={"staff_id": staff_id, "email": email})))
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise DuplicateEmailError(email) from e

        logger.info("Inserted staff %s with status %s", staff_id, staff.status.value)
        return staff_id

    def find_by_email(self, email: str, include_deleted: bool = False) -> StaffMember:
        """Get a staff member by email.

        When ``include_deleted`` is set and several records share the email,
        a live record wins over deleted ones, then the most recent.

        Raises:
            StaffNotFoundError: If no matching record exists.
        """
        email = normalize_email(email)
        with session_scope(self._session_factory) as db:
            model = (
                self._query(db, include_deleted)
                .filter(StaffModel.email == email)
                .order_by(
                    (StaffModel.status == StaffStatus.DELETED.value).asc(),
                    StaffModel.created_at.desc(),
                )
                .first()
            )
            if not model:
                raise StaffNotFoundError(email)
            return model_to_staff(model)

    def find_by_id(self, staff_id: str, include_deleted: bool = False) -> StaffMember:
        """Get a staff member by id.

        Raises:
            StaffNotFoundError: If no matching record exists.
        """
        with session_scope(self._session_factory) as db:
            model = (
                self._query(db, include_deleted)
                .filter(StaffModel.staff_id == staff_id)
                .first()
            )
            if not model:
                raise StaffNotFoundError(staff_id)
            return model_to_staff(model)

    def update(
        self,
        staff_id: str,
        patch: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> StaffMember:
        """Apply a partial update to a live staff record.

        The write only lands if the stored version still equals
        ``expected_version`` (or the version read at the start of this call
        when it is None).

        Args:
            staff_id: Record to update.
            patch: StaffMember field names to new values.
            expected_version: Version the caller based its decision on.

        Returns:
            The updated StaffMember.

        Raises:
            StaffNotFoundError: If the record does not exist or is deleted.
            DuplicateEmailError: If the patch moves onto a taken email.
            ConflictError: If the record changed since ``expected_version``.
        """
        if "email" in patch and patch["email"] is not None:
            patch = {**patch, "email": normalize_email(patch["email"])}
        values = patch_to_columns(patch)

        with session_scope(self._session_factory) as db:
            model = (
                self._query(db, include_deleted=False)
                .filter(StaffModel.staff_id == staff_id)
                .first()
            )
            if not model:
                raise StaffNotFoundError(staff_id)
            version = model.version if expected_version is None else expected_version
            values["version"] = version + 1

            try:
                result = db.execute(
                    update(StaffModel)
                    .where(
                        StaffModel.staff_id == staff_id,
                        StaffModel.version == version,
                    )
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    db.rollback()
                    logger.warning(
                        "Conflicting write on staff %s (expected version %s)",
                        staff_id,
                        version,
                    )
                    raise ConflictError(staff_id)
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise DuplicateEmailError(values.get("email", "")) from e

            db.refresh(model)
            return model_to_staff(model)

    def soft_delete(
        self,
        staff_id: str,
        patch: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> StaffMember:
        """Mark a record deleted; it is kept but hidden from normal lookups.

        Args:
            staff_id: Record to delete.
            patch: Must carry ``deleted_at`` and ``updated_at``; may clear
                codes.
            expected_version: See ``update``.

        Raises:
            StaffNotFoundError: If the record does not exist or is deleted.
            ConflictError: If the record changed since ``expected_version``.
        """
        return self.update(
            staff_id,
            {**patch, "status": StaffStatus.DELETED},
            expected_version=expected_version,
        )

    def remove_pending(self, staff_id: str) -> None:
        """Physically remove a record that never left the pending state."""
        with session_scope(self._session_factory) as db:
            db.execute(
                delete(StaffModel).where(
                    StaffModel.staff_id == staff_id,
                    StaffModel.status == StaffStatus.PENDING.value,
                )
            )
            db.commit()
        logger.info("Removed pending staff %s", staff_id)

    def purge(self, staff_id: str) -> None:
        """Physically remove a record, whatever its state."""
        with session_scope(self._session_factory) as db:
            db.execute(delete(StaffModel).where(StaffModel.staff_id == staff_id))
            db.commit()
        logger.info("Purged staff %s", staff_id)
