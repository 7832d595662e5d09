"""Login sessions.

Login hands out a signed JWT whose ``jti`` names a row in ``staff_sessions``.
Logout revokes that row, so a token stops working before its expiry even
though the JWT itself is still well-formed.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional, Tuple

from jose import JWTError, jwt
from sqlalchemy import update
from sqlalchemy.orm import sessionmaker

from config import JWT_ALGORITHM, JWT_SECRET_KEY, SESSION_TTL_MINUTES
from core.database import session_scope
from models.staff_session import StaffSessionModel
from utils.converters import from_iso, to_iso

logger = logging.getLogger(__name__)


class SessionStore:
    """Creates, resolves and revokes staff login sessions."""

    def __init__(
        self,
        session_factory: sessionmaker,
        secret_key: str = JWT_SECRET_KEY,
        algorithm: str = JWT_ALGORITHM,
        ttl: timedelta = timedelta(minutes=SESSION_TTL_MINUTES),
    ):
        self._session_factory = session_factory
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._ttl = ttl

    def _decode(self, token: str) -> Optional[dict]:
        # Expiry is checked against the stored row with the caller's clock
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self._algorithm],
                options={"verify_exp": False},
            )
        except JWTError:
            return None
        if not payload.get("sub") or not payload.get("jti"):
            return None
        return payload

    def create(self, staff_id: str, now: datetime) -> Tuple[str, datetime]:
        """Open a session for a staff member.

        Returns:
            Tuple of (token, expires_at).
        """
        session_id = str(uuid.uuid4())
        expires_at = now + self._ttl
        with session_scope(self._session_factory) as db:
            db.add(
                StaffSessionModel(
                    session_id=session_id,
                    staff_id=staff_id,
                    created_at=to_iso(now),
                    expires_at=to_iso(expires_at),
                )
            )
            db.commit()

        token = jwt.encode(
            {
                "sub": staff_id,
                "jti": session_id,
                "iat": int(now.timestamp()),
                "exp": int(expires_at.timestamp()),
            },
            self._secret_key,
            algorithm=self._algorithm,
        )
        logger.info("Opened session %s for staff %s", session_id, staff_id)
        return token, expires_at

    def resolve(self, token: str, now: datetime) -> Optional[str]:
        """Return the staff id bound to a live session, or None."""
        payload = self._decode(token)
        if payload is None:
            return None
        with session_scope(self._session_factory) as db:
            model = (
                db.query(StaffSessionModel)
                .filter(
                    StaffSessionModel.session_id == payload["jti"],
                    StaffSessionModel.staff_id == payload["sub"],
                )
                .first()
            )
            if model is None or model.revoked_at is not None:
                return None
            if now >= from_iso(model.expires_at):
                return None
            return model.staff_id

    def revoke(self, token: str, now: datetime) -> bool:
        """Revoke the session behind a token.

        Returns:
            True if a live session was revoked, False if there was nothing to
            revoke (unknown, malformed or already revoked token).
        """
        payload = self._decode(token)
        if payload is None:
            return False
        with session_scope(self._session_factory) as db:
            result = db.execute(
                update(StaffSessionModel)
                .where(
                    StaffSessionModel.session_id == payload["jti"],
                    StaffSessionModel.revoked_at.is_(None),
                )
                .values(revoked_at=to_iso(now))
            )
            db.commit()
            revoked = result.rowcount == 1
        if revoked:
            logger.info("Revoked session %s", payload["jti"])
        return revoked

    def revoke_all(self, staff_id: str, now: datetime) -> int:
        """Revoke every open session of a staff member."""
        with session_scope(self._session_factory) as db:
            result = db.execute(
                update(StaffSessionModel)
                .where(
                    StaffSessionModel.staff_id == staff_id,
                    StaffSessionModel.revoked_at.is_(None),
                )
                .values(revoked_at=to_iso(now))
            )
            db.commit()
            count = result.rowcount
        if count:
            logger.info("Revoked %d session(s) for staff %s", count, staff_id)
        return count
