"""Site settings persistence.

Settings live in a table capped to a single row. ``save_settings`` upserts
that row; ``create_settings`` only inserts it, so of two first-run writers
exactly one wins.
"""

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from core.database import session_scope
from core.exceptions import SettingsNotFoundError, SetupAlreadyCompletedError
from models.site_settings import SETTINGS_ROW_ID, SiteSettingsModel
from schemas.settings import SiteSettings, SiteSettingsInput
from utils.converters import model_to_settings, to_iso

logger = logging.getLogger(__name__)


class SettingsRepository:
    """Reads and writes the site settings singleton."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def details(self) -> SiteSettings:
        """Fetch the current settings.

        Raises:
            SettingsNotFoundError: If settings have never been saved.
        """
        with session_scope(self._session_factory) as db:
            model = db.get(SiteSettingsModel, SETTINGS_ROW_ID)
            if model is None:
                raise SettingsNotFoundError()
            return model_to_settings(model)

    def exists(self) -> bool:
        """Check whether settings have been saved."""
        with session_scope(self._session_factory) as db:
            return db.query(SiteSettingsModel).count() == 1

    def save_settings(self, settings: SiteSettingsInput, now: datetime) -> SiteSettings:
        """Create the settings row, or overwrite it if it already exists."""
        with session_scope(self._session_factory) as db:
            model = db.merge(
                SiteSettingsModel(
                    settings_id=SETTINGS_ROW_ID,
                    site_name=settings.site_name,
                    description=settings.description,
                    url=settings.url,
                    language=settings.language,
                    updated_at=to_iso(now),
                )
            )
            db.commit()
            db.refresh(model)
            logger.info("Saved site settings for '%s'", model.site_name)
            return model_to_settings(model)

    def create_settings(self, settings: SiteSettingsInput, now: datetime) -> SiteSettings:
        """Insert the settings row; fails if one already exists.

        Raises:
            SetupAlreadyCompletedError: If the settings row already exists.
        """
        with session_scope(self._session_factory) as db:
            model = SiteSettingsModel(
                settings_id=SETTINGS_ROW_ID,
                site_name=settings.site_name,
                description=settings.description,
                url=settings.url,
                language=settings.language,
                updated_at=to_iso(now),
            )
            db.add(model)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise SetupAlreadyCompletedError() from e
            logger.info("Created site settings for '%s'", model.site_name)
            return model_to_settings(model)
