"""Configuration for the Opal fare estimator."""

import logging
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


class Settings:
    """Application settings."""

    # API Settings
    API_TITLE = "Opal Fare Estimator"
    API_VERSION = "1.0.0"
    API_DESCRIPTION = (
        "Trip planner relay that estimates Opal fares for every journey it returns"
    )

    # Upstream trip planner
    UPSTREAM_TRIP_URL = os.getenv(
        "UPSTREAM_TRIP_URL", "https://api.transport.nsw.gov.au/v1/tp/trip"
    )

    # Reference data: "file" reads REFERENCE_DATA_PATH, "database" reads DATABASE_URL
    REFERENCE_SOURCE = os.getenv("REFERENCE_SOURCE", "file")
    REFERENCE_DATA_PATH = os.getenv("REFERENCE_DATA_PATH")
    DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./opal_reference_data.db")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # CORS Settings
    CORS_ORIGINS = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
        ).split(",")
        if origin.strip()
    ]

    # Cached reference dataset (loaded on first use)
    _reference_cache = None

    @classmethod
    def get_reference_dataset(cls):
        """
        Get the reference dataset (with caching).

        Returns:
            ReferenceDataset loaded from the configured source
        """
        if cls._reference_cache is None:
            from opal_fare.reference import ReferenceDataset

            if cls.REFERENCE_SOURCE == "database":
                from opal_fare.database import get_db_manager

                cls._reference_cache = ReferenceDataset.from_database(get_db_manager())
            elif cls.REFERENCE_SOURCE == "file":
                cls._reference_cache = ReferenceDataset.from_file(cls.REFERENCE_DATA_PATH)
            else:
                raise ValueError(f"Unknown reference data source {cls.REFERENCE_SOURCE!r}")
        return cls._reference_cache

    @classmethod
    def reload_reference_dataset(cls):
        """Force reload of the reference dataset from its source."""
        cls._reference_cache = None
        return cls.get_reference_dataset()

    @classmethod
    def set_reference_dataset(cls, dataset: Optional[object]):
        """Replace the cached dataset, e.g. with a fixture dataset in tests."""
        cls._reference_cache = dataset
        if dataset is not None:
            logger.info(f"Using injected reference dataset with {len(dataset)} networks")


settings = Settings()
