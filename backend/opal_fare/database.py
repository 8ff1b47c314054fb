"""Database models and setup for storing fare network bundles."""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional, Union

from sqlalchemy import Column, Integer, String, Text, UniqueConstraint, create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from opal_fare.models import NetworkSummary, OpalNetwork

logger = logging.getLogger(__name__)

Base = declarative_base()


class NetworkBundleDB(Base):
    """Database model for storing one fare network bundle."""
    __tablename__ = "network_bundles"

    id = Column(Integer, primary_key=True, index=True)
    valid_from = Column(String(8), nullable=False, index=True)
    valid_to = Column(String(8), nullable=False)
    timezone = Column(String, nullable=False)
    payload = Column(Text, nullable=False)
    description = Column(String, nullable=True)

    # A validity window is stored once
    __table_args__ = (
        UniqueConstraint('valid_from', 'valid_to', name='_validity_window_uc'),
    )

    def to_network(self) -> OpalNetwork:
        return OpalNetwork.model_validate_json(self.payload)

    def __repr__(self):
        return f"<NetworkBundle(valid_from={self.valid_from}, valid_to={self.valid_to})>"


class DatabaseManager:
    """Manager class for reference data operations."""

    def __init__(self, database_url: Optional[str] = None):
        """Initialize database connection."""
        self.database_url = database_url or os.getenv(
            "DATABASE_URL",
            "sqlite:///./opal_reference_data.db"
        )

        # Create engine with appropriate settings for SQLite
        connect_args = {"check_same_thread": False} if "sqlite" in self.database_url else {}
        self.engine = create_engine(self.database_url, connect_args=connect_args)

        # Create session factory
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

        # Create tables if they don't exist
        Base.metadata.create_all(bind=self.engine)

    def get_session(self) -> Session:
        """Get a new database session."""
        return self.SessionLocal()

    def init_default_networks(self, path: Union[str, Path, None] = None) -> int:
        """
        Import the bundled networks when the store is empty.

        Returns:
            Number of networks imported
        """
        if self.get_bundle_count() > 0:
            return 0

        from opal_fare.reference import ReferenceDataset

        dataset = ReferenceDataset.from_file(path)
        return self.import_networks(dataset, description="Bundled reference data")

    def import_networks(self, networks: Iterable[OpalNetwork], description: Optional[str] = None) -> int:
        """
        Insert networks, replacing any stored network with the same validity window.

        Returns:
            Number of networks written
        """
        session = self.get_session()
        try:
            count = 0
            for network in networks:
                bundle = session.query(NetworkBundleDB).filter_by(
                    valid_from=network.config.valid_from,
                    valid_to=network.config.valid_to
                ).first()

                if bundle is None:
                    bundle = NetworkBundleDB(
                        valid_from=network.config.valid_from,
                        valid_to=network.config.valid_to
                    )
                    session.add(bundle)

                bundle.timezone = network.config.tz
                bundle.payload = network.model_dump_json(by_alias=True)
                bundle.description = description
                count += 1

            session.commit()
            logger.info(f"Imported {count} fare networks into {self.database_url}")
            return count
        finally:
            session.close()

    def get_all_networks(self) -> List[OpalNetwork]:
        """Retrieve all networks, ordered by the start of their validity."""
        session = self.get_session()
        try:
            bundles = session.query(NetworkBundleDB).order_by(NetworkBundleDB.valid_from).all()
            return [bundle.to_network() for bundle in bundles]
        finally:
            session.close()

    def get_network_summaries(self) -> List[NetworkSummary]:
        """Validity window, timezone and fare types of every stored network."""
        return [
            NetworkSummary(
                valid_from=network.config.valid_from,
                valid_to=network.config.valid_to,
                timezone=network.config.tz,
                fare_types=list(network.fare_table)
            )
            for network in self.get_all_networks()
        ]

    def get_bundle_count(self) -> int:
        session = self.get_session()
        try:
            return session.query(NetworkBundleDB).count()
        finally:
            session.close()

    def clear_networks(self) -> int:
        """Delete every stored network."""
        session = self.get_session()
        try:
            deleted = session.query(NetworkBundleDB).delete()
            session.commit()
            return deleted
        finally:
            session.close()


# Singleton instance
_db_manager: Optional[DatabaseManager] = None


def get_db_manager() -> DatabaseManager:
    """Get singleton database manager instance."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
        _db_manager.init_default_networks()
    return _db_manager
