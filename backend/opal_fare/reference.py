"""Reference dataset of Opal fare networks."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Iterator, Mapping, Optional, Tuple, Union

from opal_fare.models import OpalNetwork
from opal_fare.services.calendar import get_network_for_time

logger = logging.getLogger(__name__)

DEFAULT_NETWORKS_PATH = Path(__file__).parent / "ref" / "networks.json"


class ReferenceDataset:
    """
    Time ordered, immutable collection of fare networks.

    The dataset is passed to calculators explicitly so that several
    datasets, e.g. different fare eras in tests, can be used side by side.
    """

    def __init__(self, networks: Iterable[OpalNetwork]):
        self.networks: Tuple[OpalNetwork, ...] = tuple(networks)
        if not self.networks:
            raise ValueError("A reference dataset needs at least one network")

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "ReferenceDataset":
        """Build a dataset from network dictionaries in the JSON layout."""
        return cls(OpalNetwork.model_validate(record) for record in records)

    @classmethod
    def from_file(cls, path: Union[str, Path, None] = None) -> "ReferenceDataset":
        """Load a dataset from a JSON file holding a list of networks."""
        path = Path(path) if path else DEFAULT_NETWORKS_PATH
        with open(path, "r", encoding="utf-8") as f:
            records = json.load(f)
        dataset = cls.from_records(records)
        logger.info(f"Loaded {len(dataset)} fare networks from {path}")
        return dataset

    @classmethod
    def from_database(cls, db_manager=None) -> "ReferenceDataset":
        """Load a dataset from the reference data store."""
        if db_manager is None:
            from opal_fare.database import get_db_manager

            db_manager = get_db_manager()
        dataset = cls(db_manager.get_all_networks())
        logger.info(f"Loaded {len(dataset)} fare networks from {db_manager.database_url}")
        return dataset

    def network_for_time(self, instant: Optional[datetime] = None) -> OpalNetwork:
        """Network in force at the instant, the latest network as a fallback."""
        return get_network_for_time(self.networks, instant)

    def __len__(self) -> int:
        return len(self.networks)

    def __iter__(self) -> Iterator[OpalNetwork]:
        return iter(self.networks)
