# Defines the abstract base class for all post-scenario verification oracles.
# Each oracle inspects the backend after the scenario's writes and decides
# whether the observed state contradicts what the writes reported.

import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional

class BaseOracle(ABC):
    """Base class for all oracles."""

    def __init__(self):
        self.db_executor = None  # Will be set by the scenario runner
        self.logger = logging.getLogger(self.__class__.__name__)

    def set_db_executor(self, db_executor):
        """Set the database executor for this oracle."""
        self.db_executor = db_executor

    @abstractmethod
    def check_for_bugs(self, key: int) -> Optional[Dict[str, Any]]:
        """
        Check the backend state for the given primary key.

        Args:
            key: Primary key the scenario wrote to

        Returns:
            Bug report dictionary if bug found, None otherwise
        """
        pass

    def get_oracle_name(self) -> str:
        return self.__class__.__name__
