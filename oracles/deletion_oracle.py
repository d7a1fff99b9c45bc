"""
Deletion Durability Oracle

After a delete has been committed without error, a strongly consistent point
read of the key must come back empty. A row that is still visible means the
commit acknowledged a write it never applied.
"""

from typing import Any, Dict, Optional

from core.errors import InconclusiveReadError
from .base_oracle import BaseOracle


class DeletionDurabilityOracle(BaseOracle):
    """Detects acknowledged deletes that did not persist."""

    def check_for_bugs(self, key: int) -> Optional[Dict[str, Any]]:
        try:
            row = self.db_executor.read_row(key, columns=("PK",))
        except Exception as e:
            raise InconclusiveReadError("read", e) from e

        if row is None:
            self.logger.info(f"Row PK={key} not found; delete is durable")
            return None

        try:
            observed = int(row[0])
        except (IndexError, TypeError, ValueError) as e:
            raise InconclusiveReadError("scan", e) from e

        self.logger.error(f"Row PK={observed} is still visible after a successful delete")
        return {
            'bug_type': 'data_loss',
            'table': self.db_executor.table,
            'key': observed,
            'description': 'delete acknowledged by commit but row still present on strong read',
        }
