"""
Oracle implementations for verifying scenario outcomes.
"""

from .base_oracle import BaseOracle
from .deletion_oracle import DeletionDurabilityOracle

__all__ = [
    'BaseOracle',
    'DeletionDurabilityOracle',
]
