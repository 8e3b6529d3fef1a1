"""
Collaborators backed by the local store: staff directory and catalog.
"""

from .staff_directory import StaffDirectory
from .catalog import Catalog

__all__ = ["StaffDirectory", "Catalog"]
