"""Container validation package."""

from savings_store.validation.checksum import generate_checksum
from savings_store.validation.validator import ContainerValidator

__all__ = ["ContainerValidator", "generate_checksum"]
