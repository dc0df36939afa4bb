"""Category taxonomy package."""

from src.categories.seed import DEFAULT_CATEGORIES
from src.categories.tree import (
    CategoryAlreadyExistsError,
    CategoryError,
    CategoryNotFoundError,
    CategoryTree,
    HasChildrenError,
    InvalidDataError,
    MissingDataError,
)

__all__ = [
    "DEFAULT_CATEGORIES",
    "CategoryAlreadyExistsError",
    "CategoryError",
    "CategoryNotFoundError",
    "CategoryTree",
    "HasChildrenError",
    "InvalidDataError",
    "MissingDataError",
]
