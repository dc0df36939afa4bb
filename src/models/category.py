"""
Category Models

Categories form a tree. The node structure is immutable; which nodes are
expanded in a selector is view state kept by the tree, not by the nodes.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


MAX_LABEL_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500


class SelectionError(str, Enum):
    """Why a category could not be selected."""
    NOT_A_LEAF = "not-a-leaf"
    UNKNOWN_CATEGORY = "unknown-category"


class CategoryNode(BaseModel):
    """
    A single category.

    `children` holds child ids in display order. A node without
    children is a leaf and is the only kind of node an expense can
    be booked against.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: int = Field(
        ...,
        ge=1,
        description="Identifier assigned by the tree"
    )
    label: str = Field(
        ...,
        min_length=1,
        max_length=MAX_LABEL_LENGTH,
        description="Display label"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=MAX_DESCRIPTION_LENGTH,
    )
    parent_id: Optional[int] = None
    children: tuple[int, ...] = ()

    @property
    def is_leaf(self) -> bool:
        return not self.children


class SelectionResult(BaseModel):
    """Result of selecting a category in a selector."""
    model_config = ConfigDict(frozen=True)

    node_id: Optional[int]
    success: bool
    error: Optional[SelectionError] = None
    path: tuple[str, ...] = ()
