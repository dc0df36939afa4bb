"""
Hierarchical Category Tree

DESIGN DECISION: Categories are a tree of immutable CategoryNode objects.
The selector state (which nodes are expanded, which leaf is selected)
lives next to the structure, not inside the nodes, so resetting a view
never touches the taxonomy itself.

Expansion is non-exclusive: several branches may be open at once, and
expanding or collapsing one node never changes its siblings or ancestors.

Only leaves can be selected as an expense category.
"""

from collections.abc import Iterator, Mapping, Sequence
from typing import Optional, Union

from src.models.category import (
    MAX_DESCRIPTION_LENGTH,
    MAX_LABEL_LENGTH,
    CategoryNode,
    SelectionError,
    SelectionResult,
)


# A seed maps labels to nested seeds. A leaf can be given as None, an empty
# mapping, or listed by label inside a sequence.
CategorySeed = Union[Mapping[str, "CategorySeed"], Sequence[str], None]


class CategoryTree:
    """
    An ordered forest of categories plus the state of one selector view.

    Usage:
        tree = CategoryTree.from_seed({"Food": {"Groceries": None}})
        food = tree.find_by_path(["Food"])
        tree.expand(food.id)
        result = tree.select(tree.find_by_path(["Food", "Groceries"]).id)
    """

    def __init__(self):
        self._nodes: dict[int, CategoryNode] = {}
        self._root_ids: list[int] = []
        self._next_id = 1

        # View state
        self._expanded: set[int] = set()
        self._selected: Optional[int] = None

    @classmethod
    def from_seed(cls, seed: CategorySeed) -> "CategoryTree":
        """Build a tree from nested label mappings, in iteration order."""
        tree = cls()
        tree._add_seed(seed, parent_id=None)
        return tree

    def _add_seed(self, seed: CategorySeed, parent_id: Optional[int]) -> None:
        if not seed:
            return
        if isinstance(seed, str):
            self.add_category(seed, parent_id=parent_id)
        elif isinstance(seed, Mapping):
            for label, children in seed.items():
                node = self.add_category(label, parent_id=parent_id)
                self._add_seed(children, parent_id=node.id)
        else:
            for label in seed:
                self.add_category(label, parent_id=parent_id)

    # =========================================================================
    # STRUCTURE
    # =========================================================================

    def add_category(
        self,
        label: str,
        parent_id: Optional[int] = None,
        description: Optional[str] = None,
    ) -> CategoryNode:
        """
        Add a category under `parent_id` (or as a root category).

        Raises:
            MissingDataError: If the label is empty or whitespace only
            InvalidDataError: If the label or description is too long
            CategoryNotFoundError: If the parent does not exist
            CategoryAlreadyExistsError: If the parent already has a child
                with this label
        """
        label = label.strip()
        if not label:
            raise MissingDataError("category label")
        if len(label) > MAX_LABEL_LENGTH:
            raise InvalidDataError("category label", MAX_LABEL_LENGTH)
        if description is not None and len(description.strip()) > MAX_DESCRIPTION_LENGTH:
            raise InvalidDataError("category description", MAX_DESCRIPTION_LENGTH)

        parent = None
        if parent_id is not None:
            parent = self._require(parent_id)

        sibling_ids = parent.children if parent else self._root_ids
        if any(self._nodes[i].label == label for i in sibling_ids):
            raise CategoryAlreadyExistsError(
                label, parent.label if parent else None
            )

        node = CategoryNode(
            id=self._next_id,
            label=label,
            description=description,
            parent_id=parent_id,
        )
        self._next_id += 1
        self._nodes[node.id] = node

        if parent is None:
            self._root_ids.append(node.id)
        else:
            self._nodes[parent.id] = parent.model_copy(
                update={"children": parent.children + (node.id,)}
            )
            # The parent is no longer a leaf
            if self._selected == parent.id:
                self._selected = None

        return node

    def remove_category(self, node_id: int) -> CategoryNode:
        """
        Remove a leaf category.

        Raises:
            CategoryNotFoundError: If the category does not exist
            HasChildrenError: If the category still has children
        """
        node = self._require(node_id)
        if not node.is_leaf:
            raise HasChildrenError(node_id)

        del self._nodes[node_id]
        if node.parent_id is None:
            self._root_ids.remove(node_id)
        else:
            parent = self._nodes[node.parent_id]
            self._nodes[parent.id] = parent.model_copy(
                update={"children": tuple(c for c in parent.children if c != node_id)}
            )

        self._expanded.discard(node_id)
        if self._selected == node_id:
            self._selected = None
        return node

    def get(self, node_id: int) -> Optional[CategoryNode]:
        return self._nodes.get(node_id)

    def _require(self, node_id: int) -> CategoryNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise CategoryNotFoundError(node_id)
        return node

    def roots(self) -> list[CategoryNode]:
        return [self._nodes[i] for i in self._root_ids]

    def children_of(self, node_id: int) -> list[CategoryNode]:
        return [self._nodes[i] for i in self._require(node_id).children]

    def path(self, node_id: int) -> tuple[str, ...]:
        """Labels from the root category down to `node_id`."""
        labels = []
        node = self._require(node_id)
        while node is not None:
            labels.append(node.label)
            node = self._nodes.get(node.parent_id) if node.parent_id is not None else None
        return tuple(reversed(labels))

    def find_by_path(self, labels: Sequence[str]) -> Optional[CategoryNode]:
        candidates = self._root_ids
        node = None
        for label in labels:
            node = next(
                (self._nodes[i] for i in candidates if self._nodes[i].label == label),
                None,
            )
            if node is None:
                return None
            candidates = node.children
        return node

    def walk(self) -> Iterator[tuple[int, CategoryNode]]:
        """Depth-first (depth, node) pairs in display order."""
        stack = [(0, i) for i in reversed(self._root_ids)]
        while stack:
            depth, node_id = stack.pop()
            node = self._nodes[node_id]
            yield depth, node
            stack.extend((depth + 1, c) for c in reversed(node.children))

    def leaves(self) -> list[CategoryNode]:
        return [node for _, node in self.walk() if node.is_leaf]

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    # =========================================================================
    # SELECTOR VIEW
    # =========================================================================

    def expand(self, node_id: int) -> None:
        """Open a branch. Leaves have nothing to open and are left alone."""
        node = self._require(node_id)
        if not node.is_leaf:
            self._expanded.add(node_id)

    def collapse(self, node_id: int) -> None:
        self._require(node_id)
        self._expanded.discard(node_id)

    def toggle(self, node_id: int) -> bool:
        """Flip a branch open or closed; returns the new expanded state."""
        if self.is_expanded(node_id):
            self.collapse(node_id)
        else:
            self.expand(node_id)
        return self.is_expanded(node_id)

    def is_expanded(self, node_id: int) -> bool:
        self._require(node_id)
        return node_id in self._expanded

    def select(self, leaf_id: int) -> SelectionResult:
        """
        Select the category an expense will be booked against.

        Returns a failed result (never raises) for unknown ids and for
        categories that still have children.
        """
        node = self._nodes.get(leaf_id)
        if node is None:
            return SelectionResult(
                node_id=leaf_id,
                success=False,
                error=SelectionError.UNKNOWN_CATEGORY,
            )
        if not node.is_leaf:
            return SelectionResult(
                node_id=leaf_id,
                success=False,
                error=SelectionError.NOT_A_LEAF,
                path=self.path(leaf_id),
            )

        self._selected = leaf_id
        return SelectionResult(
            node_id=leaf_id,
            success=True,
            path=self.path(leaf_id),
        )

    @property
    def selected(self) -> Optional[CategoryNode]:
        return self._nodes.get(self._selected) if self._selected is not None else None

    def fresh_view(self) -> "CategoryTree":
        """
        A copy of the structure with its own, fully collapsed, selector state.

        Nodes are immutable, so the copy shares them. Later structural
        changes to either tree are not seen by the other.
        """
        view = CategoryTree()
        view._nodes = dict(self._nodes)
        view._root_ids = list(self._root_ids)
        view._next_id = self._next_id
        return view

    def reset_view(self) -> None:
        """Collapse everything and clear the selection (a freshly opened selector)."""
        self._expanded.clear()
        self._selected = None

    def visible_nodes(self) -> Iterator[tuple[int, CategoryNode]]:
        """(depth, node) pairs a selector shows: children of collapsed nodes are hidden."""
        stack = [(0, i) for i in reversed(self._root_ids)]
        while stack:
            depth, node_id = stack.pop()
            node = self._nodes[node_id]
            yield depth, node
            if node_id in self._expanded:
                stack.extend((depth + 1, c) for c in reversed(node.children))


class CategoryError(Exception):
    """Base exception for category management."""
    pass


class CategoryNotFoundError(CategoryError, KeyError):
    """No category with this id."""

    def __init__(self, node_id: int):
        self.node_id = node_id
        super().__init__(f"Category {node_id} does not exist")

    def __str__(self) -> str:
        return self.args[0]


class CategoryAlreadyExistsError(CategoryError):
    """A category with this label already exists under the same parent."""

    def __init__(self, label: str, parent: Optional[str]):
        self.label = label
        self.parent = parent
        if parent is None:
            message = f"The root category '{label}' already exists"
        else:
            message = (
                f"The child category '{label}' already exists "
                f"in the parent category '{parent}'"
            )
        super().__init__(message)


class MissingDataError(CategoryError):
    """Required data is missing."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing data for field: {field}")


class InvalidDataError(CategoryError):
    """Data is present but does not fit the category model."""

    def __init__(self, field: str, max_length: int):
        self.field = field
        self.max_length = max_length
        super().__init__(f"The {field} must be at most {max_length} characters long")


class HasChildrenError(CategoryError):
    """A category with children cannot be removed."""

    def __init__(self, node_id: int):
        self.node_id = node_id
        super().__init__(
            f"The category with ID {node_id} could not be deleted "
            "because it has child categories"
        )
