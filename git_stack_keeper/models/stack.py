"""Stack configuration models"""
from enum import Enum
from dataclasses import dataclass, field
from typing import List, Optional, Tuple


class UpdateStrategy(Enum):
    """How changes are replayed down a stack."""
    MERGE = "merge"
    REBASE = "rebase"


@dataclass
class BranchNode:
    """A configured branch and its ordered children."""
    name: str
    children: List["BranchNode"] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"name": self.name, "children": [child.to_dict() for child in self.children]}

    @classmethod
    def from_dict(cls, data: dict) -> "BranchNode":
        return cls(
            name=data["name"],
            children=[cls.from_dict(child) for child in data.get("children", [])],
        )


@dataclass
class Stack:
    """A named tree of branches rooted on a source branch."""
    name: str
    remote_uri: str
    source_branch: str
    branches: List[BranchNode] = field(default_factory=list)

    def all_branch_names(self) -> List[str]:
        """Branch names in pre-order, without duplicates."""
        names: List[str] = []
        for node in self._walk(self.branches):
            if node.name not in names:
                names.append(node.name)
        return names

    def all_branch_lines(self) -> List[List[str]]:
        """Every root-to-leaf path of branch names."""
        lines: List[List[str]] = []

        def collect(node: BranchNode, path: List[str]):
            path = path + [node.name]
            if not node.children:
                lines.append(path)
            for child in node.children:
                collect(child, path)

        for branch in self.branches:
            collect(branch, [])
        return lines

    def contains(self, branch_name: str) -> bool:
        return branch_name == self.source_branch or self.find_branch(branch_name) is not None

    def find_branch(self, name: str) -> Optional[BranchNode]:
        return next((node for node in self._walk(self.branches) if node.name == name), None)

    def add_branch(self, name: str, parent_name: Optional[str] = None) -> BranchNode:
        """Add a branch under ``parent_name`` (the source branch or None means top level)."""
        if self.find_branch(name) is not None or name == self.source_branch:
            raise ValueError(f"Branch '{name}' is already in stack '{self.name}'")

        node = BranchNode(name)
        self._children_of(parent_name).append(node)
        return node

    def remove_branch(self, name: str, move_children_to_parent: bool = True) -> None:
        """Remove a branch, moving its children up to its parent unless told otherwise."""
        found = self._find_with_parent(name)
        if found is None:
            raise ValueError(f"Branch '{name}' not found in stack '{self.name}'")

        node, siblings = found
        index = siblings.index(node)
        siblings.pop(index)
        if move_children_to_parent:
            siblings[index:index] = node.children

    def move_branch(self, name: str, new_parent_name: Optional[str], re_parent_children: bool = False) -> None:
        """Move a branch under a new parent.

        With ``re_parent_children`` the branch's children stay at its old position.
        """
        found = self._find_with_parent(name)
        if found is None:
            raise ValueError(f"Branch '{name}' not found in stack '{self.name}'")

        node, siblings = found
        if new_parent_name and any(n.name == new_parent_name for n in self._walk([node])):
            if not re_parent_children or new_parent_name == name:
                raise ValueError(f"Cannot move '{name}' under its own descendant '{new_parent_name}'")

        index = siblings.index(node)
        siblings.pop(index)
        if re_parent_children:
            siblings[index:index] = node.children
            node = BranchNode(node.name)
        self._children_of(new_parent_name).append(node)

    def _children_of(self, parent_name: Optional[str]) -> List[BranchNode]:
        if parent_name is None or parent_name == self.source_branch:
            return self.branches
        parent = self.find_branch(parent_name)
        if parent is None:
            raise ValueError(f"Parent branch '{parent_name}' not found in stack '{self.name}'")
        return parent.children

    def _find_with_parent(self, name: str) -> Optional[Tuple[BranchNode, List[BranchNode]]]:
        def search(siblings: List[BranchNode]):
            for node in siblings:
                if node.name == name:
                    return node, siblings
                result = search(node.children)
                if result:
                    return result
            return None

        return search(self.branches)

    @staticmethod
    def _walk(nodes):
        for node in nodes:
            yield node
            yield from Stack._walk(node.children)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "remote_uri": self.remote_uri,
            "source_branch": self.source_branch,
            "branches": [branch.to_dict() for branch in self.branches],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Stack":
        return cls(
            name=data["name"],
            remote_uri=data.get("remote_uri", ""),
            source_branch=data["source_branch"],
            branches=[BranchNode.from_dict(branch) for branch in data.get("branches", [])],
        )
