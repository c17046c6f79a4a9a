from typing import Dict, Iterator, List, Optional
from pydantic import BaseModel, Field


class Element(BaseModel):
    """
    Snapshot of one element of an analyzed document.

    Tags and attribute names keep their prefixed form ('dc:title', 'xml:lang').
    The parent is referenced by node id only; the chain of ancestors lives in
    StructuralProfile.lineage, so an Element never points back up the tree.
    """
    tag: str
    attributes: Dict[str, str] = Field(default_factory=dict)
    children: List['Element'] = Field(default_factory=list)
    depth: int = 0
    text: Optional[str] = None
    node_id: Optional[int] = None
    parent_id: Optional[int] = None
    synthetic: bool = False

    @property
    def is_empty(self) -> bool:
        """Returns True if the element contains no text and no children."""
        return not self.text and not self.children

    @property
    def diversity_score(self) -> int:
        """Direct children + attributes + 1 if it carries text."""
        return len(self.children) + len(self.attributes) + (1 if self.text else 0)

    def get_id(self, id_attribute: str = "id") -> Optional[str]:
        return self.attributes.get(id_attribute)

    def iter_subtree(self) -> Iterator['Element']:
        """Pre-order walk over this element and its descendants, without recursion."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def subtree_size(self) -> int:
        return sum(1 for _ in self.iter_subtree())


class ElementTypeInfo(BaseModel):
    """
    Aggregated facts about one tag name across the whole document.
    'attributes' and 'children' keep first-seen order.
    """
    count: int = 0
    attributes: List[str] = Field(default_factory=list)
    children: List[str] = Field(default_factory=list)
    max_depth: int = 0
    text_seen: bool = False
    examples: List[Element] = Field(default_factory=list)
