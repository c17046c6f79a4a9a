# src/xml_introspect/dom/models.py
from typing import Dict, Iterator, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field
from .core import Element, ElementTypeInfo


class NameCount(BaseModel):
    name: str
    count: int


class StructuralProfile(BaseModel):
    """
    Read-only summary of an analyzed XML document.

    Besides the per-tag statistics it records how the profile was produced:
    'parse_mode' is 'strict' for a real XML parse and 'lenient' for the regex
    scan used on malformed input, and 'partial' is set whenever the figures
    describe less than the whole document (ceiling reached, parse error).
    """
    model_config = ConfigDict(frozen=True)

    total_elements: int = 0
    max_depth: int = 0
    root_element: Optional[str] = None
    root_elements: List[str] = Field(default_factory=list)
    root_attributes: Dict[str, str] = Field(default_factory=dict)

    # Keyed by tag, in order of first appearance in the document
    element_types: Dict[str, ElementTypeInfo] = Field(default_factory=dict)
    namespaces: Dict[str, str] = Field(default_factory=dict)

    element_counts: Dict[str, int] = Field(default_factory=dict)
    attribute_counts: Dict[str, int] = Field(default_factory=dict)
    common_elements: List[NameCount] = Field(default_factory=list)
    common_attributes: List[NameCount] = Field(default_factory=list)

    partial: bool = False
    parse_mode: str = "strict"
    diagnostics: List[str] = Field(default_factory=list)

    # node_id -> (parent node_id, tag); only for captured nodes and their ancestors
    lineage: Dict[int, Tuple[Optional[int], str]] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.element_types

    def top_elements(self, n: int = 20) -> List[NameCount]:
        return _top(self.element_counts, n)

    def top_attributes(self, n: int = 20) -> List[NameCount]:
        return _top(self.attribute_counts, n)

    def iter_examples(self) -> Iterator[Tuple[str, Element]]:
        for tag, info in self.element_types.items():
            for example in info.examples:
                yield tag, example

    def ancestry(self, node_id: Optional[int]) -> List[str]:
        """Tags from the document root down to (and including) the given node."""
        tags: List[str] = []
        seen = set()
        current = node_id
        while current is not None and current in self.lineage and current not in seen:
            seen.add(current)
            parent_id, tag = self.lineage[current]
            tags.append(tag)
            current = parent_id
        tags.reverse()
        return tags

    def path_of(self, element: Element) -> str:
        """Slash-separated location, e.g. '/LexicalResource/Lexicon/LexicalEntry'."""
        if element.node_id is not None and element.node_id in self.lineage:
            return "/" + "/".join(self.ancestry(element.node_id))
        # Synthesized children only know their parent
        return "/" + "/".join(self.ancestry(element.parent_id) + [element.tag])


def _top(counts: Dict[str, int], n: int) -> List[NameCount]:
    # sorted() is stable: ties keep first-seen order
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [NameCount(name=name, count=count) for name, count in ranked[:n]]
