# src/xml_introspect/sampling/references.py
import logging
from collections import deque
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Set

from xml_introspect.dom.core import Element
from xml_introspect.dom.models import StructuralProfile
from .completion import CompletionPolicy

logger = logging.getLogger(__name__)

DEFAULT_RELATIONSHIP_ATTRIBUTES = ["synset", "target", "members"]


class ReferenceResolver:
    """
    Keeps cross-references inside a sample intact.

    A reference is the value of a relationship attribute (split on whitespace,
    so IDREFS lists like members="a b" work); it resolves when some element in
    the selection carries that value in its identifying attribute. Only
    elements below the document root count, since the root itself is rendered
    as the sample's wrapper.
    """

    def __init__(self, relationship_attributes: Optional[Iterable[str]] = None, id_attribute: str = "id",
                 completion: Optional[CompletionPolicy] = None):
        if relationship_attributes is None:
            relationship_attributes = DEFAULT_RELATIONSHIP_ATTRIBUTES
        self.relationship_attributes = list(relationship_attributes)
        self.id_attribute = id_attribute
        self.completion = completion or CompletionPolicy()

    def iter_references(self, element: Element, names: Optional[Iterable[str]] = None) -> Iterator[str]:
        names = self.relationship_attributes if names is None else list(names)
        for node in element.iter_subtree():
            for name in names:
                value = node.attributes.get(name)
                if value:
                    yield from value.split()

    def collect_references(self, element: Element, relationship_attribute_names: Optional[Iterable[str]] = None) -> Set[str]:
        return set(self.iter_references(element, relationship_attribute_names))

    def collect_ids(self, element: Element) -> Set[str]:
        return {
            node.attributes[self.id_attribute]
            for node in element.iter_subtree()
            if self.id_attribute in node.attributes
        }

    def ordered_references(self, elements: Iterable[Element]) -> List[str]:
        """All references of the emitted elements, first occurrence first."""
        seen: Dict[str, None] = {}
        for element in elements:
            if element.depth == 0:
                continue
            for ref in self.iter_references(element):
                seen.setdefault(ref)
        return list(seen)

    @staticmethod
    def source_nodes(element: Element) -> List[Element]:
        """Nodes copied from the document, without synthesized children."""
        return [node for node in element.iter_subtree() if not node.synthetic]

    def present_nodes(self, elements: Iterable[Element]) -> Set[int]:
        return {
            node.node_id
            for element in elements if element.depth > 0
            for node in self.source_nodes(element) if node.node_id is not None
        }

    def overlaps(self, element: Element, present: Set[str], nodes: Set[int]) -> bool:
        """True when part of 'element' is already in the sample, by node or by id."""
        for node in self.source_nodes(element):
            if node.node_id is not None and node.node_id in nodes:
                return True
            ident = node.get_id(self.id_attribute)
            if ident is not None and ident in present:
                return True
        return False

    def present_ids(self, elements: Iterable[Element]) -> Set[str]:
        present: Set[str] = set()
        for element in elements:
            if element.depth > 0:
                present.update(self.collect_ids(element))
        return present

    def include_referenced(self, profile: StructuralProfile, current_selection: List[Element],
                           referenced_ids: Iterable[str], max_elements: int,
                           prepare: Optional[Callable[[Element], Element]] = None) -> List[Element]:
        """
        Appends an example for every referenced id missing from the selection,
        following the references of newly added elements too, until
        'max_elements' is reached. Ids without a matching example are skipped, and
        so are examples that would repeat an element already in the selection.
        """
        prepare = prepare or self._prepare
        selection = list(current_selection)
        present = self.present_ids(selection)
        nodes = self.present_nodes(selection)
        index = self._index_examples(profile)

        queue = deque(dict.fromkeys(referenced_ids))
        queued = set(queue)
        while queue:
            if len(selection) >= max_elements:
                logger.debug("Sample budget of %d reached during reference resolution", max_elements)
                break
            ref = queue.popleft()
            if ref in present:
                continue
            example = index.get(ref)
            if example is None:
                continue
            added = prepare(example)
            if self.overlaps(added, present, nodes):
                logger.debug("Skipping <%s> for reference '%s': part of it is already in the sample", added.tag, ref)
                continue
            selection.append(added)
            present.update(self.collect_ids(added))
            nodes.update(node.node_id for node in self.source_nodes(added) if node.node_id is not None)
            for nested in self.iter_references(added):
                if nested not in queued:
                    queued.add(nested)
                    queue.append(nested)
        return selection

    def unresolved_references(self, selection: List[Element]) -> List[str]:
        present = self.present_ids(selection)
        return [ref for ref in self.ordered_references(selection) if ref not in present]

    def _index_examples(self, profile: StructuralProfile) -> Dict[str, Element]:
        # First example carrying a given id wins
        index: Dict[str, Element] = {}
        for _, example in profile.iter_examples():
            if example.depth == 0:
                continue
            ident = example.get_id(self.id_attribute)
            if ident is not None:
                index.setdefault(ident, example)
        return index

    def _prepare(self, example: Element) -> Element:
        clone = example.model_copy(deep=True)
        self.completion.apply(clone)
        return clone
