# src/xml_introspect/sampling/selector.py
import logging
import random
from collections import Counter
from typing import Hashable, Iterator, List, Optional, Set

from xml_introspect.dom.core import Element
from xml_introspect.dom.models import StructuralProfile
from xml_introspect.model import SamplingOptions, SamplingStrategy, SelectionResult
from .completion import CompletionPolicy
from .references import ReferenceResolver

logger = logging.getLogger(__name__)


class _SelectionRun:
    """State of one selection: chosen clones, dedupe keys and the candidate budget."""

    def __init__(self, profile: StructuralProfile, options: SamplingOptions, completion: CompletionPolicy):
        self.profile = profile
        self.options = options
        self.completion = completion
        self.selected: List[Element] = []
        self.processed = 0
        self.budget = options.candidate_budget
        self._keys: Set[Hashable] = set()
        self._ids: Set[str] = set()
        self._per_tag: Counter = Counter()

    @property
    def full(self) -> bool:
        return len(self.selected) >= self.options.max_elements

    @property
    def exhausted(self) -> bool:
        return self.processed >= self.budget

    def _key(self, element: Element) -> Hashable:
        ident = element.get_id(self.options.id_attribute)
        if ident is not None:
            return element.tag, ident
        return "#node", element.node_id

    def kept_nodes(self, example: Element) -> Iterator[Element]:
        """The nodes of 'example' that survive pruning to 'max_depth'."""
        limit = example.depth + self.options.max_depth
        stack = [example]
        while stack:
            node = stack.pop()
            yield node
            if node.depth < limit:
                stack.extend(reversed(node.children))

    def is_duplicate(self, example: Element) -> bool:
        # Any element the candidate would bring along may already be in the sample
        for node in self.kept_nodes(example):
            if self._key(node) in self._keys:
                return True
            ident = node.get_id(self.options.id_attribute)
            if ident is not None and ident in self._ids:
                return True
        return False

    def candidates(self, tag: str) -> List[Element]:
        # The root is rendered as the wrapper, so strategies never pick it
        return [example for example in self.profile.element_types[tag].examples if example.depth > 0]

    def eligible_tags(self) -> List[str]:
        return [tag for tag in self.profile.element_types if self.candidates(tag)]

    def prepare(self, example: Element) -> Element:
        clone = example.model_copy(deep=True)
        limit = clone.depth + self.options.max_depth
        for node in clone.iter_subtree():
            if node.depth >= limit:
                node.children = []
        self.completion.apply(clone)
        return clone

    def admit(self, example: Element) -> bool:
        """Clones 'example' into the selection unless it is a duplicate or over a limit."""
        if self.full or self.is_duplicate(example):
            return False
        limit = self.options.element_type_limits.get(example.tag)
        if limit is not None and self._per_tag[example.tag] >= limit:
            return False

        clone = self.prepare(example)
        self.selected.append(clone)
        self._per_tag[example.tag] += 1
        self._keys.add(self._key(example))
        if clone.depth > 0:
            for node in clone.iter_subtree():
                if node.synthetic:
                    continue
                self._keys.add(self._key(node))
                ident = node.get_id(self.options.id_attribute)
                if ident is not None:
                    self._ids.add(ident)
        return True

    def _take(self, examples: List[Element], quota: int) -> int:
        taken = 0
        for example in examples:
            if taken >= quota or self.full:
                break
            if self.exhausted:
                logger.debug("Candidate budget of %d exhausted", self.budget)
                break
            self.processed += 1
            if self.admit(example):
                taken += 1
        return taken

    # --- Steps ---

    def select_representatives(self) -> None:
        """One example per tag, in discovery order, preferring the most diverse one."""
        for tag, info in self.profile.element_types.items():
            if self.full:
                break
            if self.exhausted:
                logger.debug("Candidate budget of %d exhausted while preserving types", self.budget)
                break
            best: Optional[Element] = None
            best_score = -1
            for example in info.examples:
                self.processed += 1
                if self.is_duplicate(example):
                    continue
                score = example.diversity_score
                if score > best_score:
                    best, best_score = example, score
            if best is not None:
                self.admit(best)

    def select_balanced(self, count: int) -> None:
        tags = self.eligible_tags()
        if not tags:
            return
        share, remainder = divmod(count, len(tags))
        for index, tag in enumerate(tags):
            quota = share + (1 if index < remainder else 0)
            if quota == 0 or self.full or self.exhausted:
                break
            self._take(self.candidates(tag), quota)

    def select_random(self, count: int) -> None:
        pool = [example for tag in self.eligible_tags() for example in self.candidates(tag)]
        random.Random(self.options.random_seed).shuffle(pool)
        self._take(pool, count)

    def select_first(self, count: int) -> None:
        pool = [example for tag in self.eligible_tags() for example in self.candidates(tag)]
        self._take(pool, count)


class SampleSelector:
    """
    Picks a bounded, structurally representative set of elements from a profile.

    Selection runs in four steps: one representative per tag (when types are
    preserved), the configured strategy for the remaining budget, reference
    resolution so relationship attributes point at elements that are present,
    and a stable sort by depth. Every chosen element is a deep copy, pruned to
    'max_depth' levels and completed with required children.
    """

    def __init__(self, completion: Optional[CompletionPolicy] = None):
        self.completion = completion if completion is not None else CompletionPolicy.from_config()

    def select(self, profile: StructuralProfile, options: Optional[SamplingOptions] = None) -> List[Element]:
        return self.select_with_report(profile, options).elements

    def select_with_report(self, profile: StructuralProfile,
                           options: Optional[SamplingOptions] = None) -> SelectionResult:
        options = options or SamplingOptions.from_config()
        if options.max_elements <= 0:
            raise ValueError(f"max_elements must be a positive integer, got {options.max_elements}")
        if profile is None or not profile.root_element:
            raise ValueError("Cannot select a sample: the profile has no root element (empty or unparseable document)")

        run = _SelectionRun(profile, options, self.completion)
        strategy = options.strategy

        if options.preserve_all_types or strategy == SamplingStrategy.PRESERVE_ALL_TYPES:
            run.select_representatives()

        remaining = options.max_elements - len(run.selected)
        if remaining > 0 and not run.exhausted:
            if strategy == SamplingStrategy.BALANCED:
                run.select_balanced(remaining)
            elif strategy == SamplingStrategy.RANDOM:
                run.select_random(remaining)
            elif strategy == SamplingStrategy.FIRST:
                run.select_first(remaining)

        resolver = ReferenceResolver(options.relationship_attributes, options.id_attribute, self.completion)
        elements = run.selected
        if options.preserve_relationships:
            referenced = resolver.ordered_references(elements)
            elements = resolver.include_referenced(profile, elements, referenced, options.max_elements,
                                                   prepare=run.prepare)

        # sort() is stable, so equal depths keep selection order
        elements.sort(key=lambda element: element.depth)

        unresolved = resolver.unresolved_references(elements) if options.preserve_relationships else []
        if unresolved:
            logger.warning(
                "%d reference(s) in the sample point to elements outside it: %s",
                len(unresolved), ", ".join(unresolved[:10]) + (" ..." if len(unresolved) > 10 else "")
            )

        synthesized = sum(1 for element in elements for node in element.iter_subtree() if node.synthetic)
        logger.info(f"Selected {len(elements)} element(s) using strategy '{strategy.value}' "
                    f"({run.processed} candidates examined).")
        return SelectionResult(
            elements=elements,
            unresolved_references=unresolved,
            candidates_processed=run.processed,
            synthesized_children=synthesized,
        )
