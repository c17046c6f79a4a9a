# src/xml_introspect/dom/builder.py
import io
import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from lxml import etree
from tqdm import tqdm

from xml_introspect.managers.config_manager import config_manager
from .core import Element, ElementTypeInfo
from .models import StructuralProfile, _top
from .scanner import LenientScanner

logger = logging.getLogger(__name__)

XML_NAMESPACE = "http://www.w3.org/XML/1998/namespace"


class _Frame:
    """Bookkeeping for one open element while the document streams past."""
    __slots__ = ("tag", "attributes", "node_id", "parent_id", "depth",
                 "captured", "capture_until", "children", "text_parts")

    def __init__(self, tag: str, attributes: Dict[str, str], node_id: int, parent_id: Optional[int],
                 depth: int, captured: bool, capture_until: int):
        self.tag = tag
        self.attributes = attributes
        self.node_id = node_id
        self.parent_id = parent_id
        self.depth = depth
        self.captured = captured
        self.capture_until = capture_until
        self.children: List[Element] = []
        self.text_parts: List[str] = []


class _TypeStats:
    __slots__ = ("count", "attributes", "children", "max_depth", "text_seen", "examples")

    def __init__(self):
        self.count = 0
        self.attributes: Dict[str, None] = {}
        self.children: Dict[str, None] = {}
        self.max_depth = 0
        self.text_seen = False
        self.examples: List[Element] = []


class ProfileAccumulator:
    """
    Turns a stream of start/text/end events into a StructuralProfile.

    Only a bounded part of the document is ever materialized: an element is
    captured as an Element snapshot when its tag still needs examples, or when
    it sits within 'example_depth_limit' levels below such an element, and a
    snapshot keeps at most 'example_child_limit' children. Everything else only
    updates counters.
    """

    def __init__(self, max_depth: int = 1000, max_total_elements: int = 100000,
                 examples_per_type: int = 5, example_child_limit: int = 25,
                 example_depth_limit: int = 6, top_n: int = 20):
        self.max_depth = max_depth
        self.max_total_elements = max_total_elements
        self.examples_per_type = examples_per_type
        self.example_child_limit = example_child_limit
        self.example_depth_limit = example_depth_limit
        self.top_n = top_n

        self.total_elements = 0
        self.deepest = 0
        self.halted = False
        self.partial = False
        self.diagnostics: List[str] = []

        self._stack: List[_Frame] = []
        self._types: Dict[str, _TypeStats] = {}
        self._attribute_counts: Dict[str, int] = {}
        self._namespaces: Dict[str, str] = {}
        self._root_elements: List[str] = []
        self._root_attributes: Optional[Dict[str, str]] = None
        self._lineage: Dict[int, Tuple[Optional[int], str]] = {}

    # --- Events ---

    def add_namespace(self, prefix: str, uri: str) -> None:
        self._namespaces.setdefault(prefix or "", uri)

    def start(self, tag: str, attributes: Dict[str, str]) -> bool:
        """Registers an opening tag. Returns False once a ceiling stops the analysis."""
        if self.halted:
            return False
        depth = len(self._stack)
        if depth > self.max_depth:
            self.halt(f"Depth ceiling of {self.max_depth} exceeded at <{tag}>; analysis stopped early")
            return False
        if self.total_elements >= self.max_total_elements:
            self.halt(f"Element ceiling of {self.max_total_elements} reached; analysis stopped early")
            return False

        node_id = self.total_elements
        self.total_elements += 1
        self.deepest = max(self.deepest, depth)

        stats = self._types.get(tag)
        if stats is None:
            stats = self._types[tag] = _TypeStats()
        stats.count += 1
        stats.max_depth = max(stats.max_depth, depth)
        for name in attributes:
            stats.attributes.setdefault(name)
            self._attribute_counts[name] = self._attribute_counts.get(name, 0) + 1

        parent = self._stack[-1] if self._stack else None
        if parent is None:
            self._root_elements.append(tag)
            if self._root_attributes is None:
                self._root_attributes = dict(attributes)
        else:
            self._types[parent.tag].children.setdefault(tag)

        wants_example = len(stats.examples) < self.examples_per_type
        inherited = -1
        if parent is not None and parent.captured and len(parent.children) < self.example_child_limit:
            inherited = parent.capture_until
        captured = wants_example or depth <= inherited
        capture_until = max(inherited, depth + self.example_depth_limit) if wants_example else inherited

        frame = _Frame(tag, dict(attributes) if captured else {}, node_id,
                       parent.node_id if parent is not None else None, depth, captured, capture_until)
        self._stack.append(frame)
        if captured:
            self._record_lineage()
        return True

    def add_text(self, text: Optional[str]) -> None:
        if not text or not self._stack:
            return
        stripped = text.strip()
        if not stripped:
            return
        frame = self._stack[-1]
        self._types[frame.tag].text_seen = True
        if frame.captured:
            frame.text_parts.append(stripped)

    def end(self) -> Optional[Element]:
        if not self._stack:
            return None
        frame = self._stack.pop()
        if not frame.captured:
            return None

        element = Element(
            tag=frame.tag,
            attributes=frame.attributes,
            children=frame.children,
            depth=frame.depth,
            text=" ".join(frame.text_parts) or None,
            node_id=frame.node_id,
            parent_id=frame.parent_id,
        )
        stats = self._types[frame.tag]
        if len(stats.examples) < self.examples_per_type:
            stats.examples.append(element)
        if self._stack:
            parent = self._stack[-1]
            if parent.captured and len(parent.children) < self.example_child_limit:
                parent.children.append(element)
        return element

    # --- Bookkeeping ---

    @property
    def distinct_tags(self) -> int:
        return len(self._types)

    def halt(self, message: str) -> None:
        self.halted = True
        self.mark_partial(message)
        logger.warning(message)

    def mark_partial(self, message: str) -> None:
        self.partial = True
        self.diagnostics.append(message)

    def _record_lineage(self) -> None:
        # Walk up until an ancestor that is already known
        for frame in reversed(self._stack):
            if frame.node_id in self._lineage:
                break
            self._lineage[frame.node_id] = (frame.parent_id, frame.tag)

    def build(self, parse_mode: str = "strict") -> StructuralProfile:
        # Elements left open (ceiling, truncated input) still yield snapshots
        while self._stack:
            self.end()

        element_types = {
            tag: ElementTypeInfo(
                count=stats.count,
                attributes=list(stats.attributes),
                children=list(stats.children),
                max_depth=stats.max_depth,
                text_seen=stats.text_seen,
                examples=stats.examples,
            )
            for tag, stats in self._types.items()
        }
        element_counts = {tag: stats.count for tag, stats in self._types.items()}

        return StructuralProfile(
            total_elements=self.total_elements,
            max_depth=self.deepest,
            root_element=self._root_elements[0] if self._root_elements else None,
            root_elements=list(self._root_elements),
            root_attributes=self._root_attributes or {},
            element_types=element_types,
            namespaces=dict(self._namespaces),
            element_counts=element_counts,
            attribute_counts=dict(self._attribute_counts),
            common_elements=_top(element_counts, self.top_n),
            common_attributes=_top(self._attribute_counts, self.top_n),
            partial=self.partial,
            parse_mode=parse_mode,
            diagnostics=list(self.diagnostics),
            lineage=dict(self._lineage),
        )


class StructureAnalyzer:
    """
    Produces a StructuralProfile from XML text or an XML file.

    Documents are streamed with lxml.etree.iterparse and finished subtrees are
    discarded as soon as their events are consumed, so memory stays flat even
    for multi-gigabyte inputs. Text that lxml rejects is handed to the
    LenientScanner instead and the resulting profile is flagged as partial.
    """

    def __init__(self, max_depth: Optional[int] = None, max_total_elements: Optional[int] = None,
                 examples_per_type: Optional[int] = None, example_child_limit: Optional[int] = None,
                 example_depth_limit: Optional[int] = None, top_n: Optional[int] = None,
                 show_progress: Optional[bool] = None):
        settings = config_manager.get_section("analyzer")

        def pick(value, key, default):
            return value if value is not None else settings.get(key, default)

        self.max_depth = int(pick(max_depth, "max_depth", 1000))
        self.max_total_elements = int(pick(max_total_elements, "max_total_elements", 100000))
        self.examples_per_type = int(pick(examples_per_type, "examples_per_type", 5))
        self.example_child_limit = int(pick(example_child_limit, "example_child_limit", 25))
        self.example_depth_limit = int(pick(example_depth_limit, "example_depth_limit", 6))
        self.top_n = int(pick(top_n, "top_n", 20))
        self.show_progress = bool(pick(show_progress, "show_progress", False))

    def new_accumulator(self) -> ProfileAccumulator:
        return ProfileAccumulator(
            max_depth=self.max_depth,
            max_total_elements=self.max_total_elements,
            examples_per_type=self.examples_per_type,
            example_child_limit=self.example_child_limit,
            example_depth_limit=self.example_depth_limit,
            top_n=self.top_n,
        )

    def analyze(self, document_text: str) -> StructuralProfile:
        accumulator = self.new_accumulator()
        if not document_text or not document_text.strip():
            accumulator.mark_partial("Document is empty")
            return accumulator.build()

        # BOMs and leading whitespace make lxml reject the XML declaration
        clean = document_text.replace("\ufeff", "").strip()
        try:
            # The text is already decoded, so any declared encoding no longer applies.
            # Lone surrogates can't be encoded and end up as '?'.
            self._consume(io.BytesIO(clean.encode("utf-8", errors="replace")), accumulator, encoding="utf-8")
        except etree.XMLSyntaxError as e:
            logger.warning("Strict XML parse failed (%s); falling back to lenient scan.", e)
            return self._lenient_profile(clean, e)

        logger.info(f"Analyzed {accumulator.total_elements} elements ({accumulator.distinct_tags} distinct tags).")
        return accumulator.build()

    def analyze_file(self, path: Union[str, Path]) -> StructuralProfile:
        """
        Streams a file from disk. A syntax error part-way through keeps the
        profile of everything read before it, flagged as partial, unless a
        lenient scan of the file finds more elements.
        """
        path = Path(path)
        accumulator = self.new_accumulator()
        try:
            self._consume(str(path), accumulator)
        except etree.XMLSyntaxError as e:
            message = f"Parse error after {accumulator.total_elements} elements: {e}"
            logger.warning("%s: %s", path, message)
            # An early error leaves little behind; a lenient scan of the whole file may see more
            text = path.read_bytes().decode("utf-8", errors="replace").replace("\ufeff", "").strip()
            lenient = self._lenient_profile(text, e)
            if lenient.total_elements > accumulator.total_elements:
                return lenient
            accumulator.mark_partial(message)
        return accumulator.build()

    def _lenient_profile(self, text: str, error: Exception) -> StructuralProfile:
        accumulator = self.new_accumulator()
        LenientScanner().scan(text, accumulator)
        accumulator.mark_partial(f"Document is not well-formed ({error}); profile built by lenient scan")
        return accumulator.build(parse_mode="lenient")

    def _consume(self, source, accumulator: ProfileAccumulator, encoding: Optional[str] = None) -> None:
        options = dict(
            events=("start-ns", "start", "end"),
            huge_tree=True,
            resolve_entities=False,
            no_network=True,
            remove_comments=True,
            remove_pis=True,
        )
        if encoding:
            options["encoding"] = encoding
        context = etree.iterparse(source, **options)

        progress = tqdm(desc="Analyzing", unit=" el", leave=False, disable=not self.show_progress)
        try:
            for event, payload in context:
                if event == "start-ns":
                    prefix, uri = payload
                    accumulator.add_namespace(prefix, uri)
                    continue

                el = payload
                if event == "start":
                    parent = el.getparent()
                    if parent is not None and el.getprevious() is None:
                        # Leading text of the parent is complete once its first child opens
                        accumulator.add_text(parent.text)
                    if not accumulator.start(self.qualified_tag(el), self.qualified_attributes(el)):
                        break
                    progress.update(1)
                    continue

                # end: text of a leaf, or the tail after the last (still attached) child
                if len(el) == 0:
                    accumulator.add_text(el.text)
                else:
                    for child in el:
                        accumulator.add_text(child.tail)
                accumulator.end()

                # Detach finished siblings; their tails belong to the parent frame now on top
                parent = el.getparent()
                if parent is not None:
                    previous = el.getprevious()
                    while previous is not None:
                        accumulator.add_text(previous.tail)
                        parent.remove(previous)
                        previous = el.getprevious()
                el.clear(keep_tail=True)
        finally:
            progress.close()
            del context

    @staticmethod
    def qualified_tag(el) -> str:
        """Tag as written in the source: 'prefix:local' or just 'local'."""
        local = etree.QName(el).localname
        return f"{el.prefix}:{local}" if el.prefix else local

    @staticmethod
    def qualified_attributes(el) -> Dict[str, str]:
        attributes: Dict[str, str] = {}
        prefixes = None
        for key, value in el.attrib.items():
            if key.startswith("{"):
                uri, local = key[1:].split("}", 1)
                if uri == XML_NAMESPACE:
                    prefix = "xml"
                else:
                    if prefixes is None:
                        prefixes = {ns_uri: ns_prefix for ns_prefix, ns_uri in el.nsmap.items() if ns_prefix}
                    prefix = prefixes.get(uri)
                key = f"{prefix}:{local}" if prefix else local
            attributes[key] = value
        return attributes
