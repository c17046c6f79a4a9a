# src/xml_introspect/sampling/completion.py
import logging
from typing import Dict, List, Optional

from xml_introspect.dom.core import Element
from xml_introspect.managers.config_manager import config_manager
from xml_introspect.model import RequiredChildRule

logger = logging.getLogger(__name__)


class _Placeholders(dict):
    def __missing__(self, key):
        return "sample"


class CompletionPolicy:
    """
    Adds required children that sampling cut away, e.g. a WN-LMF Synset needs
    a Definition and a LexicalEntry needs a Lemma. Rules are keyed by the
    parent tag; an empty policy leaves every element untouched.
    """

    def __init__(self, rules: Optional[Dict[str, List[RequiredChildRule]]] = None):
        self.rules: Dict[str, List[RequiredChildRule]] = rules or {}

    @classmethod
    def from_config(cls) -> 'CompletionPolicy':
        raw = config_manager.get_section("completion_rules")
        rules = {
            tag: [RequiredChildRule.model_validate(entry) for entry in entries]
            for tag, entries in raw.items()
        }
        return cls(rules)

    def apply(self, element: Element) -> int:
        """Completes 'element' and its descendants in place; returns how many children were added."""
        if not self.rules:
            return 0
        added = 0
        # Snapshot first, synthesized children are not completed themselves
        for node in list(element.iter_subtree()):
            for rule in self.rules.get(node.tag, []):
                if any(child.tag == rule.tag for child in node.children):
                    continue
                node.children.append(self.synthesize(node, rule))
                added += 1
        if added:
            logger.debug("Synthesized %d required child element(s) under <%s>", added, element.tag)
        return added

    @staticmethod
    def synthesize(parent: Element, rule: RequiredChildRule) -> Element:
        values = _Placeholders(parent.attributes)
        return Element(
            tag=rule.tag,
            attributes={name: value.format_map(values) for name, value in rule.attributes.items()},
            text=rule.text.format_map(values) if rule.text else None,
            depth=parent.depth + 1,
            parent_id=parent.node_id,
            synthetic=True,
        )
