# src/xml_introspect/services/serializer_service.py
import logging
from html import escape
from typing import Dict, List

from xml_introspect.dom.core import Element
from xml_introspect.dom.models import StructuralProfile

logger = logging.getLogger(__name__)

FALLBACK_ROOT = "sample"


class XMLSerializer:
    """
    Renders a selection as a standalone XML document wrapped in the profile's root.

    'max_elements' bounds the number of emitted elements below the root,
    nested descendants included; the root wrapper itself is not counted.
    Selected elements all become children of the root wrapper, but each line
    is indented by the element's depth in the source document.
    """

    def __init__(self, indent: str = "  "):
        self.indent = indent

    def serialize(self, selection: List[Element], profile: StructuralProfile, max_elements: int,
                  preserve_attributes: bool = True) -> str:
        root = profile.root_element or FALLBACK_ROOT
        parts: List[str] = ['<?xml version="1.0" encoding="UTF-8"?>\n']
        if profile.root_element:
            parts.append(f"<!-- DOCTYPE {root} -->\n")

        root_attributes = self.namespace_declarations(profile)
        if preserve_attributes and profile.root_element:
            for name, value in profile.root_attributes.items():
                root_attributes.setdefault(name, value)
        parts.append(f"<{root}{self.render_attributes(root_attributes)}>\n")

        emitted = 0
        for element in selection:
            if emitted >= max_elements:
                logger.debug("Serializer budget of %d elements reached", max_elements)
                break
            if element.depth == 0:
                continue
            emitted = self._render(element, emitted, max_elements, preserve_attributes, parts)

        parts.append(f"</{root}>\n")
        return "".join(parts)

    @staticmethod
    def namespace_declarations(profile: StructuralProfile) -> Dict[str, str]:
        declarations: Dict[str, str] = {}
        for prefix, uri in profile.namespaces.items():
            if prefix == "xml":
                continue
            declarations[f"xmlns:{prefix}" if prefix else "xmlns"] = uri
        return declarations

    @staticmethod
    def render_attributes(attributes: Dict[str, str]) -> str:
        return "".join(f' {name}="{escape(str(value), quote=True)}"' for name, value in attributes.items())

    def _render(self, element: Element, emitted: int, max_elements: int,
                preserve_attributes: bool, parts: List[str]) -> int:
        # Indented by the element's depth in the source document
        indent = self.indent * max(element.depth, 1)
        emitted += 1
        attributes = self.render_attributes(element.attributes) if preserve_attributes else ""
        emit_children = bool(element.children) and emitted < max_elements

        if not element.text and not emit_children:
            parts.append(f"{indent}<{element.tag}{attributes}/>\n")
            return emitted

        parts.append(f"{indent}<{element.tag}{attributes}>")
        if element.text:
            parts.append(escape(element.text, quote=False))
        if emit_children:
            parts.append("\n")
            for child in element.children:
                if emitted >= max_elements:
                    break
                emitted = self._render(child, emitted, max_elements, preserve_attributes, parts)
            parts.append(indent)
        parts.append(f"</{element.tag}>\n")
        return emitted
