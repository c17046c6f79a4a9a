# src/xml_introspect/services/schema_service.py
import logging
from typing import Dict, List, Optional

from lxml import etree

from xml_introspect.dom.models import StructuralProfile
from xml_introspect.model import SchemaOptions

logger = logging.getLogger(__name__)

XS_NAMESPACE = "http://www.w3.org/2001/XMLSchema"


def _xs(name: str) -> str:
    return f"{{{XS_NAMESPACE}}}{name}"


def local_name(qualified: str) -> str:
    return qualified.rsplit(":", 1)[-1]


class _TypeShape:
    __slots__ = ("children", "attributes", "foreign_attributes", "mixed")

    def __init__(self):
        self.children: Dict[str, None] = {}
        self.attributes: Dict[str, None] = {}
        self.foreign_attributes = False
        self.mixed = False


class SchemaInferencer:
    """
    Derives a permissive XSD from a StructuralProfile.

    Every tag becomes a global element with a complex type; children are an
    optional, repeatable sequence of references in first-seen order and every
    attribute is an optional xs:string. Value types, cardinalities and order
    constraints are deliberately not inferred.
    """

    def infer_schema(self, profile: StructuralProfile, options: Optional[SchemaOptions] = None) -> str:
        options = options or SchemaOptions.from_config()
        target = options.target_namespace or None

        nsmap = {"xs": XS_NAMESPACE}
        if target:
            nsmap[None] = target
        schema = etree.Element(_xs("schema"), nsmap=nsmap)
        if target:
            schema.set("targetNamespace", target)
        schema.set("elementFormDefault", options.element_form.value)
        schema.set("attributeFormDefault", options.attribute_form.value)

        shapes = self.collect_shapes(profile)
        for name in shapes:
            etree.SubElement(schema, _xs("element"), name=name, type=f"{name}Type")
        for name, shape in shapes.items():
            self._complex_type(schema, name, shape)

        logger.info("Inferred schema with %d element declaration(s).", len(shapes))
        return etree.tostring(schema, pretty_print=True, xml_declaration=True, encoding="UTF-8").decode("utf-8")

    @staticmethod
    def collect_shapes(profile: StructuralProfile) -> Dict[str, _TypeShape]:
        """Per local name, the union of what every tag with that local name showed."""
        shapes: Dict[str, _TypeShape] = {}
        for tag, info in profile.element_types.items():
            shape = shapes.setdefault(local_name(tag), _TypeShape())
            for child in info.children:
                shape.children.setdefault(local_name(child))
            for attribute in info.attributes:
                if ":" in attribute:
                    shape.foreign_attributes = True
                else:
                    shape.attributes.setdefault(attribute)
            shape.mixed = shape.mixed or info.text_seen
        return shapes

    @staticmethod
    def _complex_type(schema, name: str, shape: _TypeShape) -> None:
        complex_type = etree.SubElement(schema, _xs("complexType"), name=f"{name}Type")
        if shape.mixed:
            complex_type.set("mixed", "true")
        if shape.children:
            sequence = etree.SubElement(complex_type, _xs("sequence"))
            for child in shape.children:
                etree.SubElement(sequence, _xs("element"), ref=child, minOccurs="0", maxOccurs="unbounded")
        for attribute in shape.attributes:
            etree.SubElement(complex_type, _xs("attribute"), name=attribute, type="xs:string")
        if shape.foreign_attributes:
            etree.SubElement(complex_type, _xs("anyAttribute"), namespace="##other", processContents="skip")

    def declared_elements(self, xsd_text: str) -> List[str]:
        """Names of the global element declarations in a schema produced by infer_schema."""
        root = etree.fromstring(xsd_text.encode("utf-8"))
        return [el.get("name") for el in root.findall(_xs("element"))]
