# src/xml_introspect/dom/scanner.py
import logging
import re
from html import unescape
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

# One token per match: comment | CDATA | processing instruction | doctype | tag
TOKEN_PATTERN = re.compile(
    r"<!--.*?(?:-->|\Z)"
    r"|<!\[CDATA\[(?P<cdata>.*?)(?:\]\]>|\Z)"
    r"|<\?.*?(?:\?>|\Z)"
    r"|<!(?:[^>\[]|\[[^\]]*\])*>"
    r"|<(?P<close>/)?(?P<name>[A-Za-z_][\w:.\-]*)(?P<attrs>(?:\s[^<>]*?)?)\s*(?P<selfclose>/)?>",
    re.DOTALL,
)

ATTRIBUTE_PATTERN = re.compile(r"([A-Za-z_][\w:.\-]*)\s*=\s*(?:\"([^\"]*)\"|'([^']*)')")


class LenientScanner:
    """
    Regex based tokenizer for documents lxml refuses to parse.

    It feeds the same start/text/end events into a ProfileAccumulator as the
    strict parser does, tolerating what a real parser would not: a closing tag
    closes everything opened after its matching start tag, closing tags without
    a match are ignored, and tags still open at end of input are closed there.
    """

    def scan(self, text: str, accumulator) -> None:
        open_tags: List[str] = []
        position = 0

        for match in TOKEN_PATTERN.finditer(text):
            if accumulator.halted:
                break
            if open_tags and match.start() > position:
                accumulator.add_text(unescape(text[position:match.start()]))
            position = match.end()

            name = match.group("name")
            if name is None:
                cdata = match.group("cdata")
                if cdata and open_tags:
                    accumulator.add_text(cdata)
                continue

            if match.group("close"):
                if name not in open_tags:
                    logger.debug("Ignoring unmatched closing tag </%s>", name)
                    continue
                while open_tags:
                    closed = open_tags.pop()
                    accumulator.end()
                    if closed == name:
                        break
                continue

            attributes, namespaces = self.parse_attributes(match.group("attrs"))
            for prefix, uri in namespaces.items():
                accumulator.add_namespace(prefix, uri)
            if not accumulator.start(name, attributes):
                break
            if match.group("selfclose"):
                accumulator.end()
            else:
                open_tags.append(name)

        if open_tags and not accumulator.halted and position < len(text):
            # Drop a truncated tag ('<B att="x') at end of input
            trailing = text[position:].split("<", 1)[0]
            accumulator.add_text(unescape(trailing))
        if open_tags:
            logger.debug("Closing %d tag(s) left open at end of input", len(open_tags))
        while open_tags:
            open_tags.pop()
            accumulator.end()

    @staticmethod
    def parse_attributes(raw: Optional[str]) -> Tuple[Dict[str, str], Dict[str, str]]:
        """Splits a raw attribute string into (attributes, namespace declarations)."""
        attributes: Dict[str, str] = {}
        namespaces: Dict[str, str] = {}
        for match in ATTRIBUTE_PATTERN.finditer(raw or ""):
            name = match.group(1)
            value = match.group(2) if match.group(2) is not None else match.group(3)
            value = unescape(value)
            if name == "xmlns":
                namespaces[""] = value
            elif name.startswith("xmlns:"):
                namespaces[name[len("xmlns:"):]] = value
            else:
                attributes[name] = value
        return attributes, namespaces
