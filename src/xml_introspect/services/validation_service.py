# src/xml_introspect/services/validation_service.py
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from typing import Optional

from lxml import etree

from xml_introspect.managers.config_manager import config_manager
from xml_introspect.model import ValidationResult

logger = logging.getLogger(__name__)


def _parse(text: str):
    parser = etree.XMLParser(encoding="utf-8", resolve_entities=False, no_network=True, huge_tree=True)
    return etree.fromstring(text.encode("utf-8"), parser)


class ValidationService:
    """
    Validates a document against an XSD with lxml.

    Schema validation runs in a worker thread bounded by a timeout; when it
    takes too long the result degrades to a well-formedness check of both
    documents and is flagged with 'fallback=True'.
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        if timeout_seconds is None:
            timeout_seconds = config_manager.get_nested("validation.timeout_seconds", 30)
        self.timeout_seconds = float(timeout_seconds)

    def validate(self, xml_text: str, xsd_text: str, timeout: Optional[float] = None) -> ValidationResult:
        timeout = self.timeout_seconds if timeout is None else float(timeout)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="xsd-validation")
        try:
            future = executor.submit(self.validate_with_schema, xml_text, xsd_text)
            return future.result(timeout=timeout)
        except FuturesTimeoutError:
            logger.warning("Schema validation exceeded %.1fs; falling back to a well-formedness check.", timeout)
            result = self.check_well_formed(xml_text, xsd_text)
            result.warnings.append(f"Schema validation timed out after {timeout:g}s")
            return result
        finally:
            # Don't block on a validation that is still running
            executor.shutdown(wait=False, cancel_futures=True)

    @staticmethod
    def validate_with_schema(xml_text: str, xsd_text: str) -> ValidationResult:
        try:
            schema = etree.XMLSchema(_parse(xsd_text))
        except (etree.XMLSyntaxError, etree.XMLSchemaParseError) as e:
            return ValidationResult(valid=False, errors=[f"Invalid schema: {e}"])

        try:
            document = _parse(xml_text)
        except etree.XMLSyntaxError as e:
            return ValidationResult(valid=False, errors=[f"Document is not well-formed: {e}"])

        valid = schema.validate(document)
        errors = [f"line {entry.line}: {entry.message}" for entry in schema.error_log
                  if entry.level_name in ("ERROR", "FATAL")]
        warnings = [f"line {entry.line}: {entry.message}" for entry in schema.error_log
                    if entry.level_name == "WARNING"]
        if not valid:
            logger.info("Document failed schema validation with %d error(s).", len(errors))
        return ValidationResult(valid=valid, errors=errors, warnings=warnings)

    @staticmethod
    def check_well_formed(xml_text: str, xsd_text: Optional[str] = None) -> ValidationResult:
        """Basic validation: both documents parse, nothing more is checked."""
        errors = []
        try:
            _parse(xml_text)
        except etree.XMLSyntaxError as e:
            errors.append(f"Document is not well-formed: {e}")
        if xsd_text is not None:
            try:
                _parse(xsd_text)
            except etree.XMLSyntaxError as e:
                errors.append(f"Schema is not well-formed: {e}")
        return ValidationResult(
            valid=not errors,
            errors=errors,
            warnings=["Basic validation only: the document was checked for well-formedness, not against the schema"],
            fallback=True,
        )
