# src/xml_introspect/introspector.py
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from pathlib import Path
from typing import Optional, Tuple, Union

from xml_introspect.dom.builder import StructureAnalyzer
from xml_introspect.dom.models import StructuralProfile
from xml_introspect.managers.config_manager import config_manager
from xml_introspect.model import (
    DecodeResult, IntrospectionResult, SamplingOptions, SchemaOptions, SelectionResult, ValidationResult,
)
from xml_introspect.sampling.selector import SampleSelector
from xml_introspect.services.format_service import FormatService
from xml_introspect.services.schema_service import SchemaInferencer
from xml_introspect.services.serializer_service import XMLSerializer
from xml_introspect.services.validation_service import ValidationService
from xml_introspect.utils.run_timers import RunTimers

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Enough bytes to see compression magic and the tar header
SNIFF_BYTES = 512


class DocumentDecodeError(Exception):
    """Raised when an input file can't be turned into XML text."""

    def __init__(self, path: PathLike, result: DecodeResult):
        super().__init__(f"Could not decode {path}: {result.error}")
        self.path = path
        self.result = result


class XMLIntrospector:
    """
    Entry point tying the pipeline together:
    bytes -> text -> StructuralProfile -> sample XML, and profile -> XSD.

    Each collaborator can be swapped through the constructor; by default all
    of them are built from the shared configuration.
    """

    def __init__(self, analyzer: Optional[StructureAnalyzer] = None, selector: Optional[SampleSelector] = None,
                 serializer: Optional[XMLSerializer] = None, schema_inferencer: Optional[SchemaInferencer] = None,
                 validator: Optional[ValidationService] = None, formats: Optional[FormatService] = None):
        self.analyzer = analyzer or StructureAnalyzer()
        self.selector = selector or SampleSelector()
        self.serializer = serializer or XMLSerializer()
        self.schema_inferencer = schema_inferencer or SchemaInferencer()
        self.validator = validator or ValidationService()
        self.formats = formats or FormatService()

    # --- Loading ---

    def decode_file(self, path: PathLike) -> str:
        """Reads a (possibly compressed or archived) file into XML text."""
        result = self.formats.decode(Path(path).read_bytes())
        if not result.success:
            raise DocumentDecodeError(path, result)
        logger.debug("Decoded %s: %s", path, "; ".join(result.processing_steps))
        return result.text

    # --- Analysis ---

    def analyze(self, document_text: str) -> StructuralProfile:
        return self.analyzer.analyze(document_text)

    def analyze_bytes(self, data: bytes) -> StructuralProfile:
        result = self.formats.decode(data)
        if not result.success:
            raise DocumentDecodeError("<bytes>", result)
        return self.analyzer.analyze(result.text)

    def analyze_file(self, path: PathLike) -> StructuralProfile:
        """
        Plain XML files are streamed from disk; compressed or archived ones are
        decoded in memory first.
        """
        path = Path(path)
        with open(path, "rb") as f:
            head = f.read(SNIFF_BYTES)
        if self.formats.is_compressed(head) or self.formats.is_tar(head):
            return self.analyzer.analyze(self.decode_file(path))
        return self.analyzer.analyze_file(path)

    # --- Derived artifacts ---

    def select(self, profile: StructuralProfile, options: Optional[SamplingOptions] = None) -> SelectionResult:
        return self.selector.select_with_report(profile, options)

    def generate_sample(self, profile: StructuralProfile, options: Optional[SamplingOptions] = None) -> str:
        sample, _ = self.generate_sample_with_report(profile, options)
        return sample

    def generate_sample_with_report(self, profile: StructuralProfile,
                                    options: Optional[SamplingOptions] = None) -> Tuple[str, SelectionResult]:
        options = options or SamplingOptions.from_config()
        selection = self.selector.select_with_report(profile, options)
        sample = self.serializer.serialize(
            selection.elements, profile, options.max_elements, preserve_attributes=options.preserve_attributes
        )
        return sample, selection

    def generate_schema(self, profile: StructuralProfile, options: Optional[SchemaOptions] = None) -> str:
        return self.schema_inferencer.infer_schema(profile, options)

    def validate(self, xml_text: str, xsd_text: str, timeout: Optional[float] = None) -> ValidationResult:
        return self.validator.validate(xml_text, xsd_text, timeout=timeout)

    def introspect(self, document_text: str, sampling: Optional[SamplingOptions] = None,
                   schema: Optional[SchemaOptions] = None, validate: bool = False) -> IntrospectionResult:
        """Runs the whole pipeline on one document and reports per-phase timings."""
        timers = RunTimers()
        timers.start()
        with timers.phase("analyze"):
            profile = self.analyze(document_text)
        with timers.phase("sample"):
            sample, selection = self.generate_sample_with_report(profile, sampling)
        with timers.phase("schema"):
            xsd = self.generate_schema(profile, schema)
        validation = None
        if validate:
            with timers.phase("validate"):
                validation = self.validate(sample, xsd)
        timers.stop()
        logger.info("Introspection finished: %r", timers)
        return IntrospectionResult(
            profile=profile, selection=selection, sample_xml=sample, xsd=xsd,
            validation=validation, timings=timers.as_dict(),
        )

    def transform_big_to_small(self, input_path: PathLike, output_path: PathLike,
                               options: Optional[SamplingOptions] = None,
                               timeout: Optional[float] = None) -> SelectionResult:
        """
        Writes a sample of 'input_path' to 'output_path'. Raises TimeoutError
        when the whole run takes longer than 'transform.timeout_seconds'.
        """
        if timeout is None:
            timeout = float(config_manager.get_nested("transform.timeout_seconds", 45))

        def run() -> SelectionResult:
            profile = self.analyze_file(input_path)
            sample, selection = self.generate_sample_with_report(profile, options)
            Path(output_path).write_text(sample, encoding="utf-8")
            return selection

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="transform")
        try:
            selection = executor.submit(run).result(timeout=timeout)
        except FuturesTimeoutError:
            raise TimeoutError(f"Transform of {input_path} timed out after {timeout:g} seconds") from None
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
        logger.info(f"Wrote sample of {input_path} ({len(selection.elements)} elements) to {output_path}")
        return selection
