# tests/core/test_validation_service.py
import time

import pytest

from xml_introspect.model import SchemaOptions, ValidationResult
from xml_introspect.services.schema_service import SchemaInferencer
from xml_introspect.services.validation_service import ValidationService

CATALOG_XML = '<Catalog><Item id="1"><Name>A</Name></Item></Catalog>'


@pytest.fixture
def service():
    return ValidationService(timeout_seconds=10)


@pytest.fixture
def catalog_xsd(analyzer):
    profile = analyzer.analyze(CATALOG_XML)
    return SchemaInferencer().infer_schema(profile, SchemaOptions(target_namespace=None))


def test_valid_document(service, catalog_xsd):
    result = service.validate(CATALOG_XML, catalog_xsd)
    assert result.valid is True
    assert result.errors == []
    assert result.fallback is False


def test_invalid_document_reports_errors(service, catalog_xsd):
    result = service.validate("<Catalog><Bogus/></Catalog>", catalog_xsd)
    assert result.valid is False
    assert result.errors
    assert "Bogus" in " ".join(result.errors)


def test_malformed_document(service, catalog_xsd):
    result = service.validate("<Catalog><Item>", catalog_xsd)
    assert result.valid is False
    assert "not well-formed" in result.errors[0]


def test_invalid_schema(service):
    result = service.validate(CATALOG_XML, "<not-a-schema/>")
    assert result.valid is False
    assert result.errors[0].startswith("Invalid schema")


def test_timeout_falls_back_to_well_formedness(service, catalog_xsd, monkeypatch):
    def slow_validation(xml_text, xsd_text):
        time.sleep(1.0)
        return ValidationResult(valid=False, errors=["too late"])

    monkeypatch.setattr(ValidationService, "validate_with_schema", staticmethod(slow_validation))

    result = service.validate("<Catalog><Bogus/></Catalog>", catalog_xsd, timeout=0.05)

    assert result.fallback is True
    assert result.valid is True
    assert any("Basic validation only" in w for w in result.warnings)
    assert any("timed out" in w for w in result.warnings)


def test_well_formedness_check_reports_broken_input():
    result = ValidationService.check_well_formed("<a>", "<xs:schema")
    assert result.valid is False
    assert len(result.errors) == 2
    assert result.fallback is True


def test_timeout_defaults_from_settings():
    assert ValidationService().timeout_seconds == 30.0
