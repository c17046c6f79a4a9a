# tests/core/test_format_service.py
import bz2
import gzip
import io
import lzma
import tarfile

import pytest

from xml_introspect.services.format_service import FormatService

XML_TEXT = '<?xml version="1.0" encoding="UTF-8"?>\n<root><item id="1">café</item></root>\n'


@pytest.fixture
def service():
    return FormatService(enable_tar_extraction=True)


def _tar_bytes(members):
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as archive:
        for name, content in members:
            info = tarfile.TarInfo(name=name)
            info.size = len(content)
            archive.addfile(info, io.BytesIO(content))
    return buffer.getvalue()


def test_plain_xml(service):
    result = service.decode(XML_TEXT.encode("utf-8"))

    assert result.success is True
    assert result.text == XML_TEXT
    assert result.content_type == "xml"
    assert result.confidence == "high"
    assert "No compression detected" in result.processing_steps


@pytest.mark.parametrize("compress, step", [
    (gzip.compress, "GZIP decompression"),
    (lzma.compress, "XZ decompression"),
    (bz2.compress, "BZIP2 decompression"),
])
def test_compressed_xml(service, compress, step):
    data = compress(XML_TEXT.encode("utf-8"))
    result = service.decode(data)

    assert result.success is True
    assert result.text == XML_TEXT
    assert step in result.processing_steps
    assert result.original_size == len(data)
    assert result.final_size == len(XML_TEXT.encode("utf-8"))


def test_tar_archive_uses_first_xml_member(service):
    data = _tar_bytes([("README.txt", b"hello"), ("data/wn.xml", XML_TEXT.encode("utf-8")),
                       ("other.xml", b"<other/>")])
    result = service.decode(data)

    assert result.success is True
    assert result.text == XML_TEXT
    assert result.extracted_files == [{"name": "data/wn.xml", "size": len(XML_TEXT.encode("utf-8"))}]
    assert "Tar archive detected" in result.processing_steps


def test_gzipped_tar_archive(service):
    data = gzip.compress(_tar_bytes([("wn.xml", XML_TEXT.encode("utf-8"))]))
    result = service.decode(data)

    assert result.success is True
    assert result.processing_steps[0] == "GZIP decompression"
    assert result.text == XML_TEXT


def test_tar_extraction_can_be_disabled():
    data = _tar_bytes([("wn.xml", XML_TEXT.encode("utf-8"))])
    result = FormatService(enable_tar_extraction=False).decode(data)

    assert result.success is False
    assert result.content_type == "tar"
    assert "disabled" in result.error


def test_tar_without_xml_fails(service):
    result = service.decode(_tar_bytes([("README.txt", b"hello")]))
    assert result.success is False
    assert "no .xml file" in result.error


def test_corrupt_gzip_is_reported_not_raised(service):
    result = service.decode(b"\x1f\x8b" + b"definitely not gzip")

    assert result.success is False
    assert result.error
    assert result.text is None
    assert result.processing_steps == ["GZIP decompression"]


def test_declared_encoding_is_honoured(service):
    data = '<?xml version="1.0" encoding="ISO-8859-1"?><a>café</a>'.encode("latin-1")
    result = service.decode(data)
    assert "café" in result.text


def test_content_type_detection(service):
    assert service.detect_content_type('<?xml version="1.0"?><LexicalResource/>') == ("lmf", "high")
    assert service.detect_content_type("<root/>") == ("xml", "medium")
    assert service.detect_content_type("id\tlemma\n1\tdog\n") == ("tsv", "medium")
    assert service.detect_content_type("") == ("unknown", "low")
    assert service.detect_content_type("just words") == ("unknown", "low")
