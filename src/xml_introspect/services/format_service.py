# src/xml_introspect/services/format_service.py
import bz2
import gzip
import io
import logging
import lzma
import re
import tarfile
import zlib
from typing import Any, Dict, List, Optional, Tuple

from xml_introspect.managers.config_manager import config_manager
from xml_introspect.model import DecodeResult
from xml_introspect.utils.run_timers import RunTimers

logger = logging.getLogger(__name__)

XZ_MAGIC = b"\xfd7zXZ\x00"
GZIP_MAGIC = b"\x1f\x8b"
BZIP2_MAGIC = b"BZh"
TAR_MAGIC_OFFSET = 257

ENCODING_DECLARATION = re.compile(rb"""^<\?xml[^>]*?encoding\s*=\s*["']([A-Za-z0-9._\-]+)["']""")

DECODE_ERRORS = (OSError, EOFError, ValueError, lzma.LZMAError, zlib.error, tarfile.TarError)


class FormatService:
    """
    Turns raw downloads into XML text: xz, gzip and bz2 payloads are
    decompressed (detected by magic bytes, not file names), tar archives are
    unpacked to their first .xml member, and the text is decoded honouring the
    XML declaration. Failures come back as a DecodeResult, never as exceptions.
    """

    def __init__(self, enable_tar_extraction: Optional[bool] = None):
        if enable_tar_extraction is None:
            enable_tar_extraction = config_manager.get_nested("formats.enable_tar_extraction", True)
        self.enable_tar_extraction = bool(enable_tar_extraction)

    @staticmethod
    def is_compressed(data: bytes) -> bool:
        return data.startswith((XZ_MAGIC, GZIP_MAGIC, BZIP2_MAGIC))

    @staticmethod
    def is_tar(data: bytes) -> bool:
        return data[TAR_MAGIC_OFFSET:TAR_MAGIC_OFFSET + 5] == b"ustar"

    def decode(self, data: bytes) -> DecodeResult:
        timer = RunTimers()
        timer.start()
        steps: List[str] = []
        extracted: List[Dict[str, Any]] = []
        content_type = "unknown"
        try:
            payload = self._decompress(data, steps)

            if self.is_tar(payload):
                content_type = "tar"
                steps.append("Tar archive detected")
                if not self.enable_tar_extraction:
                    raise ValueError("tar extraction is disabled (formats.enable_tar_extraction)")
                payload, extracted = self._extract_first_xml(payload)
                steps.append(f"Extracted {extracted[0]['name']}")

            text = self.decode_text(payload)
        except DECODE_ERRORS as e:
            timer.stop()
            logger.warning("Decoding failed: %s", e)
            return DecodeResult(
                success=False,
                error=f"{type(e).__name__}: {e}",
                content_type=content_type,
                processing_steps=steps,
                original_size=len(data),
                extracted_files=extracted,
                processing_time=timer.duration,
            )

        detected, confidence = self.detect_content_type(text)
        steps.append(f"Detected content type '{detected}' ({confidence} confidence)")
        timer.stop()
        return DecodeResult(
            success=True,
            text=text,
            content_type=detected,
            confidence=confidence,
            processing_steps=steps,
            original_size=len(data),
            final_size=len(payload),
            extracted_files=extracted,
            processing_time=timer.duration,
        )

    @staticmethod
    def _decompress(data: bytes, steps: List[str]) -> bytes:
        if data.startswith(XZ_MAGIC):
            steps.append("XZ decompression")
            return lzma.decompress(data)
        if data.startswith(GZIP_MAGIC):
            steps.append("GZIP decompression")
            return gzip.decompress(data)
        if data.startswith(BZIP2_MAGIC):
            steps.append("BZIP2 decompression")
            return bz2.decompress(data)
        steps.append("No compression detected")
        return data

    @staticmethod
    def _extract_first_xml(payload: bytes) -> Tuple[bytes, List[Dict[str, Any]]]:
        with tarfile.open(fileobj=io.BytesIO(payload), mode="r:") as archive:
            for member in archive:
                if member.isfile() and member.name.lower().endswith(".xml"):
                    handle = archive.extractfile(member)
                    if handle is None:
                        continue
                    content = handle.read()
                    return content, [{"name": member.name, "size": member.size}]
        raise ValueError("tar archive contains no .xml file")

    @staticmethod
    def decode_text(payload: bytes) -> str:
        match = ENCODING_DECLARATION.match(payload.lstrip(b"\xef\xbb\xbf \t\r\n")[:256])
        encoding = match.group(1).decode("ascii") if match else "utf-8"
        if encoding.lower().replace("_", "-") in ("utf-8", "utf8"):
            encoding = "utf-8-sig"
        try:
            return payload.decode(encoding)
        except (LookupError, UnicodeDecodeError):
            logger.debug("Could not decode as %s; decoding as UTF-8 with replacement characters.", encoding)
            return payload.decode("utf-8", errors="replace")

    @staticmethod
    def detect_content_type(text: str) -> Tuple[str, str]:
        head = text.lstrip("\ufeff \t\r\n")[:4096]
        if not head:
            return "unknown", "low"
        if head.startswith("<"):
            if "<LexicalResource" in head:
                return "lmf", "high"
            return "xml", "high" if head.startswith("<?xml") else "medium"
        first_line = head.split("\n", 1)[0]
        if "\t" in first_line:
            return "tsv", "medium"
        return "unknown", "low"
