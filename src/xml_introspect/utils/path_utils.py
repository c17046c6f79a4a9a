# src/xml_introspect/utils/path_utils.py
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class PathUtils:
    """
    A central utility for reliably retrieving package and user paths.
    """

    # --- Package specific paths ---

    @staticmethod
    def get_package_root() -> Path:
        """
        Returns the absolute path of the installed 'xml_introspect' package.
        This is where the default settings.json is shipped.
        """
        return Path(__file__).resolve().parent.parent

    @staticmethod
    def get_settings_file() -> Path:
        return PathUtils.get_package_root() / "settings.json"

    # --- User specific paths ---

    @staticmethod
    def get_user_config_dir() -> Path:
        """
        Returns the path to the user's config directory.
        (e.g., ~/.xml_introspect/)
        """
        return Path.home() / ".xml_introspect"

    @staticmethod
    def get_user_settings_file() -> Path:
        """Optional per-user overrides, merged over the package defaults."""
        return PathUtils.get_user_config_dir() / "settings.json"

    # --- Helper methods ---

    @staticmethod
    def with_suffix_replaced(path: Path, suffix: str) -> Path:
        """
        Derives an output path next to the input, stripping compression suffixes
        first (e.g. 'wn.xml.gz' + '.sample.xml' -> 'wn.sample.xml').
        """
        name = path.name
        for compressed in (".gz", ".xz", ".bz2", ".tar", ".tgz"):
            if name.lower().endswith(compressed):
                name = name[: -len(compressed)]
        stem = name[:-4] if name.lower().endswith(".xml") else name
        return path.with_name(f"{stem}{suffix}")
