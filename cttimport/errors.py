"""Exception types raised by the CTT importer."""


class CttImportError(Exception):
    """Base class for importer errors."""


class ConfigurationError(CttImportError):
    """Invalid settings or a missing data directory. Raised before any write."""


class MissingSourceFile(CttImportError, FileNotFoundError):
    """An expected source file is absent."""

    def __init__(self, path):
        super().__init__(f"Source file not found: {path}")
        self.filename = str(path)


class MalformedRecord(CttImportError, ValueError):
    """A line with fewer fields than its layout requires, or missing key fields."""


class ReferentialGap(CttImportError, LookupError):
    """A child record whose parent key has not been loaded."""

    def __init__(self, entity: str, key: tuple):
        super().__init__(f"Unknown {entity} {'/'.join(key)}")
        self.entity = entity
        self.key = key
