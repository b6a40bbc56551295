"""CTT postal-code import: streaming, validated, idempotent loads of the CTT reference files."""

from cttimport.config import ImportConfig
from cttimport.errors import (
    ConfigurationError,
    CttImportError,
    MalformedRecord,
    MissingSourceFile,
    ReferentialGap,
)
from cttimport.lookup import AddressLookup
from cttimport.pipeline import CttImporter, PipelineState

__all__ = [
    "AddressLookup",
    "ConfigurationError",
    "CttImportError",
    "CttImporter",
    "ImportConfig",
    "MalformedRecord",
    "MissingSourceFile",
    "PipelineState",
    "ReferentialGap",
]
