"""
PacBio Long-Read Mapper Comparison

Loads per-read alignment statistics of several mappers across samples and
builds a descriptive comparison report of alignment rates, read lengths and
error rates.
"""

__version__ = "1.0.0"

from .config import ReportConfig, build_config
from .errors import ConfigError, EmptyGroupWarning, LoadError, MapperComparisonError, ParseError
from .report import MapperComparisonReport

__all__ = [
    "ConfigError",
    "EmptyGroupWarning",
    "LoadError",
    "MapperComparisonError",
    "MapperComparisonReport",
    "ParseError",
    "ReportConfig",
    "build_config",
    "__version__",
]
