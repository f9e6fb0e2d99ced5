"""
Report configuration.

Settings are resolved from, in increasing precedence: built-in defaults, an
optional JSON config file, environment variables and command line overrides.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field, asdict, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_MAPPERS = ["ngmlr", "bwamem", "minialign", "blasr"]
DEFAULT_NAMING_PATTERN = "{mapper}.{sample}-N1-DNA1-WGS1.read_stats.txt"
DEFAULT_MAX_ROWS_PER_FILE = 100000
DEFAULT_LENGTH_BIN_WIDTH = 4000
DEFAULT_WHISKER_COEF = 1.5

ENV_DATA_DIR = "MAPPER_COMPARISON_DATA_DIR"
ENV_MAX_ROWS = "MAPPER_COMPARISON_MAX_ROWS"

# JSON keys accepted in addition to the dataclass field names
_KEY_ALIASES = {
    "maxRowsPerFile": "max_rows_per_file",
    "namingPattern": "naming_pattern",
    "lengthBinWidth": "length_bin_width",
    "whiskerCoef": "whisker_coef",
    "dataDir": "data_dir",
    "outputDir": "output_dir",
}


@dataclass(frozen=True)
class ReportConfig:
    """Configuration for one report run."""
    data_dir: Path = Path(".")
    mappers: List[str] = field(default_factory=lambda: list(DEFAULT_MAPPERS))
    samples: List[str] = field(default_factory=list)
    max_rows_per_file: int = DEFAULT_MAX_ROWS_PER_FILE
    naming_pattern: str = DEFAULT_NAMING_PATTERN
    length_bin_width: int = DEFAULT_LENGTH_BIN_WIDTH
    whisker_coef: float = DEFAULT_WHISKER_COEF
    workers: int = 1
    output_dir: Path = Path("report")

    def __post_init__(self):
        object.__setattr__(self, "data_dir", Path(self.data_dir))
        object.__setattr__(self, "output_dir", Path(self.output_dir))
        for name in ("mappers", "samples"):
            values = getattr(self, name)
            if not isinstance(values, (list, tuple)):
                raise ConfigError(f"{name} must be a list of names, got {values!r}")
            object.__setattr__(self, name, [str(v) for v in values])

    def validate(self) -> "ReportConfig":
        """
        Check option values.

        Returns:
            self, to allow chaining

        Raises:
            ConfigError: if any option has the wrong type or is out of range
        """
        if not self.mappers:
            raise ConfigError("At least one mapper must be configured")
        for name, values in (("mappers", self.mappers), ("samples", self.samples)):
            duplicates = sorted({v for v in values if values.count(v) > 1})
            if duplicates:
                raise ConfigError(f"Duplicate {name}: {', '.join(duplicates)}")
        for name in ("max_rows_per_file", "length_bin_width", "workers"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigError(f"{name} must be an integer, got {value!r}")
            if value < 1:
                raise ConfigError(f"{name} must be positive, got {value}")
        if isinstance(self.whisker_coef, bool) or not isinstance(self.whisker_coef, (int, float)):
            raise ConfigError(f"whisker_coef must be a number, got {self.whisker_coef!r}")
        if self.whisker_coef < 0:
            raise ConfigError(f"whisker_coef must not be negative, got {self.whisker_coef}")
        if not isinstance(self.naming_pattern, str):
            raise ConfigError(f"naming_pattern must be a string, got {self.naming_pattern!r}")
        for placeholder in ("{mapper}", "{sample}"):
            if placeholder not in self.naming_pattern:
                raise ConfigError(f"naming_pattern must contain {placeholder}: {self.naming_pattern!r}")
        try:
            self.naming_pattern.format(mapper="m", sample="s")
        except (KeyError, ValueError, IndexError) as e:
            raise ConfigError(
                f"naming_pattern may only use {{mapper}} and {{sample}}: {self.naming_pattern!r}"
            ) from e
        return self

    def path_for(self, mapper: str, sample: str) -> Path:
        """Resolve the per-read statistics file for a (mapper, sample) pair."""
        return self.data_dir / self.naming_pattern.format(mapper=mapper, sample=sample)

    def pairs(self) -> List[tuple]:
        """All (mapper, sample) pairs, mapper outer and sample inner."""
        return [(mapper, sample) for mapper in self.mappers for sample in self.samples]

    def with_overrides(self, **overrides: Any) -> "ReportConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["data_dir"] = str(self.data_dir)
        data["output_dir"] = str(self.output_dir)
        return data


def _pattern_regex(naming_pattern: str, mapper: str) -> "re.Pattern":
    escaped = re.escape(naming_pattern.replace("{mapper}", mapper))
    return re.compile("^" + escaped.replace(re.escape("{sample}"), "(?P<sample>.+?)") + "$")


def discover_samples(data_dir: Union[str, Path], naming_pattern: str, mapper: str) -> List[str]:
    """
    Find sample identifiers for which a mapper has a statistics file.

    Args:
        data_dir: Directory holding the per-read statistics files
        naming_pattern: File name template with {mapper} and {sample}
        mapper: Mapper whose files are scanned

    Returns:
        Sorted list of sample identifiers
    """
    data_dir = Path(data_dir)
    if not data_dir.is_dir():
        return []

    regex = _pattern_regex(naming_pattern, mapper)
    samples = set()
    for path in data_dir.iterdir():
        match = regex.match(path.name)
        if match and path.is_file():
            samples.add(match.group("sample"))

    logger.debug("Discovered %d samples for mapper %s in %s", len(samples), mapper, data_dir)
    return sorted(samples)


def load_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Read a JSON config file into a dictionary of ReportConfig field values.

    Raises:
        ConfigError: if the file is missing, is not valid JSON or has unknown keys
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Config file is not valid JSON: {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config file must contain a JSON object: {path}")

    known = set(ReportConfig.__dataclass_fields__)
    values = {}
    for key, value in raw.items():
        name = _KEY_ALIASES.get(key, key)
        if name not in known:
            raise ConfigError(f"Unknown config option {key!r} in {path}")
        values[name] = value
    return values


def _environment_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    data_dir = os.environ.get(ENV_DATA_DIR, "")
    if data_dir:
        overrides["data_dir"] = Path(data_dir)
    max_rows = os.environ.get(ENV_MAX_ROWS, "")
    if max_rows:
        try:
            overrides["max_rows_per_file"] = int(max_rows)
        except ValueError as e:
            raise ConfigError(f"{ENV_MAX_ROWS} must be an integer, got {max_rows!r}") from e
    return overrides


def build_config(config_file: Optional[Union[str, Path]] = None, **overrides: Any) -> ReportConfig:
    """
    Resolve the effective configuration.

    Args:
        config_file: Optional JSON config file
        **overrides: Explicit values (typically from the CLI); None means unset

    Returns:
        Validated ReportConfig with samples discovered when none were given
    """
    values: Dict[str, Any] = {}
    if config_file:
        values.update(load_config_file(config_file))
    values.update(_environment_overrides())
    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = ReportConfig(**values)
    except TypeError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e

    config.validate()

    if not config.samples:
        samples = discover_samples(config.data_dir, config.naming_pattern, config.mappers[0])
        if not samples:
            raise ConfigError(
                f"No samples configured and none found for mapper {config.mappers[0]} in {config.data_dir}"
            )
        logger.info("Using discovered samples: %s", ", ".join(samples))
        config = replace(config, samples=samples)

    return config
