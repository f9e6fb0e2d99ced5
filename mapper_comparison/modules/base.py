"""
Base classes for the mapper comparison analysis modules.

A DataManager owns the input directory and a per-instance cache of loaded
tables; a BaseAnalyzer turns those tables into summary statistics and figures.
Concrete modules pair one of each.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Any, Union
import pandas as pd
import logging

from ..errors import LoadError

logger = logging.getLogger(__name__)


class DataManager(ABC):
    """
    Abstract base class for loading the inputs of an analysis module.

    Loaded tables are cached on the instance so that repeated calls within one
    run return the same objects without re-reading files.
    """

    def __init__(self, data_path: Union[str, Path]):
        """
        Args:
            data_path: Directory holding the input files

        Raises:
            LoadError: if the directory does not exist
        """
        self.data_path = Path(data_path)
        self._cache: Dict[str, Any] = {}
        self._validate_data_path()

    def _validate_data_path(self) -> None:
        if not self.data_path.exists():
            raise LoadError("Data directory does not exist", path=self.data_path)

        if not self.data_path.is_dir():
            raise LoadError("Data path is not a directory", path=self.data_path)

    def get_from_cache(self, key: str) -> Optional[Any]:
        return self._cache.get(key)

    def set_cache(self, key: str, value: Any) -> None:
        self._cache[key] = value

    @abstractmethod
    def load_data(self) -> Dict[str, pd.DataFrame]:
        """
        Load the module's tables.

        Returns:
            Dictionary of loaded DataFrames keyed by table name
        """

    @abstractmethod
    def get_available_samples(self) -> List[str]:
        """Sample identifiers the module can report on, in report order."""


class BaseAnalyzer(ABC):
    """
    Abstract base class for analysis modules.

    Subclasses compute their summaries from the tables of a DataManager and
    never modify those tables.
    """

    def __init__(self, data_manager: DataManager):
        self.data_manager = data_manager
        self.data: Dict[str, pd.DataFrame] = data_manager.load_data()

    @abstractmethod
    def generate_summary_stats(self, sample_ids: Optional[List[str]] = None) -> Dict[str, pd.DataFrame]:
        """
        Generate summary tables for the analysis.

        Args:
            sample_ids: Optional list of sample IDs to restrict the summaries to

        Returns:
            Dictionary of summary DataFrames keyed by table name
        """

    @abstractmethod
    def create_visualizations(self, sample_ids: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Create the analysis figures.

        Args:
            sample_ids: Optional list of sample IDs to visualize

        Returns:
            Ordered dictionary of plotly figures keyed by chart key
        """
