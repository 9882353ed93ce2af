#!/usr/bin/env python3
"""
Base class for backup processors

Provides the abstract interface a processor implements for detection and
processing of an unpacked backup directory.
"""

from abc import ABC, abstractmethod
from pathlib import Path


class ProcessorBase(ABC):
    """Base class for all backup processors"""

    @staticmethod
    @abstractmethod
    def detect(input_path: Path) -> bool:
        """Check if this processor can handle the input directory

        Args:
            input_path: Path to the input directory

        Returns:
            True if this processor can handle the input, False otherwise
        """
        pass

    @staticmethod
    @abstractmethod
    def get_name() -> str:
        """Return human-readable processor name

        Returns:
            Name of the processor (e.g., "Threema")
        """
        pass

    @abstractmethod
    def process(self, input_dir: str, **kwargs):
        """Process the input directory in place

        Args:
            input_dir: Path to input directory (as string)
            **kwargs: Additional arguments (recursive, etc.)

        Returns:
            Processor-specific run summary
        """
        pass
