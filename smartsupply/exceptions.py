"""
Engine Exceptions
"""

from typing import List, Optional


class SmartSupplyError(Exception):
    """Base class for engine errors"""


class FileFormatError(SmartSupplyError):
    """
    An input file cannot be used at all.

    Raised when the file is unreadable or empty, or when the required
    header columns cannot be located. Fatal to the run.
    """

    def __init__(
        self,
        message: str,
        file_name: Optional[str] = None,
        missing_columns: Optional[List[str]] = None,
    ):
        self.file_name = file_name
        self.missing_columns = missing_columns or []
        if file_name:
            message = f"{file_name}: {message}"
        super().__init__(message)
