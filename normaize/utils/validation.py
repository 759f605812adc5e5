"""
Input validation utilities for the ingestion pipeline.

Provides reusable checks for file names, storage paths and format hints
so that request data is rejected before it reaches storage or parsers.
"""

from normaize.core.errors import InvalidArgumentError

MAX_FILE_NAME_LENGTH = 255
MAX_PATH_LENGTH = 4096

TRAVERSAL_TOKENS = ("..", "/", "\\")


def require_non_empty(value: str | None, field_name: str = "value") -> str:
    """
    Require a non-empty, non-whitespace string.

    Args:
        value: The value to check
        field_name: Name of the field (for error messages)

    Returns:
        The value stripped of surrounding whitespace

    Raises:
        InvalidArgumentError: If the value is missing or blank

    Examples:
        >>> require_non_empty(" csv ", "format_hint")
        'csv'
        >>> require_non_empty("   ", "format_hint")  # doctest: +SKIP
        InvalidArgumentError: format_hint cannot be empty or whitespace-only
    """
    if value is None or not isinstance(value, str):
        raise InvalidArgumentError(f"{field_name} must be a non-empty string")

    value = value.strip()

    if not value:
        raise InvalidArgumentError(f"{field_name} cannot be empty or whitespace-only")

    return value


def validate_file_name(file_name: str, field_name: str = "file_name") -> str:
    """
    Validate a client-supplied file name.

    File names must be non-empty and must not contain directory
    separators or parent references.

    Args:
        file_name: The file name to validate
        field_name: Name of the field (for error messages)

    Returns:
        The validated file name (stripped of whitespace)

    Raises:
        InvalidArgumentError: If validation fails

    Examples:
        >>> validate_file_name("sales.csv")
        'sales.csv'
        >>> validate_file_name("../../etc/passwd")  # doctest: +SKIP
        InvalidArgumentError: file_name contains path traversal characters
    """
    file_name = require_non_empty(file_name, field_name)

    # Prevent path traversal
    if any(token in file_name for token in TRAVERSAL_TOKENS):
        raise InvalidArgumentError(f"{field_name} contains path traversal characters")

    if "\x00" in file_name:
        raise InvalidArgumentError(f"{field_name} contains null bytes")

    if len(file_name) > MAX_FILE_NAME_LENGTH:
        raise InvalidArgumentError(
            f"{field_name} exceeds maximum length of {MAX_FILE_NAME_LENGTH} characters"
        )

    return file_name


def validate_file_path(file_path: str, field_name: str = "file_path") -> str:
    """
    Validate a storage path handed to the processing pipeline.

    Storage paths may contain separators and scheme prefixes (memory://,
    s3://), so only emptiness, null bytes and length are checked here.

    Args:
        file_path: The path to validate
        field_name: Name of the field (for error messages)

    Returns:
        The validated path (stripped of whitespace)

    Raises:
        InvalidArgumentError: If validation fails
    """
    file_path = require_non_empty(file_path, field_name)

    # Check for null bytes (security)
    if "\x00" in file_path:
        raise InvalidArgumentError(f"{field_name} contains null bytes")

    if len(file_path) > MAX_PATH_LENGTH:  # Linux PATH_MAX
        raise InvalidArgumentError(
            f"{field_name} exceeds maximum length of {MAX_PATH_LENGTH} characters"
        )

    return file_path


def validate_positive_size(size: int, field_name: str = "file_size") -> int:
    """
    Validate a declared byte size.

    Raises:
        InvalidArgumentError: If the size is not a positive integer
    """
    if not isinstance(size, int) or isinstance(size, bool):
        raise InvalidArgumentError(f"{field_name} must be an integer, got {type(size).__name__}")

    if size <= 0:
        raise InvalidArgumentError(f"{field_name} must be greater than zero, got {size}")

    return size


def get_file_extension(file_name: str) -> str:
    """
    Return the lowercase extension including the leading dot.

    Examples:
        >>> get_file_extension("Report.XLSX")
        '.xlsx'
        >>> get_file_extension("README")
        ''
    """
    if not file_name:
        return ""
    base = file_name.replace("\\", "/").rsplit("/", 1)[-1]
    dot = base.rfind(".")
    if dot <= 0 or dot == len(base) - 1:
        return ""
    return base[dot:].lower()
