"""
Input validation and path safety helpers.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from ..errors import PathTraversalError

logger = logging.getLogger(__name__)


def safe_path_join(base_dir: Union[str, Path], *parts: str) -> Path:
    """
    Safely join path components, preventing traversal outside base_dir.

    Raises:
        PathTraversalError: If the result would be outside base_dir
    """
    base = Path(base_dir).resolve()

    for part in parts:
        if '..' in part or part.startswith('/') or part.startswith('\\'):
            raise PathTraversalError(f"Invalid path component: {part}")

    result = base.joinpath(*parts).resolve()

    try:
        result.relative_to(base)
    except ValueError:
        logger.warning(f"Path traversal attempt: {result} not under {base}")
        raise PathTraversalError(f"Path traversal detected: {result}")

    return result


def validate_string(
    value: Optional[str],
    max_length: int = 255,
    default: str = '',
    strip: bool = True,
) -> str:
    """Validate and truncate string input."""
    if value is None:
        return default

    value = str(value)
    if strip:
        value = value.strip()

    if len(value) > max_length:
        value = value[:max_length]

    return value
