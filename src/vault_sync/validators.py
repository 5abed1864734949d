"""
Input validation functions for vault-sync.

Provides validation for remote paths and content so that malformed input is
rejected before any API call is made.
"""


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Remote path")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def validate_remote_path(path: str) -> tuple[bool, str]:
    """
    Validate a repository-relative file path.

    Args:
        path: The path to validate

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot be empty or whitespace-only
        - Cannot be absolute or end with '/'
        - Cannot contain '.' or '..' segments
        - Cannot have empty path segments (e.g., 'plans//q3.md')
        - Cannot contain backslashes or control characters
    """
    if not path or not path.strip():
        return (
            False,
            format_validation_error("Remote path", "cannot be empty"),
        )

    if path.startswith("/") or path.endswith("/"):
        return (
            False,
            format_validation_error(
                "Remote path", "cannot start or end with '/'"
            ),
        )

    if "\\" in path or any(ord(ch) < 32 for ch in path):
        return (
            False,
            format_validation_error(
                "Remote path",
                "cannot contain backslashes or control characters",
            ),
        )

    segments = path.split("/")
    if any(seg == "" for seg in segments):
        return (
            False,
            format_validation_error(
                "Remote path", "cannot have empty path segments"
            ),
        )

    if any(seg in (".", "..") for seg in segments):
        return (
            False,
            format_validation_error(
                "Remote path", "cannot contain '.' or '..' segments"
            ),
        )

    return (True, "")


def validate_content(
    content: str, max_size: int = 1_000_000
) -> tuple[bool, str]:
    """
    Validate file content before upload.

    Args:
        content: The content to validate
        max_size: Maximum size in bytes (default: 1,000,000)

    Returns:
        Tuple of (is_valid, error_message).
        Returns (True, "") if valid, (False, reason) if invalid.

    Validation rules:
        - Cannot exceed max_size bytes (the contents API limit)
    """
    content_bytes = len(content.encode("utf-8"))
    if content_bytes > max_size:
        return (
            False,
            format_validation_error(
                "Content", f"exceeds maximum size of {max_size} bytes"
            ),
        )

    return (True, "")
