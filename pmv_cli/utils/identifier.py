"""
Helpers for the ``#123`` identifier notation used by the vault.
"""

from pmv_cli.exceptions import InvalidIdentifierError


def parse_identifier(value: str, kind: str = "") -> int:
    """
    Parses an identifier, with or without the leading '#'.

    Raises:
        InvalidIdentifierError: If the value is not a non-negative integer.
    """
    text = value.strip()
    if len(text) > 1 and text.startswith("#"):
        text = text[1:]
    if not (text.isascii() and text.isdigit()):
        label = f"{kind} identifier" if kind else "identifier"
        raise InvalidIdentifierError(f"Invalid {label} specified: {value}")
    return int(text)


def identifier_to_string(identifier: int) -> str:
    return f"#{identifier}"
