"""Inline-or-file byte sources for certificate and key inputs."""
import base64
import binascii
import logging
from pathlib import Path
from typing import Optional

from .errors import IOFailure, MalformedInput, MalformedReason


logger = logging.getLogger(__name__)


def decode_base64(data: str, label: str) -> bytes:
    """Decode inline base64 data, rejecting anything that is not base64."""
    try:
        return base64.b64decode("".join(data.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedInput(
            MalformedReason.INVALID_BASE64, f"{label} is not valid base64: {e}"
        ) from e


def read_file_bytes(path: str, label: str) -> bytes:
    """Read a whole file, turning OS errors into IOFailure."""
    try:
        return Path(path).expanduser().read_bytes()
    except OSError as e:
        raise IOFailure(path, f"{label}: {e.strerror or e}") from e


def resolve_bytes(
    data: Optional[str],
    file: Optional[str],
    label: str,
) -> Optional[bytes]:
    """
    Pick the bytes of one optional input.

    Inline base64 data wins; the file is only opened when no data is given.

    Args:
        data: Base64-encoded content, if configured
        file: Path to the content, if configured
        label: Name of the input, used in diagnostics

    Returns:
        The raw bytes, or None when neither data nor file is configured
    """
    if data is not None:
        if file is not None:
            logger.debug("[KUBE-TLS] %s given inline and as file, using inline data", label)
        return decode_base64(data, label)
    if file is not None:
        logger.debug("[KUBE-TLS] Reading %s from %s", label, file)
        return read_file_bytes(file, label)
    return None
