"""Write and check the custom-domain marker file."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from .errors import Stage, StageError

logger = logging.getLogger(__name__)

DOMAIN_PATTERN = re.compile(r"^(?=.{1,253}$)([a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,63}$")


class MarkerError(StageError):
    """Raised when the domain marker cannot be written or is missing before publish."""

    stage = Stage.STAMP


def normalize_domain(domain: str | None) -> str:
    text = (domain or "").strip().lower().rstrip(".")
    if not text:
        raise MarkerError("No custom domain configured; set domain.name in quartoship.yml.")
    if not DOMAIN_PATTERN.match(text):
        raise MarkerError(f"'{domain}' is not a bare domain name (no scheme, path, or spaces).")
    return text


def stamp_domain(output_dir: Path, domain: str | None, filename: str = "CNAME") -> Path:
    """Write ``domain`` as the single line of the marker file, replacing any previous content."""
    if not output_dir.is_dir():
        raise MarkerError(f"Output directory not found: {output_dir}")
    value = normalize_domain(domain)
    target = output_dir / filename
    target.write_bytes(f"{value}\n".encode("ascii"))
    logger.info("Stamped %s with %s", target, value)
    return target


def read_domain_marker(output_dir: Path, filename: str = "CNAME") -> str | None:
    target = output_dir / filename
    if not target.is_file():
        return None
    try:
        return target.read_bytes().decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MarkerError(f"{target} is not a valid domain marker: {exc}") from exc


def require_domain_marker(output_dir: Path, domain: str | None, filename: str = "CNAME") -> Path:
    """Refuse to continue unless the marker holds exactly the configured domain."""
    expected = f"{normalize_domain(domain)}\n"
    content = read_domain_marker(output_dir, filename)
    if content is None:
        raise MarkerError(f"{filename} is missing from {output_dir}; stamp the domain before publishing.")
    if content != expected:
        raise MarkerError(
            f"{filename} contains '{content.strip()}' but the configured domain is '{expected.strip()}'."
        )
    return output_dir / filename
