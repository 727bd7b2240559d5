"""Validation applied to context source definitions before they are saved or enabled."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict
from urllib.parse import urlparse

from pydantic import ValidationError

from agentchat.core.models import ContextSourceDescriptor, ContextSourceKind
from agentchat.sources.local_files import LocalFilesConfiguration, is_readable_file

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_FILE_SIZE_LIMIT = 100 * 1024 * 1024


def validate_descriptor(descriptor: ContextSourceDescriptor) -> bool:
    """Return ``True`` when ``descriptor`` is complete and its configuration usable."""
    if not descriptor.name or not descriptor.name.strip():
        return False
    if len(descriptor.name) > MAX_NAME_LENGTH:
        return False
    if len(descriptor.description or "") > MAX_DESCRIPTION_LENGTH:
        return False

    raw = descriptor.configuration if descriptor.configuration and descriptor.configuration.strip() else "{}"
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        return False
    if not isinstance(parsed, dict):
        return False

    validator = _VALIDATORS.get(descriptor.kind)
    if validator is None:
        return False
    return validator(raw, parsed)


def _validate_local_files(raw: str, parsed: Dict[str, Any]) -> bool:
    try:
        config = LocalFilesConfiguration.model_validate_json(raw)
    except ValidationError as exc:
        logger.debug("Local files configuration rejected: %s", exc)
        return False
    if not config.file_path.strip():
        return False
    if not is_readable_file(Path(config.file_path)):
        return False
    if not config.supported_extensions:
        return False
    if any(not ext.strip() or not ext.startswith(".") for ext in config.supported_extensions):
        return False
    return 0 < config.max_file_size_bytes <= MAX_FILE_SIZE_LIMIT


def _is_http_url(value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _validate_web_api(raw: str, parsed: Dict[str, Any]) -> bool:
    if "endpoint" in parsed:
        return _is_http_url(parsed["endpoint"])
    return True


def _validate_database(raw: str, parsed: Dict[str, Any]) -> bool:
    if "connectionString" in parsed:
        value = parsed["connectionString"]
        return isinstance(value, str) and bool(value.strip())
    return True


def _validate_sharepoint(raw: str, parsed: Dict[str, Any]) -> bool:
    if "siteUrl" in parsed:
        value = parsed["siteUrl"]
        if not isinstance(value, str) or not value.strip():
            return False
        url = urlparse(value)
        return bool(url.scheme) and bool(url.netloc)
    return True


def _validate_custom(raw: str, parsed: Dict[str, Any]) -> bool:
    return True


_VALIDATORS = {
    ContextSourceKind.LOCAL_FILES: _validate_local_files,
    ContextSourceKind.WEB_API: _validate_web_api,
    ContextSourceKind.DATABASE: _validate_database,
    ContextSourceKind.SHAREPOINT: _validate_sharepoint,
    ContextSourceKind.CUSTOM: _validate_custom,
}
