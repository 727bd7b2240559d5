"""Loading of agent instruction files and persona prompt templates.

A persona file may start with a YAML front-matter block delimited by ``---``
lines (name, description, sample inputs); the remainder is a Jinja template
rendered with ``message`` and the kernel arguments.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

import yaml
from jinja2 import Environment

_FRONT_MATTER_DELIMITER = "---"

_env = Environment(autoescape=False, keep_trailing_newline=True)


@dataclass(frozen=True)
class PersonaTemplate:
    body: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def render(self, message: str, kernel_args: Mapping[str, str]) -> str:
        variables: Dict[str, Any] = dict(kernel_args)
        variables["message"] = message
        # Unknown placeholders render empty.
        return _env.from_string(self.body).render(**variables)


def parse_persona(text: str) -> PersonaTemplate:
    """Split a persona file into its front matter and template body."""
    stripped = text.lstrip()
    if not stripped.startswith(_FRONT_MATTER_DELIMITER):
        return PersonaTemplate(body=text)

    lines = stripped.splitlines(keepends=True)
    for index in range(1, len(lines)):
        if lines[index].strip() == _FRONT_MATTER_DELIMITER:
            front = "".join(lines[1:index])
            body = "".join(lines[index + 1:])
            metadata = yaml.safe_load(front) or {}
            if not isinstance(metadata, dict):
                metadata = {}
            return PersonaTemplate(body=body.lstrip("\n"), metadata=metadata)
    return PersonaTemplate(body=text)


def load_persona(path: str | Path) -> PersonaTemplate:
    return parse_persona(Path(path).read_text(encoding="utf-8"))


def load_instructions(path: str | Path) -> str:
    return Path(path).read_text(encoding="utf-8").strip()


_INSTRUCTIONS_TEMPLATE = _env.from_string(
    """# {{ name }} Instructions

{{ description }}

## Purpose
This agent is designed to {{ description | lower }}.

## Guidelines
- Follow the agent's specific purpose and capabilities
- Maintain consistency with the defined persona
- Provide helpful and accurate responses

## Capabilities
- {{ description }}
- Respond to user queries within the agent's scope
- Maintain context throughout conversations

## Limitations
- Stay within the defined scope and purpose
- Refer users to appropriate resources when needed
"""
)

_PERSONA_BODY_TEMPLATE = _env.from_string(
    """# {{ name }}

{{ description }}

## Purpose
This agent is designed to {{ description | lower }}.

## Response Format
Provide clear, helpful responses that align with the agent's purpose.

{% raw %}{{ message }}{% endraw %}
"""
)

_INVALID_FILE_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f\s]')


def sanitize_file_name(name: str) -> str:
    """Make ``name`` usable as a file stem: invalid characters become ``_``."""
    sanitized = _INVALID_FILE_CHARS.sub("_", name)
    sanitized = re.sub(r"_{2,}", "_", sanitized)
    return sanitized.strip("_")


class AgentTemplateWriter:
    """Writes starter instruction and persona files for newly created agents.

    Files land in ``Instructions/<name>.md`` and ``Personas/<name>.prompty``
    under ``base_directory``; existing files are overwritten.
    """

    def __init__(self, base_directory: str | Path) -> None:
        self.base_directory = Path(base_directory)

    def _target(self, folder: str, name: str, suffix: str) -> Path:
        stem = sanitize_file_name(name)
        if not stem:
            raise ValueError(f"Agent name {name!r} does not yield a usable file name")
        directory = self.base_directory / folder
        directory.mkdir(parents=True, exist_ok=True)
        return directory / f"{stem}{suffix}"

    def create_instructions(self, name: str, description: str) -> Path:
        path = self._target("Instructions", name, ".md")
        content = _INSTRUCTIONS_TEMPLATE.render(name=name, description=description or name)
        path.write_text(content, encoding="utf-8")
        return path

    def create_persona(self, name: str, description: str) -> Path:
        path = self._target("Personas", name, ".prompty")
        description = description or name
        front = yaml.safe_dump(
            {
                "name": sanitize_file_name(name),
                "description": description,
                "authors": ["System Generated"],
                "sample": f"User: Hello, I need help with {description.lower()}.",
            },
            sort_keys=False,
            allow_unicode=True,
        )
        body = _PERSONA_BODY_TEMPLATE.render(name=name, description=description)
        path.write_text(
            f"{_FRONT_MATTER_DELIMITER}\n{front}{_FRONT_MATTER_DELIMITER}\n\n{body}",
            encoding="utf-8",
        )
        return path
