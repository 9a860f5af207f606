"""Task template catalog.

Templates are authored as YAML::

    templates:
      - id: 1
        name: Collect loss runs
        auto_executable: false
        sort_order: 1
      - id: 2
        name: Draft submission email
        dependencies: [1]
        auto_executable: true
        sort_order: 2
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Iterator, Optional

import yaml

from .contracts import TaskTemplate
from .errors import TemplateCycleError, UnknownTemplate

logger = logging.getLogger(__name__)


class TemplateCatalog:
    """Ordered, immutable set of task templates keyed by template id."""

    def __init__(self, templates: Iterable[TaskTemplate]) -> None:
        self._templates: dict[str, TaskTemplate] = {}
        for template in sorted(templates, key=lambda t: t.sort_order):
            if template.id in self._templates:
                raise ValueError(f"Duplicate template id: {template.id}")
            self._templates[template.id] = template

    def __iter__(self) -> Iterator[TaskTemplate]:
        return iter(self._templates.values())

    def __len__(self) -> int:
        return len(self._templates)

    def __contains__(self, template_id: object) -> bool:
        return str(template_id) in self._templates

    def get(self, template_id: str) -> Optional[TaskTemplate]:
        return self._templates.get(str(template_id))

    def validate(self) -> None:
        """Check that every dependency exists and the graph is acyclic.

        Raises:
            UnknownTemplate: For a dependency on a template not in the catalog.
            TemplateCycleError: With the offending cycle, e.g. ``[a, b, a]``.
        """
        for template in self:
            for dep in template.dependencies:
                if dep not in self._templates:
                    raise UnknownTemplate(dep, referenced_by=template.id)

        visiting: list[str] = []
        done: set[str] = set()

        def visit(template_id: str) -> None:
            if template_id in done:
                return
            if template_id in visiting:
                start = visiting.index(template_id)
                raise TemplateCycleError(visiting[start:] + [template_id])
            visiting.append(template_id)
            for dep in self._templates[template_id].dependencies:
                visit(dep)
            visiting.pop()
            done.add(template_id)

        for template_id in self._templates:
            visit(template_id)
        logger.debug(f"Validated {len(self)} templates")


def load_templates(path: str | Path) -> TemplateCatalog:
    """Load a catalog from a YAML file with a top-level ``templates`` list."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if isinstance(data, dict):
        entries = data.get("templates", [])
    else:
        entries = data
    return TemplateCatalog(TaskTemplate.model_validate(entry) for entry in entries)
