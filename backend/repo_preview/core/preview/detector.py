# -*- coding: utf-8 -*-
"""
Project type detection over a fetched file list.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from repo_preview.core.preview.constants import (
    FLASK_ENTRYPOINT,
    FLASK_MARKER,
    PACKAGE_MANIFEST,
    PYTHON_REQUIREMENTS,
    PYTHON_SUFFIX,
    VITE_CONFIG_FILES,
)
from repo_preview.core.preview.models import ProjectType, RepositoryFile

logger = logging.getLogger(__name__)


@dataclass
class PackageManifest:
    """The parts of a package.json that detection looks at."""
    dependencies: Dict[str, str] = field(default_factory=dict)
    dev_dependencies: Dict[str, str] = field(default_factory=dict)

    @property
    def all_dependencies(self) -> Dict[str, str]:
        return {**self.dependencies, **self.dev_dependencies}

    @classmethod
    def parse(cls, content: str) -> Optional["PackageManifest"]:
        """Decode manifest text, returning None when it is not a usable manifest."""
        try:
            data = json.loads(content)
        except (TypeError, ValueError):
            return None
        if not isinstance(data, dict):
            return None

        def _deps(key: str) -> Dict[str, str]:
            value = data.get(key)
            return {str(k): str(v) for k, v in value.items()} if isinstance(value, dict) else {}

        return cls(dependencies=_deps("dependencies"), dev_dependencies=_deps("devDependencies"))


def _detect_from_manifest(manifest: PackageManifest, has_vite_config: bool) -> ProjectType:
    deps = manifest.all_dependencies
    has_react = "react" in deps or "react-dom" in deps

    if "next" in deps or "@next/core" in deps:
        return ProjectType.NEXTJS
    if has_vite_config and has_react:
        return ProjectType.REACT
    if "vite" in deps and has_react:
        return ProjectType.REACT
    if "vue" in deps or "@vue/cli" in deps:
        return ProjectType.VUE
    # express/fastify and unrecognized manifests land on the same template
    return ProjectType.NODEJS


def detect_project_type(files: List[RepositoryFile]) -> ProjectType:
    """
    Map a repository file list to a project archetype.

    Matching is on lower-cased base file names anywhere in the tree; the first
    rule that matches wins. Pure function of its input.
    """
    by_name: Dict[str, RepositoryFile] = {}
    for f in files:
        by_name.setdefault(f.name.lower(), f)

    if PACKAGE_MANIFEST in by_name:
        has_vite_config = any(name in by_name for name in VITE_CONFIG_FILES)
        manifest = PackageManifest.parse(by_name[PACKAGE_MANIFEST].content)
        if manifest is None:
            logger.warning("Could not parse package.json, assuming plain Node.js project")
            return ProjectType.NODEJS
        return _detect_from_manifest(manifest, has_vite_config)

    if PYTHON_REQUIREMENTS in by_name or any(name.endswith(PYTHON_SUFFIX) for name in by_name):
        # Any app.py in the tree counts, not just the first one listed
        if any(
            f.name.lower() == FLASK_ENTRYPOINT and FLASK_MARKER in (f.content or "")
            for f in files
        ):
            return ProjectType.FLASK
        return ProjectType.PYTHON

    # index.html or not, unrecognized layouts are served as static files
    return ProjectType.STATIC
