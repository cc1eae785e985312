# -*- coding: utf-8 -*-
"""
Constants for the preview pipeline.

Tunable values (port range, health polling, TTL) live in PreviewConfig in settings.py.
These are fixed names and markers.
"""

# Docker labels attached to every preview container
LABEL_OWNER = "owner"
LABEL_PROJECT_ID = "preview.project_id"
LABEL_REPOSITORY = "preview.repository"
LABEL_EXPIRES_AT = "preview.expires_at"

DOCKERFILE_NAME = "Dockerfile"

# Project detection markers
PACKAGE_MANIFEST = "package.json"
PYTHON_REQUIREMENTS = "requirements.txt"
PYTHON_SUFFIX = ".py"
FLASK_ENTRYPOINT = "app.py"
FLASK_MARKER = "flask"
VITE_CONFIG_FILES = ("vite.config.js", "vite.config.ts", "vite.config.mjs")

# Length of the generated preview identifier (hex chars of a uuid4)
PROJECT_ID_LENGTH = 8

# Fallback internal port when a config carries none
DEFAULT_INTERNAL_PORT = 80
