"""
Repository Preview Service

Builds and runs short-lived Docker previews of GitHub repositories.
"""

__version__ = "1.0.0"
