"""
Core Module

GitHub source fetching and the preview subsystem.
"""
