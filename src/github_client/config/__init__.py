"""
Configuration package for the GitHub client.

This package provides the configuration interface of the request pipeline.
"""

from .github_config import GitHubConfig

__all__ = [
    'GitHubConfig',
]
