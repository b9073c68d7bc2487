"""
Resource wrappers.

Representative resources built on the request pipeline: they show how
resources receive their client context after decoding and how partially
returned objects fill their missing fields on demand.
"""

from .base import GHObject, PopulatingObject
from .license import GHLicense
from .project_column import GHProjectCard, GHProjectColumn
from .pull_request import GHCommitPointer, GHPullRequest, GHPullRequestReviewBuilder
from .user import GHUser

__all__ = [
    'GHObject',
    'PopulatingObject',
    'GHLicense',
    'GHProjectCard',
    'GHProjectColumn',
    'GHCommitPointer',
    'GHPullRequest',
    'GHPullRequestReviewBuilder',
    'GHUser',
]
