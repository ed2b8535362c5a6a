"""
Repository sync: managed mirrors of remote repositories and default-branch
resolution.

Example:
    >>> from specme.core.sync import RepositorySyncEngine
    >>> engine = RepositorySyncEngine(load_config())
    >>> outcome = engine.sync("https://github.com/org/repo.git", "")
    >>> outcome.branch
    'main'
"""

from specme.core.sync.engine import RepositorySyncEngine
from specme.core.sync.models import SyncOutcome
from specme.core.sync.resolver import BranchResolver, normalize_hints

__all__ = [
    "BranchResolver",
    "RepositorySyncEngine",
    "SyncOutcome",
    "normalize_hints",
]
