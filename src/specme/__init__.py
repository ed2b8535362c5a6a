"""
SpecMe - project sync and safe-apply engine.

Turns a snapshot of a source tree (a GitHub repository or a local folder)
into a verified working copy, applies generated file edits with undo, and
publishes the result back to the remote.
"""

__version__ = "0.4.0.dev0"

from specme.core.config.models import SpecMeConfig
from specme.core.project.models import ConnectionStatus, ProjectDescriptor, ProjectMode

__all__ = [
    "ConnectionStatus",
    "ProjectDescriptor",
    "ProjectMode",
    "SpecMeConfig",
    "__version__",
]
