"""Template post-processing macros for generated inner pipelines."""

from .changeset_renamer import ChangesetRenamer, make_changeset_name
from .handlers import reassign_roles_handler, rename_changesets_handler
from .resources import ResourceKind, StageKind
from .role_reassigner import RoleReassigner

__all__ = [
    "ChangesetRenamer",
    "RoleReassigner",
    "ResourceKind",
    "StageKind",
    "make_changeset_name",
    "reassign_roles_handler",
    "rename_changesets_handler",
]
