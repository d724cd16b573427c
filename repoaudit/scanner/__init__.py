"""Local scanners - repository history via git plumbing and the working tree."""

from .history import list_blobs, recent_log, recent_log_with_files
from .worktree import list_worktree_files, read_codeowners

__all__ = ["list_blobs", "recent_log", "recent_log_with_files", "list_worktree_files", "read_codeowners"]
