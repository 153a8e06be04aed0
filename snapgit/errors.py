"""snapgit error types.

Every expected, user-facing outcome of a command is a ``SnapgitError``
subclass carrying the one-line diagnostic printed by the command line
and the exit status to use. Unexpected I/O failures are not wrapped;
they propagate as ``OSError``.
"""

from typing import Iterable


class SnapgitError(Exception):
    """Base class for reported command outcomes."""

    message = "snapgit error."
    exit_code = 1

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class NotInitialized(SnapgitError):
    message = "Not in an initialized snapgit directory."


class AlreadyInitialized(SnapgitError):
    message = (
        "A snapgit version-control system already exists "
        "in the current directory."
    )


class FileNotFound(SnapgitError):
    """The named file is missing from the working directory."""

    message = "File does not exist."


class FileNotInCommit(SnapgitError):
    message = "File does not exist in that commit."


class NothingToRemove(SnapgitError):
    """``rm`` of a file that is neither tracked nor staged."""

    message = "No reason to remove the file."


class NothingToCommit(SnapgitError):
    message = "No changes added to the commit."


class EmptyMessage(SnapgitError):
    message = "Please enter a commit message."


class BranchExists(SnapgitError):
    message = "A branch with that name already exists."


class BranchNotFound(SnapgitError):
    message = "A branch with that name does not exist."

    def __init__(self, name: str, message: str | None = None) -> None:
        self.name = name
        super().__init__(message)


class AlreadyOnBranch(SnapgitError):
    message = "No need to checkout the current branch."


class CannotRemoveCurrentBranch(SnapgitError):
    message = "Cannot remove the current branch."


class ObjectNotFound(SnapgitError):
    """No blob or commit is stored under the requested id."""

    message = "No object with that id exists."

    def __init__(self, object_id: str) -> None:
        self.object_id = object_id
        super().__init__()


class CommitNotFound(ObjectNotFound):
    message = "No commit with that id exists."


class NoCommitWithMessage(SnapgitError):
    message = "Found no commit with that message."


class NoCommonAncestor(SnapgitError):
    """Two commits share no history; only possible in a malformed graph."""

    message = "No common ancestor found."


class UntrackedConflict(SnapgitError):
    """An untracked working file would be overwritten.

    Attributes:
        filenames: The untracked files in the way.
    """

    message = (
        "There is an untracked file in the way; "
        "delete it, or add and commit it first."
    )

    def __init__(self, filenames: set[str]) -> None:
        self.filenames = frozenset(filenames)
        super().__init__()


class UncommittedChanges(SnapgitError):
    message = "You have uncommitted changes."


class SelfMerge(SnapgitError):
    message = "Cannot merge a branch with itself."


class AlreadyAncestor(SnapgitError):
    """The given branch is already contained in the current branch.

    Not a failure: nothing to merge.
    """

    message = "Given branch is an ancestor of the current branch."
    exit_code = 0


class MergeConflict(SnapgitError):
    """Raised after a merge commit was created with conflicted files.

    Attributes:
        conflicting_files: Files written with conflict markers.
        commit: Id of the merge commit that was created anyway.
    """

    message = "Encountered a merge conflict."

    def __init__(self, conflicting_files: Iterable[str], commit: str) -> None:
        self.conflicting_files = frozenset(conflicting_files)
        self.commit = commit
        super().__init__()


class IncorrectOperands(SnapgitError):
    """Wrong number or shape of command-line arguments."""

    message = "Incorrect operands."
