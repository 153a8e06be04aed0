"""Tests for repository-level commands."""

import pytest

from snapgit.errors import (
    AlreadyInitialized,
    AlreadyOnBranch,
    BranchExists,
    BranchNotFound,
    CannotRemoveCurrentBranch,
    CommitNotFound,
    EmptyMessage,
    FileNotFound,
    FileNotInCommit,
    NoCommitWithMessage,
    NotInitialized,
    NothingToCommit,
    NothingToRemove,
    UntrackedConflict,
)
from snapgit.kv.memory import Memory
from snapgit.objects import initial_commit
from snapgit.refs import HEAD_KEY
from snapgit.repository import Repository


@pytest.fixture
def repo(tmp_path):
    return Repository.init(tmp_path, backend=Memory())


def write(repo, name, content):
    repo.worktree.write(name, content.encode())


def read(repo, name):
    return repo.worktree.read(name).decode()


def reopen(repo):
    return Repository.open(repo.worktree.root, backend=repo.store)


class TestInit:
    def test_initial_state(self, repo):
        root = initial_commit()
        assert repo.head == (root.id, "master")
        assert repo.refs.list_branches() == ["master"]
        assert repo.staging.is_empty()
        assert [c.id for c in repo.log()] == [root.id]

    def test_already_initialized(self, repo):
        with pytest.raises(AlreadyInitialized):
            Repository.init(repo.worktree.root, backend=repo.store)

    def test_open_uninitialized(self, tmp_path):
        with pytest.raises(NotInitialized):
            Repository.open(tmp_path, backend=Memory())

    def test_open_without_repo_dir(self, tmp_path):
        with pytest.raises(NotInitialized):
            Repository.open(tmp_path)
        assert not (tmp_path / ".snapgit").exists()


class TestDiskRepository:
    def test_state_survives_between_invocations(self, tmp_path):
        with Repository.init(tmp_path) as repo:
            write(repo, "f.txt", "a")
            repo.add("f.txt")
        with Repository.open(tmp_path) as repo:
            assert repo.staging.staged_files() == ["f.txt"]
            c = repo.commit("m1")
        with Repository.open(tmp_path) as repo:
            assert repo.head == (c.id, "master")
            assert repo.staging.is_empty()
            assert [e.message for e in repo.log()] == ["m1", "initial commit"]

    def test_init_twice(self, tmp_path):
        Repository.init(tmp_path).close()
        with pytest.raises(AlreadyInitialized):
            Repository.init(tmp_path)

    def test_repo_dir_is_not_a_working_file(self, tmp_path):
        with Repository.init(tmp_path) as repo:
            assert repo.worktree.files() == []
            assert repo.status().untracked == ()


class FailingStateWrites(Memory):
    """Fails any batch that touches HEAD, after objects were written."""

    def __init__(self) -> None:
        super().__init__()
        self.fail = False

    def set_many(self, **kwargs: bytes) -> None:
        if self.fail and HEAD_KEY in kwargs:
            raise OSError("disk full")
        super().set_many(**kwargs)


class TestCrashAtomicity:
    def test_failed_commit_leaves_previous_state(self, tmp_path):
        store = FailingStateWrites()
        repo = Repository.init(tmp_path, backend=store)
        write(repo, "f.txt", "a")
        repo.add("f.txt")
        head_before = repo.head

        store.fail = True
        with pytest.raises(OSError):
            repo.commit("m1")

        store.fail = False
        again = Repository.open(tmp_path, backend=store)
        assert again.head == head_before
        assert again.refs.get_branch("master") == head_before.commit_id
        assert again.staging.staged_files() == ["f.txt"]
        # Retrying succeeds from the untouched state
        assert again.commit("m1").parent_id == head_before.commit_id


class TestAddCommit:
    def test_log_scenario(self, repo):
        write(repo, "f.txt", "a")
        repo.add("f.txt")
        c = repo.commit("m1")
        entries = list(repo.log())
        assert [e.message for e in entries] == ["m1", "initial commit"]
        assert entries[0].id == c.id
        assert not entries[0].is_merge
        assert repo.objects.get_blob(c.files["f.txt"]).content == b"a"

    def test_add_missing_file(self, repo):
        with pytest.raises(FileNotFound):
            repo.add("ghost.txt")

    def test_add_unchanged_tracked_file_is_noop(self, repo):
        write(repo, "f.txt", "a")
        repo.add("f.txt")
        repo.commit("m1")
        repo.add("f.txt")
        assert repo.staging.is_empty()

    def test_empty_message(self, repo):
        write(repo, "f.txt", "a")
        repo.add("f.txt")
        with pytest.raises(EmptyMessage):
            repo.commit("")

    def test_nothing_to_commit(self, repo):
        with pytest.raises(NothingToCommit):
            repo.commit("m")

    def test_commit_carries_forward_and_clears_staging(self, repo):
        write(repo, "a.txt", "a")
        write(repo, "b.txt", "b")
        repo.add("a.txt")
        repo.add("b.txt")
        c1 = repo.commit("both")
        write(repo, "a.txt", "a2")
        repo.add("a.txt")
        c2 = repo.commit("edit a")
        assert c2.parent_id == c1.id
        assert c2.files["b.txt"] == c1.files["b.txt"]
        assert c2.files["a.txt"] != c1.files["a.txt"]
        assert repo.staging.is_empty()
        assert repo.refs.get_branch("master") == c2.id

    def test_commit_uses_staged_content(self, repo):
        write(repo, "f.txt", "staged")
        repo.add("f.txt")
        write(repo, "f.txt", "later edit")
        c = repo.commit("m")
        assert repo.objects.get_blob(c.files["f.txt"]).content == b"staged"


class TestRm:
    def test_rm_tracked(self, repo):
        write(repo, "f.txt", "a")
        repo.add("f.txt")
        repo.commit("m1")
        repo.rm("f.txt")
        assert not repo.worktree.exists("f.txt")
        c = repo.commit("remove f")
        assert "f.txt" not in c.files

    def test_rm_staged_only(self, repo):
        write(repo, "f.txt", "a")
        repo.add("f.txt")
        repo.rm("f.txt")
        assert repo.staging.is_empty()
        assert repo.worktree.exists("f.txt")

    def test_rm_unknown(self, repo):
        write(repo, "f.txt", "a")
        with pytest.raises(NothingToRemove):
            repo.rm("f.txt")


class TestQueries:
    def test_find(self, repo):
        write(repo, "f.txt", "a")
        repo.add("f.txt")
        c1 = repo.commit("same")
        write(repo, "f.txt", "b")
        repo.add("f.txt")
        c2 = repo.commit("same")
        assert sorted(repo.find("same")) == sorted([c1.id, c2.id])

    def test_find_nothing(self, repo):
        with pytest.raises(NoCommitWithMessage):
            repo.find("nope")

    def test_global_log_includes_other_branches(self, repo):
        repo.branch("b")
        repo.checkout_branch("b")
        write(repo, "f.txt", "a")
        repo.add("f.txt")
        side = repo.commit("side")
        repo.checkout_branch("master")
        assert side.id not in [c.id for c in repo.log()]
        assert side.id in [c.id for c in repo.global_log()]

    def test_status(self, repo):
        for name in ("tracked.txt", "edited.txt", "gone.txt", "removed.txt"):
            write(repo, name, name)
            repo.add(name)
        repo.commit("base")
        repo.branch("other")
        write(repo, "staged.txt", "s")
        repo.add("staged.txt")
        write(repo, "edited.txt", "changed")
        repo.worktree.delete("gone.txt")
        repo.rm("removed.txt")
        write(repo, "loose.txt", "l")

        status = repo.status()

        assert status.branches == ("master", "other")
        assert status.current_branch == "master"
        assert status.staged == ("staged.txt",)
        assert status.removed == ("removed.txt",)
        assert status.modified == ("edited.txt (modified)", "gone.txt (deleted)")
        assert status.untracked == ("loose.txt",)


class TestCheckoutFile:
    def test_from_head(self, repo):
        write(repo, "f.txt", "v1")
        repo.add("f.txt")
        repo.commit("m1")
        write(repo, "f.txt", "scribble")
        repo.checkout_file("f.txt")
        assert read(repo, "f.txt") == "v1"

    def test_from_commit_prefix(self, repo):
        write(repo, "f.txt", "v1")
        repo.add("f.txt")
        c1 = repo.commit("m1")
        write(repo, "f.txt", "v2")
        repo.add("f.txt")
        repo.commit("m2")
        repo.checkout_file("f.txt", c1.id[:8])
        assert read(repo, "f.txt") == "v1"
        assert repo.staging.is_empty()

    def test_unknown_commit(self, repo):
        with pytest.raises(CommitNotFound):
            repo.checkout_file("f.txt", "deadbeef")

    def test_file_not_in_commit(self, repo):
        with pytest.raises(FileNotInCommit):
            repo.checkout_file("f.txt")


class TestBranches:
    def test_branch_points_at_head(self, repo):
        repo.branch("b")
        assert repo.refs.get_branch("b") == repo.head.commit_id
        assert repo.head.branch == "master"

    def test_branch_exists(self, repo):
        repo.branch("b")
        with pytest.raises(BranchExists):
            repo.branch("b")

    def test_checkout_branch_swaps_files(self, repo):
        write(repo, "common.txt", "c")
        repo.add("common.txt")
        repo.commit("base")
        repo.branch("b")
        write(repo, "master-only.txt", "m")
        repo.add("master-only.txt")
        repo.commit("master only")

        repo.checkout_branch("b")

        assert repo.head.branch == "b"
        assert not repo.worktree.exists("master-only.txt")
        assert read(repo, "common.txt") == "c"
        assert reopen(repo).head.branch == "b"

    def test_checkout_clears_staging(self, repo):
        repo.branch("b")
        write(repo, "f.txt", "a")
        repo.add("f.txt")
        repo.checkout_branch("b")
        assert repo.staging.is_empty()

    def test_checkout_unknown_branch(self, repo):
        with pytest.raises(BranchNotFound) as exc_info:
            repo.checkout_branch("nope")
        assert exc_info.value.message == "No such branch exists."

    def test_checkout_current_branch(self, repo):
        with pytest.raises(AlreadyOnBranch):
            repo.checkout_branch("master")

    def test_checkout_untracked_in_the_way(self, repo):
        repo.branch("b")
        repo.checkout_branch("b")
        write(repo, "f.txt", "from b")
        repo.add("f.txt")
        repo.commit("b adds f")
        repo.checkout_branch("master")
        write(repo, "f.txt", "untracked")
        write(repo, "other.txt", "untracked too")
        head_before = repo.head

        with pytest.raises(UntrackedConflict):
            repo.checkout_branch("b")

        assert repo.head == head_before
        assert reopen(repo).head == head_before
        assert read(repo, "f.txt") == "untracked"
        assert read(repo, "other.txt") == "untracked too"

    def test_rm_branch(self, repo):
        repo.branch("b")
        repo.rm_branch("b")
        assert reopen(repo).refs.list_branches() == ["master"]

    def test_rm_current_branch(self, repo):
        repo.branch("b")
        with pytest.raises(CannotRemoveCurrentBranch):
            repo.rm_branch("master")
        assert reopen(repo).refs.list_branches() == ["b", "master"]

    def test_rm_unknown_branch(self, repo):
        with pytest.raises(BranchNotFound):
            repo.rm_branch("nope")


class TestReset:
    def test_reset_restores_files_and_moves_branch(self, repo):
        write(repo, "f.txt", "v1")
        repo.add("f.txt")
        c1 = repo.commit("m1")
        write(repo, "f.txt", "v2")
        write(repo, "g.txt", "g")
        repo.add("f.txt")
        repo.add("g.txt")
        repo.commit("m2")

        repo.reset(c1.id[:10])

        assert repo.head == (c1.id, "master")
        assert repo.refs.get_branch("master") == c1.id
        assert read(repo, "f.txt") == "v1"
        assert not repo.worktree.exists("g.txt")
        assert repo.staging.is_empty()

    def test_reset_to_commit_on_other_branch(self, repo):
        repo.branch("b")
        repo.checkout_branch("b")
        write(repo, "f.txt", "b")
        repo.add("f.txt")
        side = repo.commit("side")
        repo.checkout_branch("master")
        repo.reset(side.id)
        assert repo.head == (side.id, "master")
        assert read(repo, "f.txt") == "b"

    def test_reset_unknown(self, repo):
        with pytest.raises(CommitNotFound):
            repo.reset("0000000000")

    def test_reset_untracked_in_the_way(self, repo):
        write(repo, "f.txt", "v1")
        repo.add("f.txt")
        c1 = repo.commit("m1")
        repo.rm("f.txt")
        repo.commit("drop f")
        write(repo, "f.txt", "untracked")
        with pytest.raises(UntrackedConflict):
            repo.reset(c1.id)
        assert read(repo, "f.txt") == "untracked"
