import threading
from pathlib import Path

import pytest
from dulwich import porcelain

from repocache.git import Client, GitCommand


class FakeGit(GitCommand):
    """Records git invocations and fakes their effect on disk.

    `handlers` maps a subcommand ("clone", "fetch", ...) to a callable
    receiving (args, cwd); the default behaviour creates clone targets.
    """

    def __init__(self):
        super().__init__("/usr/bin/git")
        self.calls = []
        self.handlers = {}
        self._lock = threading.Lock()

    def run(self, *args, cwd=None, deadline=None):
        with self._lock:
            self.calls.append((args, cwd))
        handler = self.handlers.get(args[0])
        if handler is not None:
            return handler(args, cwd)
        return self.default(args, cwd)

    def default(self, args, cwd):
        if args[0] == "clone":
            Path(args[-1]).mkdir(parents=True, exist_ok=True)
        return ""

    def commands(self, *prefix):
        with self._lock:
            return [args for args, _ in self.calls if args[: len(prefix)] == prefix]

    @property
    def mirror_clones(self):
        return self.commands("clone", "--mirror")

    @property
    def fetches(self):
        return self.commands("fetch")

    @property
    def config_calls(self):
        return self.commands("config")


@pytest.fixture
def fake_git():
    return FakeGit()


@pytest.fixture
def make_client(tmp_path, fake_git):
    """Build clients backed by `fake_git`, cleaned up after the test."""
    clients = []

    def _make(**kwargs):
        kwargs.setdefault("git", fake_git)
        kwargs.setdefault("cache_parent", tmp_path)
        kwargs.setdefault("retries", 1)
        kwargs.setdefault("retry_interval", 0)
        client = Client(**kwargs)
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.clean()


def _commit_file(repo_dir: Path, name: str, content: str, message: bytes) -> str:
    """Write a file into a dulwich repo and commit it, returning the sha."""
    path = repo_dir / name
    path.write_text(content)
    porcelain.add(str(repo_dir), paths=[str(path)])
    sha = porcelain.commit(
        str(repo_dir),
        message=message,
        author=b"Test <test@test>",
        committer=b"Test <test@test>",
    )
    return sha.decode("ascii")


@pytest.fixture
def commit_file():
    return _commit_file


@pytest.fixture
def remote_repo(tmp_path):
    """A source repository at <base>/acme/app with one commit.

    Returns (base, repo_dir, branch, commit_sha).
    """
    base = tmp_path / "remote"
    repo_dir = base / "acme" / "app"
    repo_dir.mkdir(parents=True)
    porcelain.init(str(repo_dir))
    sha = _commit_file(repo_dir, "hello.txt", "hello", b"initial commit")
    branch = porcelain.active_branch(str(repo_dir)).decode("utf-8")
    return base, repo_dir, branch, sha
