"""Tests for the cache client facade, with git faked out."""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from repocache.config import ConfigAccessor
from repocache.git import (
    CacheDirectoryError,
    CheckoutError,
    Client,
    CommandError,
    GitNotFoundError,
    MirrorCloneError,
    RemoteRefNotFoundError,
    parse_ls_remote,
)

BASE = "https://git.example.com"


@pytest.mark.short
class TestConstruction:
    def test_creates_cache_root(self, make_client, tmp_path):
        client = make_client()
        assert client.cache_dir.is_dir()
        assert client.cache_dir.parent == tmp_path
        assert client.cache_dir.name.startswith("gitcache")

    def test_each_client_gets_its_own_root(self, make_client):
        assert make_client().cache_dir != make_client().cache_dir

    def test_git_not_found(self, monkeypatch, tmp_path):
        monkeypatch.setattr("repocache.git.command.shutil.which", lambda name: None)
        with pytest.raises(GitNotFoundError):
            Client(cache_parent=tmp_path)

    def test_cache_root_error(self, fake_git, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("")
        with pytest.raises(CacheDirectoryError):
            Client(git=fake_git, cache_parent=blocker)

    def test_from_config(self, monkeypatch, tmp_path):
        monkeypatch.setattr("repocache.git.client.find_git", lambda: "/opt/git/bin/git")
        config = ConfigAccessor(tmp_path / "repocache.cfg")
        config.set("git", "username", "piped")
        config.set("git", "email", "piped@example.com")
        config.set("git", "retries", "5")
        config.set("git", "retry_interval", "0.5")
        config.set("dirs", "git_cache", str(tmp_path / "caches"))

        client = Client.from_config(config)
        try:
            assert client.username == "piped"
            assert client.email == "piped@example.com"
            assert client.retries == 5
            assert client.retry_interval == 0.5
            assert client.git_path == "/opt/git/bin/git"
            assert client.cache_dir.parent == tmp_path / "caches"
        finally:
            client.clean()

    def test_context_manager_cleans(self, fake_git, tmp_path):
        with Client(git=fake_git, cache_parent=tmp_path) as client:
            cache_dir = client.cache_dir
            assert cache_dir.exists()
        assert not cache_dir.exists()


@pytest.mark.short
class TestClone:
    def test_first_clone_mirrors_then_checks_out(self, make_client, fake_git, tmp_path):
        client = make_client()
        dest = tmp_path / "work" / "app"

        repo = client.clone(BASE, "acme/app", dest)

        mirror = client.cache_dir / "acme" / "app.git"
        assert mirror.is_dir()
        assert fake_git.calls[0] == (
            ("clone", "--mirror", f"{BASE}/acme/app", str(mirror)),
            None,
        )
        assert fake_git.calls[1] == (("clone", str(mirror), str(dest)), None)
        assert fake_git.fetches == []

        assert repo.full_name == "acme/app"
        assert repo.path == dest
        assert repo.remote == f"{BASE}/acme/app"
        assert repo.git_path == fake_git.git_path

    def test_second_clone_fetches(self, make_client, fake_git, tmp_path):
        client = make_client()
        client.clone(BASE, "acme/app", tmp_path / "w1")
        client.clone(BASE, "acme/app", tmp_path / "w2")

        assert len(fake_git.mirror_clones) == 1
        assert len(fake_git.fetches) == 1
        assert len(fake_git.commands("clone")) == 3

    def test_trailing_slash_in_base(self, make_client, fake_git, tmp_path):
        repo = make_client().clone(BASE + "/", "acme/app", tmp_path / "w")
        assert repo.remote == f"{BASE}/acme/app"

    def test_same_full_name_on_other_base_shares_mirror(self, make_client, fake_git, tmp_path):
        client = make_client()
        client.clone(BASE, "acme/app", tmp_path / "w1")
        client.clone("https://mirror.example.org", "acme/app", tmp_path / "w2")

        assert len(fake_git.mirror_clones) == 1
        assert len(fake_git.fetches) == 1

    def test_clean_forgets_mirrors(self, make_client, fake_git, tmp_path):
        client = make_client()
        client.clone(BASE, "acme/app", tmp_path / "w1")

        client.clean()
        assert not client.cache_dir.exists()
        # cleaning twice is fine
        client.clean()

        client.clone(BASE, "acme/app", tmp_path / "w2")
        assert len(fake_git.mirror_clones) == 2
        assert fake_git.fetches == []

    def test_partial_mirror_clone_is_fetched_on_retry(self, make_client, fake_git, tmp_path):
        client = make_client()

        def partial_clone(args, cwd):
            fake_git.default(args, cwd)
            if "--mirror" in args:
                raise CommandError(args, "fatal: early EOF", 128)
            return ""

        fake_git.handlers["clone"] = partial_clone
        with pytest.raises(MirrorCloneError):
            client.clone(BASE, "acme/app", tmp_path / "w1")
        assert not (tmp_path / "w1").exists()

        del fake_git.handlers["clone"]
        client.clone(BASE, "acme/app", tmp_path / "w2")

        assert len(fake_git.mirror_clones) == 1
        assert len(fake_git.fetches) == 1

    def test_failed_checkout_keeps_updated_mirror(self, make_client, fake_git, tmp_path):
        client = make_client()

        def failing_local_clone(args, cwd):
            if "--mirror" in args:
                return fake_git.default(args, cwd)
            raise CommandError(args, "fatal: destination path already exists", 128)

        fake_git.handlers["clone"] = failing_local_clone
        with pytest.raises(CheckoutError) as excinfo:
            client.clone(BASE, "acme/app", tmp_path / "w1")

        assert str(tmp_path / "w1") in str(excinfo.value)
        assert (client.cache_dir / "acme" / "app.git").exists()
        # the local clone is not retried
        assert len(fake_git.commands("clone")) == 2

    def test_lock_released_after_failure(self, make_client, fake_git, tmp_path):
        client = make_client()

        def failing_clone(args, cwd):
            raise CommandError(args, "boom", 1)

        fake_git.handlers["clone"] = failing_clone
        with pytest.raises(MirrorCloneError):
            client.clone(BASE, "acme/app", tmp_path / "w1")

        del fake_git.handlers["clone"]
        client.clone(BASE, "acme/app", tmp_path / "w2")


@pytest.mark.short
class TestIdentity:
    def test_no_identity_no_config_command(self, make_client, fake_git, tmp_path):
        make_client().clone(BASE, "acme/app", tmp_path / "w")
        assert fake_git.config_calls == []

    def test_username_and_email(self, make_client, fake_git, tmp_path):
        client = make_client(username="piped", email="piped@example.com")
        dest = tmp_path / "w"
        client.clone(BASE, "acme/app", dest)

        assert fake_git.config_calls == [
            ("config", "user.name", "piped"),
            ("config", "user.email", "piped@example.com"),
        ]
        assert all(cwd == dest for args, cwd in fake_git.calls if args[0] == "config")

    def test_email_only(self, make_client, fake_git, tmp_path):
        client = make_client(email="piped@example.com")
        client.clone(BASE, "acme/app", tmp_path / "w")
        assert fake_git.config_calls == [("config", "user.email", "piped@example.com")]

    def test_every_clone_gets_identity(self, make_client, fake_git, tmp_path):
        client = make_client(username="piped")
        client.clone(BASE, "acme/app", tmp_path / "w1")
        client.clone(BASE, "acme/app", tmp_path / "w2")
        assert len(fake_git.config_calls) == 2

    def test_identity_failure(self, make_client, fake_git, tmp_path):
        def failing_config(args, cwd):
            raise CommandError(args, "error: could not lock config file", 255)

        fake_git.handlers["config"] = failing_config
        client = make_client(username="piped")

        with pytest.raises(CheckoutError, match="failed to set user"):
            client.clone(BASE, "acme/app", tmp_path / "w")


@pytest.mark.short
class TestConcurrency:
    def _track(self, fake_git, hold=0.02):
        """Record how many commands run at once against each mirror."""
        state = {"active": {}, "max": {}}
        lock = threading.Lock()

        def mirror_of(args, cwd):
            if args[0] == "fetch":
                return str(cwd)
            if "--mirror" in args:
                return args[-1]
            return args[1]

        def handler(args, cwd):
            key = mirror_of(args, cwd)
            with lock:
                state["active"][key] = state["active"].get(key, 0) + 1
                state["max"][key] = max(state["max"].get(key, 0), state["active"][key])
            time.sleep(hold)
            try:
                return fake_git.default(args, cwd)
            finally:
                with lock:
                    state["active"][key] -= 1

        fake_git.handlers["clone"] = handler
        fake_git.handlers["fetch"] = handler
        return state

    def test_same_repository_is_serialized(self, make_client, fake_git, tmp_path):
        client = make_client()
        state = self._track(fake_git)

        with ThreadPoolExecutor(max_workers=6) as pool:
            futures = [
                pool.submit(client.clone, BASE, "acme/app", tmp_path / f"w{i}")
                for i in range(6)
            ]
            repos = [f.result() for f in futures]

        assert len(repos) == 6
        assert set(state["max"].values()) == {1}
        assert len(fake_git.mirror_clones) == 1
        assert len(fake_git.fetches) == 5

    def test_different_repositories_overlap(self, make_client, fake_git, tmp_path):
        client = make_client()
        # both first clones must be running at the same time to get through
        barrier = threading.Barrier(2, timeout=5)

        def mirror_clone(args, cwd):
            if "--mirror" in args:
                barrier.wait()
            return fake_git.default(args, cwd)

        fake_git.handlers["clone"] = mirror_clone

        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [
                pool.submit(client.clone, BASE, name, tmp_path / name)
                for name in ["acme/app", "acme/charts"]
            ]
            repos = [f.result() for f in futures]

        assert [r.full_name for r in repos] == ["acme/app", "acme/charts"]

    def test_latest_hash_does_not_wait_for_clone(self, make_client, fake_git, tmp_path):
        client = make_client()
        in_clone = threading.Event()
        release = threading.Event()

        def slow_clone(args, cwd):
            if "--mirror" in args:
                in_clone.set()
                release.wait(5)
            return fake_git.default(args, cwd)

        fake_git.handlers["clone"] = slow_clone
        fake_git.handlers["ls-remote"] = lambda args, cwd: "abc123\trefs/heads/main\n"

        with ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(client.clone, BASE, "acme/app", tmp_path / "w")
            assert in_clone.wait(5)
            assert (
                client.get_latest_remote_hash_for_branch(f"{BASE}/acme/app", "main")
                == "abc123"
            )
            release.set()
            future.result()


@pytest.mark.short
class TestLatestRemoteHash:
    def test_queries_remote_branch(self, make_client, fake_git):
        fake_git.handlers["ls-remote"] = (
            lambda args, cwd: "abc123deadbeef\trefs/heads/main\n"
        )
        client = make_client()

        assert (
            client.get_latest_remote_hash_for_branch(f"{BASE}/acme/app", "main")
            == "abc123deadbeef"
        )
        assert fake_git.commands("ls-remote") == [
            ("ls-remote", f"{BASE}/acme/app", "refs/heads/main")
        ]
        # the cache is not touched
        assert list(client.cache_dir.iterdir()) == []

    def test_missing_branch(self, make_client, fake_git):
        fake_git.handlers["ls-remote"] = lambda args, cwd: ""
        with pytest.raises(RemoteRefNotFoundError, match="feature/x"):
            make_client().get_latest_remote_hash_for_branch(BASE, "feature/x")

    def test_retries_then_raises(self, make_client, fake_git):
        def failing(args, cwd):
            raise CommandError(args, "Could not resolve host", 128)

        fake_git.handlers["ls-remote"] = failing
        client = make_client(retries=3)

        with pytest.raises(CommandError, match="Could not resolve host"):
            client.get_latest_remote_hash_for_branch(BASE, "main")
        assert len(fake_git.commands("ls-remote")) == 3


@pytest.mark.short
class TestParseLsRemote:
    def test_tab_separated(self):
        assert (
            parse_ls_remote("abc123deadbeef\trefs/heads/main\n", "r", "main")
            == "abc123deadbeef"
        )

    def test_no_tab_returns_whole_line(self):
        assert parse_ls_remote("  abc123deadbeef \n", "r", "main") == "abc123deadbeef"

    def test_exact_branch_ref_is_selected(self):
        out = (
            "111\trefs/heads/feature/refs/heads/main\n"
            "222\trefs/heads/main\n"
        )
        assert parse_ls_remote(out, "r", "main") == "222"

    def test_suffix_match_only_is_missing(self):
        out = "111\trefs/heads/feature/refs/heads/nosuch\n"
        with pytest.raises(RemoteRefNotFoundError, match="nosuch"):
            parse_ls_remote(out, "r", "nosuch")

    @pytest.mark.parametrize("out", ["", "\n", "   \n"])
    def test_empty_output(self, out):
        with pytest.raises(RemoteRefNotFoundError):
            parse_ls_remote(out, "r", "main")
