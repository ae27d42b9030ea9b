import os
import tempfile
import unittest
from unittest.mock import patch

from snapshot import repository
from snapshot.repository import resolve_repository

SHA = "0123456789abcdef0123456789abcdef01234567"


def _write(path, text):
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


def _make_git(root, *, head="ref: refs/heads/main\n", ref_sha=SHA, config=None):
    dot = os.path.join(root, ".git")
    os.makedirs(dot)
    if head is not None:
        _write(os.path.join(dot, "HEAD"), head)
    if ref_sha is not None:
        _write(os.path.join(dot, "refs", "heads", "main"), ref_sha + "\n")
    if config is not None:
        _write(os.path.join(dot, "config"), config)
    return dot


class TestResolveRepository(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = os.path.realpath(self._tmp.name)

    def test_absent_metadata_returns_empty_and_reaches_root(self):
        nested = os.path.join(self.tmp, "a", "b")
        os.makedirs(nested)
        real_is_directory = repository._is_directory
        checked = []

        def _only_inside_tmp(path):
            checked.append(path)
            return path.startswith(self.tmp) and real_is_directory(path)

        with patch("snapshot.repository._is_directory", side_effect=_only_inside_tmp):
            self.assertEqual(resolve_repository(nested), {})

        last_dir = os.path.dirname(checked[-1])
        self.assertEqual(os.path.dirname(last_dir), last_dir)

    def test_presence_reads_checkout_and_sha(self):
        _make_git(self.tmp)
        nested = os.path.join(self.tmp, "src", "pkg")
        os.makedirs(nested)
        self.assertEqual(
            resolve_repository(nested),
            {"checkout": "refs/heads/main", "sha1": SHA},
        )

    def test_config_is_the_base_map(self):
        _make_git(
            self.tmp,
            config=(
                "[core]\n"
                "\trepositoryformatversion = 0\n"
                "\tbare = false\n"
                '[remote "origin"]\n'
                "\turl = https://example.invalid/repo.git\n"
                "\tfetch = +refs/heads/*:refs/remotes/origin/*\n"
            ),
        )
        data = resolve_repository(self.tmp)
        self.assertEqual(data["core"]["bare"], "false")
        self.assertEqual(
            data['remote "origin"']["url"], "https://example.invalid/repo.git"
        )
        self.assertEqual(data["checkout"], "refs/heads/main")
        self.assertEqual(data["sha1"], SHA)

    def test_valueless_config_keys_are_kept(self):
        _make_git(
            self.tmp,
            config="[core]\n\tbare\n\tfilemode = true\n",
        )
        data = resolve_repository(self.tmp)
        self.assertEqual(data["core"], {"bare": None, "filemode": "true"})
        self.assertEqual(data["sha1"], SHA)

    def test_unparsable_config_is_ignored(self):
        _make_git(self.tmp, config="no section header here\n")
        self.assertEqual(
            resolve_repository(self.tmp),
            {"checkout": "refs/heads/main", "sha1": SHA},
        )

    def test_missing_ref_keeps_checkout_only(self):
        _make_git(self.tmp, ref_sha=None)
        self.assertEqual(resolve_repository(self.tmp), {"checkout": "refs/heads/main"})

    def test_missing_head_omits_both_fields(self):
        _make_git(self.tmp, head=None)
        self.assertEqual(resolve_repository(self.tmp), {})

    def test_packed_refs_fallback(self):
        dot = _make_git(self.tmp, ref_sha=None)
        _write(
            os.path.join(dot, "packed-refs"),
            "# pack-refs with: peeled fully-peeled sorted\n"
            f"{'f' * 40} refs/heads/other\n"
            f"{SHA} refs/heads/main\n"
            f"^{'e' * 40}\n",
        )
        self.assertEqual(
            resolve_repository(self.tmp),
            {"checkout": "refs/heads/main", "sha1": SHA},
        )

    def test_detached_head_is_the_revision(self):
        _make_git(self.tmp, head=SHA + "\n")
        self.assertEqual(resolve_repository(self.tmp), {"sha1": SHA})

    def test_stat_failure_skips_to_parent(self):
        _make_git(self.tmp)
        nested = os.path.join(self.tmp, "sub")
        os.makedirs(nested)
        real_lstat = os.lstat
        flaky = os.path.join(nested, ".git")

        def _lstat(path, *args, **kwargs):
            if path == flaky:
                raise PermissionError(13, "Permission denied", path)
            return real_lstat(path, *args, **kwargs)

        with patch("snapshot.repository.os.lstat", side_effect=_lstat):
            data = resolve_repository(nested)
        self.assertEqual(data, {"checkout": "refs/heads/main", "sha1": SHA})

    def test_git_file_is_not_a_metadata_directory(self):
        _make_git(self.tmp)
        nested = os.path.join(self.tmp, "worktree")
        os.makedirs(nested)
        _write(os.path.join(nested, ".git"), "gitdir: /elsewhere\n")
        self.assertEqual(resolve_repository(nested)["sha1"], SHA)


if __name__ == "__main__":
    unittest.main()
