"""Tests for package kinds and their command and plugin blocks."""

import io
import os
import tarfile
from pathlib import Path
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from afx.errors import AfxError, BuildError, FetchError, LinkError
from afx.execution import CommandResult
from afx.packages import (
    HTTP,
    Build,
    Command,
    Gist,
    GitHub,
    GitHubOption,
    GitHubRelease,
    Link,
    Local,
    Orphan,
    Plugin,
    ReleaseSpec,
    AssetSpec,
    command,
    has_github_release,
    plugin,
    select,
)
from afx.state import Resource


def ok(stdout="", stderr=""):
    return CommandResult(args=[], returncode=0, stdout=stdout, stderr=stderr)


def tar_gz(files: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, content in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(content)
            info.mode = 0o755
            tar.addfile(info, io.BytesIO(content))
    return buf.getvalue()


@pytest.fixture
def repo(afx_env):
    """A GitHub package whose home already holds a checkout."""
    pkg = GitHub(name="tool", owner="o", repo="tool")
    home = Path(pkg.home)
    (home / ".git").mkdir(parents=True)
    (home / "bin").mkdir()
    (home / "bin" / "tool").write_text("#!/bin/sh\necho tool\n")
    (home / "tool.zsh").write_text("# plugin\n")
    return pkg


class TestIdentity:
    def test_github(self, afx_env):
        pkg = GitHub(name="renamed", owner="o", repo="r")
        assert pkg.id == "github.com/o/r"
        assert pkg.home == str(afx_env / ".afx" / "github.com" / "o" / "r")

    def test_github_release(self, afx_env):
        pkg = GitHubRelease(name="x", owner="o", repo="r", release=ReleaseSpec(name="r", tag="v1"))
        assert pkg.id == "github.com/release/o/r"
        assert pkg.version == "v1"

    def test_gist(self, afx_env):
        pkg = Gist(name="g", owner="o", gist_id="abc")
        assert pkg.id == "gist.github.com/o/abc"

    def test_http(self, afx_env):
        pkg = HTTP(name="h", url="https://example.com/files/v1/tool.sh")
        assert pkg.id == "example.com/files/v1/tool.sh"
        assert pkg.home == str(afx_env / ".afx" / "example.com" / "files" / "v1")
        assert pkg.filename == "tool.sh"

    def test_local(self, afx_env):
        pkg = Local(name="l", directory="~/dotfiles")
        assert pkg.home == str(afx_env / "dotfiles")
        assert pkg.id == pkg.home


class TestCommandBlock:
    """Links, build steps and init for the command block."""

    def test_get_links(self, repo, afx_env):
        cmd = Command(link=[Link(from_="bin/*")])
        links = command.get_links(cmd, repo)
        assert links == [Link(from_=os.path.join(repo.home, "bin", "tool"), to=str(afx_env / "bin" / "tool"))]

    def test_named_destination_and_dot(self, repo, afx_env):
        cmd = Command(link=[Link(from_="bin/tool", to="t"), Link(from_=".", to="/tmp/whole")])
        links = command.get_links(cmd, repo)
        assert links[0].to == str(afx_env / "bin" / "t")
        assert links[1] == Link(from_=repo.home, to="/tmp/whole")

    def test_ambiguous_glob(self, repo):
        (Path(repo.home) / "bin" / "other").write_text("")
        with pytest.raises(LinkError, match="2 files matched"):
            command.get_links(Command(link=[Link(from_="bin/*")]), repo)

    def test_unmatched_glob_skipped(self, repo):
        assert command.get_links(Command(link=[Link(from_="nothing/*")]), repo) == []

    def test_missing_home(self, afx_env):
        pkg = GitHub(name="x", owner="o", repo="missing")
        with pytest.raises(LinkError):
            command.get_links(Command(link=[Link(from_="bin")]), pkg)

    def test_not_installed_before_first_install_is_quiet(self, afx_env):
        """A package that was never fetched is simply not installed; nothing is reported."""
        pkg = GitHub(name="x", owner="o", repo="missing")
        cmd = Command(link=[Link(from_="bin/tool")])

        with patch("afx.packages.command._logging") as log:
            assert not command.installed(cmd, pkg)

        log.error.assert_not_called()
        log.warning.assert_not_called()

    @pytest.mark.asyncio
    async def test_install_links_and_unlink(self, repo, afx_env):
        cmd = Command(link=[Link(from_="bin/tool")])
        await command.install(cmd, repo)

        dest = afx_env / "bin" / "tool"
        assert dest.is_symlink()
        assert os.readlink(dest) == os.path.join(repo.home, "bin", "tool")
        assert os.access(os.path.join(repo.home, "bin", "tool"), os.X_OK)
        assert command.installed(cmd, repo)

        errs = command.unlink(cmd, repo)
        assert not errs
        assert not dest.exists()

    def test_env_lines_appends_path(self):
        lines = command.env_lines({"PATH": "/opt/tool/bin", "EDITOR": "vim"})
        assert lines == ['export PATH="$PATH:/opt/tool/bin"', 'export EDITOR="vim"']

    def test_init(self, repo):
        cmd = Command(env={"A": "1"}, alias={"t": "tool --flag"}, snippet="echo loaded\n")
        lines = command.init(cmd, repo)
        assert lines == ['export A="1"', 'alias t="tool --flag"', "echo loaded"]

    def test_parse_words(self):
        env = {"PREFIX": "/opt/x"}
        assert command.parse_words("make PREFIX=$PREFIX install", env) == ["make", "PREFIX=/opt/x", "install"]
        assert command.parse_words("echo '$PREFIX'", env) == ["echo", "$PREFIX"]
        assert command.parse_words('echo "${PREFIX}/bin"', env) == ["echo", "/opt/x/bin"]

    def test_has_sudo(self):
        assert command.has_sudo(Command(build=Build(steps=["make", "sudo make install"])))
        assert not command.has_sudo(Command(build=Build(steps=["make"])))
        assert not command.has_sudo(Command())

    @pytest.mark.asyncio
    async def test_build_streams_sudo_password(self, repo, monkeypatch):
        monkeypatch.setenv("AFX_SUDO_PASSWORD", "hunter2")
        cmd = Command(build=Build(steps=["sudo make install"], env={"CC": "gcc"}))

        with patch("afx.packages.command.run_command_async", new=AsyncMock(return_value=ok())) as run:
            await command.build(cmd, repo)

        args, kwargs = run.call_args
        assert args[0] == ["sudo", "-S", "make", "install"]
        assert kwargs["stdin"] == "hunter2\n"
        assert kwargs["env"] == {"CC": "gcc"}

    @pytest.mark.asyncio
    async def test_build_failure_carries_stderr(self, repo):
        failed = CommandResult(args=["make"], returncode=2, stdout="", stderr="no rule to make target")
        cmd = Command(build=Build(steps=["make"]))

        with patch("afx.packages.command.run_command_async", new=AsyncMock(return_value=failed)):
            with pytest.raises(BuildError) as exc_info:
                await command.build(cmd, repo)

        assert "no rule to make target" in str(exc_info.value)
        assert exc_info.value.stderr == "no rule to make target"


class TestPluginBlock:
    def test_sources_and_init(self, repo):
        plug = Plugin(sources=["*.zsh"], env={"TOOL_HOME": "/x"}, scripts=["tool_setup"])
        assert plugin.get_sources(plug, repo) == [os.path.join(repo.home, "tool.zsh")]

        lines = plugin.init(plug, repo)
        assert lines == [
            f"source {os.path.join(repo.home, 'tool.zsh')}",
            'export TOOL_HOME="/x"',
            "tool_setup",
        ]

    def test_no_sources_not_installed(self, repo):
        assert not plugin.installed(Plugin(sources=["*.fish"]), repo)


class TestPackageOperations:
    """Install, init, resource and uninstall through the package interface."""

    @pytest.mark.asyncio
    async def test_install_emits_done(self, repo, recorder):
        await repo.install(recorder)
        assert [(s.name, s.done, s.err) for s in recorder.events] == [("tool", True, False)]

    @pytest.mark.asyncio
    async def test_failed_install_emits_error(self, afx_env, recorder):
        pkg = GitHub(name="x", owner="o", repo="x")
        failed = CommandResult(args=[], returncode=128, stdout="", stderr="repository not found")
        with patch("afx.packages.github.git", new=AsyncMock(return_value=failed)):
            with pytest.raises(FetchError, match="repository not found"):
                await pkg.install(recorder)
        assert recorder.events[-1].err

    @pytest.mark.asyncio
    async def test_clone_with_depth_and_branch(self, afx_env):
        pkg = GitHub(name="x", owner="o", repo="x", branch="dev", option=GitHubOption(depth=1))
        with patch("afx.packages.github.git", new=AsyncMock(return_value=ok())) as git:
            await pkg.clone()

        calls = [c.args for c in git.call_args_list]
        assert calls[0] == ("clone", "--no-tags", "--depth", "1", "https://github.com/o/x", pkg.home)
        assert calls[1][0] == "fetch"
        assert "+refs/heads/dev:refs/heads/dev" in calls[1]
        assert calls[2] == ("checkout", "--force", "dev")

    def test_init_requires_install(self, afx_env):
        pkg = GitHub(name="x", owner="o", repo="nothing", plugin=Plugin(sources=["*.zsh"]))
        with pytest.raises(AfxError, match="not installed"):
            pkg.init()

    def test_init_combines_blocks(self, repo):
        repo.plugin = Plugin(sources=["tool.zsh"])
        repo.command = Command(alias={"t": "tool"})
        text = repo.init()
        assert text.startswith(f"source {os.path.join(repo.home, 'tool.zsh')}\n")
        assert 'alias t="tool"' in text

    def test_resource_records_links(self, repo, afx_env):
        repo.command = Command(link=[Link(from_="bin/tool")])
        resource = repo.resource()
        assert resource.paths == [
            repo.home,
            os.path.join(repo.home, "bin", "tool"),
            str(afx_env / "bin" / "tool"),
        ]
        assert resource.type == "GitHub"

    @pytest.mark.asyncio
    async def test_uninstall_removes_home(self, repo):
        await repo.uninstall()
        assert not os.path.exists(repo.home)

    @pytest.mark.asyncio
    async def test_release_fetch(self, afx_env):
        payload = tar_gz({"tool": b"binary"})

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "api.github.com":
                return httpx.Response(
                    200,
                    json={
                        "tag_name": "v1.0.0",
                        "assets": [
                            {"name": "tool_v1.0.0.tar.gz", "browser_download_url": "https://dl.example.com/tool.tar.gz"},
                            {"name": "checksums.txt", "browser_download_url": "https://dl.example.com/checksums.txt"},
                        ],
                    },
                )
            return httpx.Response(200, content=payload)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            pkg = GitHubRelease(
                name="tool",
                owner="o",
                repo="tool",
                release=ReleaseSpec(
                    name="tool",
                    tag="v1.0.0",
                    asset=AssetSpec(filename="tool_{{ .Release.Tag }}.tar.gz"),
                ),
                http=http,
            )
            await pkg.fetch()

        assert (Path(pkg.home) / "tool").read_bytes() == b"binary"
        assert not (Path(pkg.home) / "tool_v1.0.0.tar.gz").exists()

    @pytest.mark.asyncio
    async def test_release_check(self, afx_env, recorder):
        def handler(request):
            return httpx.Response(200, json={"tag_name": "v2.0.0", "assets": []})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            pkg = GitHubRelease(name="tool", owner="o", repo="tool", release=ReleaseSpec(name="tool", tag="v1.0.0"), http=http)
            await pkg.check(recorder)

        assert recorder.events[-1].message == "(github-release) new! v1.0.0 -> v2.0.0"

    @pytest.mark.asyncio
    async def test_http_fetch_plain_file(self, afx_env):
        def handler(request):
            return httpx.Response(200, text="echo hi\n")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            pkg = HTTP(name="h", url="https://example.com/scripts/hi.sh", http=http)
            await pkg.fetch()

        assert (Path(pkg.home) / "hi.sh").read_text() == "echo hi\n"

    @pytest.mark.asyncio
    async def test_local_is_never_removed(self, temp_dir, recorder):
        pkg = Local(name="l", directory=str(temp_dir))
        await pkg.install(recorder)
        await pkg.uninstall()
        assert pkg.installed()
        assert temp_dir.exists()
        assert recorder.events[0].done


class TestOrphan:
    @pytest.mark.asyncio
    async def test_removes_recorded_paths(self, temp_dir):
        home = temp_dir / "home"
        home.mkdir()
        link = temp_dir / "link"
        link.symlink_to(home)
        orphan = Orphan(record=Resource("id", "x", str(home), "GitHub", "", [str(home), str(link)]))

        await orphan.uninstall()

        assert not home.exists()
        assert not os.path.lexists(link)

    @pytest.mark.asyncio
    async def test_local_orphan_keeps_files(self, temp_dir):
        orphan = Orphan(record=Resource(str(temp_dir), "x", str(temp_dir), "Local", "", [str(temp_dir)]))
        await orphan.uninstall()
        assert temp_dir.exists()


class TestHelpers:
    def test_has_github_release(self, afx_env):
        release = GitHubRelease(name="x", owner="o", repo="r", release=ReleaseSpec(name="r"))
        assert has_github_release([release])
        assert not has_github_release([GitHub(name="y", owner="o", repo="y")])

    def test_select_keeps_order(self, afx_env):
        a = GitHub(name="a", owner="o", repo="a")
        b = GitHub(name="b", owner="o", repo="b")
        assert select([a, b], ["github.com/o/b", "github.com/o/a"]) == [a, b]
