"""Tests for the CLI commands."""

import json
import textwrap
from unittest.mock import AsyncMock, patch

import pytest

from afx.commands import cli
from afx.execution import CommandResult


def write_config(config_dir, text):
    (config_dir / "main.yaml").write_text(textwrap.dedent(text))


@pytest.fixture
def dotfiles(afx_env, config_dir):
    """A local package with a plugin file, declared in the config."""
    directory = afx_env / "dotfiles"
    directory.mkdir()
    (directory / "aliases.sh").write_text("alias ll='ls -l'\n")
    write_config(
        config_dir,
        """
        local:
          - name: dotfiles
            directory: ~/dotfiles
            plugin:
              sources:
                - aliases.sh
              env:
                DOTFILES: $HOME/dotfiles
            command:
              alias:
                g: git
        """,
    )
    return directory


def state_ids(afx_env):
    path = afx_env / ".afx" / "state.json"
    return sorted(json.loads(path.read_text())["resources"])


class TestCli:
    def test_help_lists_commands(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for name in ("install", "update", "check", "uninstall", "remove", "show", "init", "state", "completion"):
            assert name in result.output

    def test_config_error_exits_1(self, runner, config_dir):
        write_config(config_dir, "brew:\n  - name: x\n")
        result = runner.invoke(cli, ["show"])
        assert result.exit_code == 1
        assert "Error:" in result.output
        assert "unknown section 'brew'" in result.output


class TestInstall:
    def test_install_local_package(self, runner, dotfiles, afx_env):
        result = runner.invoke(cli, ["install", "--yes"])

        assert result.exit_code == 0, result.output
        assert "dotfiles" in result.output
        assert state_ids(afx_env) == [str(dotfiles)]

        again = runner.invoke(cli, ["install", "--yes"])
        assert again.exit_code == 0
        assert "No packages to install" in again.output

    def test_install_declined(self, runner, dotfiles, afx_env):
        result = runner.invoke(cli, ["install"], input="n\n")
        assert result.exit_code == 0
        assert "Cancelled" in result.output
        assert state_ids(afx_env) == []

    def test_failed_install_exits_1(self, runner, afx_env, config_dir):
        write_config(
            config_dir,
            """
            github:
              - name: broken
                owner: nobody
                repo: nothing
            """,
        )
        failed = CommandResult(args=[], returncode=128, stdout="", stderr="repository not found")

        with patch("afx.packages.github.git", new=AsyncMock(return_value=failed)):
            result = runner.invoke(cli, ["install", "--yes"])

        assert result.exit_code == 1
        assert "broken: failed to clone repository" in result.output
        assert state_ids(afx_env) == []

    def test_install_filters_by_name(self, runner, dotfiles, afx_env):
        result = runner.invoke(cli, ["install", "--yes", "other"])
        assert result.exit_code == 0
        assert "No packages to install" in result.output


class TestShowAndInit:
    def test_show(self, runner, dotfiles):
        result = runner.invoke(cli, ["show"])
        assert result.exit_code == 0
        assert "NAME" in result.output
        assert "dotfiles" in result.output
        assert "not installed" in result.output

        runner.invoke(cli, ["install", "--yes"])
        result = runner.invoke(cli, ["show"])
        assert "not installed" not in result.output
        assert "installed" in result.output

    def test_init_prints_shell_code(self, runner, dotfiles):
        result = runner.invoke(cli, ["init"])
        assert result.exit_code == 0
        assert f"source {dotfiles / 'aliases.sh'}" in result.output
        assert 'export DOTFILES="$HOME/dotfiles"' in result.output
        assert 'alias g="git"' in result.output

    def test_init_marks_missing_packages(self, runner, afx_env, config_dir):
        write_config(
            config_dir,
            """
            github:
              - name: absent
                owner: o
                repo: absent
                plugin:
                  sources:
                    - "*.zsh"
            """,
        )
        result = runner.invoke(cli, ["init"])
        assert result.exit_code == 0
        assert '## package "absent" is not installed' in result.output


class TestUninstall:
    def test_uninstall_removed_package(self, runner, dotfiles, afx_env, config_dir):
        assert runner.invoke(cli, ["install", "--yes"]).exit_code == 0
        write_config(config_dir, "local: []\n")

        result = runner.invoke(cli, ["remove", "--yes"])

        assert result.exit_code == 0, result.output
        assert state_ids(afx_env) == []
        # local directories belong to the user
        assert (dotfiles / "aliases.sh").exists()

    def test_nothing_to_uninstall(self, runner, dotfiles):
        result = runner.invoke(cli, ["uninstall", "--yes"])
        assert result.exit_code == 0
        assert "No packages to uninstall" in result.output


class TestStateCommands:
    def test_list_and_force_refresh(self, runner, dotfiles):
        result = runner.invoke(cli, ["state", "list"])
        assert result.exit_code == 0
        assert result.output.strip() == ""

        result = runner.invoke(cli, ["state", "refresh", "--force"])
        assert result.exit_code == 0
        result = runner.invoke(cli, ["state", "list"])
        assert result.output.strip() == str(dotfiles)

    def test_refresh_with_pending_operations(self, runner, dotfiles):
        result = runner.invoke(cli, ["state", "refresh"])
        assert result.exit_code == 0
        assert "need operations" in result.output


class TestCheckAndCompletion:
    def test_check(self, runner, dotfiles):
        runner.invoke(cli, ["install", "--yes"])
        result = runner.invoke(cli, ["check"])
        assert result.exit_code == 0
        assert "(local)" in result.output

    @pytest.mark.parametrize("shell", ["bash", "zsh", "fish"])
    def test_completion(self, runner, shell):
        result = runner.invoke(cli, ["completion", shell])
        assert result.exit_code == 0
        assert "_AFX_COMPLETE" in result.output
