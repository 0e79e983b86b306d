"""Tests for the administrative CLI argument parsing."""

import pytest

from app.cli import build_parser, cmd_create_admin, cmd_init_db, cmd_seed_demo


def test_create_admin_arguments():
    args = build_parser().parse_args(
        ["create-admin", "-u", "owner", "-e", "Owner@Clinic.example", "-p", "s3cret-pass"]
    )

    assert args.func is cmd_create_admin
    assert args.username == "owner"
    assert args.password == "s3cret-pass"
    assert args.full_name is None


@pytest.mark.parametrize("command,func", [("init-db", cmd_init_db), ("seed-demo", cmd_seed_demo)])
def test_subcommands(command, func):
    assert build_parser().parse_args([command]).func is func


def test_create_admin_rejects_short_password(capsys):
    args = build_parser().parse_args(
        ["create-admin", "-u", "owner", "-e", "owner@clinic.example", "-p", "short"]
    )

    assert cmd_create_admin(args) == 1
    assert "at least 8 characters" in capsys.readouterr().err
