"""Tests for image availability and digest lookup."""

from __future__ import annotations

from unittest.mock import patch

from image_scanner.core.resolver import ImageResolver, UNKNOWN_DIGEST
from image_scanner.utils.subprocess import CommandResult

REF = "registry.example.com/acme/web"


def ok(stdout: str = "") -> CommandResult:
    return CommandResult(returncode=0, stdout=stdout, stderr="")


def fail(stderr: str = "error") -> CommandResult:
    return CommandResult(returncode=1, stdout="", stderr=stderr)


@patch("image_scanner.core.resolver.run_command")
def test_present_image_is_not_pulled(mock_run):
    mock_run.return_value = ok("[]")
    result = ImageResolver().ensure_image(REF)

    assert result.success
    assert not result.pulled
    mock_run.assert_called_once()
    assert mock_run.call_args[0][0] == ["docker", "image", "inspect", REF]


@patch("image_scanner.core.resolver.run_command")
def test_missing_image_is_pulled_once(mock_run):
    mock_run.side_effect = [fail(), ok()]
    result = ImageResolver(timeout=120).ensure_image(REF)

    assert result.success
    assert result.pulled
    pull_call = mock_run.call_args_list[1]
    assert pull_call[0][0] == ["docker", "pull", REF]
    assert pull_call[1]["timeout"] == 120


@patch("image_scanner.core.resolver.run_command")
def test_pull_failure_is_reported_not_raised(mock_run):
    mock_run.side_effect = [
        fail(),
        fail("\nError response from daemon: pull access denied for acme/web\n"),
    ]
    result = ImageResolver().ensure_image(REF)

    assert not result.success
    assert result.reason == "Error response from daemon: pull access denied for acme/web"
    assert mock_run.call_count == 2


@patch("image_scanner.core.resolver.run_command")
def test_get_digest(mock_run):
    mock_run.return_value = ok(f"{REF}@sha256:1234\n")
    assert ImageResolver().get_digest(REF) == f"{REF}@sha256:1234"


@patch("image_scanner.core.resolver.run_command")
def test_get_digest_falls_back_to_unknown(mock_run):
    mock_run.return_value = fail("template: :1:2: executing \"\" at <index .RepoDigests 0>")
    assert ImageResolver().get_digest(REF) == UNKNOWN_DIGEST


@patch("image_scanner.core.resolver.run_command")
def test_get_digest_empty_output(mock_run):
    mock_run.return_value = ok("\n")
    assert ImageResolver().get_digest(REF) == UNKNOWN_DIGEST
