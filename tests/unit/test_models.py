"""Tests for domain models."""

from datetime import datetime, timezone

import pytest

from vcs_gateway.enums import ErrorCode, FileType
from vcs_gateway.models.domain import (
    CommandResult,
    CommitRef,
    FileInfo,
    RateLimitInfo,
    RepositoryInfo,
    RepositoryOwner,
    StandardError,
    TagInfo,
    UploadResult,
)


def test_raw_payload_is_ignored_in_equality():
    """Test entities compare on normalized fields only."""
    first = TagInfo(name="v1", commit=CommitRef(sha="abc"), raw={"a": 1})
    second = TagInfo(name="v1", commit=CommitRef(sha="abc"), raw={"b": 2})

    assert first == second
    assert "raw" not in repr(first)


def test_entities_are_frozen():
    """Test entities cannot be mutated."""
    repo = RepositoryInfo(id=1, name="r", full_name="o/r", owner=RepositoryOwner(login="o"))

    with pytest.raises(AttributeError):
        repo.name = "other"


def test_file_info_type():
    """Test file entries carry a FileType."""
    info = FileInfo(path="src/a.py", name="a.py", sha="s", size=3, type=FileType.FILE)

    assert info.type == FileType.FILE
    assert info.content is None


class TestCommandResult:
    """Tests for CommandResult."""

    def test_success_follows_exit_code(self):
        """Test success is true exactly for exit code 0."""
        assert CommandResult(0, "", "").success is True
        assert CommandResult(1, "", "boom").success is False
        assert CommandResult(-1, "", "timed out").success is False

    def test_to_dict(self):
        """Test the JSON shape omits the argument vector."""
        result = CommandResult(128, "", "fatal", command=("status",))

        assert result.to_dict() == {"success": False, "exitCode": 128, "output": "", "error": "fatal"}


class TestStandardError:
    """Tests for StandardError."""

    def test_to_dict_without_rate_limit(self):
        """Test the basic serialized form."""
        error = StandardError(
            code=ErrorCode.NETWORK_ERROR,
            message="gitea: Request timeout",
            provider="gitea",
            retryable=True,
            original_error=TimeoutError(),
        )

        assert error.to_dict() == {
            "code": "NETWORK_ERROR",
            "message": "gitea: Request timeout",
            "provider": "gitea",
            "statusCode": None,
            "retryable": True,
        }

    def test_to_dict_with_rate_limit(self):
        """Test rate-limit details are included."""
        reset = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        error = StandardError(
            code=ErrorCode.RATE_LIMITED,
            message="github: Rate limit exceeded",
            provider="github",
            retryable=True,
            status_code=429,
            rate_limit=RateLimitInfo(limit=60, remaining=0, reset_at=reset, retry_after=30.0),
        )

        assert error.to_dict()["rateLimit"] == {
            "limit": 60,
            "remaining": 0,
            "resetAt": "2024-05-01T12:00:00+00:00",
            "retryAfter": 30.0,
        }


class TestUploadResult:
    """Tests for UploadResult."""

    def test_success_without_errors(self):
        """Test success means no per-file errors."""
        assert UploadResult(uploaded=["a.txt"]).success is True
        assert UploadResult(uploaded=["a.txt"], errors=["b.txt: too large"]).success is False
