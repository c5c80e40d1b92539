"""Tests for vcs_gateway/providers/gitea_rest.py."""

import base64
import json

import httpx
import pytest

from vcs_gateway.config.settings import ProviderConfig
from vcs_gateway.enums import ErrorCode, FileType, IssueState, PullRequestState
from vcs_gateway.exceptions import ProviderRequestError
from vcs_gateway.providers.gitea_rest import GiteaRestProvider

API = "/api/v1"

REPO_PAYLOAD = {
    "id": 7,
    "name": "hello",
    "full_name": "ignored/ignored",
    "owner": {"id": 1, "login": "alice"},
    "description": "",
    "private": True,
    "fork": False,
    "default_branch": "develop",
    "clone_url": "https://gitea.example.com/alice/hello.git",
    "ssh_url": "git@gitea.example.com:alice/hello.git",
    "html_url": "https://gitea.example.com/alice/hello",
    "created_at": "2024-01-02T03:04:05Z",
}


def _pr(number: int, state: str, merged: bool = False) -> dict:
    return {
        "id": 100 + number,
        "number": number,
        "title": f"PR {number}",
        "state": state,
        "merged": merged,
        "user": {"id": 1, "login": "alice"},
        "head": {"ref": "feature", "sha": "a" * 40, "label": "alice:feature"},
        "base": {"ref": "main", "sha": "b" * 40, "label": "alice:main"},
    }


def _body(request: httpx.Request) -> dict:
    return json.loads(request.content)


@pytest.fixture
def provider(mock_api, gitea_config):
    return GiteaRestProvider(gitea_config, transport=mock_api.transport)


# =============================================================================
# Construction
# =============================================================================


class TestGiteaSetup:
    """Tests for URL and header setup."""

    @pytest.mark.parametrize(
        "configured,expected",
        [
            ("https://gitea.example.com", "https://gitea.example.com/api/v1"),
            ("https://gitea.example.com/", "https://gitea.example.com/api/v1"),
            ("https://gitea.example.com/api", "https://gitea.example.com/api/v1"),
            ("https://gitea.example.com/api/v1", "https://gitea.example.com/api/v1"),
        ],
    )
    def test_base_url(self, configured, expected):
        """Test the API root is derived from any accepted form."""
        config = ProviderConfig(name="g", type="gitea", api_url=configured, token="t")

        assert GiteaRestProvider(config).api_url == expected

    def test_headers_use_token_scheme(self, gitea_config):
        """Test Gitea authenticates with the token scheme."""
        headers = GiteaRestProvider(gitea_config).get_headers(gitea_config)

        assert headers["Authorization"] == "token gitea-token"
        assert headers["Accept"] == "application/json"

    def test_repository_url(self, provider):
        """Test the clone URL is built from the instance root."""
        assert provider.get_repository_url("alice", "hello") == "https://gitea.example.com/alice/hello.git"

    @pytest.mark.asyncio
    async def test_authorization_header_sent(self, provider, mock_api):
        """Test requests carry the authorization header."""
        mock_api.add("GET", f"{API}/user", {"id": 1, "login": "alice"})

        await provider.get_current_user()

        assert mock_api.last().headers["Authorization"] == "token gitea-token"


# =============================================================================
# Normalization
# =============================================================================


class TestGiteaNormalization:
    """Tests for payload normalization."""

    def test_repository_full_name_from_owner_and_name(self, provider):
        """Test full_name is built from owner login and name."""
        repo = provider.normalize_repository(REPO_PAYLOAD)

        assert repo.full_name == "alice/hello"
        assert repo.owner.login == "alice"
        assert repo.default_branch == "develop"
        assert repo.private is True
        assert repo.description is None
        assert repo.created_at is not None and repo.created_at.year == 2024

    def test_repository_keeps_raw_payload(self, provider):
        """Test the raw payload is retained untouched."""
        repo = provider.normalize_repository(REPO_PAYLOAD)

        assert repo.raw is REPO_PAYLOAD

    def test_repository_owner_username_fallback(self, provider):
        """Test older payloads with only ``username`` are accepted."""
        repo = provider.normalize_repository({"id": 1, "name": "x", "owner": {"username": "bob"}})

        assert repo.full_name == "bob/x"

    def test_branch_commit_id(self, provider):
        """Test Gitea's commit ``id`` becomes the sha."""
        branch = provider.normalize_branch({"name": "main", "commit": {"id": "c" * 40}, "protected": True})

        assert branch.commit.sha == "c" * 40
        assert branch.protected is True

    def test_merged_pull_request_state(self, provider):
        """Test closed+merged pull requests normalize to MERGED."""
        assert provider.normalize_pull_request(_pr(1, "closed", merged=True)).state == PullRequestState.MERGED
        assert provider.normalize_pull_request(_pr(2, "closed")).state == PullRequestState.CLOSED
        assert provider.normalize_pull_request(_pr(3, "open")).state == PullRequestState.OPEN

    def test_issue_labels_and_state(self, provider):
        """Test issue labels are flattened to names."""
        issue = provider.normalize_issue(
            {
                "id": 9,
                "number": 3,
                "title": "Bug",
                "state": "closed",
                "user": {"login": "alice"},
                "labels": [{"id": 1, "name": "bug"}],
                "assignees": [{"login": "bob"}],
            }
        )

        assert issue.state == IssueState.CLOSED
        assert issue.labels == ("bug",)
        assert issue.assignees == ("bob",)

    def test_directory_entry_has_no_content(self, provider):
        """Test directory entries leave content unset."""
        entry = provider.normalize_file({"path": "src", "name": "src", "type": "dir", "sha": "d", "content": "x"})

        assert entry.type == FileType.DIR
        assert entry.content is None

    def test_user_organization_type(self, provider):
        """Test Gitea organization users are typed."""
        user = provider.normalize_user({"id": 1, "login": "acme", "full_name": "Acme", "type": "organization"})

        assert user.type == "Organization"
        assert user.name == "Acme"

    def test_organization_login(self, provider):
        """Test organization login comes from username or name."""
        org = provider.normalize_organization({"id": 2, "name": "acme", "full_name": "Acme Inc"})

        assert org.login == "acme"
        assert org.name == "Acme Inc"

    def test_commit_flat_shape(self, provider):
        """Test the flat commit shape returned by the contents API."""
        commit = provider.normalize_commit(
            {"sha": "e" * 40, "message": "msg", "author": {"name": "A", "email": "a@x"}, "parents": [{"sha": "f"}]}
        )

        assert commit.message == "msg"
        assert commit.author.email == "a@x"
        assert commit.parents == ("f",)


# =============================================================================
# Operations
# =============================================================================


class TestGiteaRepositories:
    """Tests for repository operations."""

    @pytest.mark.asyncio
    async def test_get_repository(self, provider, mock_api):
        """Test get_repository normalizes the payload."""
        mock_api.add("GET", f"{API}/repos/alice/hello", REPO_PAYLOAD)

        repo = await provider.get_repository("alice", "hello")

        assert repo.full_name == "alice/hello"

    @pytest.mark.asyncio
    async def test_get_repository_not_found(self, provider):
        """Test a missing repository raises NOT_FOUND."""
        with pytest.raises(ProviderRequestError) as exc_info:
            await provider.get_repository("alice", "missing")

        assert exc_info.value.code == ErrorCode.NOT_FOUND
        assert str(exc_info.value).startswith("[NOT_FOUND] gitea:")

    @pytest.mark.asyncio
    async def test_list_repositories_falls_back_to_current_user(self, provider, mock_api):
        """Test a 404 on the user listing falls back to /user/repos."""
        mock_api.add("GET", f"{API}/user/repos", [REPO_PAYLOAD])

        repos = await provider.list_repositories("some-org")

        assert [r.full_name for r in repos] == ["alice/hello"]
        assert mock_api.requests[0].url.path == f"{API}/users/some-org/repos"

    @pytest.mark.asyncio
    async def test_list_repositories_pagination(self, provider, mock_api):
        """Test Gitea paginates with page and limit."""
        mock_api.add("GET", f"{API}/users/alice/repos", [])

        await provider.list_repositories("alice", page=2, limit=10)

        params = dict(mock_api.last().url.params)
        assert params == {"page": "2", "limit": "10"}

    @pytest.mark.asyncio
    async def test_search_repositories_unwraps_data(self, provider, mock_api):
        """Test search results are read from ``data``."""
        mock_api.add("GET", f"{API}/repos/search", {"ok": True, "data": [REPO_PAYLOAD]})

        repos = await provider.search_repositories("hello")

        assert len(repos) == 1
        assert mock_api.last().url.params["q"] == "hello"

    @pytest.mark.asyncio
    async def test_fork_existing_returns_fork(self, provider, mock_api):
        """Test a 409 on fork returns the existing fork."""
        mock_api.add("POST", f"{API}/repos/bob/hello/forks", {"message": "already exists"}, status=409)
        mock_api.add("GET", f"{API}/user", {"id": 1, "login": "alice"})
        mock_api.add("GET", f"{API}/repos/alice/hello", REPO_PAYLOAD)

        repo = await provider.fork_repository("bob", "hello")

        assert repo.full_name == "alice/hello"

    @pytest.mark.asyncio
    async def test_delete_repository(self, provider, mock_api):
        """Test delete_repository returns True on 204."""
        mock_api.add("DELETE", f"{API}/repos/alice/hello", None, status=204)

        assert await provider.delete_repository("alice", "hello") is True


class TestGiteaBranchesAndCommits:
    """Tests for branch and commit operations."""

    @pytest.mark.asyncio
    async def test_create_branch_payload(self, provider, mock_api):
        """Test branch creation uses Gitea's branch endpoint."""
        mock_api.add(
            "POST",
            f"{API}/repos/alice/hello/branches",
            {"name": "feature", "commit": {"id": "a" * 40}},
            status=201,
        )

        branch = await provider.create_branch("alice", "hello", "feature", "main")

        assert branch.name == "feature"
        assert _body(mock_api.last()) == {"new_branch_name": "feature", "old_branch_name": "main"}

    @pytest.mark.asyncio
    async def test_get_commit_uses_git_endpoint(self, provider, mock_api):
        """Test get_commit reads the git commits endpoint."""
        mock_api.add(
            "GET",
            f"{API}/repos/alice/hello/git/commits/abc",
            {"sha": "abc", "commit": {"message": "init", "author": {"name": "A"}, "committer": {"name": "A"}}},
        )

        commit = await provider.get_commit("alice", "hello", "abc")

        assert commit.sha == "abc"
        assert commit.message == "init"

    @pytest.mark.asyncio
    async def test_create_commit_mixes_create_and_update(self, provider, mock_api):
        """Test multi-file commit creates new files and updates existing ones."""
        mock_api.add(
            "GET",
            f"{API}/repos/alice/hello/contents/README.md",
            {"path": "README.md", "name": "README.md", "sha": "old-sha", "type": "file", "content": "eA=="},
        )
        mock_api.add(
            "POST",
            f"{API}/repos/alice/hello/contents",
            {"commit": {"sha": "new-sha", "message": "update docs"}},
            status=201,
        )

        commit = await provider.create_commit(
            "alice", "hello", "update docs", {"README.md": "hello", "docs/new.md": "new"}, "main"
        )

        body = _body(mock_api.last("POST"))
        assert commit.sha == "new-sha"
        assert body["branch"] == "main"
        assert body["message"] == "update docs"
        assert body["files"][0] == {
            "path": "README.md",
            "content": base64.b64encode(b"hello").decode(),
            "operation": "update",
            "sha": "old-sha",
        }
        assert body["files"][1]["operation"] == "create"
        assert "sha" not in body["files"][1]


class TestGiteaFiles:
    """Tests for the contents API."""

    @pytest.mark.asyncio
    async def test_create_file_uses_post(self, provider, mock_api):
        """Test Gitea creates files with POST and base64 content."""
        mock_api.add(
            "POST",
            f"{API}/repos/alice/hello/contents/src/app.py",
            {"content": {"path": "src/app.py", "name": "app.py", "sha": "s", "type": "file"}},
            status=201,
        )

        info = await provider.create_file("alice", "hello", "src/app.py", "print(1)", "add app", branch="main")

        body = _body(mock_api.last())
        assert info.path == "src/app.py"
        assert base64.b64decode(body["content"]) == b"print(1)"
        assert body["branch"] == "main"

    @pytest.mark.asyncio
    async def test_list_files(self, provider, mock_api):
        """Test directory listings return entries without content."""
        mock_api.add(
            "GET",
            f"{API}/repos/alice/hello/contents",
            [
                {"path": "README.md", "name": "README.md", "sha": "1", "type": "file", "size": 3},
                {"path": "src", "name": "src", "sha": "2", "type": "dir"},
            ],
        )

        entries = await provider.list_files("alice", "hello")

        assert [e.type for e in entries] == [FileType.FILE, FileType.DIR]

    @pytest.mark.asyncio
    async def test_get_file_passes_ref(self, provider, mock_api):
        """Test get_file forwards the ref parameter."""
        mock_api.add(
            "GET",
            f"{API}/repos/alice/hello/contents/README.md",
            {"path": "README.md", "sha": "1", "type": "file", "content": "aGk=", "encoding": "base64"},
        )

        info = await provider.get_file("alice", "hello", "README.md", ref="dev")

        assert info.content == "aGk="
        assert mock_api.last().url.params["ref"] == "dev"


class TestGiteaIssuesAndPulls:
    """Tests for issues and pull requests."""

    @pytest.mark.asyncio
    async def test_list_issues_excludes_pull_requests(self, provider, mock_api):
        """Test pull requests are filtered out of issue listings."""
        mock_api.add(
            "GET",
            f"{API}/repos/alice/hello/issues",
            [
                {"id": 1, "number": 1, "title": "Bug", "state": "open", "user": {"login": "a"}},
                {"id": 2, "number": 2, "title": "Task", "state": "open", "user": {"login": "a"}, "pull_request": None},
                {"id": 3, "number": 3, "title": "PR", "state": "open", "user": {"login": "a"}, "pull_request": {"merged": False}},
            ],
        )

        issues = await provider.list_issues("alice", "hello")

        assert [i.number for i in issues] == [1, 2]
        assert mock_api.last().url.params["type"] == "issues"

    @pytest.mark.asyncio
    async def test_create_issue_resolves_label_ids(self, provider, mock_api):
        """Test label names are translated to IDs, creating missing labels."""
        mock_api.add("GET", f"{API}/repos/alice/hello/labels", [{"id": 5, "name": "bug"}])
        mock_api.add("POST", f"{API}/repos/alice/hello/labels", {"id": 6, "name": "urgent"}, status=201)
        mock_api.add(
            "POST",
            f"{API}/repos/alice/hello/issues",
            {"id": 1, "number": 10, "title": "Crash", "state": "open", "user": {"login": "alice"}},
            status=201,
        )

        issue = await provider.create_issue("alice", "hello", "Crash", labels=["bug", "urgent"])

        assert issue.number == 10
        label_request = mock_api.requests[1]
        assert _body(label_request) == {"name": "urgent", "color": "#ededed"}
        assert _body(mock_api.last("POST"))["labels"] == [5, 6]

    @pytest.mark.asyncio
    async def test_close_issue(self, provider, mock_api):
        """Test close_issue patches the state."""
        mock_api.add(
            "PATCH",
            f"{API}/repos/alice/hello/issues/4",
            {"id": 1, "number": 4, "title": "t", "state": "closed", "user": {"login": "a"}},
        )

        issue = await provider.close_issue("alice", "hello", 4)

        assert issue.state == IssueState.CLOSED
        assert _body(mock_api.last()) == {"state": "closed"}

    @pytest.mark.asyncio
    async def test_list_merged_pull_requests(self, provider, mock_api):
        """Test the merged filter queries closed pulls and keeps merged ones."""
        mock_api.add(
            "GET",
            f"{API}/repos/alice/hello/pulls",
            [_pr(1, "closed", merged=True), _pr(2, "closed")],
        )

        pulls = await provider.list_pull_requests("alice", "hello", state="merged")

        assert [p.number for p in pulls] == [1]
        assert mock_api.last().url.params["state"] == "closed"

    @pytest.mark.asyncio
    async def test_merge_pull_request(self, provider, mock_api):
        """Test the merge payload and refreshed pull request."""
        mock_api.add("POST", f"{API}/repos/alice/hello/pulls/1/merge", None, status=200)
        mock_api.add("GET", f"{API}/repos/alice/hello/pulls/1", _pr(1, "closed", merged=True))

        pr = await provider.merge_pull_request("alice", "hello", 1, method="squash", title="Squash it")

        assert pr.state == PullRequestState.MERGED
        assert _body(mock_api.last("POST")) == {"Do": "squash", "merge_title_field": "Squash it"}

    @pytest.mark.asyncio
    async def test_merge_rejects_unknown_method(self, provider):
        """Test an unknown merge method is rejected before any request."""
        with pytest.raises(ValueError):
            await provider.merge_pull_request("alice", "hello", 1, method="octopus")


class TestGiteaReleasesTagsWebhooks:
    """Tests for releases, tags and webhooks."""

    @pytest.mark.asyncio
    async def test_create_release_name_defaults_to_tag(self, provider, mock_api):
        """Test the release name defaults to the tag name."""
        mock_api.add("POST", f"{API}/repos/alice/hello/releases", {"id": 1, "tag_name": "v1.0"}, status=201)

        release = await provider.create_release("alice", "hello", "v1.0", target="main")

        body = _body(mock_api.last())
        assert release.tag_name == "v1.0"
        assert body["name"] == "v1.0"
        assert body["target_commitish"] == "main"

    @pytest.mark.asyncio
    async def test_create_tag(self, provider, mock_api):
        """Test tag creation payload."""
        mock_api.add(
            "POST",
            f"{API}/repos/alice/hello/tags",
            {"name": "v1", "commit": {"sha": "a" * 40}, "message": "release\n"},
            status=201,
        )

        tag = await provider.create_tag("alice", "hello", "v1", "main", message="release")

        assert tag.message == "release"
        assert _body(mock_api.last()) == {"tag_name": "v1", "target": "main", "message": "release"}

    @pytest.mark.asyncio
    async def test_create_webhook_payload(self, provider, mock_api):
        """Test the webhook payload uses Gitea's hook type."""
        mock_api.add(
            "POST",
            f"{API}/repos/alice/hello/hooks",
            {"id": 3, "type": "gitea", "events": ["push"], "config": {"url": "https://ci", "content_type": "json"}},
            status=201,
        )

        hook = await provider.create_webhook("alice", "hello", "https://ci", secret="s3cret")

        body = _body(mock_api.last())
        assert body["type"] == "gitea"
        assert body["events"] == ["push"]
        assert body["config"]["secret"] == "s3cret"
        assert hook.config.url == "https://ci"
        assert not hasattr(hook.config, "secret")

    @pytest.mark.asyncio
    async def test_update_webhook_omits_content_type(self, provider, mock_api):
        """Test a config update without content_type leaves the stored one alone."""
        mock_api.add("PATCH", f"{API}/repos/alice/hello/hooks/3", {"id": 3, "type": "gitea", "active": True})

        await provider.update_webhook("alice", "hello", 3, secret="rotated", events=["push"])

        assert _body(mock_api.last()) == {"events": ["push"], "config": {"secret": "rotated"}}

    @pytest.mark.asyncio
    async def test_list_webhooks_reads_every_page(self, provider, mock_api):
        """Test hooks are collected across pages."""

        def handler(request):
            page = int(request.url.params["page"])
            assert request.url.params["limit"] == "50"
            start = (page - 1) * 50
            count = 50 if page == 1 else 3
            return httpx.Response(200, json=[{"id": start + i, "type": "gitea"} for i in range(count)])

        mock_api.add_handler("GET", f"{API}/repos/alice/hello/hooks", handler)

        hooks = await provider.list_webhooks("alice", "hello")

        assert len(hooks) == 53
        assert hooks[-1].id == 52

    @pytest.mark.asyncio
    async def test_user_organizations_read_every_page(self, provider, mock_api):
        """Test organizations are collected across pages."""

        def handler(request):
            if request.url.params["page"] == "1":
                return httpx.Response(200, json=[{"id": i, "username": f"org{i}"} for i in range(50)])
            return httpx.Response(200, json=[{"id": 50, "username": "org50"}])

        mock_api.add_handler("GET", f"{API}/users/alice/orgs", handler)

        orgs = await provider.get_user_organizations("alice")

        assert [o.login for o in orgs][-2:] == ["org49", "org50"]

    @pytest.mark.asyncio
    async def test_list_users_reads_search(self, provider, mock_api):
        """Test list_users reads the user search endpoint."""
        mock_api.add("GET", f"{API}/users/search", {"data": [{"id": 1, "login": "alice"}]})

        users = await provider.list_users()

        assert [u.login for u in users] == ["alice"]


class TestGiteaUploadProject:
    """Tests for upload_project."""

    @pytest.mark.asyncio
    async def test_upload_skips_ignored_files(self, provider, mock_api, tmp_path):
        """Test ignored files are not uploaded and failures are collected."""
        (tmp_path / "README.md").write_text("hi")
        (tmp_path / "app.log").write_text("log")
        (tmp_path / ".env").write_text("SECRET=1")
        (tmp_path / "node_modules").mkdir()
        (tmp_path / "node_modules" / "x.js").write_text("x")
        (tmp_path / "src").mkdir()
        (tmp_path / "src" / "main.py").write_text("print(1)")

        mock_api.add(
            "POST",
            f"{API}/repos/alice/hello/contents/README.md",
            {"content": {"path": "README.md", "sha": "1", "type": "file"}},
            status=201,
        )
        mock_api.add(
            "POST",
            f"{API}/repos/alice/hello/contents/src/main.py",
            {"message": "file already exists"},
            status=422,
        )

        result = await provider.upload_project("alice", "hello", tmp_path)

        assert result.uploaded == ["README.md"]
        assert len(result.errors) == 1
        assert result.errors[0].startswith("src/main.py:")
        assert result.success is False
