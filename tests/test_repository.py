"""Tests for RepositoryManager against the in-memory GitHub host."""

import pytest

from cto_automation.github.client import GitHubAPIError, ValidationError
from cto_automation.github.repository import (
    MAX_CONTENT_SIZE,
    REVIEW_CHECKLIST,
    FileChange,
    RefExistsError,
    RefNotFoundError,
    ReviewerRequestError,
    build_pull_request_body,
)


OWNER, REPO = "octo", "app"


# =============================================================================
# BRANCHES
# =============================================================================


class TestCreateBranch:

    @pytest.mark.asyncio
    async def test_branch_points_at_base_head(self, repository, fake_github):
        branch = await repository.create_branch(OWNER, REPO, "feature/dark-mode", "main")

        assert branch.name == "feature/dark-mode"
        assert branch.head_sha == "sha-main"
        assert branch.base_branch == "main"
        assert fake_github.refs["heads/feature/dark-mode"] == "sha-main"

    @pytest.mark.asyncio
    async def test_missing_base_branch(self, repository, fake_github):
        with pytest.raises(RefNotFoundError, match="develop"):
            await repository.create_branch(OWNER, REPO, "feature/x", "develop")
        assert "create_ref" not in fake_github.calls

    @pytest.mark.asyncio
    async def test_existing_branch(self, repository, fake_github):
        fake_github.refs["heads/feature/x"] = "sha-old"

        with pytest.raises(RefExistsError):
            await repository.create_branch(OWNER, REPO, "feature/x", "main")
        assert fake_github.refs["heads/feature/x"] == "sha-old"

    @pytest.mark.asyncio
    async def test_list_branches(self, repository, fake_github):
        fake_github.refs["heads/feature/x"] = "sha-x"

        branches = {b.name: b for b in await repository.list_branches(OWNER, REPO)}

        assert branches["main"].protected is True
        assert branches["feature/x"].sha == "sha-x"
        assert branches["feature/x"].protected is False


# =============================================================================
# COMMITS
# =============================================================================


class TestCommitFiles:

    @pytest.mark.asyncio
    async def test_call_order_and_linkage(self, repository, fake_github):
        fake_github.refs["heads/feature/x"] = "sha-main"
        files = [
            FileChange("src/theme.css", "body { color: #eee; }"),
            FileChange("src/toggle.js", "export const on = true;"),
        ]

        result = await repository.commit_files(OWNER, REPO, "feature/x", "feat: dark mode", files)

        assert fake_github.calls == [
            "get_ref", "get_commit", "create_blob", "create_blob",
            "create_tree", "create_commit", "update_ref",
        ]

        tree = fake_github.trees[0]
        assert tree["base_tree"] == "tree-of-sha-main"
        assert sorted(e["path"] for e in tree["tree"]) == ["src/theme.css", "src/toggle.js"]
        assert all(e["mode"] == "100644" and e["type"] == "blob" for e in tree["tree"])

        commit = fake_github.commits[0]
        assert commit["parents"] == ["sha-main"]
        assert commit["tree"] == result.tree_sha
        assert fake_github.ref_updates == [("heads/feature/x", result.commit_sha, False)]

        assert result.parent_sha == "sha-main"
        assert result.file_count == 2

    @pytest.mark.asyncio
    async def test_each_tree_entry_uses_its_own_blob(self, repository, fake_github):
        files = [FileChange(f"f{i}.txt", f"content {i}") for i in range(4)]

        await repository.commit_files(OWNER, REPO, "main", "chore", files)

        assert len(fake_github.blobs) == 4
        shas = {e["path"]: e["sha"] for e in fake_github.trees[0]["tree"]}
        assert len(set(shas.values())) == 4

    @pytest.mark.asyncio
    async def test_base64_encoding_is_passed_through(self, repository, fake_github):
        await repository.commit_files(
            OWNER, REPO, "main", "add icon", [FileChange("icon.png", "iVBORw0KGgo=", "base64")]
        )
        assert fake_github.blobs == [{"content": "iVBORw0KGgo=", "encoding": "base64"}]

    @pytest.mark.asyncio
    async def test_empty_file_set_rejected(self, repository, fake_github):
        with pytest.raises(ValueError):
            await repository.commit_files(OWNER, REPO, "main", "nothing", [])
        assert fake_github.calls == []

    @pytest.mark.asyncio
    async def test_rejected_ref_update_fails_commit(self, repository, fake_github):
        fake_github.reject_ref_update = True

        with pytest.raises(ValidationError):
            await repository.commit_files(OWNER, REPO, "main", "msg", [FileChange("a", "b")])
        assert fake_github.refs["heads/main"] == "sha-main"

    def test_unknown_encoding(self):
        with pytest.raises(ValueError):
            FileChange("a.txt", "x", encoding="latin-1")

    def test_from_dict_defaults_encoding(self):
        change = FileChange.from_dict({"path": "a.txt", "content": "x", "encoding": None})
        assert change.encoding == "utf-8"


# =============================================================================
# PULL REQUESTS
# =============================================================================


class TestPullRequests:

    def test_body_with_task_link(self):
        body = build_pull_request_body("Adds dark mode.", "https://notion.so/abc")
        assert body == (
            "Adds dark mode.\n\n## Related Task\n- Original Notion Task: https://notion.so/abc"
            f"\n\n{REVIEW_CHECKLIST}"
        )

    def test_body_without_task_link(self):
        body = build_pull_request_body("Adds dark mode.")
        assert "Related Task" not in body
        assert body.endswith(REVIEW_CHECKLIST)

    @pytest.mark.asyncio
    async def test_open_with_reviewers(self, repository, fake_github):
        pr = await repository.open_pull_request(
            OWNER, REPO, "Dark mode", "feature/x", "main", "body",
            task_url="https://notion.so/abc", reviewers=["alice"],
        )

        assert pr.number == 1
        assert pr.url == "https://github.com/octo/app/pull/1"
        assert pr.reviewers == ["alice"]
        assert fake_github.calls == ["create_pull_request", "request_reviewers"]
        assert fake_github.reviewer_requests == [(1, ["alice"])]
        assert "Original Notion Task: https://notion.so/abc" in fake_github.pulls[0]["body"]

    @pytest.mark.asyncio
    async def test_no_reviewers_no_request(self, repository, fake_github):
        await repository.open_pull_request(OWNER, REPO, "t", "feature/x", "main", "b")
        assert "request_reviewers" not in fake_github.calls

    @pytest.mark.asyncio
    async def test_failed_creation_skips_reviewers(self, repository, fake_github):
        fake_github.fail_pull_request = True

        with pytest.raises(GitHubAPIError):
            await repository.open_pull_request(
                OWNER, REPO, "t", "feature/x", "main", "b", reviewers=["alice"]
            )
        assert "request_reviewers" not in fake_github.calls

    @pytest.mark.asyncio
    async def test_reviewer_failure_keeps_pull_request(self, repository, fake_github):
        fake_github.fail_reviewers = True

        with pytest.raises(ReviewerRequestError) as excinfo:
            await repository.open_pull_request(
                OWNER, REPO, "t", "feature/x", "main", "b", reviewers=["mallory"]
            )

        assert excinfo.value.pull_request.number == 1
        assert len(fake_github.pulls) == 1


# =============================================================================
# CONTENTS
# =============================================================================


class TestGetContent:

    @pytest.mark.asyncio
    async def test_directory_listing_with_small_file_content(self, repository, fake_github):
        readme = fake_github.add_file("README.md", "# App\n")
        fake_github.contents[""] = [
            readme,
            {"name": "src", "path": "src", "type": "dir", "sha": "sha-src", "size": 0},
        ]

        items = {i.path: i for i in await repository.get_content(OWNER, REPO)}

        assert items["README.md"].content == "# App\n"
        assert items["src"].content is None
        assert "content" not in items["src"].to_dict()

    @pytest.mark.asyncio
    async def test_threshold_is_exclusive(self, repository, fake_github):
        below = fake_github.add_file("below.bin", "x", size=MAX_CONTENT_SIZE - 1)
        at = fake_github.add_file("at.bin", "x", size=MAX_CONTENT_SIZE)
        fake_github.contents["data"] = [below, at]

        items = {i.path: i for i in await repository.get_content(OWNER, REPO, "data")}

        assert items["below.bin"].content == "x"
        assert items["at.bin"].content is None

    @pytest.mark.asyncio
    async def test_empty_file_content_is_fetched(self, repository, fake_github):
        empty = fake_github.add_file("empty.txt", "")
        fake_github.contents["pkg"] = [empty]

        items = await repository.get_content(OWNER, REPO, "pkg")

        assert items[0].content == ""
        assert fake_github.calls.count("get_contents") == 2

    @pytest.mark.asyncio
    async def test_failed_file_fetch_is_tolerated(self, repository, fake_github):
        good = fake_github.add_file("good.py", "print('ok')")
        bad = fake_github.add_file("bad.py", "boom")
        fake_github.failing_paths.add("bad.py")
        fake_github.contents["src"] = [good, bad]

        items = {i.path: i for i in await repository.get_content(OWNER, REPO, "src")}

        assert items["good.py"].content == "print('ok')"
        assert items["bad.py"].content is None

    @pytest.mark.asyncio
    async def test_single_file_path(self, repository, fake_github):
        fake_github.add_file("setup.cfg", "[metadata]\n")

        items = await repository.get_content(OWNER, REPO, "setup.cfg")

        assert len(items) == 1
        assert items[0].content == "[metadata]\n"
