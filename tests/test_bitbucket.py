"""
Tests for the Bitbucket Cloud adapter.

Feature: Bitbucket REST adapter
"""

import base64

import httpx
import pytest

from reviewkit.exceptions import CapabilityError
from reviewkit.providers import BitbucketProvider
from reviewkit.providers.bitbucket import mappers
from reviewkit.types import (
    CheckConclusion,
    CheckStatus,
    CommentInput,
    DiffSide,
    FileStatus,
    ListPullRequestsOptions,
    MergeMethod,
    ReviewState,
    StateFilter,
    identity_hash,
)

OWNER, REPO = "octocat", "hello-world"
PRS = f"/2.0/repositories/{OWNER}/{REPO}/pullrequests"
ME = "{11111111-2222-3333-4444-555555555555}"


def user_json(nickname: str = "octocat", uuid: str = ME) -> dict:
    return {"uuid": uuid, "display_name": nickname.title(), "nickname": nickname, "type": "user"}


def pr_json(id: int = 1, state: str = "OPEN", **overrides) -> dict:
    data = {
        "id": id,
        "title": f"PR {id}",
        "description": "",
        "state": state,
        "author": user_json(),
        "source": {"branch": {"name": "feature"}, "commit": {"hash": "abc123"}},
        "destination": {"branch": {"name": "main"}, "commit": {"hash": "def456"}},
        "created_on": "2024-01-01T00:00:00+00:00",
        "updated_on": "2024-01-02T00:00:00+00:00",
        "reviewers": [user_json("hubot", "{hubot}")],
        "links": {"html": {"href": f"https://bitbucket.org/{OWNER}/{REPO}/pull-requests/{id}"}},
    }
    data.update(overrides)
    return data


def comment_json(id: int, raw: str = "note", **overrides) -> dict:
    data = {
        "id": id,
        "content": {"raw": raw},
        "user": user_json(),
        "created_on": "2024-01-01T00:00:00+00:00",
        "updated_on": "2024-01-01T00:00:00+00:00",
    }
    data.update(overrides)
    return data


@pytest.fixture
def bitbucket(router) -> BitbucketProvider:
    return BitbucketProvider.from_token("access-token", http_client=router.client())


class TestAuth:
    @pytest.mark.asyncio
    async def test_app_password_uses_basic_auth(self, router) -> None:
        provider = BitbucketProvider.from_token("octocat:app-pass", http_client=router.client())
        router.add("GET", "/2.0/user", json=user_json())

        await provider.get_current_user()

        expected = base64.b64encode(b"octocat:app-pass").decode()
        assert router.last("GET", "/2.0/user").headers["Authorization"] == f"Basic {expected}"

    @pytest.mark.asyncio
    async def test_access_token_uses_bearer(self, bitbucket, router) -> None:
        router.add("GET", "/2.0/user", json=user_json())

        user = await bitbucket.get_current_user()

        assert router.last("GET", "/2.0/user").headers["Authorization"] == "Bearer access-token"
        assert user.id == identity_hash(ME)


class TestReads:
    @pytest.mark.asyncio
    async def test_closed_lists_every_terminal_state(self, bitbucket, router) -> None:
        router.add(
            "GET",
            PRS,
            json={"values": [pr_json(1, "MERGED"), pr_json(2, "DECLINED")], "pagelen": 2},
        )

        merged, declined = await bitbucket.list_pull_requests(
            OWNER, REPO, ListPullRequestsOptions(state=StateFilter.CLOSED, limit=100)
        )

        params = router.last("GET", PRS).url.params
        assert params.get_list("state") == ["MERGED", "DECLINED", "SUPERSEDED"]
        assert params["pagelen"] == "50"
        assert merged.merged and merged.merged_at == merged.updated_at
        assert declined.is_closed_unmerged and declined.closed_at == declined.updated_at
        assert merged.body is None

    @pytest.mark.asyncio
    async def test_diff_is_passed_through(self, bitbucket, router) -> None:
        router.add("GET", f"{PRS}/1/diff", text="diff --git a/x b/x\n")

        assert await bitbucket.get_pull_request_diff(OWNER, REPO, 1) == "diff --git a/x b/x\n"

    @pytest.mark.asyncio
    async def test_diffstat_follows_next_links(self, bitbucket, router) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.params.get("page") == "2":
                return httpx.Response(
                    200,
                    json={"values": [{"status": "removed", "lines_removed": 3, "old": {"path": "gone.py"}}]},
                )
            return httpx.Response(
                200,
                json={
                    "values": [
                        {
                            "status": "renamed",
                            "lines_added": 1,
                            "old": {"path": "a.py"},
                            "new": {"path": "b.py"},
                        }
                    ],
                    "next": f"https://api.bitbucket.org{PRS}/1/diffstat?page=2",
                },
            )

        router.add("GET", f"{PRS}/1/diffstat", handler=handler)

        renamed, removed = await bitbucket.get_pull_request_files(OWNER, REPO, 1)

        assert (renamed.filename, renamed.previous_filename) == ("b.py", "a.py")
        assert renamed.status is FileStatus.RENAMED
        assert (removed.filename, removed.status, removed.deletions) == ("gone.py", FileStatus.REMOVED, 3)

    @pytest.mark.asyncio
    async def test_commit_raw_author_is_split(self, bitbucket, router) -> None:
        router.add(
            "GET",
            f"{PRS}/1/commits",
            json={
                "values": [
                    {
                        "hash": "abc",
                        "message": "Fix bug",
                        "date": "2024-01-01T00:00:00+00:00",
                        "author": {"raw": "Mona Lisa <mona@example.com>"},
                    }
                ]
            },
        )

        (commit,) = await bitbucket.get_pull_request_commits(OWNER, REPO, 1)

        assert (commit.author.name, commit.author.email) == ("Mona Lisa", "mona@example.com")
        assert commit.user is None

    @pytest.mark.asyncio
    async def test_comments_drop_deleted_and_split_by_kind(self, bitbucket, router) -> None:
        router.add("GET", f"{PRS}/1", json=pr_json(1))
        router.add(
            "GET",
            f"{PRS}/1/comments",
            json={
                "values": [
                    comment_json(1, "general"),
                    comment_json(2, "gone", deleted=True),
                    comment_json(3, "inline", inline={"path": "a.py", "from": 5}, parent={"id": 1}),
                ]
            },
        )

        comments = await bitbucket.get_pull_request_comments(OWNER, REPO, 1)
        issue_comments = await bitbucket.get_issue_comments(OWNER, REPO, 1)

        assert [(c.id, c.line, c.side, c.in_reply_to_id) for c in comments] == [
            (3, 5, DiffSide.LEFT, 1)
        ]
        assert comments[0].html_url.endswith("/pull-requests/1#comment-3")
        assert [c.body for c in issue_comments] == ["general"]

    @pytest.mark.asyncio
    async def test_reviewer_participants_become_reviews(self, bitbucket, router) -> None:
        router.add(
            "GET",
            f"{PRS}/1",
            json=pr_json(
                1,
                participants=[
                    {"user": user_json("hubot", "{hubot}"), "role": "REVIEWER", "approved": True},
                    {"user": user_json("bors", "{bors}"), "role": "REVIEWER", "state": "changes_requested"},
                    {"user": user_json("lurker", "{lurker}"), "role": "PARTICIPANT"},
                ],
            ),
        )

        reviews = await bitbucket.get_pull_request_reviews(OWNER, REPO, 1)

        assert [(r.author.login, r.state) for r in reviews] == [
            ("hubot", ReviewState.APPROVED),
            ("bors", ReviewState.CHANGES_REQUESTED),
        ]

    @pytest.mark.asyncio
    async def test_check_runs_from_matching_pipeline(self, bitbucket, router) -> None:
        pipelines = f"/2.0/repositories/{OWNER}/{REPO}/pipelines/"
        router.add(
            "GET",
            pipelines,
            json={
                "values": [
                    {"uuid": "p2", "target": {"ref_name": "other", "commit": {"hash": "fff"}}},
                    {"uuid": "p1", "target": {"ref_name": "main", "commit": {"hash": "abc123def"}}},
                ]
            },
        )
        router.add(
            "GET",
            f"{pipelines}p1/steps/",
            json={
                "values": [
                    {"uuid": "s1", "name": "Build", "state": {"name": "COMPLETED", "result": {"name": "EXPIRED"}}},
                    {"uuid": "s2", "state": {"name": "RUNNING"}},
                ]
            },
        )

        build, running = await bitbucket.get_check_runs(OWNER, REPO, "abc123")

        assert build.conclusion is CheckConclusion.TIMED_OUT
        assert running.status is CheckStatus.IN_PROGRESS and running.name == "s2"
        assert build.id == identity_hash("s1")

    @pytest.mark.asyncio
    async def test_no_matching_pipeline(self, bitbucket, router) -> None:
        router.add("GET", f"/2.0/repositories/{OWNER}/{REPO}/pipelines/", json={"values": []})

        assert await bitbucket.get_check_runs(OWNER, REPO, "main") == ()


class TestUserScopedQueries:
    @pytest.mark.asyncio
    async def test_involved_uses_bbql_query(self, bitbucket, router) -> None:
        router.add("GET", "/2.0/user", json=user_json())
        router.add("GET", PRS, json={"values": [pr_json(1)]})

        prs = await bitbucket.get_involved_pull_requests(OWNER, REPO)

        assert [pr.number for pr in prs] == [1]
        assert router.last("GET", PRS).url.params["q"] == (
            f'(author.uuid="{ME}" OR reviewers.uuid="{ME}")'
        )

    @pytest.mark.asyncio
    async def test_review_requests_query(self, bitbucket, router) -> None:
        router.add("GET", "/2.0/user", json=user_json())
        router.add("GET", PRS, json={"values": []})

        await bitbucket.get_review_requests(OWNER, REPO, StateFilter.ALL)

        params = router.last("GET", PRS).url.params
        assert params["q"] == f'reviewers.uuid="{ME}"'
        assert params.get_list("state") == ["OPEN", "MERGED", "DECLINED", "SUPERSEDED"]


class TestMutations:
    @pytest.mark.asyncio
    async def test_inline_reply(self, bitbucket, router) -> None:
        router.add(
            "POST",
            f"{PRS}/1/comments",
            status=201,
            json=comment_json(9, "+1", inline={"path": "a.py", "to": 4}, parent={"id": 3}),
        )

        comment = await bitbucket.create_comment(
            OWNER, REPO, 1, CommentInput(body="+1", path="a.py", line=4, in_reply_to_id=3)
        )

        assert comment.in_reply_to_id == 3
        assert router.body("POST", f"{PRS}/1/comments") == {
            "content": {"raw": "+1"},
            "inline": {"path": "a.py", "to": 4},
            "parent": {"id": 3},
        }

    @pytest.mark.asyncio
    async def test_request_changes_uses_native_endpoint(self, bitbucket, router) -> None:
        router.add("POST", f"{PRS}/1/request-changes", json={})
        router.add("POST", f"{PRS}/1/comments", status=201, json=comment_json(2, "Add tests"))

        await bitbucket.request_changes(OWNER, REPO, 1, "Add tests")

        assert router.find("POST", f"{PRS}/1/request-changes")
        assert router.body("POST", f"{PRS}/1/comments") == {"content": {"raw": "Add tests"}}

    @pytest.mark.asyncio
    async def test_approve_without_body(self, bitbucket, router) -> None:
        router.add("POST", f"{PRS}/1/approve", json={})

        await bitbucket.approve_review(OWNER, REPO, 1)

        assert not router.find("POST", f"{PRS}/1/comments")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("method", "strategy"),
        [
            (MergeMethod.MERGE, "merge_commit"),
            (MergeMethod.SQUASH, "squash"),
            (MergeMethod.REBASE, "fast_forward"),
        ],
    )
    async def test_merge_strategy(self, bitbucket, router, method, strategy) -> None:
        router.add("POST", f"{PRS}/1/merge", json=pr_json(1, "MERGED", merge_commit={"hash": "m1"}))

        result = await bitbucket.merge_pull_request(OWNER, REPO, 1, method, commit_title="Ship")

        assert result.merged and result.sha == "m1"
        assert router.body("POST", f"{PRS}/1/merge") == {"merge_strategy": strategy, "message": "Ship"}

    @pytest.mark.asyncio
    async def test_close_declines(self, bitbucket, router) -> None:
        router.add("POST", f"{PRS}/1/decline", json=pr_json(1, "DECLINED"))

        pr = await bitbucket.close_pull_request(OWNER, REPO, 1)

        assert pr.is_closed_unmerged

    @pytest.mark.asyncio
    async def test_edit_sends_raw_content(self, bitbucket, router) -> None:
        router.add(
            "PUT",
            f"{PRS}/1/comments/7",
            json=comment_json(7, "reworded", inline={"path": "a.py", "to": 3}),
        )

        comment = await bitbucket.edit_review_comment(OWNER, REPO, 1, 7, "reworded")

        assert (comment.id, comment.body, comment.path) == (7, "reworded", "a.py")
        assert router.body("PUT", f"{PRS}/1/comments/7") == {"content": {"raw": "reworded"}}

    @pytest.mark.asyncio
    async def test_delete_comment(self, bitbucket, router) -> None:
        router.add("DELETE", f"{PRS}/1/comments/7", status=204)

        await bitbucket.delete_review_comment(OWNER, REPO, 1, 7)

        assert router.find("DELETE", f"{PRS}/1/comments/7")


class TestUnsupported:
    def test_listings_do_not_carry_reviewers(self, bitbucket) -> None:
        assert not bitbucket.involved_lists_reviewers

    @pytest.mark.asyncio
    async def test_optional_operations(self, bitbucket, router) -> None:
        assert await bitbucket.get_review_threads(OWNER, REPO, 1) == ()
        with pytest.raises(CapabilityError):
            await bitbucket.resolve_thread(OWNER, REPO, 1, "1")
        with pytest.raises(CapabilityError):
            await bitbucket.reopen_pull_request(OWNER, REPO, 1)
        with pytest.raises(CapabilityError):
            await bitbucket.get_collaborators(OWNER, REPO)

        assert not router.requests


def test_parse_raw_author_without_email() -> None:
    assert mappers.parse_raw_author("buildbot") == ("buildbot", "")
