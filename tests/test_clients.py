"""
Tests for the resource clients and ReviewClient.

Feature: cached reads and optimistic writes through ReviewClient
"""

import asyncio
import importlib
from dataclasses import replace

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from reviewkit import ReviewClient
from reviewkit.exceptions import (
    CapabilityError,
    ConfigurationError,
    ProviderError,
    QueryCancelledError,
)
from reviewkit.providers.base import Provider, ProviderCapabilities
from reviewkit.providers.github import GitHubProvider
from reviewkit.query import QueryClient, ResourceKind
from reviewkit.query.keys import (
    collaborators_key,
    current_user_key,
    labels_key,
    pull_request_key,
    pull_request_resource_key,
    pull_requests_key,
)
from reviewkit.query.optimistic import is_temporary_id
from reviewkit.testing import (
    MockProvider,
    create_mock_check_run,
    create_mock_comment,
    create_mock_issue_comment,
    create_mock_pull_request,
    create_mock_review_thread,
    create_mock_user,
)
from reviewkit.types import (
    CheckStatus,
    Comment,
    DiffSide,
    IssueComment,
    Label,
    MergeMethod,
    ReviewCommentInput,
    ReviewEvent,
    PullRequestState,
    ReviewState,
    StateFilter,
)

OWNER, REPO = "octocat", "hello-world"
OPEN_LIST = pull_requests_key(OWNER, REPO, StateFilter.OPEN, 20)
ALL_LIST = pull_requests_key(OWNER, REPO, StateFilter.ALL, 20)
CLOSED_LIST = pull_requests_key(OWNER, REPO, StateFilter.CLOSED, 20)
ISSUE_COMMENTS = pull_request_resource_key(ResourceKind.ISSUE_COMMENTS, OWNER, REPO, 1)
INLINE_COMMENTS = pull_request_resource_key(ResourceKind.PULL_REQUEST_COMMENTS, OWNER, REPO, 1)
REVIEWS = pull_request_resource_key(ResourceKind.PULL_REQUEST_REVIEWS, OWNER, REPO, 1)
THREADS = pull_request_resource_key(ResourceKind.REVIEW_THREADS, OWNER, REPO, 1)


async def _no_sleep(seconds: float) -> None:
    return None


async def wait_for_call(provider: MockProvider, method: str, timeout: float = 5.0) -> None:
    """Yield to the loop until ``method`` has been entered on the mock."""

    async def entered() -> None:
        while not provider.was_called(method):
            await asyncio.sleep(0)

    await asyncio.wait_for(entered(), timeout)


def numbers(prs) -> list[int]:
    return [pr.number for pr in prs]


# ============================================================================
# Pull requests
# ============================================================================


class TestPullsReads:
    @pytest.mark.asyncio
    async def test_list_is_cached(self, review_client, mock_provider_with_prs) -> None:
        first = await review_client.pulls.list(OWNER, REPO)
        second = await review_client.pulls.list(OWNER, REPO)

        assert numbers(first) == [1, 2]
        assert second == first
        assert mock_provider_with_prs.call_count("list_pull_requests") == 1

    @pytest.mark.asyncio
    async def test_states_are_cached_separately(self, review_client, mock_provider_with_prs) -> None:
        assert numbers(await review_client.pulls.list(OWNER, REPO, "closed")) == [3]
        assert numbers(await review_client.pulls.list(OWNER, REPO, "all")) == [1, 2, 3]
        assert mock_provider_with_prs.call_count("list_pull_requests") == 2

    @pytest.mark.asyncio
    async def test_limit_is_clamped_by_provider(self, query_client) -> None:
        provider = MockProvider(page_cap=2)
        provider.configure_pull_requests(*(create_mock_pull_request(n) for n in range(1, 6)))
        client = ReviewClient(provider, queries=query_client)

        assert numbers(await client.pulls.list(OWNER, REPO, limit=50)) == [1, 2]

    @pytest.mark.asyncio
    async def test_invalid_state_is_rejected(self, review_client) -> None:
        with pytest.raises(ValueError):
            await review_client.pulls.list(OWNER, REPO, "draft")

    @pytest.mark.asyncio
    async def test_get_and_per_pr_resources(self, review_client, mock_provider) -> None:
        mock_provider.configure("get_pull_request_diff", response="diff --git a/x b/x\n")

        pr = await review_client.pulls.get(OWNER, REPO, 7)
        diff = await review_client.pulls.diff(OWNER, REPO, 7)
        await review_client.pulls.get(OWNER, REPO, 7)

        assert pr.number == 7
        assert diff.startswith("diff --git")
        assert await review_client.pulls.files(OWNER, REPO, 7) == ()
        assert await review_client.pulls.commits(OWNER, REPO, 7) == ()
        assert mock_provider.call_count("get_pull_request") == 1

    @pytest.mark.asyncio
    async def test_errors_surface_after_retries(self, review_client, mock_provider) -> None:
        response = mock_provider.configure(
            "get_pull_request", error=ProviderError("Service unavailable", status=503)
        )

        with pytest.raises(ProviderError) as exc_info:
            await review_client.pulls.get(OWNER, REPO, 1)

        assert exc_info.value.status == 503
        assert response.call_count == 4

    @pytest.mark.asyncio
    async def test_transient_errors_are_retried(self, review_client, mock_provider) -> None:
        mock_provider.configure(
            "get_pull_request", error=ProviderError("Bad gateway", status=502), fail_times=2
        )

        pr = await review_client.pulls.get(OWNER, REPO, 1)

        assert pr.number == 1
        assert mock_provider.call_count("get_pull_request") == 3

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self, review_client, mock_provider) -> None:
        mock_provider.configure("get_pull_request", error=ProviderError("Not Found", status=404))

        with pytest.raises(ProviderError):
            await review_client.pulls.get(OWNER, REPO, 99)

        assert mock_provider.call_count("get_pull_request") == 1


class TestUserScopedLists:
    @pytest.mark.asyncio
    async def test_mine_and_review_requests(self, review_client, mock_provider_with_prs) -> None:
        assert numbers(await review_client.pulls.mine(OWNER, REPO)) == [1]
        assert numbers(await review_client.pulls.review_requests(OWNER, REPO)) == [2]
        assert numbers(await review_client.pulls.mine(OWNER, REPO, "all")) == [1, 3]

    @pytest.mark.asyncio
    async def test_involved_fills_siblings_once_user_is_known(
        self, review_client, mock_provider_with_prs
    ) -> None:
        await review_client.users.current()

        involved = await review_client.pulls.involved(OWNER, REPO)
        mine = await review_client.pulls.mine(OWNER, REPO)
        requested = await review_client.pulls.review_requests(OWNER, REPO)

        assert numbers(involved) == [1, 2]
        assert numbers(mine) == [1]
        assert numbers(requested) == [2]
        assert not mock_provider_with_prs.was_called("get_my_pull_requests")
        assert not mock_provider_with_prs.was_called("get_review_requests")

    @pytest.mark.asyncio
    async def test_siblings_fill_involved(self, review_client, mock_provider_with_prs) -> None:
        await review_client.users.current()

        await review_client.pulls.mine(OWNER, REPO)
        await review_client.pulls.review_requests(OWNER, REPO)
        involved = await review_client.pulls.involved(OWNER, REPO)

        assert numbers(involved) == [1, 2]
        assert not mock_provider_with_prs.was_called("get_involved_pull_requests")

    @pytest.mark.asyncio
    async def test_unknown_user_fetches_each_list(self, review_client, mock_provider_with_prs) -> None:
        await review_client.pulls.involved(OWNER, REPO)
        await review_client.pulls.mine(OWNER, REPO)

        assert mock_provider_with_prs.was_called("get_my_pull_requests")


class TestMerge:
    @pytest.mark.asyncio
    async def test_merge_is_applied_optimistically(
        self, review_client, mock_provider_with_prs
    ) -> None:
        provider = mock_provider_with_prs
        gate = asyncio.Event()
        provider.configure("merge_pull_request", gate=gate)
        await review_client.pulls.list(OWNER, REPO)
        await review_client.pulls.list(OWNER, REPO, "all")
        await review_client.pulls.get(OWNER, REPO, 1)

        task = asyncio.create_task(review_client.pulls.merge(OWNER, REPO, 1, "squash"))
        await wait_for_call(provider, "merge_pull_request")

        queries = review_client.queries
        assert numbers(queries.get_query_data(OPEN_LIST)) == [2]
        assert [pr.merged for pr in queries.get_query_data(ALL_LIST)] == [True, False, True]
        assert queries.get_query_data(pull_request_key(OWNER, REPO, 1)).merged

        gate.set()
        result = await task

        assert result.merged and result.sha == "mock-merge-sha"
        assert provider.get_calls("merge_pull_request")[0].kwargs["method"] is MergeMethod.SQUASH
        assert not queries.cache.is_fresh(OPEN_LIST)

    @pytest.mark.asyncio
    async def test_rejected_merge_rolls_back(self, review_client, mock_provider_with_prs) -> None:
        mock_provider_with_prs.configure(
            "merge_pull_request", error=ProviderError("Pull Request is not mergeable", status=405)
        )
        before = await review_client.pulls.list(OWNER, REPO)

        with pytest.raises(ProviderError) as exc_info:
            await review_client.pulls.merge(OWNER, REPO, 1)

        assert exc_info.value.status == 405
        assert review_client.queries.get_query_data(OPEN_LIST) == before
        assert mock_provider_with_prs.call_count("merge_pull_request") == 1

    @pytest.mark.asyncio
    async def test_unsupported_method_rolls_back(self, query_client) -> None:
        provider = MockProvider(
            capabilities=ProviderCapabilities(merge_methods=frozenset({MergeMethod.MERGE}))
        )
        provider.configure_pull_requests(create_mock_pull_request(1))
        client = ReviewClient(provider, queries=query_client)
        before = await client.pulls.list(OWNER, REPO)

        with pytest.raises(CapabilityError) as exc_info:
            await client.pulls.merge(OWNER, REPO, 1, MergeMethod.REBASE)

        assert exc_info.value.provider == "mock"
        assert client.queries.get_query_data(OPEN_LIST) == before

    @pytest.mark.asyncio
    async def test_uncached_pull_request_stays_uncached(self, review_client) -> None:
        await review_client.pulls.merge(OWNER, REPO, 5)

        assert pull_request_key(OWNER, REPO, 5) not in review_client.queries.cache


class TestClose:
    @pytest.mark.asyncio
    async def test_close(self, review_client, mock_provider_with_prs) -> None:
        await review_client.pulls.list(OWNER, REPO)
        await review_client.pulls.list(OWNER, REPO, "all")

        closed = await review_client.pulls.close(OWNER, REPO, 2)

        assert closed.is_closed_unmerged
        queries = review_client.queries
        assert numbers(queries.get_query_data(OPEN_LIST)) == [1]
        assert [pr.is_closed_unmerged for pr in queries.get_query_data(ALL_LIST)] == [
            False,
            True,
            False,
        ]

    @pytest.mark.asyncio
    async def test_failed_close_rolls_back(self, review_client, mock_provider_with_prs) -> None:
        mock_provider_with_prs.configure(
            "close_pull_request", error=ProviderError("Forbidden", status=403)
        )
        await review_client.pulls.list(OWNER, REPO)

        with pytest.raises(ProviderError):
            await review_client.pulls.close(OWNER, REPO, 2)

        assert numbers(review_client.queries.get_query_data(OPEN_LIST)) == [1, 2]


@given(
    merged_number=st.integers(min_value=1, max_value=6),
    count=st.integers(min_value=1, max_value=6),
)
@settings(max_examples=30)
def test_property_open_list_never_shows_merged(merged_number: int, count: int) -> None:
    """
    Property: Open lists drop a pull request while its merge is in flight
    """

    async def run() -> None:
        provider = MockProvider()
        provider.configure_pull_requests(*(create_mock_pull_request(n) for n in range(1, count + 1)))
        gate = asyncio.Event()
        provider.configure("merge_pull_request", gate=gate)
        client = ReviewClient(provider, queries=QueryClient(sleep=_no_sleep))
        await client.pulls.list(OWNER, REPO)

        task = asyncio.create_task(client.pulls.merge(OWNER, REPO, merged_number))
        await wait_for_call(provider, "merge_pull_request")
        cached = client.queries.get_query_data(OPEN_LIST)
        gate.set()
        await task

        assert merged_number not in numbers(cached)
        assert all(not pr.merged for pr in cached)
        assert len(cached) == count - (1 if merged_number <= count else 0)

    asyncio.run(run())


# ============================================================================
# Comments
# ============================================================================


class TestComments:
    @pytest.mark.asyncio
    async def test_issue_comment_appears_before_server_answers(
        self, review_client, mock_provider
    ) -> None:
        gate = asyncio.Event()
        mock_provider.configure("create_issue_comment", gate=gate)
        await review_client.users.current()
        await review_client.comments.list_issue_comments(OWNER, REPO, 1)

        task = asyncio.create_task(review_client.comments.create(OWNER, REPO, 1, "LGTM"))
        await wait_for_call(mock_provider, "create_issue_comment")

        (placeholder,) = review_client.queries.get_query_data(ISSUE_COMMENTS)
        assert isinstance(placeholder, IssueComment)
        assert is_temporary_id(placeholder.id)
        assert placeholder.author.login == "octocat"
        assert placeholder.body == "LGTM"

        gate.set()
        created = await task

        assert isinstance(created, IssueComment)
        assert not is_temporary_id(created.id)

        # The settled list is stale; the next read replaces the placeholder.
        assert await review_client.comments.list_issue_comments(OWNER, REPO, 1) == ()
        assert mock_provider.call_count("get_issue_comments") == 2

    @pytest.mark.asyncio
    async def test_inline_comment(self, review_client, mock_provider) -> None:
        created = await review_client.comments.create(
            OWNER, REPO, 1, "Off by one", path="src/app.py", line=12, side=DiffSide.LEFT
        )

        assert isinstance(created, Comment)
        (call,) = mock_provider.get_calls("create_inline_comment")
        comment = call.args[3]
        assert (comment.path, comment.line, comment.side) == ("src/app.py", 12, DiffSide.LEFT)
        assert not mock_provider.was_called("create_issue_comment")

    @pytest.mark.asyncio
    async def test_path_without_line_goes_to_conversation(
        self, review_client, mock_provider
    ) -> None:
        created = await review_client.comments.create(OWNER, REPO, 1, "General", path="src/app.py")

        assert isinstance(created, IssueComment)
        assert mock_provider.was_called("create_issue_comment")

    @pytest.mark.asyncio
    async def test_failed_comment_is_removed(self, review_client, mock_provider) -> None:
        mock_provider.configure(
            "create_inline_comment", error=ProviderError("Validation Failed", status=422)
        )
        existing = await review_client.comments.list(OWNER, REPO, 1)

        with pytest.raises(ProviderError):
            await review_client.comments.create(OWNER, REPO, 1, "x", path="a.py", line=1)

        assert review_client.queries.get_query_data(INLINE_COMMENTS) == existing

    @pytest.mark.asyncio
    async def test_inline_comments_unsupported(self, query_client) -> None:
        provider = MockProvider(capabilities=ProviderCapabilities(inline_comments=False))
        client = ReviewClient(provider, queries=query_client)
        await client.comments.list(OWNER, REPO, 1)

        with pytest.raises(CapabilityError) as exc_info:
            await client.comments.create(OWNER, REPO, 1, "x", path="a.py", line=1)

        assert exc_info.value.operation == "inline comments"
        assert client.queries.get_query_data(INLINE_COMMENTS) == ()
        assert not provider.was_called("create_inline_comment")

    @pytest.mark.asyncio
    async def test_reply_is_anchored_to_parent(self, review_client, mock_provider) -> None:
        parent = create_mock_comment(id=55, path="src/app.py", line=10, side=DiffSide.RIGHT)

        reply = await review_client.comments.reply(OWNER, REPO, 1, parent, "Fixed")

        assert reply.in_reply_to_id == 55
        comment = mock_provider.get_calls("create_inline_comment")[0].args[3]
        assert comment.in_reply_to_id == 55
        assert comment.path == "src/app.py"
        assert comment.line == 10


# ============================================================================
# Reviews
# ============================================================================


class TestReviews:
    @pytest.mark.asyncio
    async def test_approve_shows_optimistic_review(self, review_client, mock_provider) -> None:
        gate = asyncio.Event()
        mock_provider.configure("approve_review", gate=gate)
        await review_client.reviews.list(OWNER, REPO, 1)

        task = asyncio.create_task(review_client.reviews.approve(OWNER, REPO, 1))
        await wait_for_call(mock_provider, "approve_review")

        (review,) = review_client.queries.get_query_data(REVIEWS)
        assert review.state is ReviewState.APPROVED
        assert review.body is None
        assert is_temporary_id(review.id)

        gate.set()
        await task
        assert mock_provider.get_calls("approve_review")[0].kwargs == {"body": None}

    @pytest.mark.asyncio
    async def test_request_changes(self, review_client, mock_provider) -> None:
        await review_client.reviews.request_changes(OWNER, REPO, 1, "Add tests")

        assert mock_provider.get_calls("request_changes")[0].kwargs == {"body": "Add tests"}
        (review,) = review_client.queries.get_query_data(REVIEWS)
        assert review.state is ReviewState.CHANGES_REQUESTED
        assert review.body == "Add tests"

    @pytest.mark.asyncio
    async def test_submit_with_inline_comments(self, review_client, mock_provider) -> None:
        await review_client.comments.list(OWNER, REPO, 1)
        comments = (
            ReviewCommentInput(path="a.py", line=1, body="one"),
            ReviewCommentInput(path="b.py", line=2, body="two", side=DiffSide.LEFT),
        )

        await review_client.reviews.submit(OWNER, REPO, 1, "COMMENT", "Notes", comments)

        review = mock_provider.get_calls("create_review")[0].args[3]
        assert review.event is ReviewEvent.COMMENT
        assert review.comments == comments
        placeholders = review_client.queries.get_query_data(INLINE_COMMENTS)
        assert [(c.path, c.line, c.side) for c in placeholders] == [
            ("a.py", 1, DiffSide.RIGHT),
            ("b.py", 2, DiffSide.LEFT),
        ]

    @pytest.mark.asyncio
    async def test_failed_review_rolls_back_everything(self, review_client, mock_provider) -> None:
        mock_provider.configure("create_review", error=ProviderError("Unprocessable", status=422))
        await review_client.reviews.list(OWNER, REPO, 1)
        await review_client.comments.list(OWNER, REPO, 1)

        with pytest.raises(ProviderError):
            await review_client.reviews.submit(
                OWNER,
                REPO,
                1,
                ReviewEvent.APPROVE,
                comments=(ReviewCommentInput(path="a.py", line=1, body="nit"),),
            )

        assert review_client.queries.get_query_data(REVIEWS) == ()
        assert review_client.queries.get_query_data(INLINE_COMMENTS) == ()

    @pytest.mark.asyncio
    async def test_review_invalidates_pull_request(self, review_client) -> None:
        await review_client.pulls.get(OWNER, REPO, 1)

        await review_client.reviews.approve(OWNER, REPO, 1, "Ship it")

        assert not review_client.queries.cache.is_fresh(pull_request_key(OWNER, REPO, 1))


# ============================================================================
# Checks and users
# ============================================================================


class TestChecks:
    @pytest.mark.asyncio
    async def test_list_and_pending(self, review_client, mock_provider) -> None:
        mock_provider.configure(
            "get_check_runs",
            response=(
                create_mock_check_run("build"),
                create_mock_check_run("lint", status=CheckStatus.IN_PROGRESS),
            ),
        )

        runs = await review_client.checks.list(OWNER, REPO, "feature")
        pending = await review_client.checks.pending(OWNER, REPO, "feature")

        assert [run.name for run in runs] == ["build", "lint"]
        assert [run.name for run in pending] == ["lint"]
        assert mock_provider.call_count("get_check_runs") == 1

    @pytest.mark.asyncio
    async def test_unsupported_backend_returns_empty(self, query_client) -> None:
        provider = MockProvider(capabilities=ProviderCapabilities(check_runs=False))
        client = ReviewClient(provider, queries=query_client)

        assert await client.checks.list(OWNER, REPO, "main") == ()
        assert not provider.was_called("get_check_runs")


class TestUsers:
    @pytest.mark.asyncio
    async def test_current_user_is_cached(self, review_client, mock_provider) -> None:
        user = await review_client.users.current()
        again = await review_client.users.current()

        assert user.login == "octocat"
        assert again is user
        assert mock_provider.call_count("get_current_user") == 1
        assert review_client.queries.get_query_data(current_user_key()) is user

    @pytest.mark.asyncio
    async def test_comment_author_is_current_user(self, query_client) -> None:
        provider = MockProvider(user=create_mock_user("hubot", 2))
        client = ReviewClient(provider, queries=query_client)
        gate = asyncio.Event()
        provider.configure("create_issue_comment", gate=gate)
        await client.users.current()

        task = asyncio.create_task(client.comments.create(OWNER, REPO, 1, "hi"))
        await wait_for_call(provider, "create_issue_comment")
        (placeholder,) = client.queries.get_query_data(ISSUE_COMMENTS)
        gate.set()
        await task

        assert placeholder.author.login == "hubot"

    @pytest.mark.asyncio
    async def test_validate_token(self, review_client, mock_provider) -> None:
        assert await review_client.users.validate_token() is True

        mock_provider.configure("get_current_user", error=ProviderError("Bad credentials", status=401))

        assert await review_client.users.validate_token() is False


# ============================================================================
# ReviewClient
# ============================================================================


class TestReviewClient:
    @pytest.mark.asyncio
    async def test_context_manager_closes_provider(self, mock_provider) -> None:
        async with ReviewClient(mock_provider) as client:
            assert client.provider_name == "mock"
            await client.pulls.list(OWNER, REPO)

        assert mock_provider.closed

    @pytest.mark.asyncio
    async def test_close_cancels_pending_reads(self, mock_provider, query_client) -> None:
        gate = asyncio.Event()
        mock_provider.configure("get_pull_request", gate=gate)
        client = ReviewClient(mock_provider, queries=query_client)

        read = asyncio.create_task(client.pulls.get(OWNER, REPO, 1))
        await wait_for_call(mock_provider, "get_pull_request")
        await client.close()

        with pytest.raises(QueryCancelledError):
            await read
        assert mock_provider.closed

    @pytest.mark.asyncio
    async def test_from_token(self) -> None:
        client = ReviewClient.from_token("github", "ghp_test")
        try:
            assert isinstance(client.provider, GitHubProvider)
            assert client.provider_name == "github"
        finally:
            await client.close()

    def test_from_token_rejects_unknown_provider(self) -> None:
        with pytest.raises(ConfigurationError):
            ReviewClient.from_token("sourcehut", "token")

    @pytest.mark.asyncio
    async def test_from_env(self, monkeypatch) -> None:
        monkeypatch.setenv("REVIEWKIT_PROVIDER", "gitlab")
        monkeypatch.setenv("GITLAB_TOKEN", "glpat-test")
        monkeypatch.delenv("REVIEWKIT_TOKEN", raising=False)
        monkeypatch.delenv("REVIEWKIT_BASE_URL", raising=False)
        monkeypatch.delenv("REVIEWKIT_TIMEOUT", raising=False)

        client = ReviewClient.from_env()
        try:
            assert client.provider_name == "gitlab"
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_each_client_has_its_own_cache(self, mock_provider) -> None:
        first = ReviewClient(mock_provider)
        second = ReviewClient(mock_provider)

        await first.pulls.get(OWNER, REPO, 1)
        await second.pulls.get(OWNER, REPO, 1)

        assert first.queries is not second.queries
        assert mock_provider.call_count("get_pull_request") == 2


def test_pulls_module_imports() -> None:
    module = importlib.import_module("reviewkit.clients.pulls")

    annotation = module.PullsClient._state_change_updates.__annotations__["return"]
    assert annotation == "list[OptimisticUpdate]"


def test_adapters_must_build_from_token() -> None:
    assert "from_token" in Provider.__abstractmethods__
    assert isinstance(MockProvider.from_token("unused"), MockProvider)


# ============================================================================
# Reopen and labels
# ============================================================================


class TestReopen:
    @pytest.mark.asyncio
    async def test_reopen_moves_pull_request_out_of_closed_list(
        self, review_client, mock_provider
    ) -> None:
        mock_provider.configure_pull_requests(
            create_mock_pull_request(1),
            create_mock_pull_request(4, state=PullRequestState.CLOSED),
        )
        gate = asyncio.Event()
        mock_provider.configure("reopen_pull_request", gate=gate)
        await review_client.pulls.list(OWNER, REPO, "closed")
        await review_client.pulls.get(OWNER, REPO, 4)

        task = asyncio.create_task(review_client.pulls.reopen(OWNER, REPO, 4))
        await wait_for_call(mock_provider, "reopen_pull_request")

        queries = review_client.queries
        assert queries.get_query_data(CLOSED_LIST) == ()
        cached = queries.get_query_data(pull_request_key(OWNER, REPO, 4))
        assert cached.state is PullRequestState.OPEN
        assert cached.closed_at is None

        gate.set()
        reopened = await task

        assert reopened.state is PullRequestState.OPEN
        assert not queries.cache.is_fresh(CLOSED_LIST)

    @pytest.mark.asyncio
    async def test_unsupported_reopen_rolls_back(self, query_client) -> None:
        provider = MockProvider(capabilities=ProviderCapabilities(reopen=False))
        provider.configure_pull_requests(create_mock_pull_request(4, state=PullRequestState.CLOSED))
        client = ReviewClient(provider, queries=query_client)
        before = await client.pulls.get(OWNER, REPO, 4)

        with pytest.raises(CapabilityError):
            await client.pulls.reopen(OWNER, REPO, 4)

        assert client.queries.get_query_data(pull_request_key(OWNER, REPO, 4)) == before


class TestLabels:
    @pytest.mark.asyncio
    async def test_set_labels_reuses_cached_label_colors(
        self, review_client, mock_provider
    ) -> None:
        mock_provider.configure(
            "get_labels", response=(Label("bug", "d73a4a"), Label("docs", "0075ca"))
        )
        mock_provider.configure_pull_requests(
            create_mock_pull_request(1, labels=(Label("docs", "0075ca"),))
        )
        gate = asyncio.Event()
        mock_provider.configure("set_labels", gate=gate)
        await review_client.repos.labels(OWNER, REPO)
        await review_client.pulls.get(OWNER, REPO, 1)
        await review_client.pulls.list(OWNER, REPO)

        task = asyncio.create_task(
            review_client.pulls.set_labels(OWNER, REPO, 1, ["bug", "triage", "bug"])
        )
        await wait_for_call(mock_provider, "set_labels")

        queries = review_client.queries
        expected = (Label("bug", "d73a4a"), Label("triage"))
        assert queries.get_query_data(pull_request_key(OWNER, REPO, 1)).labels == expected
        assert queries.get_query_data(OPEN_LIST)[0].labels == expected

        gate.set()
        await task

        (call,) = mock_provider.get_calls("set_labels")
        assert call.args[3] == ("bug", "triage")

    @pytest.mark.asyncio
    async def test_failed_set_labels_rolls_back(self, review_client, mock_provider) -> None:
        mock_provider.configure("set_labels", error=ProviderError("Forbidden", status=403))
        before = await review_client.pulls.get(OWNER, REPO, 1)

        with pytest.raises(ProviderError):
            await review_client.pulls.set_labels(OWNER, REPO, 1, ["wontfix"])

        assert review_client.queries.get_query_data(pull_request_key(OWNER, REPO, 1)) == before

    @pytest.mark.asyncio
    async def test_labels_unsupported(self, query_client) -> None:
        provider = MockProvider(capabilities=ProviderCapabilities(labels=False))
        client = ReviewClient(provider, queries=query_client)

        with pytest.raises(CapabilityError):
            await client.repos.labels(OWNER, REPO)
        with pytest.raises(CapabilityError):
            await client.pulls.set_labels(OWNER, REPO, 1, ["bug"])


class TestRepos:
    @pytest.mark.asyncio
    async def test_labels_and_collaborators_are_cached(self, review_client, mock_provider) -> None:
        mock_provider.configure("get_labels", response=(Label("bug"),))

        assert await review_client.repos.labels(OWNER, REPO) == (Label("bug"),)
        await review_client.repos.labels(OWNER, REPO)
        collaborators = await review_client.repos.collaborators(OWNER, REPO)
        await review_client.repos.collaborators(OWNER, REPO)

        assert collaborators == (mock_provider.user,)
        assert mock_provider.call_count("get_labels") == 1
        assert mock_provider.call_count("get_collaborators") == 1
        assert review_client.queries.cache.is_fresh(labels_key(OWNER, REPO))
        assert review_client.queries.cache.is_fresh(collaborators_key(OWNER, REPO))


# ============================================================================
# Comment edits and review threads
# ============================================================================


class TestCommentEdits:
    @pytest.mark.asyncio
    async def test_edit_review_comment(self, review_client, mock_provider) -> None:
        original = create_mock_comment(id=55, body="Typo here")
        mock_provider.configure("get_pull_request_comments", response=(original,))
        gate = asyncio.Event()
        mock_provider.configure("edit_review_comment", gate=gate)
        await review_client.comments.list(OWNER, REPO, 1)

        task = asyncio.create_task(
            review_client.comments.edit(OWNER, REPO, 1, original, "Typo on line 10")
        )
        await wait_for_call(mock_provider, "edit_review_comment")

        (cached,) = review_client.queries.get_query_data(INLINE_COMMENTS)
        assert (cached.id, cached.body) == (55, "Typo on line 10")

        gate.set()
        edited = await task

        assert edited.body == "Typo on line 10"
        assert not mock_provider.was_called("edit_issue_comment")

    @pytest.mark.asyncio
    async def test_edit_issue_comment_passes_thread_id(self, review_client, mock_provider) -> None:
        original = replace(create_mock_issue_comment(id=3, body="LGTM"), thread_id="12")
        mock_provider.configure("get_issue_comments", response=(original,))
        await review_client.comments.list_issue_comments(OWNER, REPO, 1)

        await review_client.comments.edit(OWNER, REPO, 1, original, "LGTM, thanks")

        (call,) = mock_provider.get_calls("edit_issue_comment")
        assert call.args[3:] == (3, "LGTM, thanks")
        assert call.kwargs["thread_id"] == "12"

    @pytest.mark.asyncio
    async def test_failed_edit_rolls_back(self, review_client, mock_provider) -> None:
        original = create_mock_comment(id=55, body="Typo here")
        mock_provider.configure("get_pull_request_comments", response=(original,))
        mock_provider.configure(
            "edit_review_comment", error=ProviderError("Not Found", status=404)
        )
        await review_client.comments.list(OWNER, REPO, 1)

        with pytest.raises(ProviderError):
            await review_client.comments.edit(OWNER, REPO, 1, original, "Changed")

        assert review_client.queries.get_query_data(INLINE_COMMENTS) == (original,)

    @pytest.mark.asyncio
    async def test_delete_only_removes_matching_thread(self, review_client, mock_provider) -> None:
        # Comment ids repeat across threads on Azure DevOps.
        first = replace(create_mock_comment(id=1), thread_id="7")
        second = replace(create_mock_comment(id=1), thread_id="8")
        mock_provider.configure("get_pull_request_comments", response=(first, second))
        gate = asyncio.Event()
        mock_provider.configure("delete_review_comment", gate=gate)
        await review_client.comments.list(OWNER, REPO, 1)

        task = asyncio.create_task(review_client.comments.delete(OWNER, REPO, 1, first))
        await wait_for_call(mock_provider, "delete_review_comment")

        assert review_client.queries.get_query_data(INLINE_COMMENTS) == (second,)

        gate.set()
        await task

        (call,) = mock_provider.get_calls("delete_review_comment")
        assert call.kwargs["thread_id"] == "7"


class TestThreads:
    @pytest.mark.asyncio
    async def test_resolve_is_applied_optimistically(self, review_client, mock_provider) -> None:
        open_thread = create_mock_review_thread("T1")
        done_thread = create_mock_review_thread("T2", resolved=True)
        mock_provider.configure("get_review_threads", response=(open_thread, done_thread))
        gate = asyncio.Event()
        mock_provider.configure("resolve_thread", gate=gate)
        await review_client.threads.list(OWNER, REPO, 1)

        task = asyncio.create_task(review_client.threads.resolve(OWNER, REPO, 1, "T1"))
        await wait_for_call(mock_provider, "resolve_thread")

        cached = review_client.queries.get_query_data(THREADS)
        assert [thread.resolved for thread in cached] == [True, True]

        gate.set()
        await task

        assert not review_client.queries.cache.is_fresh(THREADS)

    @pytest.mark.asyncio
    async def test_failed_unresolve_rolls_back(self, review_client, mock_provider) -> None:
        threads = (create_mock_review_thread("T2", resolved=True),)
        mock_provider.configure("get_review_threads", response=threads)
        mock_provider.configure("unresolve_thread", error=ProviderError("Forbidden", status=403))
        await review_client.threads.list(OWNER, REPO, 1)

        with pytest.raises(ProviderError):
            await review_client.threads.unresolve(OWNER, REPO, 1, "T2")

        assert review_client.queries.get_query_data(THREADS) == threads

    @pytest.mark.asyncio
    async def test_unsupported_backend(self, query_client) -> None:
        provider = MockProvider(capabilities=ProviderCapabilities(review_threads=False))
        client = ReviewClient(provider, queries=query_client)

        assert await client.threads.list(OWNER, REPO, 1) == ()
        with pytest.raises(CapabilityError):
            await client.threads.resolve(OWNER, REPO, 1, "T1")
        assert not provider.was_called("get_review_threads")


class TestInvolvedWithoutReviewers:
    @pytest.mark.asyncio
    async def test_review_requests_are_fetched(self, mock_provider_with_prs, query_client) -> None:
        mock_provider_with_prs.involved_lists_reviewers = False
        client = ReviewClient(mock_provider_with_prs, queries=query_client)
        await client.users.current()

        await client.pulls.involved(OWNER, REPO)
        mine = await client.pulls.mine(OWNER, REPO)
        requested = await client.pulls.review_requests(OWNER, REPO)

        assert numbers(mine) == [1]
        assert numbers(requested) == [2]
        assert not mock_provider_with_prs.was_called("get_my_pull_requests")
        assert mock_provider_with_prs.call_count("get_review_requests") == 1
