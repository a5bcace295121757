#!/usr/bin/env python3
"""
Basic reviewkit usage example.

Walks through listing, reviewing and merging a pull request. Without
credentials the example runs against the in-memory MockProvider; set
REVIEWKIT_PROVIDER and REVIEWKIT_TOKEN (plus REVIEWKIT_OWNER and
REVIEWKIT_REPO) to run it against a real backend.

Run with: python examples/basic_usage.py
"""

import asyncio
import logging
import os

from reviewkit import ReviewClient, ReviewKitError, configure_logging
from reviewkit.testing import MockProvider, create_mock_pull_request, create_mock_user


def build_client() -> tuple[ReviewClient, str, str]:
    if os.environ.get("REVIEWKIT_TOKEN"):
        return (
            ReviewClient.from_env(),
            os.environ.get("REVIEWKIT_OWNER", "octocat"),
            os.environ.get("REVIEWKIT_REPO", "hello-world"),
        )

    provider = MockProvider()
    me = provider.user
    provider.configure_pull_requests(
        create_mock_pull_request(number=1, author=me, title="Add retry support"),
        create_mock_pull_request(
            number=2,
            author=create_mock_user("hubot", 2),
            title="Fix pagination",
            requested_reviewers=(me,),
        ),
    )
    return ReviewClient(provider), "octocat", "hello-world"


async def main() -> None:
    configure_logging(logging.INFO)
    client, owner, repo = build_client()

    async with client:
        print(f"=== reviewkit on {client.provider_name} ===\n")

        # 1. Who am I?
        user = await client.users.current()
        print(f"1. Signed in as {user.login}\n")

        # 2. Open pull requests
        print("2. Open pull requests:")
        for pr in await client.pulls.list(owner, repo, limit=10):
            print(f"   #{pr.number} {pr.title} ({pr.author.login})")

        # 3. Review queue. Fetching "involved" also fills the two narrower lists.
        involved = await client.pulls.involved(owner, repo)
        requested = await client.pulls.review_requests(owner, repo)
        print(f"\n3. Involved in {len(involved)}, asked to review {len(requested)}\n")
        if not requested:
            return

        target = requested[0]

        # 4. Look at the change
        files = await client.pulls.files(owner, repo, target.number)
        checks = await client.checks.list(owner, repo, target.head.sha)
        print(f"4. #{target.number} touches {len(files)} files, {len(checks)} checks reported\n")

        # 5. Comment and approve
        try:
            await client.comments.create(owner, repo, target.number, "Looks good to me.")
            await client.reviews.approve(owner, repo, target.number)
            print("5. Approved\n")
        except ReviewKitError as e:
            print(f"5. Review failed: {e}\n")
            return

        # 6. Merge
        try:
            result = await client.pulls.merge(owner, repo, target.number, "squash")
            print(f"6. Merged: {result.merged} ({result.sha})")
        except ReviewKitError as e:
            print(f"6. Merge refused: {e.code} {e.message}")


if __name__ == "__main__":
    asyncio.run(main())
