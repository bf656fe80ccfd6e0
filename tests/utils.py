import json
import os
from unittest.mock import AsyncMock, MagicMock

from jenkins_relay.github.models import (
    Comment,
    Commit,
    Owner,
    PullRequest,
    PullRequestBase,
    PullRequestContent,
    PullRequestEvent,
    PullRequestHead,
    Repository,
    User,
)

BASE_REPO = "test_org/test_repo"
HEAD_REPO = "contributor/test_repo"


def make_repository(full_name: str) -> Repository:
    owner, name = full_name.split("/", 1)
    return Repository(name=name, full_name=full_name, owner=Owner(login=owner))


def make_pull_request(
    number: int = 42,
    author: str = "author",
    head_sha: str = "c3",
    mergeable: bool | None = True,
    base_ref: str = "main",
) -> PullRequest:
    return PullRequest(
        number=number,
        user=User(login=author),
        head=PullRequestHead(
            ref="feature-branch",
            sha=head_sha,
            repo=make_repository(HEAD_REPO),
            user=User(login=author),
        ),
        base=PullRequestBase(
            ref=base_ref, sha="base123", repo=make_repository(BASE_REPO)
        ),
        html_url=f"https://github.com/{BASE_REPO}/pull/{number}",
        mergeable=mergeable,
    )


def make_content(
    pull_request: PullRequest | None = None, comments: list[Comment] | None = None
) -> PullRequestContent:
    return PullRequestContent(
        pull_request=pull_request or make_pull_request(),
        commits=[Commit(sha=sha) for sha in ("c1", "c2", "c3")],
        comments=comments or [],
    )


def make_pr_event(action: str = "synchronize", **kwargs) -> PullRequestEvent:
    pull_request = make_pull_request(**kwargs)
    return PullRequestEvent(
        action=action,
        number=pull_request.number,
        pull_request=pull_request,
        repository=make_repository(BASE_REPO),
        sender=pull_request.user,
    )


def mock_response(status: int = 200, text: str = "") -> MagicMock:
    """An aiohttp response usable as ``async with session.post(...) as resp``."""
    response = MagicMock()
    response.status = status
    response.text = AsyncMock(return_value=text)
    response.__aenter__.return_value = response
    response.__aexit__.return_value = None
    return response


class AsyncIterator:
    """Stands in for ``gh.getiter(...)``."""

    def __init__(self, items):
        self.items = list(items)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.items:
            raise StopAsyncIteration
        return self.items.pop(0)


def load_sample_data(filename):
    with open(os.path.join("tests/samples", filename)) as f:
        return json.load(f)
