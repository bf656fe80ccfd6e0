from pydantic import BaseModel

from jenkins_relay.models import StatusState


class User(BaseModel):
    login: str


class Owner(BaseModel):
    login: str


class Repository(BaseModel):
    name: str
    full_name: str
    owner: Owner


class PullRequestHead(BaseModel):
    ref: str
    sha: str
    # the head repo is gone when the fork was deleted
    repo: Repository | None = None
    user: User | None = None


class PullRequestBase(BaseModel):
    ref: str
    sha: str
    repo: Repository


class PullRequest(BaseModel):
    number: int
    user: User
    head: PullRequestHead
    base: PullRequestBase
    html_url: str = ""
    mergeable: bool | None = None
    state: str = "open"
    title: str = ""

    @property
    def base_repo(self) -> str:
        return self.base.repo.full_name

    @property
    def head_repo(self) -> str:
        if self.head.repo is None:
            return self.base_repo
        return self.head.repo.full_name


class PullRequestEvent(BaseModel):
    action: str
    number: int
    pull_request: PullRequest
    repository: Repository
    sender: User | None = None


class Review(BaseModel):
    state: str = ""
    body: str | None = None
    user: User


class ReviewPullRequest(BaseModel):
    number: int
    url: str = ""


class PullRequestReviewEvent(BaseModel):
    action: str
    review: Review
    pull_request: ReviewPullRequest
    repository: Repository


class Commit(BaseModel):
    sha: str
    url: str = ""
    html_url: str = ""


class PullRequestFile(BaseModel):
    filename: str
    status: str = ""


class Comment(BaseModel):
    id: int
    body: str
    user: User


class CommitStatus(BaseModel):
    state: str
    context: str
    description: str | None = None
    target_url: str | None = None


class StatusCreateRequest(BaseModel):
    state: StatusState
    context: str
    description: str
    target_url: str


class CommentCreateRequest(BaseModel):
    body: str


class PullRequestContent(BaseModel):
    """A pull request together with its commits, changed files and comments."""

    pull_request: PullRequest
    commits: list[Commit] = []
    files: list[PullRequestFile] = []
    comments: list[Comment] = []

    def already_commented(self, comment_type: str, user: str) -> bool:
        for comment in self.comments:
            if comment.user.login.lower() == user.lower() and comment_type in comment.body:
                return True
        return False
