from enum import StrEnum

from pydantic import BaseModel


class CommitSelectionPolicy(StrEnum):
    """Which commits of a pull request get a build and a status."""

    all = "all"
    # every commit that has no status yet under the build's context
    new = "new"
    last = "last"


class StatusState(StrEnum):
    pending = "pending"
    success = "success"
    failure = "failure"
    error = "error"


class CustomBuildRequest(BaseModel):
    """Body of the operator endpoints that schedule one build definition."""

    number: int = 0
    repo: str
    context: str = ""
