from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Phase(StrEnum):
    QUEUED = "QUEUED"
    STARTED = "STARTED"
    COMPLETED = "COMPLETED"
    FINALIZED = "FINALIZED"


class BuildParameters(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    base_repo: str = Field(default="", alias="GIT_BASE_REPO")
    head_repo: str = Field(default="", alias="GIT_HEAD_REPO")
    sha: str = Field(default="", alias="GIT_SHA1")
    pr: str = Field(default="", alias="PR")
    base_branch: str = Field(default="", alias="BASE_BRANCH")

    @property
    def pr_number(self) -> int:
        # builds started by hand carry no PR parameter
        try:
            return int(self.pr)
        except ValueError:
            return 0


class Build(BaseModel):
    number: int
    full_url: str = ""
    phase: str
    status: str = ""
    parameters: BuildParameters = BuildParameters()


class JenkinsNotification(BaseModel):
    """Payload posted by the Jenkins notification plugin."""

    name: str
    build: Build


class BuildRequestParameters(BaseModel):
    """Parameters handed to ``buildWithParameters``."""

    model_config = ConfigDict(populate_by_name=True)

    base_repo: str = Field(serialization_alias="GIT_BASE_REPO")
    head_repo: str = Field(serialization_alias="GIT_HEAD_REPO")
    sha: str = Field(serialization_alias="GIT_SHA1")
    github_url: str = Field(serialization_alias="GITHUB_URL")
    pr: int = Field(serialization_alias="PR")
    base_branch: str = Field(serialization_alias="BASE_BRANCH")

    def to_parameters(self) -> dict[str, str]:
        return {k: str(v) for k, v in self.model_dump(by_alias=True).items()}
