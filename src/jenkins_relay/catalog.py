from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from jenkins_relay.exceptions import NotFoundInCatalog

DEFAULT_CONTEXT = "janky"


class BuildDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    repo: str
    context: str = DEFAULT_CONTEXT
    job: str
    custom: bool = False
    downstream: bool = False
    downstream_builds: tuple[str, ...] = Field(default=(), alias="downstreamBuilds")
    exclude_targets: frozenset[str] = Field(
        default=frozenset(), alias="excludeTargets"
    )

    @field_validator("context")
    @classmethod
    def default_context(cls, value: str) -> str:
        return value or DEFAULT_CONTEXT


class BuildCatalog:
    """Read-only lookup table over the configured build definitions."""

    def __init__(self, builds: Iterable[BuildDefinition]):
        self._builds = tuple(builds)

        by_key: dict[tuple[str, str], BuildDefinition] = {}
        by_job: dict[str, BuildDefinition] = {}
        for build in self._builds:
            key = (build.repo, build.context)
            if key in by_key:
                raise ValueError(
                    f"Duplicate build definition for repo {build.repo}, context {build.context}"
                )
            if build.job in by_job:
                raise ValueError(f"Duplicate build definition for job {build.job}")
            by_key[key] = build
            by_job[build.job] = build

        self._by_key = by_key
        self._by_job = by_job

    def __len__(self) -> int:
        return len(self._builds)

    def __iter__(self):
        return iter(self._builds)

    def find_by_repo(self, repo: str, custom: bool) -> list[BuildDefinition]:
        builds = [b for b in self._builds if b.repo == repo and b.custom == custom]
        if not builds:
            raise NotFoundInCatalog(f"Could not find config for {repo}")
        return builds

    def find_by_job(self, job: str) -> BuildDefinition:
        try:
            return self._by_job[job]
        except KeyError:
            raise NotFoundInCatalog(f"Could not find config for {job}") from None

    def find_by_context_and_repo(self, context: str, repo: str) -> BuildDefinition:
        context = context or DEFAULT_CONTEXT
        try:
            return self._by_key[(repo, context)]
        except KeyError:
            raise NotFoundInCatalog(
                f"Could not find config for context: {context}, repo: {repo}"
            ) from None
