import json
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings
from sanic.log import logger

from jenkins_relay.catalog import BuildCatalog, BuildDefinition
from jenkins_relay.models import CommitSelectionPolicy


class Config(BaseSettings):
    WEBHOOK_SECRET: str

    GITHUB_TOKEN: str
    GITHUB_USER: str
    GITHUB_ORG: str

    ALLOW_TEAMS: list[str] = []

    JENKINS_URL: str
    JENKINS_USER: str
    JENKINS_TOKEN: str

    OPERATOR_USER: str
    OPERATOR_PASS: str

    OVERRIDE_LOGGING: Literal[
        "CRITICAL",
        "FATAL",
        "ERROR",
        "WARNING",
        "WARN",
        "INFO",
        "DEBUG",
        "NOTSET",
    ] = "INFO"

    BUILDS: list[BuildDefinition] = []
    BUILDS_FILE: str | None = None

    BUILD_COMMITS: CommitSelectionPolicy = CommitSelectionPolicy.last

    UNAUTHORIZED_CONTEXT: str = "ci/unauthorized"

    PR_LOAD_MAX_RETRIES: int = 5
    PR_LOAD_BASE_DELAY: float = 1.0
    PR_LOAD_BACKOFF_MULTIPLIER: float = 2.0

    JENKINS_SHA_QUERY_OK_STATUSES: list[int] = [200]

    STERILE: bool = False

    def load_builds(self) -> list[BuildDefinition]:
        """Build definitions from ``BUILDS`` followed by those in ``BUILDS_FILE``"""
        builds = list(self.BUILDS)
        if self.BUILDS_FILE is not None:
            raw = json.loads(Path(self.BUILDS_FILE).read_text())
            # accept both a bare list and the {"builds": [...]} layout
            if isinstance(raw, dict):
                raw = raw.get("builds", [])
            builds += [BuildDefinition.model_validate(item) for item in raw]
        return builds

    def build_catalog(self) -> BuildCatalog:
        return BuildCatalog(self.load_builds())

    def print_config(self):
        """Print configuration values with sensitive attributes masked"""
        sensitive_attrs = {
            "WEBHOOK_SECRET",
            "GITHUB_TOKEN",
            "JENKINS_TOKEN",
            "OPERATOR_PASS",
        }

        logger.info("=== Jenkins Relay Configuration ===")
        for field_name, field_value in self.model_dump().items():
            if field_name in sensitive_attrs:
                logger.info(f"{field_name}: ***")
            elif field_name == "BUILDS":
                logger.info(f"{field_name}: {len(field_value)} definitions")
            else:
                logger.info(f"{field_name}: {field_value}")
        logger.info("===================================")
