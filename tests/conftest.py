from unittest.mock import create_autospec

import pytest
from sanic import Sanic
from sanic.log import logger
from sanic_testing import TestManager

from jenkins_relay.catalog import BuildDefinition
from jenkins_relay.config import Config
from jenkins_relay.engine import OrchestrationEngine
from jenkins_relay.github import GitHub
from jenkins_relay.jenkins import Jenkins
from jenkins_relay.models import CommitSelectionPolicy
from jenkins_relay.retry import RetryPolicy
from tests.utils import BASE_REPO

# every test builds its own app under the same name
Sanic.test_mode = True


@pytest.fixture
def builds():
    return [
        BuildDefinition(
            repo=BASE_REPO,
            context="ci/build",
            job="test-repo-build",
            downstream_builds=("ci/system-tests",),
        ),
        BuildDefinition(
            repo=BASE_REPO,
            context="ci/lint",
            job="test-repo-lint",
        ),
        BuildDefinition(
            repo=BASE_REPO,
            context="ci/system-tests",
            job="test-repo-systemtests",
            downstream=True,
            exclude_targets=frozenset({"release-next"}),
        ),
        BuildDefinition(
            repo=BASE_REPO,
            context="ci/performance",
            job="test-repo-performance",
            custom=True,
        ),
    ]


@pytest.fixture
def config(builds):
    config = Config(
        WEBHOOK_SECRET="abc",
        GITHUB_TOKEN="abc",
        GITHUB_USER="relay-bot",
        GITHUB_ORG="test_org",
        ALLOW_TEAMS=["developers"],
        JENKINS_URL="https://jenkins.example.com",
        JENKINS_USER="jenkins",
        JENKINS_TOKEN="abc",
        OPERATOR_USER="operator",
        OPERATOR_PASS="secret",
        OVERRIDE_LOGGING="DEBUG",
        BUILDS=builds,
        BUILD_COMMITS=CommitSelectionPolicy.last,
        UNAUTHORIZED_CONTEXT="ci/unauthorized",
        PR_LOAD_BASE_DELAY=0.0,
        STERILE=False,
    )

    logger.setLevel(config.OVERRIDE_LOGGING)

    return config


@pytest.fixture
def catalog(config):
    return config.build_catalog()


@pytest.fixture
def github():
    github = create_autospec(GitHub, instance=True)
    github.is_team_member.return_value = True
    github.has_status.return_value = False
    return github


@pytest.fixture
def jenkins(config):
    jenkins = create_autospec(Jenkins, instance=True)
    jenkins.get_job_url.side_effect = lambda job: f"{config.JENKINS_URL}/job/{job}"
    jenkins.cancel_active.return_value = False
    return jenkins


@pytest.fixture
def engine(catalog, github, jenkins, config):
    return OrchestrationEngine(
        catalog=catalog,
        github=github,
        jenkins=jenkins,
        config=config,
        pr_load_policy=RetryPolicy(max_retries=5, base_delay=0.0),
    )


@pytest.fixture(scope="function")
def app(config) -> Sanic:
    """Create a Sanic app for testing."""
    from jenkins_relay.web import create_app

    app = create_app(config=config)
    TestManager(app)
    return app
