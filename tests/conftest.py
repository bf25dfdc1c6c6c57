import logging
import shutil
import subprocess

import pytest

from issue_cards.issuecards_logging import ROOT_LOGGER_NAME


@pytest.fixture(autouse=True)
def reset_issue_cards_logger():
    """Drop handlers that setup_logging attached during a test."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    level = logger.level
    yield
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(level)


@pytest.fixture
def git_repo(tmp_path):
    """
    Creates a temporary git repository with an initialized .issues tracker.
    """
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    repo_dir = tmp_path / "repo"
    (repo_dir / ".issues" / "open").mkdir(parents=True)
    (repo_dir / ".issues" / "closed").mkdir(parents=True)

    subprocess.run(["git", "init", "-q"], cwd=repo_dir, check=True)
    subprocess.run(["git", "config", "user.email", "test@example.com"], cwd=repo_dir, check=True)
    subprocess.run(["git", "config", "user.name", "Test User"], cwd=repo_dir, check=True)

    return repo_dir
