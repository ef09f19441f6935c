"""
Tests for release and result models.
"""

import pytest
from pydantic import ValidationError

from src.models.release import Release, ReleaseInfo
from src.models.result import BranchResult, DeploymentResult, RunResult


class TestRelease:

    def test_unknown_fields_ignored(self):
        release = Release.model_validate({"name": "3.1.0", "id": 1, "author": {"login": "x"}})

        assert release.name == "3.1.0"
        assert release.assets == []

    def test_asset_url_is_first_asset(self):
        release = Release.model_validate({
            "name": "3.1.0",
            "assets": [
                {"browser_download_url": "https://dl.test/a.zip"},
                {"browser_download_url": "https://dl.test/b.zip"},
            ],
        })

        assert release.asset_url == "https://dl.test/a.zip"

    def test_asset_requires_download_url(self):
        with pytest.raises(ValidationError):
            Release.model_validate({"name": "3.1.0", "assets": [{"name": "x.zip"}]})

    @pytest.mark.parametrize("name,prefix,expected", [
        ("3.1.0", "3.", True),
        ("3.1.0", "2.", False),
        ("V3.1.0", "v3", True),
        ("3.1.0", "", True),
        (None, "", True),
        (None, "3.", False),
    ])
    def test_matches_prefix(self, name, prefix, expected):
        assert Release(name=name).matches_prefix(prefix) is expected

    def test_to_info(self):
        info = Release(name="3.1.0", body=None).to_info()

        assert info == ReleaseInfo(name="3.1.0", notes="", artifact_url=None)
        assert info.tag == "3.1.0"
        assert info.commit_message == "Add v3.1.0"

    def test_frozen(self):
        with pytest.raises(ValidationError):
            Release(name="3.1.0").name = "3.2.0"


class TestResults:

    def test_branch_result_buckets(self):
        branch = BranchResult(branch="master", name_prefix="3.", deployments=[
            DeploymentResult.succeeded("3.0.0", "master"),
            DeploymentResult.failed("3.1.0", "master", "push", "push_rejected", "rejected", halts_branch=True),
            DeploymentResult.skipped("3.2.0", "master", "halted"),
        ])

        assert branch.succeeded == ["3.0.0"]
        assert branch.failed == ["3.1.0"]
        assert branch.skipped == ["3.2.0"]
        assert not branch.healthy

    def test_feed_error_is_unhealthy(self):
        assert not BranchResult(branch="master", name_prefix="3.", error="HTTP 502").healthy

    def test_run_counts(self):
        run = RunResult(run_id="R-1", started_at="now", branches=[
            BranchResult(branch="a", name_prefix="3.", deployments=[DeploymentResult.succeeded("3.0.0", "a")]),
            BranchResult(branch="b", name_prefix="2.", deployments=[
                DeploymentResult.failed("2.0.0", "b", "fetch", "artifact_failed", "HTTP 404"),
            ]),
        ])

        assert run.deployed_count == 1
        assert run.failed_count == 1
        assert run.healthy is False
        assert run.to_dict()["branches"][1]["deployments"][0]["error"]["stage"] == "fetch"
