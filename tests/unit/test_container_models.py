"""
Unit tests for container and digest state models.
"""
import pytest

from conftest import make_inspect
from mqdockerup.MODELS.container import ContainerRef, ImageDigestState, split_image
from mqdockerup.MODELS.update_progress import UpdateOutcome, UpdateState


@pytest.mark.parametrize(
    "image, expected",
    [
        ("nginx", ("nginx", "latest")),
        ("nginx:1.25", ("nginx", "1.25")),
        ("redis:6", ("redis", "6")),
        ("localhost:5000/app", ("localhost:5000/app", "latest")),
        ("localhost:5000/app:v2", ("localhost:5000/app", "v2")),
        ("nginx@sha256:abcd", ("nginx", "sha256:abcd")),
    ],
)
def test_split_image(image, expected):
    assert split_image(image) == expected


class TestContainerRef:
    """Tests for ContainerRef."""

    def test_from_inspect(self):
        container = ContainerRef.from_inspect(make_inspect("f" * 64, "web", "nginx:1.25", state="exited"))
        assert container.name == "web"
        assert container.image == "nginx:1.25"
        assert container.image_id == "sha256:img-old"
        assert container.state == "exited"
        assert container.repository == "nginx"
        assert container.tag == "1.25"
        assert container.short_id == "f" * 12

    def test_created_by(self):
        compose = make_inspect("1" * 64, "web", "nginx", labels={"com.docker.compose.project": "site"})
        assert ContainerRef.from_inspect(compose).created_by == "Composer"
        assert ContainerRef.from_inspect(make_inspect("2" * 64, "web", "nginx")).created_by == "Docker"

    def test_frozen(self):
        container = ContainerRef.from_inspect(make_inspect("1" * 64, "web", "nginx"))
        with pytest.raises(Exception):
            container.name = "other"


class TestImageDigestState:
    """Tests for ImageDigestState.update_available."""

    def test_unknown_when_latest_missing(self):
        assert ImageDigestState(repository="nginx", tag="1", installed_digest="aaaa").update_available is None

    def test_unknown_when_installed_missing(self):
        assert ImageDigestState(repository="nginx", tag="1", latest_digest="aaaa").update_available is None

    def test_compares_digests(self):
        assert ImageDigestState(repository="n", tag="1", installed_digest="a", latest_digest="b").update_available
        assert not ImageDigestState(repository="n", tag="1", installed_digest="a", latest_digest="a").update_available


def test_update_outcome_defaults():
    outcome = UpdateOutcome(container_id="c1")
    assert outcome.state == UpdateState.IDLE
    assert outcome.history == []
    assert not outcome.succeeded
