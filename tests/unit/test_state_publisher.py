"""
Unit tests for the log-backed state publisher.
"""
import asyncio
import json

from conftest import make_inspect
from mqdockerup.MANAGERS.state_publisher import LogStatePublisher
from mqdockerup.MODELS.config import PublishConfig
from mqdockerup.MODELS.container import ContainerRef, ImageDigestState


def _container():
    return ContainerRef.from_inspect(make_inspect("a" * 64, "web", "nginx:1.25"))


class TestLogStatePublisher:
    """Tests for LogStatePublisher."""

    def test_publish_config_returns_topics(self):
        publisher = LogStatePublisher()
        topics = asyncio.run(publisher.publish_config(_container()))
        assert topics == [
            "homeassistant/sensor/web/docker_status/config",
            "homeassistant/update/web/docker_update/config",
            "homeassistant/button/web/docker_restart/config",
        ]
        update_payload = json.loads(publisher.history[1][1])
        assert json.loads(update_payload["payload_install"]) == {"containerId": "a" * 64}

    def test_same_image_gets_separate_topics(self):
        publisher = LogStatePublisher()
        first = ContainerRef.from_inspect(make_inspect("a" * 64, "web1", "nginx:1.25"))
        second = ContainerRef.from_inspect(make_inspect("b" * 64, "web2", "nginx:1.25"))
        first_topics = asyncio.run(publisher.publish_config(first))
        second_topics = asyncio.run(publisher.publish_config(second))
        assert not set(first_topics) & set(second_topics)
        payloads = [json.loads(text) for _, text in publisher.history]
        assert payloads[0]["state_topic"] == "mqdockerup/web1"
        assert payloads[3]["state_topic"] == "mqdockerup/web2"
        assert payloads[0]["device"]["identifiers"] != payloads[3]["device"]["identifiers"]

    def test_publish_config_disabled(self):
        publisher = LogStatePublisher(PublishConfig(ha_discovery=False))
        assert asyncio.run(publisher.publish_config(_container())) == []
        assert len(publisher.history) == 0

    def test_container_state(self):
        publisher = LogStatePublisher()
        asyncio.run(publisher.publish_container_state(_container()))
        topic, text = publisher.history[-1]
        assert topic == "mqdockerup/web"
        assert json.loads(text)["status"] == "running"

    def test_image_update_state(self):
        publisher = LogStatePublisher()
        state = ImageDigestState(repository="nginx", tag="1.25", installed_digest="aaaa", latest_digest="bbbb")
        asyncio.run(publisher.publish_image_update_state(_container(), state))
        topic, text = publisher.history[-1]
        assert topic == "mqdockerup/web/update"
        payload = json.loads(text)
        assert payload["update_available"] is True
        assert payload["latest_version"] == "1.25: bbbb"

    def test_progress_and_abort(self):
        publisher = LogStatePublisher(PublishConfig(topic="home/docker"))
        asyncio.run(publisher.publish_update_progress(_container(), 42, True))
        asyncio.run(publisher.publish_abort("a" * 64))
        assert json.loads(publisher.history[0][1]) == {"update_percentage": 42, "in_progress": True}
        assert publisher.history[1][0] == "home/docker/abort"

    def test_removal_clears_topics(self):
        publisher = LogStatePublisher()
        asyncio.run(publisher.publish_removal("c1", ["t1", "t2"]))
        assert list(publisher.history) == [("t1", ""), ("t2", "")]

    def test_history_is_bounded(self):
        publisher = LogStatePublisher(history_size=2)
        for _ in range(5):
            asyncio.run(publisher.publish_abort("c1"))
        assert len(publisher.history) == 2

    def test_close(self):
        publisher = LogStatePublisher()
        asyncio.run(publisher.close())
        assert publisher.closed
