"""
Helpers for deriving discovery and state topic names.

Topics are keyed by container name, which stays the same when a container
is recreated with a newer image.
"""
import re

_INVALID_TOPIC_CHARACTERS = re.compile(r"[/.:;,+*?@^$%#!&\"'`|<>{}\[\]()\-\s\x00-\x1f\x7f]")


def sanitize_for_topic(value: str) -> str:
    """
    Replaces every character that is not safe in a topic segment with '_'.

    >>> sanitize_for_topic("ghcr.io/example/web-app")
    'ghcr_io_example_web_app'
    """
    return _INVALID_TOPIC_CHARACTERS.sub("_", value)


def container_state_topic(prefix: str, container_name: str) -> str:
    return f"{prefix}/{sanitize_for_topic(container_name)}"


def container_update_topic(prefix: str, container_name: str) -> str:
    return f"{prefix}/{sanitize_for_topic(container_name)}/update"


def discovery_topic(discovery_prefix: str, component: str, container_name: str, entity: str) -> str:
    """
    Builds a discovery config topic, e.g. 'homeassistant/sensor/web/docker_status/config'.
    """
    return f"{discovery_prefix}/{component}/{sanitize_for_topic(container_name)}/{entity}/config"
