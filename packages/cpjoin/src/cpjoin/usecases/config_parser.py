"""Config parser use case for cpjoin."""

from __future__ import annotations

from typing import Any

import yaml

from cpjoin.adapters.ports import NodeIdentityResolverPort
from cpjoin.domain.exceptions import CPJoinConfigError
from cpjoin.domain.settings import (
    CredentialSettings,
    EtcdSettings,
    JoinSettings,
    LoadBalancerSettings,
    PollSettings,
    PromotionSettings,
    VipSettings,
    parse_duration,
)

_DURATION_FIELDS = frozenset(
    {
        "token_ttl",
        "cert_key_ttl",
        "health_backoff",
        "health_timeout",
        "learner_poll_interval",
        "learner_sync_timeout",
        "vip_debounce",
        "vip_poll_interval",
        "vip_settle_timeout",
        "backoff",
        "command_timeout",
        "apply_backoff",
    }
)

_SECTIONS = {
    "credentials": CredentialSettings,
    "polling": PollSettings,
    "promotion": PromotionSettings,
    "etcd": EtcdSettings,
    "load_balancer": LoadBalancerSettings,
}


class ConfigParser:
    """Parses cpjoin YAML configuration to settings.

    Example config:

        node:
          name: k8s-cp2
          address: 10.255.254.11
        vip:
          address: 10.255.254.100
        promotion:
          attempts: 5
          backoff: 20s

    Node identity may be left out of the file and resolved from the
    environment instead (CPJOIN_NODE_NAME / CPJOIN_NODE_ADDRESS).
    """

    def __init__(self, identity_resolver: NodeIdentityResolverPort | None = None) -> None:
        """Initialize the parser.

        Args:
            identity_resolver: Fallback for node name and address missing
                               from the file.
        """
        self._identity_resolver = identity_resolver

    def parse(self, yaml_str: str) -> JoinSettings:
        """Parse cpjoin YAML config to settings.

        Args:
            yaml_str: YAML string representing cpjoin configuration

        Returns:
            JoinSettings domain object

        Raises:
            CPJoinConfigError: If YAML is invalid, a required field is
                missing or a value fails validation
        """
        try:
            config = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise CPJoinConfigError(f"Invalid YAML: {e}") from e

        if not isinstance(config, dict):
            raise CPJoinConfigError("Config must be a dictionary")

        node = self._section(config, "node")
        node_name = node.get("name") or self._resolve("name")
        node_address = node.get("address") or self._resolve("address")

        vip_config = self._section(config, "vip")
        if "address" not in vip_config:
            raise CPJoinConfigError("Missing required field in config: vip.address")
        vip = self._build(VipSettings, "vip", vip_config)

        sections = {
            name: self._build(settings_class, name, self._section(config, name))
            for name, settings_class in _SECTIONS.items()
        }

        return JoinSettings(
            node_name=str(node_name),
            node_address=str(node_address),
            vip=vip,
            **sections,
        )

    def _resolve(self, field_name: str) -> str:
        if self._identity_resolver is None:
            raise CPJoinConfigError(f"Missing required field in config: node.{field_name}")
        try:
            if field_name == "name":
                return self._identity_resolver.resolve_node_name()
            return self._identity_resolver.resolve_node_address()
        except (KeyError, ValueError) as e:
            raise CPJoinConfigError(
                f"node.{field_name} is not configured and could not be resolved: {e}"
            ) from e

    @staticmethod
    def _section(config: dict[str, Any], name: str) -> dict[str, Any]:
        section = config.get(name)
        if section is None:
            return {}
        if not isinstance(section, dict):
            raise CPJoinConfigError(f"{name} must be a mapping")
        return section

    @staticmethod
    def _build(settings_class: type, name: str, values: dict[str, Any]) -> Any:
        kwargs = {
            key: parse_duration(value) if key in _DURATION_FIELDS else value
            for key, value in values.items()
        }
        try:
            return settings_class(**kwargs)
        except TypeError as e:
            raise CPJoinConfigError(f"Invalid field in {name} section: {e}") from e
