"""Network authorization graph.

The network is default-deny: a peer reaches another peer only through an
explicit AuthorizationRule. The graph is an ordered edge list built once while
the topology is composed; every edge is a value that tests can inspect.
"""

from __future__ import annotations

from collections.abc import Iterator

import structlog

from vaultstack_core.errors import IncompleteTopologyError
from vaultstack_core.models import AuthorizationRule, Port

logger = structlog.get_logger(__name__)


class AuthorizationGraph:
    """Directed set of authorization rules.

    Example:
        >>> graph = AuthorizationGraph()
        >>> graph.allow_mutual("vaultwarden/service", "vaultwarden/volume", Port.tcp(2049))
        >>> graph.is_allowed("vaultwarden/volume", "vaultwarden/service", Port.tcp(2049))
        True
        >>> graph.is_allowed("vaultwarden/service", "vaultwarden/cluster", Port.tcp(2049))
        False
    """

    def __init__(self) -> None:
        self._rules: list[AuthorizationRule] = []

    def __iter__(self) -> Iterator[AuthorizationRule]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule: object) -> bool:
        return rule in self._rules

    @property
    def rules(self) -> tuple[AuthorizationRule, ...]:
        """Rules in insertion order."""
        return tuple(self._rules)

    def add(self, rule: AuthorizationRule) -> bool:
        """Add a rule.

        Args:
            rule: Rule to add.

        Returns:
            True if the rule was new, False if an equal rule already existed.
        """
        if rule in self._rules:
            logger.debug("authorization_rule_exists", rule=str(rule))
            return False
        self._rules.append(rule)
        logger.debug("authorization_rule_added", rule=str(rule))
        return True

    def allow(self, source: str, destination: str, port: Port) -> AuthorizationRule:
        """Allow traffic from source to destination on a port."""
        rule = AuthorizationRule(source=source, destination=destination, port=port)
        self.add(rule)
        return rule

    def allow_mutual(self, first: str, second: str, port: Port) -> tuple[AuthorizationRule, ...]:
        """Allow traffic in both directions between two peers on a port."""
        forward = self.allow(first, second, port)
        return forward, self.allow(second, first, port)

    def is_allowed(self, source: str, destination: str, port: Port) -> bool:
        """Whether an explicit rule permits the traffic."""
        return AuthorizationRule(source=source, destination=destination, port=port) in self._rules

    def rules_between(self, first: str, second: str) -> list[AuthorizationRule]:
        """Rules in either direction between two peers."""
        peers = {first, second}
        return [r for r in self._rules if {r.source, r.destination} == peers]

    def require_bidirectional(self, first: str, second: str, port: Port) -> None:
        """Check that both directions are allowed between two peers.

        Args:
            first: One peer (e.g., the service).
            second: The other peer (e.g., the filesystem).
            port: Port both directions must allow.

        Raises:
            IncompleteTopologyError: If either direction is missing.
        """
        missing = [
            f"{src} -> {dst} ({port})"
            for src, dst in ((first, second), (second, first))
            if not self.is_allowed(src, dst, port)
        ]
        if missing:
            raise IncompleteTopologyError(
                f"Authorization between '{first}' and '{second}' must be bidirectional",
                missing=missing,
            )
