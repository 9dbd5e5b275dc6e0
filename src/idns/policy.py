from __future__ import annotations

import logging
from typing import FrozenSet, Iterable, Optional

from idns.names import normalize_name

logger = logging.getLogger("idns.policy")


class RoutingPolicy:
    """Set of domain names that are resolved over DNS-over-HTTPS.

    Brief:
      Exact-match membership only. Despite the "PAC" file naming there is no
      suffix or wildcard matching and no script evaluation. The set is fixed
      once loaded.

    Inputs:
      - names: Optional iterable of domain names (normalized to FQDN).

    Outputs:
      - RoutingPolicy instance.

    Example:
      >>> policy = RoutingPolicy(["example.com"])
      >>> policy.matches("example.com.")
      True
      >>> policy.matches("www.example.com.")
      False
    """

    def __init__(self, names: Optional[Iterable[str]] = None) -> None:
        self._names: FrozenSet[str] = frozenset(
            normalize_name(n) for n in (names or ()) if str(n).strip()
        )

    @classmethod
    def load_from(cls, path: Optional[str]) -> "RoutingPolicy":
        """Brief: Build a policy from a file with one domain per line.

        Inputs:
          - path: Policy file path; empty/None yields an empty policy.

        Outputs:
          - RoutingPolicy. A missing or unreadable file is logged and yields
            an empty policy; it is never fatal.
        """

        if not path:
            return cls()
        try:
            with open(path, "r", encoding="utf-8") as fh:
                names = [line.strip() for line in fh]
        except FileNotFoundError:
            logger.warning("PAC file %s not found; all queries use upstreams", path)
            return cls()
        except OSError as e:
            logger.error("Failed to read PAC file %s: %s", path, e)
            return cls()

        policy = cls(names)
        logger.info("Loaded %d PAC rules from %s", len(policy), path)
        logger.debug("PAC rules: %s", sorted(policy.names))
        return policy

    @property
    def names(self) -> FrozenSet[str]:
        return self._names

    def __len__(self) -> int:
        return len(self._names)

    def matches(self, name: str) -> bool:
        """Brief: True when the FQDN form of name is in the policy set."""

        return normalize_name(name) in self._names
