"""
Routing services - apply traffic splits to an alias.

A RoutingService overwrites the routing of an alias, either to a partial
split between the current version and a candidate or to a full cutover.
Both operations are absolute overwrites, so repeating a call is safe.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any
import logging

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .errors import RoutingError

logger = logging.getLogger(__name__)

PARTIAL_SPLIT = "partial_split"
FULL_CUTOVER = "full_cutover"


class RoutingService(ABC):
    """Base class for routing services."""

    @abstractmethod
    def set_partial_split(self, target: str, alias: str, candidate: str, fraction: float) -> None:
        """Route `fraction` of the alias traffic to `candidate`."""
        pass

    @abstractmethod
    def set_full_cutover(self, target: str, alias: str, candidate: str) -> None:
        """Route all alias traffic to `candidate` and clear any split."""
        pass


class LambdaAliasRouter(RoutingService):
    """
    Shifts traffic on an AWS Lambda alias through UpdateAlias.

    Partial splits use the alias RoutingConfig (AdditionalVersionWeights);
    a cutover moves the alias FunctionVersion and empties the weights.
    """

    def __init__(
        self,
        client: Any = None,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ):
        if client is None:
            session_kwargs = {}
            if region:
                session_kwargs["region_name"] = region
            if profile:
                session_kwargs["profile_name"] = profile
            client_kwargs = {}
            if max_attempts:
                client_kwargs["config"] = BotoConfig(retries={"max_attempts": max_attempts})
            try:
                client = boto3.Session(**session_kwargs).client("lambda", **client_kwargs)
            except BotoCoreError as e:
                raise RoutingError(f"cannot create Lambda client: {e}", operation="session") from e
        self.client = client

    def set_partial_split(self, target: str, alias: str, candidate: str, fraction: float) -> None:
        self._update_alias(
            PARTIAL_SPLIT,
            FunctionName=target,
            Name=alias,
            RoutingConfig={"AdditionalVersionWeights": {candidate: fraction}},
        )

    def set_full_cutover(self, target: str, alias: str, candidate: str) -> None:
        self._update_alias(
            FULL_CUTOVER,
            FunctionName=target,
            Name=alias,
            FunctionVersion=candidate,
            RoutingConfig={"AdditionalVersionWeights": {}},
        )

    def _update_alias(self, operation: str, **params) -> Dict[str, Any]:
        """Call UpdateAlias, translating SDK failures into RoutingError."""
        logger.debug(f"UpdateAlias ({operation}): {params}")
        try:
            return self.client.update_alias(**params)
        except ClientError as e:
            error = e.response.get("Error", {})
            code = error.get("Code")
            message = error.get("Message", str(e))
            raise RoutingError(
                f"{operation} on {params['FunctionName']}:{params['Name']} failed: {code}: {message}",
                operation=operation,
                code=code,
            ) from e
        except BotoCoreError as e:
            raise RoutingError(
                f"{operation} on {params['FunctionName']}:{params['Name']} failed: {e}",
                operation=operation,
            ) from e


@dataclass
class AliasRoute:
    """Routing table entry for one alias."""
    version: str
    additional_weights: Dict[str, float] = field(default_factory=dict)

    @property
    def candidate_share(self) -> float:
        return sum(self.additional_weights.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "additional_weights": dict(self.additional_weights),
        }


@dataclass
class RoutingCall:
    """A call received by the in-memory router."""
    operation: str
    target: str
    alias: str
    candidate: str
    fraction: float


class InMemoryRouter(RoutingService):
    """
    Routing service that keeps alias routes in memory.

    Used for dry runs and tests. `fail_on_call` makes the Nth call
    (1-based) raise RoutingError without touching the routing table.
    """

    def __init__(self, baseline_version: str = "$LATEST", fail_on_call: Optional[int] = None):
        self.baseline_version = baseline_version
        self.fail_on_call = fail_on_call
        self.routes: Dict[str, AliasRoute] = {}
        self.calls: List[RoutingCall] = []

    def set_partial_split(self, target: str, alias: str, candidate: str, fraction: float) -> None:
        self._record(PARTIAL_SPLIT, target, alias, candidate, fraction)
        route = self._route(target, alias)
        route.additional_weights = {candidate: fraction}
        logger.info(f"[dry-run] {target}:{alias} -> {candidate} at {fraction:.2%}")

    def set_full_cutover(self, target: str, alias: str, candidate: str) -> None:
        self._record(FULL_CUTOVER, target, alias, candidate, 1.0)
        self.routes[self._key(target, alias)] = AliasRoute(version=candidate)
        logger.info(f"[dry-run] {target}:{alias} -> {candidate} at 100%")

    def get_route(self, target: str, alias: str) -> Optional[AliasRoute]:
        """Get the current route of an alias."""
        return self.routes.get(self._key(target, alias))

    def _record(self, operation: str, target: str, alias: str, candidate: str, fraction: float) -> None:
        self.calls.append(RoutingCall(operation, target, alias, candidate, fraction))
        if self.fail_on_call is not None and len(self.calls) == self.fail_on_call:
            raise RoutingError(f"{operation} on {target}:{alias} failed (injected)", operation=operation)

    def _route(self, target: str, alias: str) -> AliasRoute:
        key = self._key(target, alias)
        if key not in self.routes:
            self.routes[key] = AliasRoute(version=self.baseline_version)
        return self.routes[key]

    @staticmethod
    def _key(target: str, alias: str) -> str:
        return f"{target}:{alias}"
