"""Reliable GET/POST requests with bounded retries.

This package provides :class:`ReliableRequestExecutor`, which retries failed or
timed-out requests a bounded number of times with a fixed delay, and the
helpers it is built from: request cloning, parameter validation, verb policies
and the default httpx transport.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from reliable_request.http.bound import BoundRequest
from reliable_request.http.client import ReliableRequestExecutor, RequestOptions
from reliable_request.http.policy import PolicyRegistry, RetryPolicy, VerbPolicyDoc
from reliable_request.http.transport import HttpxTransport
from reliable_request.http.types import Outcome, OutcomeKind, RequestSpec, Transport
from reliable_request.http.validation import InvalidParamsPolicy

__all__ = [
    "BoundRequest",
    "HttpxTransport",
    "InvalidParamsPolicy",
    "Outcome",
    "OutcomeKind",
    "PolicyRegistry",
    "ReliableRequestExecutor",
    "RequestOptions",
    "RequestSpec",
    "RetryPolicy",
    "Transport",
    "VerbPolicyDoc",
    "make_executor_with_policy",
]


def make_executor_with_policy(
    policies_root: Path,
    policy_names: Iterable[str],
    transport: Transport | None = None,
) -> ReliableRequestExecutor:
    """Create an executor whose verbs follow policies loaded from files.

    Parameters
    ----------
    policies_root : Path
        Directory containing policy YAML files.
    policy_names : Iterable[str]
        Names of policies to load (without .yaml extension). Each applies to the
        methods it lists; later names win.
    transport : Transport | None, optional
        Transport to use. Defaults to a new :class:`HttpxTransport`.

    Returns
    -------
    ReliableRequestExecutor
        Configured executor instance.
    """
    reg = PolicyRegistry(policies_root)
    verb_policies: dict[str, VerbPolicyDoc] = {}
    for name in policy_names:
        pol = reg.get(name)
        for method in pol.methods:
            verb_policies[method] = pol
    return ReliableRequestExecutor(transport, verb_policies=verb_policies)
