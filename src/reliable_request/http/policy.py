"""Retry policy configuration and loading.

:class:`RetryPolicy` is the validated, per-call configuration of the retry loop.
:class:`VerbPolicyDoc` holds the per-verb knobs (which statuses count as
success, whether an error status is retried, the inter-attempt delay) and can be
loaded from YAML files through :class:`PolicyRegistry`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import jsonschema
import yaml

from reliable_request.errors import ParameterError, PolicyError
from reliable_request.http.validation import Timeout, resolve_timeout_ms
from reliable_request.settings import ExecutorSettings, load_settings

__all__ = [
    "DEFAULT_DELAY_MS",
    "PolicyRegistry",
    "RetryPolicy",
    "VerbPolicyDoc",
    "default_verb_policies",
    "load_policy",
]

DEFAULT_DELAY_MS = 250.0

_SCHEMA_PATH = Path(__file__).with_name("policy.schema.json")


@dataclass(frozen=True)
class VerbPolicyDoc:
    """Per-verb retry behaviour.

    Attributes
    ----------
    name : str
        Policy name identifier.
    description : str | None
        Human-readable description of the policy.
    methods : tuple[str, ...]
        HTTP methods this policy applies to.
    retry_on_error_status : bool
        Whether a response outside the success range is retried.
    success_status : tuple[int, int]
        Inclusive status range counted as success.
    delay_ms : float
        Fixed delay between attempts in milliseconds.
    """

    name: str
    description: str | None
    methods: tuple[str, ...]
    retry_on_error_status: bool
    success_status: tuple[int, int] = (200, 299)
    delay_ms: float = DEFAULT_DELAY_MS


@dataclass(frozen=True)
class RetryPolicy:
    """Validated configuration for one run of the retry loop.

    Attributes
    ----------
    timeout_ms : float
        Per-attempt deadline in milliseconds.
    max_attempts : int
        Upper bound on sends.
    delay_ms : float
        Fixed delay after each non-final failed attempt.
    retry_on_error_status : bool
        Whether a non-success status is retried.
    success_status : tuple[int, int]
        Inclusive status range counted as success.
    """

    timeout_ms: float
    max_attempts: int
    delay_ms: float = DEFAULT_DELAY_MS
    retry_on_error_status: bool = False
    success_status: tuple[int, int] = (200, 299)

    def __post_init__(self) -> None:
        if not self.timeout_ms > 0:
            raise ParameterError("timeout", f"must be greater than 0, got {self.timeout_ms!r}")
        if self.max_attempts <= 0:
            raise ParameterError(
                "max_attempts", f"must be greater than 0, got {self.max_attempts!r}"
            )
        if self.delay_ms < 0:
            msg = f"delay_ms must not be negative, got {self.delay_ms!r}"
            raise ValueError(msg)

    @classmethod
    def for_call(cls, timeout: Timeout, max_attempts: int, verb: VerbPolicyDoc) -> RetryPolicy:
        """Build the policy for one call from its arguments and the verb's doc.

        Raises
        ------
        ParameterError
            If ``timeout`` or ``max_attempts`` is invalid.
        """
        return cls(
            timeout_ms=resolve_timeout_ms(timeout),
            max_attempts=max_attempts,
            delay_ms=verb.delay_ms,
            retry_on_error_status=verb.retry_on_error_status,
            success_status=verb.success_status,
        )

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def delay_s(self) -> float:
        return self.delay_ms / 1000.0

    def is_success(self, status: int) -> bool:
        lo, hi = self.success_status
        return lo <= status <= hi


def default_verb_policies(settings: ExecutorSettings | None = None) -> dict[str, VerbPolicyDoc]:
    """Return the GET and POST policies implied by ``settings``.

    GET retries on error status and POST does not unless configured otherwise.

    Raises
    ------
    SettingsError
        If ``settings`` is omitted and the environment holds invalid values.
    """
    settings = settings or load_settings()
    success = (settings.success_status_min, settings.success_status_max)
    return {
        "GET": VerbPolicyDoc(
            name="get-default",
            description="Retry until success or attempts run out",
            methods=("GET",),
            retry_on_error_status=settings.get_retry_on_error_status,
            success_status=success,
            delay_ms=settings.retry_delay_ms,
        ),
        "POST": VerbPolicyDoc(
            name="post-default",
            description="An error status ends the call without retrying",
            methods=("POST",),
            retry_on_error_status=settings.post_retry_on_error_status,
            success_status=success,
            delay_ms=settings.retry_delay_ms,
        ),
    }


def _parse_status_range(value: str | int) -> tuple[int, int]:
    """Parse ``"200-299"`` or a single code into an inclusive range."""
    if isinstance(value, int):
        return (value, value)
    lo, hi = value.split("-", 1)
    return (int(lo), int(hi))


def load_policy(path: Path, schema_path: Path | None = _SCHEMA_PATH) -> VerbPolicyDoc:
    """Load a verb policy from a YAML file.

    Parameters
    ----------
    path : Path
        Path to policy YAML file.
    schema_path : Path | None, optional
        JSON schema to validate against. Defaults to the bundled schema.

    Returns
    -------
    VerbPolicyDoc
        Loaded policy document.

    Raises
    ------
    PolicyError
        If the file is not valid YAML, is not a mapping, or does not match the
        schema.
    """
    try:
        obj = yaml.safe_load(path.read_text(encoding="utf-8"))
        if schema_path and schema_path.exists():
            jsonschema.validate(obj, json.loads(schema_path.read_text(encoding="utf-8")))
    except (yaml.YAMLError, jsonschema.ValidationError) as exc:
        msg = f"Invalid policy file {path}: {exc}"
        raise PolicyError(msg, cause=exc, context={"path": str(path)}) from exc

    if not isinstance(obj, dict):
        msg = f"Invalid policy file {path}: expected a mapping, got {type(obj).__name__}"
        raise PolicyError(msg, context={"path": str(path)})

    try:
        success = _parse_status_range(obj.get("success_status", "200-299"))
        doc = VerbPolicyDoc(
            name=obj["name"],
            description=obj.get("description"),
            methods=tuple(m.upper() for m in obj["methods"]),
            retry_on_error_status=bool(obj["retry_on_error_status"]),
            success_status=success,
            delay_ms=float(obj.get("delay_ms", DEFAULT_DELAY_MS)),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        msg = f"Invalid policy file {path}: {exc!r}"
        raise PolicyError(msg, cause=exc, context={"path": str(path)}) from exc
    if success[0] > success[1]:
        msg = f"Invalid policy file {path}: success_status range is reversed"
        raise PolicyError(msg, context={"path": str(path)})
    return doc


class PolicyRegistry:
    """Registry for loading verb policies from a directory.

    Parameters
    ----------
    root : Path
        Root directory containing policy YAML files.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    def get(self, name: str) -> VerbPolicyDoc:
        """Load policy by name.

        Parameters
        ----------
        name : str
            Policy name (without .yaml extension).

        Returns
        -------
        VerbPolicyDoc
            Loaded policy document.

        Raises
        ------
        FileNotFoundError
            If policy file does not exist.
        """
        p = self.root / f"{name}.yaml"
        if not p.exists():
            raise FileNotFoundError(p)
        return load_policy(p)
