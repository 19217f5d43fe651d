"""
Client configuration.

One frozen dataclass, built from keyword arguments, a plain dict, or
``CROWDFUND_*`` environment variables. Dict and env input is validated
against ``CONFIG_SCHEMA`` with jsonschema before any field is read.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Mapping

import jsonschema  # type: ignore[import-untyped]

from crowdfund.errors import ConfigError
from crowdfund.models import Commitment

DEFAULT_RPC_URL = "https://api.devnet.solana.com"

ENV_PREFIX = "CROWDFUND_"

CONFIG_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "rpc_url": {"type": "string", "pattern": "^https?://"},
        "commitment": {"enum": [c.value for c in Commitment]},
        "program_id": {"type": ["string", "null"], "minLength": 32, "maxLength": 44},
        "idl_path": {"type": ["string", "null"], "minLength": 1},
        "request_timeout_s": {"type": "number", "exclusiveMinimum": 0},
        "confirm_timeout_s": {"type": "number", "exclusiveMinimum": 0},
        "poll_interval_s": {"type": "number", "minimum": 0},
        "max_retries": {"type": "integer", "minimum": 0, "maximum": 10},
        "retry_backoff_s": {"type": "number", "minimum": 0},
        "skip_preflight": {"type": "boolean"},
        "refresh_after_withdraw": {"type": "boolean"},
    },
}

_BOOL_TRUE = {"1", "true", "yes", "on"}
_BOOL_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class ClientConfig:
    """Settings for the ledger gateway and campaign client.

    Attributes:
        rpc_url: JSON-RPC endpoint.
        commitment: Depth a submission must reach before it counts.
            "processed" trades finality for responsiveness.
        program_id: Base58 program address. None means "use the address
            in the interface definition".
        idl_path: Path to an interface definition JSON. None means the
            bundled one.
        request_timeout_s: Per-request HTTP timeout.
        confirm_timeout_s: Deadline for reaching ``commitment``.
        poll_interval_s: Delay between signature status polls.
        max_retries: Extra attempts for retryable (network) failures.
        retry_backoff_s: Base delay for exponential backoff.
        skip_preflight: Ask the node to skip simulation on send.
        refresh_after_withdraw: Reload the campaign list after a withdraw.
            Off by default; only donate refreshes.
    """

    rpc_url: str = DEFAULT_RPC_URL
    commitment: Commitment = Commitment.PROCESSED
    program_id: str | None = None
    idl_path: str | None = None
    request_timeout_s: float = 30.0
    confirm_timeout_s: float = 60.0
    poll_interval_s: float = 0.5
    max_retries: int = 3
    retry_backoff_s: float = 0.5
    skip_preflight: bool = False
    refresh_after_withdraw: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ClientConfig:
        """Build a config from a dict, validating it first.

        Raises:
            ConfigError: If the dict does not match CONFIG_SCHEMA.
        """
        try:
            jsonschema.validate(instance=dict(data), schema=CONFIG_SCHEMA)
        except jsonschema.ValidationError as exc:
            path = ".".join(str(p) for p in exc.absolute_path) or "<root>"
            raise ConfigError(
                f"invalid configuration at {path}: {exc.message}",
                details={"path": path},
            ) from exc

        values = dict(data)
        if "commitment" in values:
            values["commitment"] = Commitment(values["commitment"])
        return cls(**values)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ClientConfig:
        """Build a config from ``CROWDFUND_<FIELD>`` environment variables.

        Unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        types = {f.name: f.type for f in fields(cls)}
        data: dict[str, Any] = {}
        for name, type_name in types.items():
            raw = env.get(ENV_PREFIX + name.upper())
            if raw is None:
                continue
            data[name] = _coerce(name, raw, str(type_name))
        return cls.from_dict(data)


def _coerce(name: str, raw: str, type_name: str) -> Any:
    try:
        if type_name == "bool":
            lowered = raw.strip().lower()
            if lowered in _BOOL_TRUE:
                return True
            if lowered in _BOOL_FALSE:
                return False
            raise ValueError(raw)
        if type_name == "int":
            return int(raw)
        if type_name == "float":
            return float(raw)
    except ValueError as exc:
        raise ConfigError(
            f"{ENV_PREFIX}{name.upper()} has an invalid value: {raw!r}",
            details={"field": name},
        ) from exc
    return raw
