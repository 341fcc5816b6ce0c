"""
Oracle configuration.

Settings come from an optional YAML file, then from environment variables,
which take precedence. Keys use the UPPERCASE environment spelling in both
places; snake_case field names are accepted in YAML too::

    API_URL: https://sepolia.infura.io/v3/<key>
    CONTRACT_ADDRESS: "0x5FbDB2315678afecb367f032d93F642f64180aa3"
    TARGET_ADDRESS: "0x000000000000000000000000000000000000dEaD"
    QUORUM_THRESHOLD: 66
    ATTACK_WINDOW_EPOCHS: 2

Hex values must be quoted in YAML, otherwise they are read as integers.

Every setting is read once at startup and never changes while running.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from collusion_oracle.beacon import DEFAULT_BEACON_URL
from collusion_oracle.coordinator import DEFAULT_LEAD_TIME_EPOCHS, DEFAULT_WINDOW_EPOCHS
from collusion_oracle.crypto import Ciphersuite
from collusion_oracle.ledger.memory import DEFAULT_QUORUM_THRESHOLD
from collusion_oracle.ledger.web3_ledger import DEFAULT_EVENT_POLL_INTERVAL
from collusion_oracle.monitor import DEFAULT_FINALIZATION_TIMEOUT, DEFAULT_POLL_INTERVAL
from collusion_oracle.types import HexDecodeError, get_hex_value

ADDRESS_LENGTH = 20
"""Length of an execution-layer address in bytes."""


class OracleConfig(BaseModel):
    """Startup parameters of the oracle."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)

    # -- Ledger --

    ledger_backend: Literal["web3", "memory"] = Field(default="web3", alias="LEDGER_BACKEND")
    """Deployed contract over JSON-RPC, or the in-memory simulation."""

    api_url: str | None = Field(default=None, alias="API_URL")
    """JSON-RPC endpoint of the network hosting the contract."""

    private_key: str | None = Field(default=None, alias="PRIVATE_KEY", repr=False)
    """Key of the account that signs the oracle's transactions."""

    contract_address: str | None = Field(default=None, alias="CONTRACT_ADDRESS")
    """Address of the deployed collusion contract."""

    event_poll_interval: float = Field(
        default=DEFAULT_EVENT_POLL_INTERVAL, gt=0, alias="EVENT_POLL_INTERVAL"
    )
    """Seconds between polls for new declarations."""

    # -- Chain data --

    beacon_source: Literal["live", "fixture"] = Field(default="live", alias="BEACON_SOURCE")
    """Live beaconcha.in and execution node, or recorded fixture data."""

    fixture_path: Path | None = Field(default=None, alias="FIXTURE_PATH")
    """YAML fixture served when `beacon_source` is `fixture`."""

    beacon_api_url: str = Field(default=DEFAULT_BEACON_URL, alias="BEACON_API_URL")
    beacon_api_key: str | None = Field(default=None, alias="BEACON_API_KEY", repr=False)

    execution_api_url: str | None = Field(default=None, alias="EXECUTION_API_URL")
    """Execution-layer JSON-RPC endpoint."""

    execution_api_key: str | None = Field(default=None, alias="EXECUTION_API_KEY", repr=False)
    """Appended as the last path segment of the execution endpoint when set."""

    # -- Attack --

    target_address: str = Field(alias="TARGET_ADDRESS")
    """Address whose transactions must be censored."""

    quorum_threshold: int = Field(
        default=DEFAULT_QUORUM_THRESHOLD, gt=0, le=100, alias="QUORUM_THRESHOLD"
    )
    """Percentage of staked ether colluders must control."""

    attack_window_epochs: int = Field(
        default=DEFAULT_WINDOW_EPOCHS, ge=1, alias="ATTACK_WINDOW_EPOCHS"
    )
    """Epochs covered by the attack window."""

    lead_time_epochs: int = Field(
        default=DEFAULT_LEAD_TIME_EPOCHS, ge=1, alias="LEAD_TIME_EPOCHS"
    )
    """Epochs between the finalized epoch and the start of the window."""

    ciphersuite: Ciphersuite = Field(default=Ciphersuite.BASIC, alias="CIPHERSUITE")
    """BLS ciphersuite the declarations are signed with."""

    # -- Monitoring --

    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0, alias="POLL_INTERVAL")
    """Seconds between finalization polls."""

    finalization_timeout: float = Field(
        default=DEFAULT_FINALIZATION_TIMEOUT, gt=0, alias="FINALIZATION_TIMEOUT"
    )
    """Longest wait for the window to finalize, in seconds."""

    stake_refresh_interval: float | None = Field(
        default=None, gt=0, alias="STAKE_REFRESH_INTERVAL"
    )
    """Seconds between periodic stake refreshes. None disables them."""

    # -- Status server --

    status_host: str = Field(default="0.0.0.0", alias="STATUS_HOST")
    status_port: int | None = Field(default=None, ge=0, le=65535, alias="STATUS_PORT")
    """Port of the status server. None disables it."""

    @field_validator("target_address", "contract_address")
    @classmethod
    def _check_address(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            raw = get_hex_value(v)
        except HexDecodeError as e:
            raise ValueError(e.message) from e
        if len(raw) != ADDRESS_LENGTH:
            raise ValueError(f"address must be {ADDRESS_LENGTH} bytes, got {len(raw)}")
        return v

    @model_validator(mode="after")
    def _check_sources(self) -> OracleConfig:
        if self.beacon_source == "live" and not self.execution_api_url:
            raise ValueError("EXECUTION_API_URL is required for the live beacon source")
        if self.beacon_source == "fixture" and self.fixture_path is None:
            raise ValueError("FIXTURE_PATH is required for the fixture beacon source")
        if self.ledger_backend == "web3":
            missing = [
                name
                for name, value in (
                    ("API_URL", self.api_url),
                    ("CONTRACT_ADDRESS", self.contract_address),
                    ("PRIVATE_KEY", self.private_key),
                )
                if not value
            ]
            if missing:
                raise ValueError(f"web3 ledger requires {', '.join(missing)}")
        return self

    @property
    def execution_endpoint(self) -> str | None:
        """Execution endpoint with the key appended, if one is configured."""
        if self.execution_api_url is None or not self.execution_api_key:
            return self.execution_api_url
        return f"{self.execution_api_url.rstrip('/')}/{self.execution_api_key}"

    @classmethod
    def env_names(cls) -> list[str]:
        """Environment variables that override settings."""
        return [info.alias for info in cls.model_fields.values() if info.alias is not None]

    @classmethod
    def load(
        cls,
        path: Path | str | None = None,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> OracleConfig:
        """
        Build the configuration from a YAML file, the environment, and overrides.

        Precedence, lowest first: file, environment, keyword overrides.
        Empty environment values are ignored.

        Raises:
            FileNotFoundError: If `path` does not exist.
            yaml.YAMLError: If the file is not valid YAML.
            pydantic.ValidationError: If the merged settings are invalid.
        """
        data: dict[str, Any] = {}
        if path is not None:
            with Path(path).open(encoding="utf-8") as f:
                data.update(yaml.safe_load(f) or {})

        env = os.environ if environ is None else environ
        for name, info in cls.model_fields.items():
            if info.alias and env.get(info.alias):
                # One spelling per field, or pydantic sees both.
                data.pop(name, None)
                data[info.alias] = env[info.alias]

        for name, value in overrides.items():
            alias = cls.model_fields[name].alias
            data.pop(alias, None)
            data[name] = value

        return cls.model_validate(data)
