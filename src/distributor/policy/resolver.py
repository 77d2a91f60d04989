"""Policy resolver — typed access to the distributor's JSON configuration.

Policy values live in config/distributor_params.json. Secrets (RPC URL,
signer key) never go in config; they are read from the environment,
which may be populated from a project .env file.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from distributor.models.commitment import normalize_address


PARAMS_FILE = "distributor_params.json"

ENV_RPC_URL = "DISTRIBUTOR_RPC_URL"
ENV_PRIVATE_KEY = "DISTRIBUTOR_PRIVATE_KEY"


@dataclass(frozen=True)
class ChainSettings:
    """Connection settings for on-chain payouts."""
    rpc_url: str
    private_key: str
    chain_id: int
    gas: int
    gas_price_gwei: str
    timeout: int


class PolicyResolver:
    """Resolves distributor policy from a parsed parameter document.

    Usage:
        resolver = PolicyResolver.from_config_dir(Path("config"))
        resolver.default_timelock()
        resolver.factory_address()
    """

    def __init__(self, params: Mapping[str, Any]) -> None:
        self._params = params
        self._validate()

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> PolicyResolver:
        path = config_dir / PARAMS_FILE
        with path.open("r", encoding="utf-8") as handle:
            return cls(json.load(handle))

    def default_timelock(self) -> int:
        return int(self._params["ledger"]["default_timelock_seconds"])

    def factory_address(self) -> str:
        return normalize_address(self._params["factory"]["address"])

    def creation_code(self) -> bytes:
        return self._params["factory"]["creation_code_tag"].encode("utf-8")

    def chain_id(self) -> int:
        return int(self._params["chain"]["chain_id"])

    def chain_settings(self, env_file: Optional[Path] = None) -> Optional[ChainSettings]:
        """On-chain payout settings, or None if no RPC credentials are configured.

        Reads DISTRIBUTOR_RPC_URL and DISTRIBUTOR_PRIVATE_KEY from the
        environment after loading env_file (if given). Existing
        environment variables take precedence over the file.
        """
        if env_file is not None:
            load_dotenv(env_file)
        rpc_url = os.getenv(ENV_RPC_URL)
        private_key = os.getenv(ENV_PRIVATE_KEY)
        if not rpc_url or not private_key:
            return None
        chain = self._params["chain"]
        return ChainSettings(
            rpc_url=rpc_url,
            private_key=private_key,
            chain_id=int(chain["chain_id"]),
            gas=int(chain["transfer_gas"]),
            gas_price_gwei=str(chain["gas_price_gwei"]),
            timeout=int(chain["receipt_timeout_seconds"]),
        )

    def _validate(self) -> None:
        errors: list[str] = []
        for section in ("ledger", "factory", "chain"):
            if section not in self._params:
                errors.append(f"missing section: {section}")
        if errors:
            raise ValueError("Invalid distributor params: " + "; ".join(errors))
        if int(self._params["ledger"]["default_timelock_seconds"]) < 0:
            errors.append("ledger.default_timelock_seconds must be >= 0")
        try:
            normalize_address(self._params["factory"]["address"])
        except ValueError:
            errors.append(f"factory.address is not an address: {self._params['factory']['address']!r}")
        if not self._params["factory"].get("creation_code_tag"):
            errors.append("factory.creation_code_tag must be non-empty")
        if int(self._params["chain"]["chain_id"]) <= 0:
            errors.append("chain.chain_id must be > 0")
        if errors:
            raise ValueError("Invalid distributor params: " + "; ".join(errors))
