"""Library configuration."""

import logging
import tomllib
from pathlib import Path
from typing import List, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LOGGER = logging.getLogger(__name__)


class ConfigError(Exception):
    """Configuration error."""


class Settings(BaseSettings):
    """Builder defaults, read from OMNI_TX_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="OMNI_TX_", env_file=".env", extra="ignore"
    )

    bitcoin_network: str = "mainnet"
    bitcoin_sequence: int = Field(default=0xFFFFFFFF, ge=0, le=0xFFFFFFFF)
    evm_variant: Literal["legacy", "access_list", "fee_market"] = "fee_market"
    evm_replay_protection: bool = True
    networks_config: str | None = None


class BitcoinNetwork(BaseModel):
    """Address parameters of a Bitcoin-style network."""

    name: str
    p2pkh_prefix: int = Field(ge=0, le=0xFF)
    p2sh_prefix: int = Field(ge=0, le=0xFF)
    bech32_hrp: str


BUILTIN_BITCOIN_NETWORKS = (
    BitcoinNetwork(name="mainnet", p2pkh_prefix=0x00, p2sh_prefix=0x05, bech32_hrp="bc"),
    BitcoinNetwork(name="testnet", p2pkh_prefix=0x6F, p2sh_prefix=0xC4, bech32_hrp="tb"),
    BitcoinNetwork(name="signet", p2pkh_prefix=0x6F, p2sh_prefix=0xC4, bech32_hrp="tb"),
    BitcoinNetwork(name="regtest", p2pkh_prefix=0x6F, p2sh_prefix=0xC4, bech32_hrp="bcrt"),
)


class NetworkConfig(BaseModel):
    """Networks config.

    Example networks.toml:

        [[bitcoin]]
        name = "litecoin"
        p2pkh_prefix = 0x30
        p2sh_prefix = 0x32
        bech32_hrp = "ltc"
    """

    bitcoin: List[BitcoinNetwork] = Field(default_factory=list)

    @classmethod
    def from_config_file(cls, path: Path | str) -> "NetworkConfig":
        """Load from a config file."""
        if isinstance(path, str):
            path = Path(path)

        if not path.is_file():
            raise ConfigError(f"Could not find networks config at {path}")

        LOGGER.debug("Loading network config from %s", path)
        with path.open("rb") as f:
            raw = tomllib.load(f)

        return cls.model_validate(raw)

    @classmethod
    def load(cls, settings: Settings | None = None) -> "NetworkConfig":
        """Built-in networks extended by the configured networks file."""
        settings = settings or Settings()
        networks = {network.name: network for network in BUILTIN_BITCOIN_NETWORKS}
        if settings.networks_config:
            extra = cls.from_config_file(settings.networks_config)
            networks.update({network.name: network for network in extra.bitcoin})
        return cls(bitcoin=list(networks.values()))

    def bitcoin_network(self, name: str) -> BitcoinNetwork:
        """Look up a Bitcoin network by name."""
        for network in self.bitcoin:
            if network.name == name:
                return network
        raise ConfigError(f"Unknown bitcoin network: {name}")
