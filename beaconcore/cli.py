"""Command-line interface for beaconcore."""

import asyncio
import logging
import sys
from typing import Optional

import click

from .config import Config, setup_logging
from .exceptions import ConfigError


def load_validator_keys(path: str) -> list:
    """Read hex-encoded BLS private keys, one per line.

    Blank lines and lines starting with '#' are skipped.
    """
    from .crypto import pubkey_from_privkey
    from .validator import ValidatorKey

    keys = []
    with open(path) as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                privkey = int(line.removeprefix("0x"), 16)
            except ValueError:
                raise ConfigError(f"{path}:{line_no}: not a hex private key") from None
            keys.append(ValidatorKey(pubkey=pubkey_from_privkey(privkey), privkey=privkey))
    return keys


@click.group()
@click.version_option(package_name="beaconcore")
def cli():
    """beaconcore - phase 0 beacon chain node with local validators."""
    pass


@cli.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    help="Path to node config YAML file",
    envvar="BEACONCORE_CONFIG",
)
@click.option(
    "--genesis-state",
    type=click.Path(exists=True),
    required=True,
    help="Path to genesis state SSZ file",
    envvar="BEACONCORE_GENESIS_STATE",
)
@click.option(
    "--keys-file",
    type=click.Path(exists=True),
    required=True,
    help="File with one hex-encoded validator private key per line",
    envvar="BEACONCORE_KEYS_FILE",
)
@click.option(
    "--eth1-endpoint",
    help="Eth1 JSON-RPC endpoint (overrides config file)",
    envvar="BEACONCORE_ETH1_ENDPOINT",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (overrides config file)",
    envvar="BEACONCORE_LOG_LEVEL",
)
def run(
    config_path: Optional[str],
    genesis_state: str,
    keys_file: str,
    eth1_endpoint: Optional[str],
    log_level: Optional[str],
):
    """Run the beacon node and its local validators."""
    try:
        config = Config.from_yaml(config_path) if config_path else Config()
        if eth1_endpoint:
            config.eth1_endpoint = eth1_endpoint
        if log_level:
            config.log_level = log_level
        setup_logging(config.log_level)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    logger = logging.getLogger(__name__)

    # Type sizes are fixed at import, so the preset goes first
    from .spec.constants import set_preset
    from .spec.network_config import load_config, set_config, NetworkConfig

    set_preset(config.preset)
    if config.network_config_path:
        network_config = load_config(config.network_config_path)
        if network_config.preset_base != config.preset:
            raise click.ClickException(
                f"Network config preset {network_config.preset_base} "
                f"does not match node preset {config.preset}"
            )
    elif config.preset == "minimal":
        set_config(NetworkConfig.minimal())

    from .node import run_node
    from .spec.types import BeaconState

    with open(genesis_state, "rb") as f:
        state = BeaconState.decode_bytes(f.read())

    try:
        keys = load_validator_keys(keys_file)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e

    logger.info("Starting beaconcore")
    logger.info(f"  Preset: {config.preset}")
    logger.info(f"  Genesis time: {int(state.genesis_time)}")
    logger.info(f"  Validators in genesis: {len(state.validators)}")
    logger.info(f"  Local validator keys: {len(keys)}")
    logger.info(f"  Eth1 endpoint: {config.eth1_endpoint or 'none'}")

    try:
        asyncio.run(run_node(config, state, keys))
    except KeyboardInterrupt:
        logger.info("Shutting down")
        sys.exit(0)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
