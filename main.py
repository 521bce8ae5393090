#!/usr/bin/env python3
"""Entry point for the Stratos relay service.

Subscribes to Stratos chain events and forwards them to the SDS indexing node
HTTP API until interrupted.
"""

import argparse
import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from stratos_relay.errors import SubscriptionError
from stratos_relay.relayer import StratosRelay


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


logger = logging.getLogger(__name__)


async def main() -> None:
    """Main entry point for the Stratos relay.

    Raises:
        SystemExit: On configuration, subscription or runtime errors
    """
    load_dotenv()

    parser = argparse.ArgumentParser(
        description="Stratos Relay - forward Stratos chain events to the SDS indexing node",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  STRATOS_CHAIN_WS_URL  - Tendermint RPC websocket (default: ws://127.0.0.1:26657/websocket)
  SDS_NETWORK_ADDRESS   - SP node host
  SDS_API_PORT          - SP node HTTP API port
  P2P_ADDRESS_PREFIX    - bech32 prefix of forwarded addresses (default: stsds)
  REQUEST_TIMEOUT       - Forward timeout in seconds (default: HTTP client default)
  MAX_RETRIES           - Websocket reconnect attempts (default: 5)
  STATUS_LOG_INTERVAL   - Seconds between status lines (default: 60)
  LOG_LEVEL             - Logging level (can be overridden with --log-level)
        """
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    args = parser.parse_args()

    setup_logging(args.log_level)
    logger.info("=== Stratos Relay Starting ===")

    relay = None
    try:
        relay = StratosRelay.from_env()
        await relay.run()

    except ValueError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your environment variables:")
        logger.error("  - SDS_NETWORK_ADDRESS: SP node host")
        logger.error("  - SDS_API_PORT: SP node HTTP API port")
        logger.error("  - STRATOS_CHAIN_WS_URL: Tendermint RPC websocket endpoint")
        logger.error("  - P2P_ADDRESS_PREFIX: bech32 prefix of forwarded addresses")
        sys.exit(1)

    except SubscriptionError as e:
        logger.error(f"Subscription Error: {e}")
        sys.exit(1)

    except KeyboardInterrupt:
        logger.info("Received interrupt signal, shutting down...")
        if relay is not None:
            relay.stop()

    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
