#!/usr/bin/env python3
"""
Sign a single ESR link and deliver the callback.
"""
import asyncio
import logging
import sys

from esrlink import AgentSettings, Identity, SigningAgent

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def run(uri: str) -> int:
    """
    Sign ``uri`` with the account from the environment.

    This example shows how to:
    1. Load the identity and settings from ESRLINK_* variables
    2. Submit a request to the agent
    3. Inspect the pipeline result
    """
    try:
        identity = Identity.from_env()
    except ValueError as e:
        print(f"ERROR: {e}")
        return 1
    settings = AgentSettings.from_env(debounce_seconds=0)

    agent = SigningAgent(identity, settings=settings)
    result = await agent.handle_incoming_request(uri)
    await agent.close()

    if not result.ok:
        print(f"Signing failed at {result.stage.value}: {result.error}")
        return 1

    print(f"Signed transaction {result.callback.payload['tx']}")
    print(f"Signature: {result.callback.payload['sig']}")
    print(f"Session saved for {result.session.actor}@{result.session.permission}")
    return 0


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("usage: sign_request.py <esr://...>")
        sys.exit(2)
    sys.exit(asyncio.run(run(sys.argv[1])))
