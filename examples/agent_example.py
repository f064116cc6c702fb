#!/usr/bin/env python3
"""
Long-running agent: restores the saved session and reads ESR links from stdin.
"""
import asyncio
import logging
import sys

from esrlink import AgentSettings, Identity, SealedMessage, SigningAgent

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def print_message(message: SealedMessage) -> None:
    print(f"Sealed message from {message.sender} ({len(message.ciphertext)} bytes)")


async def main() -> None:
    identity = Identity.from_env()
    agent = SigningAgent(
        identity,
        settings=AgentSettings.from_env(rearm_after_sign=True),
        on_message=print_message,
    )

    restored = await agent.initialize()
    if restored.session:
        print(f"Listening on channel {restored.channel}")
    elif not restored.ok:
        print(f"Could not restore session: {restored.error}")

    print("Paste an esr:// link and press enter (Ctrl-D to quit)")
    try:
        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            uri = line.strip()
            if not uri:
                continue
            result = await agent.handle_incoming_request(uri)
            if result.dropped:
                print("Busy, request dropped")
            elif result.ok:
                print(f"Signed {result.callback.payload['tx']}")
            else:
                print(f"Failed at {result.stage.value}: {result.error}")
    finally:
        await agent.close()


if __name__ == "__main__":
    asyncio.run(main())
