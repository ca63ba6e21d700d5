"""Entry point for newsdeck: python -m newsdeck"""

import asyncio
import logging
import os
import uuid

from langchain_core.messages import HumanMessage

from newsdeck.agent import create_agent
from newsdeck.reader import FeedReader
from newsdeck.registry import load_registry
from newsdeck.tools import set_reader
from newsdeck.transport import DEFAULT_TIMEOUT, Transport

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(message)s",
    datefmt="%H:%M:%S",
)
# Quiet noisy loggers
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("langchain").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def chat_loop(agent, config: dict) -> None:
    """Run the interactive chat loop."""
    print("newsdeck ready! Ask for the latest news (Ctrl+C to quit).\n")

    while True:
        try:
            user_input = await asyncio.to_thread(input, "You: ")
        except EOFError:
            break

        if not user_input.strip():
            continue

        try:
            response = await asyncio.to_thread(
                agent.invoke,
                {"messages": [HumanMessage(content=user_input)]},
                config,
            )

            last_message = response["messages"][-1]
            print(f"\nnewsdeck: {last_message.content}\n")
        except Exception as e:
            logger.debug("Agent turn failed", exc_info=True)
            if "tool_use" in str(e) and "tool_result" in str(e):
                # A half-finished tool exchange is stuck in the thread; start over
                config["configurable"]["thread_id"] = uuid.uuid4().hex
                print("\nnewsdeck: I lost track of our conversation. Please ask again.\n")
            else:
                print(f"\nnewsdeck: Sorry, I encountered an error: {e}\n")


def _proxies_from_env() -> list[str]:
    raw = os.environ.get("NEWSDECK_PROXIES", "")
    return [p.strip() for p in raw.split(",") if p.strip()]


async def main() -> None:
    """Initialize the reader, start loading feeds and run the chat loop."""
    descriptors = load_registry(os.environ.get("NEWSDECK_FEEDS_FILE") or None)
    transport = Transport(
        proxies=_proxies_from_env(),
        timeout=float(os.environ.get("NEWSDECK_TIMEOUT", DEFAULT_TIMEOUT)),
    )

    reader = FeedReader(descriptors, transport=transport)
    set_reader(reader, asyncio.get_running_loop())

    agent = create_agent()
    config = {"configurable": {"thread_id": uuid.uuid4().hex}}

    # Initial load plus background poller
    reader.start()

    try:
        await chat_loop(agent, config)
    finally:
        await reader.close()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nGoodbye!")


if __name__ == "__main__":
    run()
