"""LangGraph agent definition for the newsdeck chat front end."""

import json
import logging
from typing import Literal

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import AIMessage, SystemMessage, ToolMessage
from langgraph.checkpoint.memory import InMemorySaver
from langgraph.graph import END, START, MessagesState, StateGraph

from newsdeck.tools import (
    add_feed,
    get_articles,
    list_feeds,
    load_more_articles,
    refresh_feeds,
    remove_feed,
    search_articles,
    select_category,
    select_feed,
    toggle_category,
    toggle_feed,
)

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"

SYSTEM_PROMPT = """You are newsdeck, a helpful assistant for reading news aggregated from RSS feeds.

You help users:
- Browse the latest articles across all their feeds, newest first
- Narrow the view to one feed or one category
- Search articles by keyword (accents and case are ignored)
- Hide or show feeds and whole categories
- Refresh feeds and add or remove feeds

When a user asks what's new or wants to see articles, use the get_articles tool.
When they want more results, use load_more_articles.
When they want a single source, use select_feed; for a topic group, use select_category.
Selecting a feed clears the category selection and vice versa. Call either with an empty value to show everything again.
When they search for something, use search_articles; an empty query clears the search.
When they want to hide or show a source or a category, use toggle_feed or toggle_category.
When they ask about their feeds or which ones are failing, use list_feeds.
When they ask to refresh, use refresh_feeds. If some feeds fail, say which and offer to retry.
When they want to subscribe to a new feed, use add_feed; to drop one, use remove_feed.
When the user's intent is unclear, ask a clarifying question rather than guessing.
Present articles in a readable format: title, source, date, link and a brief summary.
Be concise but informative in your responses."""

# All tools available to the agent
TOOLS = [
    get_articles,
    load_more_articles,
    search_articles,
    select_feed,
    select_category,
    toggle_feed,
    toggle_category,
    list_feeds,
    refresh_feeds,
    add_feed,
    remove_feed,
]


logger = logging.getLogger(__name__)


def run_tool_calls(message: AIMessage, tools_by_name: dict) -> list[ToolMessage]:
    """Execute every tool call on a model message, in order.

    A failing or unknown tool yields an error payload for the model instead
    of ending the turn.
    """
    results = []
    for call in message.tool_calls:
        tool = tools_by_name.get(call["name"])
        if tool is None:
            content = json.dumps({"status": "error", "message": f"Unknown tool '{call['name']}'"})
        else:
            try:
                content = str(tool.invoke(call["args"]))
            except Exception as e:
                logger.warning("Tool %s failed: %s", call["name"], e)
                content = json.dumps({"status": "error", "message": str(e)})
        results.append(ToolMessage(content=content, tool_call_id=call["id"], name=call["name"]))
    return results


def create_agent(tools: list | None = None, model: str = DEFAULT_MODEL):
    """Build the chat graph: the model node loops through the tools node until it answers.

    Args:
        tools: Tools to bind. Defaults to TOOLS.
        model: Anthropic model name.

    Returns:
        Compiled LangGraph agent with an in-memory checkpointer, so a
        conversation lasts as long as the process.
    """
    tools = TOOLS if tools is None else tools
    llm = ChatAnthropic(model=model, temperature=0)
    if tools:
        llm = llm.bind_tools(tools)
    tools_by_name = {t.name: t for t in tools}

    def call_model(state: MessagesState):
        response = llm.invoke([SystemMessage(content=SYSTEM_PROMPT), *state["messages"]])
        return {"messages": [response]}

    def call_tools(state: MessagesState):
        return {"messages": run_tool_calls(state["messages"][-1], tools_by_name)}

    def route(state: MessagesState) -> Literal["tools", "__end__"]:
        return "tools" if state["messages"][-1].tool_calls else END

    graph = StateGraph(MessagesState)
    graph.add_node("model", call_model)
    graph.add_node("tools", call_tools)
    graph.add_edge(START, "model")
    graph.add_conditional_edges("model", route, ["tools", END])
    graph.add_edge("tools", "model")

    return graph.compile(checkpointer=InMemorySaver())
