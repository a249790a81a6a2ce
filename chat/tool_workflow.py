"""Tool execution workflow management."""

from typing import Optional


def process_tool_execution(tool_call, conversation, tool_executor) -> Optional[dict]:
    """Run one detected tool call and record its outcome in the conversation.

    The rendered output (or error) is appended as a user-role turn so the
    next model invocation can read it. Transport failures propagate.

    Returns the executor's result dict, or None when there was no call.
    """
    if tool_call is None:
        return None

    result = tool_executor.execute_tool(tool_call.name, tool_call.arguments)
    conversation.add_tool_result(result["content"])
    return result
