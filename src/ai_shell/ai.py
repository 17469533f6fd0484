"""AI helper — the boundary between the shell and a chat model.

The chat client itself (remote API, prompt format, JSON repair) lives
outside this package.  The shell only needs an object that satisfies
``ChatClient``: send a message, receive one structured ``ChatStep``.

A conversation is a loop of steps:

    1. **think**  — the model explains what it is about to do.
    2. **action** — the model asks the shell to run a tool; the only
       tool is ``run_shell_command``.  Its output is sent back as an
       **observe** message.
    3. **output** — the final answer; the loop ends.

Abandoning the loop (step limit, missing client, Ctrl+C) is the only
form of cancellation.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ai_shell.sinks import Sink

SHELL_TOOL = "run_shell_command"

# Upper bound on model round-trips for one prompt.
MAX_STEPS = 10


class StepKind(StrEnum):
    """The tag on each structured model response."""

    THINK = "think"
    ACTION = "action"
    OUTPUT = "output"
    OBSERVE = "observe"


@dataclass(frozen=True)
class ChatStep:
    """One structured message in a conversation."""

    step: StepKind
    content: str = ""
    tool: str | None = None
    input: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatStep:
        """Build a step from a decoded JSON response.

        Raises:
            ValueError: If ``step`` is missing or unknown.

        """
        try:
            kind = StepKind(data["step"])
        except (KeyError, ValueError) as e:
            msg = f"malformed step: {data!r}"
            raise ValueError(msg) from e
        return cls(
            step=kind,
            content=str(data.get("content") or ""),
            tool=data.get("tool"),
            input=data.get("input"),
        )

    def to_json(self) -> str:
        """Encode the step as the JSON message a client sends upstream."""
        data: dict[str, str] = {"step": str(self.step), "content": self.content}
        if self.tool is not None:
            data["tool"] = self.tool
        if self.input is not None:
            data["input"] = self.input
        return json.dumps(data)


class ChatClient(Protocol):
    """What the shell requires from a chat model binding."""

    def converse(self, message: str) -> ChatStep:
        """Send *message* and return the model's next step."""
        ...

    def list_models(self) -> list[str]:
        """Return the model names the client can use."""
        ...


def converse(
    client: ChatClient,
    prompt: str,
    *,
    run_command: Callable[[str], str],
    out: Sink,
    max_steps: int = MAX_STEPS,
) -> bool:
    """Drive one prompt through the think/action/output loop.

    Args:
        client: The chat model binding.
        prompt: The user's question.
        run_command: Runs a command line and returns its captured output.
        out: Where thoughts and the final answer are written.
        max_steps: Give up after this many model responses.

    Returns:
        True if the model produced an ``output`` step.

    """
    message = prompt
    for _ in range(max_steps):
        reply = client.converse(message)
        if reply.step is StepKind.OUTPUT:
            out.write(f"{reply.content}\n")
            return True
        if reply.step is StepKind.THINK:
            out.write(f"thinking: {reply.content}\n")
            message = ChatStep(step=StepKind.OBSERVE, content="continue").to_json()
        elif reply.step is StepKind.ACTION:
            if reply.tool != SHELL_TOOL:
                observation = f"unknown tool: {reply.tool}"
            else:
                out.write(f"running: {reply.input}\n")
                observation = run_command(reply.input or "")
            message = ChatStep(step=StepKind.OBSERVE, content=observation).to_json()
        else:
            message = ChatStep(step=StepKind.OBSERVE, content="unexpected step").to_json()
    return False
