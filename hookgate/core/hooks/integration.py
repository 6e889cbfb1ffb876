"""Integration helpers for applying hook decisions to a conversation.

This module is the reference consumer of the engine: it keeps a
transcript, runs hooks through an injected runner, and only calls the
model or a tool when the resolved outcome allows it.
"""

import asyncio
import time
from typing import Any, Callable, Dict, List, Literal, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from hookgate.core.config import EngineSettings
from hookgate.core.hooks.config import HookCommand, HooksConfig
from hookgate.core.hooks.coordinator import (
    EventOutcome,
    ExecutionCoordinator,
    MutationKind,
    TranscriptMutation,
)
from hookgate.core.hooks.events import (
    AnyHookInput,
    HookEvent,
    HookResult,
    ParsedOutput,
    PermissionDecision,
    PostToolUseInput,
    PreToolUseInput,
    StopInput,
    UserPromptSubmitInput,
)
from hookgate.core.hooks.parser import OutputInterpreter
from hookgate.utils.log import get_logger

logger = get_logger()

HOOK_SOURCE = "hook"


class TranscriptMessage(BaseModel):
    """One entry of the conversation as the model will see it."""

    role: Literal["user", "assistant", "tool"]
    content: str = ""
    error: Optional[str] = None
    source: Optional[str] = None
    tool_name: Optional[str] = None
    annotations: List[str] = Field(default_factory=list)


class Transcript(BaseModel):
    """Ordered conversation messages."""

    messages: List[TranscriptMessage] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.messages)

    def add_user(self, content: str) -> TranscriptMessage:
        return self._append(TranscriptMessage(role="user", content=content))

    def add_assistant(self, content: str) -> TranscriptMessage:
        return self._append(TranscriptMessage(role="assistant", content=content))

    def add_tool_result(self, tool_name: str, content: str) -> TranscriptMessage:
        return self._append(TranscriptMessage(role="tool", content=content, tool_name=tool_name))

    def _append(self, message: TranscriptMessage) -> TranscriptMessage:
        self.messages.append(message)
        return message

    def remove_last_user_message(self) -> Optional[TranscriptMessage]:
        for index in range(len(self.messages) - 1, -1, -1):
            message = self.messages[index]
            if message.role == "user" and message.source != HOOK_SOURCE:
                return self.messages.pop(index)
        return None

    def annotate_last_tool_result(self, text: str, tool_name: Optional[str] = None) -> None:
        """Attach ``text`` to the latest tool result.

        When the tool never ran the annotation becomes the tool result.
        """
        for message in reversed(self.messages):
            if message.role == "tool" and message.source != HOOK_SOURCE:
                message.annotations.append(text)
                return
        self.add_hook_tool_result(text, tool_name=tool_name)

    def add_hook_tool_result(self, text: str, tool_name: Optional[str] = None) -> TranscriptMessage:
        """Stand in for a tool result the hooks prevented."""
        return self._append(
            TranscriptMessage(
                role="tool", content=text, error=text, source=HOOK_SOURCE, tool_name=tool_name
            )
        )

    def apply_mutation(
        self,
        mutation: TranscriptMutation,
        tool_name: Optional[str] = None,
        tool_pending: bool = False,
    ) -> None:
        if mutation.kind == MutationKind.REMOVE_LAST_USER_MESSAGE:
            self.remove_last_user_message()
        elif mutation.kind == MutationKind.APPEND_ERROR_MESSAGE:
            self._append(
                TranscriptMessage(role="assistant", error=mutation.text, source=HOOK_SOURCE)
            )
        elif mutation.kind == MutationKind.APPEND_CONTEXT_MESSAGE:
            self._append(
                TranscriptMessage(role=mutation.role, content=mutation.text or "", source=HOOK_SOURCE)
            )
        elif mutation.kind == MutationKind.ANNOTATE_TOOL_RESULT:
            if tool_pending:
                self.add_hook_tool_result(mutation.text or "", tool_name=tool_name)
            else:
                self.annotate_last_tool_result(mutation.text or "", tool_name=tool_name)

    def apply_outcome(
        self,
        outcome: EventOutcome,
        tool_name: Optional[str] = None,
        tool_pending: bool = False,
    ) -> None:
        """Apply every mutation of ``outcome`` in order.

        With ``tool_pending`` the tool has not run yet, so annotations
        become its result instead of decorating an earlier one.
        """
        for mutation in outcome.transcript_mutations:
            self.apply_mutation(mutation, tool_name=tool_name, tool_pending=tool_pending)


class HookRunner(Protocol):
    """Runs one hook process and reports its raw result."""

    async def __call__(self, command: HookCommand, input_data: AnyHookInput) -> HookResult: ...


class HookDispatcher:
    """Parses and resolves hook results for one agent.

    The dispatcher owns its interpreter and coordinator; nothing is shared
    through module state.
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        config: Optional[HooksConfig] = None,
        runner: Optional[HookRunner] = None,
    ):
        self.settings = settings or EngineSettings()
        self.config = config or HooksConfig()
        self.runner = runner
        self.interpreter = OutputInterpreter(self.settings)
        self.coordinator = ExecutionCoordinator(self.settings)

    def interpret(self, event: HookEvent, results: Sequence[HookResult]) -> List[ParsedOutput]:
        return [self.interpreter.parse(result, event) for result in results]

    def dispatch(self, event: HookEvent, results: Sequence[HookResult]) -> EventOutcome:
        """Resolve already-settled results, given in registration order."""
        return self.coordinator.resolve(event, self.interpret(event, results))

    async def dispatch_async(
        self,
        event: HookEvent,
        hooks: Sequence[HookCommand],
        input_data: AnyHookInput,
        runner: Optional[HookRunner] = None,
    ) -> EventOutcome:
        """Run ``hooks`` concurrently, then resolve them in registration order."""
        active_runner = runner or self.runner
        if active_runner is None:
            raise ValueError("No hook runner configured")

        results = await asyncio.gather(
            *(self._run_hook(active_runner, hook, input_data) for hook in hooks)
        )
        return self.dispatch(event, results)

    async def run_event(
        self,
        event: HookEvent,
        input_data: AnyHookInput,
        tool_name: Optional[str] = None,
    ) -> EventOutcome:
        """Run the registered hooks for ``event`` and resolve them."""
        hooks = self.config.get_hooks_for_event(event, tool_name)
        if not hooks:
            return self.coordinator.resolve(event, [])
        return await self.dispatch_async(event, hooks, input_data)

    async def _run_hook(
        self, runner: HookRunner, hook: HookCommand, input_data: AnyHookInput
    ) -> HookResult:
        started = time.monotonic()
        try:
            return await asyncio.wait_for(runner(hook, input_data), timeout=hook.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[hooks.integration] Hook timed out after {hook.timeout}s: {hook.command}")
            return HookResult(
                success=False,
                exit_code=1,
                duration=int((time.monotonic() - started) * 1000),
                timed_out=True,
            )
        except Exception as e:
            logger.error(f"[hooks.integration] Hook execution failed: {hook.command}: {e}")
            return HookResult(
                success=False,
                exit_code=1,
                stderr=str(e),
                duration=int((time.monotonic() - started) * 1000),
            )


class ToolRun(BaseModel):
    """What happened to one tool call."""

    executed: bool = False
    output: Any = None
    tool_input: Dict[str, Any] = Field(default_factory=dict)
    pre_outcome: EventOutcome
    post_outcome: Optional[EventOutcome] = None


class AgentSession:
    """Drives one conversation through the hook lifecycle.

    Hook results are supplied by the caller (already run), which keeps
    this class free of process handling. Only one event is applied at a
    time per session.
    """

    def __init__(
        self,
        dispatcher: Optional[HookDispatcher] = None,
        transcript: Optional[Transcript] = None,
        session_id: Optional[str] = None,
        cwd: Optional[str] = None,
    ):
        self.dispatcher = dispatcher or HookDispatcher()
        self.transcript = transcript or Transcript()
        self.session_id = session_id
        self.cwd = cwd

    def prompt_input(self, prompt: str) -> UserPromptSubmitInput:
        return UserPromptSubmitInput(session_id=self.session_id, cwd=self.cwd, user_prompt=prompt)

    def pre_tool_input(self, tool_name: str, tool_input: Dict[str, Any]) -> PreToolUseInput:
        return PreToolUseInput(
            session_id=self.session_id, cwd=self.cwd, tool_name=tool_name, tool_input=tool_input
        )

    def post_tool_input(
        self, tool_name: str, tool_input: Dict[str, Any], tool_output: Any
    ) -> PostToolUseInput:
        return PostToolUseInput(
            session_id=self.session_id,
            cwd=self.cwd,
            tool_name=tool_name,
            tool_input=tool_input,
            tool_output=tool_output,
        )

    def stop_input(self) -> StopInput:
        return StopInput(session_id=self.session_id, cwd=self.cwd)

    def submit_prompt(
        self,
        prompt: str,
        hook_results: Sequence[HookResult],
        call_model: Callable[[Transcript], str],
    ) -> EventOutcome:
        """Record the prompt, apply UserPromptSubmit hooks, then maybe call the model."""
        self.transcript.add_user(prompt)
        outcome = self.dispatcher.dispatch(HookEvent.USER_PROMPT_SUBMIT, hook_results)
        self.transcript.apply_outcome(outcome)

        if not outcome.should_continue:
            logger.debug("[hooks.integration] Prompt blocked, model not called")
            return outcome

        self.transcript.add_assistant(call_model(self.transcript))
        return outcome

    def run_tool(
        self,
        tool_name: str,
        tool_input: Dict[str, Any],
        call_tool: Callable[[Dict[str, Any]], Any],
        pre_results: Sequence[HookResult] = (),
        post_results: Sequence[HookResult] = (),
        confirm: Optional[Callable[[str, Optional[str]], bool]] = None,
    ) -> ToolRun:
        """Gate a tool call with PreToolUse hooks and annotate it with PostToolUse hooks.

        ``confirm`` is asked when a hook answers "ask"; without it the call
        does not run.
        """
        pre_outcome = self.dispatcher.dispatch(HookEvent.PRE_TOOL_USE, pre_results)
        self.transcript.apply_outcome(pre_outcome, tool_name=tool_name, tool_pending=True)
        gate = pre_outcome.tool_gate
        run = ToolRun(tool_input=tool_input, pre_outcome=pre_outcome)

        if gate is not None and not gate.should_proceed:
            if gate.decision != PermissionDecision.ASK:
                return run
            approved = confirm is not None and confirm(tool_name, gate.reason)
            if not approved:
                reason = gate.reason or "Tool use requires user confirmation"
                self.transcript.add_hook_tool_result(reason, tool_name=tool_name)
                return run

        if gate is not None and gate.updated_input is not None:
            run.tool_input = gate.updated_input

        run.output = call_tool(run.tool_input)
        run.executed = True
        self.transcript.add_tool_result(tool_name, str(run.output))

        post_outcome = self.dispatcher.dispatch(HookEvent.POST_TOOL_USE, post_results)
        self.transcript.apply_outcome(post_outcome, tool_name=tool_name)
        run.post_outcome = post_outcome
        return run

    def finish_turn(self, final_response: str, hook_results: Sequence[HookResult]) -> EventOutcome:
        """Record the final response and apply Stop hooks.

        ``block_stop`` on the returned outcome means the agent must take
        another turn.
        """
        self.transcript.add_assistant(final_response)
        outcome = self.dispatcher.dispatch(HookEvent.STOP, hook_results)
        self.transcript.apply_outcome(outcome)
        return outcome
