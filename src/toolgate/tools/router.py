"""Tool router: the single gateway between the agent and the filesystem/OS.

Every call runs the same sequence: resolve the definition, validate the
parameters, apply the safety policy, ask for confirmation when the tool is
dangerous, snapshot the affected files when it mutates, run the
implementation and record usage. ``execute`` never raises; each refusal or
failure comes back as a ``ToolCallResult`` with a readable ``error``.
"""

from __future__ import annotations

import asyncio
import json
import logging
import threading
import time
from collections.abc import Mapping
from typing import Any

from toolgate.snapshots import SnapshotCreator
from toolgate.tools import get_tool_registrations
from toolgate.tools.approval import Approver, TerminalApprover
from toolgate.tools.base import (
    ToolCallRequest,
    ToolCallResult,
    ToolContext,
    ToolDefinition,
    ToolUsage,
    UsageStats,
)
from toolgate.tools.registry import ToolRegistration, get_tool_definition, validate_tool_parameters
from toolgate.tools.safety import SafetyPolicy, request_paths
from toolgate.tools.usage import UsageLedger

CANCELLED_BY_USER = "Operation cancelled by user"


class ToolRouter:
    """Dispatch tool calls with validation, safety, approval and snapshots."""

    def __init__(
        self,
        context: ToolContext,
        *,
        approver: Approver | None = None,
        snapshots: SnapshotCreator | None = None,
        policy: SafetyPolicy | None = None,
        registrations: list[ToolRegistration] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.context = context
        self.approver = approver or TerminalApprover()
        self.snapshots = snapshots
        self.policy = policy or SafetyPolicy()
        self.logger = logger or logging.getLogger(__name__)
        self.ledger = UsageLedger()
        self.events: list[dict[str, Any]] = []
        self._events_lock = threading.Lock()
        regs = registrations if registrations is not None else get_tool_registrations()
        self._registrations: Mapping[str, ToolRegistration] = {reg.name.value: reg for reg in regs}

    def execute(self, request: ToolCallRequest) -> ToolCallResult:
        started = time.perf_counter()
        self._emit_event("start", request.tool, {})
        self._log_request(request)

        result = ToolCallResult.fail(f"{request.tool} was interrupted")
        try:
            result = self._run(request)
        except Exception as exc:
            self.logger.warning("tool %s aborted before completion", request.tool, exc_info=True)
            result = ToolCallResult.fail(f"Internal error while handling {request.tool}: {exc}")
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            self.ledger.record(
                ToolUsage(
                    tool=request.tool,
                    success=result.success,
                    execution_time=elapsed_ms,
                    snapshot_id=result.snapshot_id,
                )
            )
            self._emit_event("end", request.tool, {"success": result.success, "snapshot_id": result.snapshot_id})
            self._log_response(request.tool, result)
        return result

    def dispatch(self, name: str, *, session_id: str | None = None, **parameters: Any) -> ToolCallResult:
        return self.execute(ToolCallRequest(tool=name, parameters=parameters, session_id=session_id))

    async def aexecute(self, request: ToolCallRequest) -> ToolCallResult:
        """Run ``execute`` in a worker thread so concurrent calls do not block the loop."""

        return await asyncio.to_thread(self.execute, request)

    def get_usage_stats(self) -> UsageStats:
        return self.ledger.stats()

    def usage_history(self) -> list[ToolUsage]:
        return self.ledger.entries()

    def _run(self, request: ToolCallRequest) -> ToolCallResult:
        definition = get_tool_definition(request.tool)
        if definition is None:
            return self._refuse(request, f"Unknown tool: {request.tool}")

        validation = validate_tool_parameters(request.tool, request.parameters)
        if not validation.valid:
            return self._refuse(request, validation.error or "Invalid parameters")

        verdict = self.policy.check(request, self.context)
        if not verdict.safe:
            return self._refuse(request, verdict.reason or "Request blocked by safety policy")

        if definition.dangerous and self.context.allow_dangerous and not self._confirm(request):
            return self._refuse(request, CANCELLED_BY_USER)

        snapshot_id = self._snapshot(request, definition) if definition.needs_snapshot else None

        result = self._invoke(request)
        return result.model_copy(update={"snapshot_id": snapshot_id})

    def _refuse(self, request: ToolCallRequest, reason: str) -> ToolCallResult:
        self.logger.info("tool refused: %s reason=%s", request.tool, reason)
        return ToolCallResult.fail(reason)

    def _confirm(self, request: ToolCallRequest) -> bool:
        try:
            return bool(self.approver.confirm(request))
        except Exception:
            self.logger.warning("approval failed for %s; treating as refusal", request.tool, exc_info=True)
            return False

    def _snapshot(self, request: ToolCallRequest, definition: ToolDefinition) -> str | None:
        if self.snapshots is None:
            return None
        try:
            snapshot = self.snapshots.create_snapshot(
                reason=f"Before {definition.name.value}",
                session_id=request.session_id or self.context.session_id,
                files=request_paths(request),
                working_directory=self.context.working_directory,
            )
        except Exception:
            self.logger.warning("failed to create snapshot before %s", request.tool, exc_info=True)
            return None
        return snapshot.id

    def _invoke(self, request: ToolCallRequest) -> ToolCallResult:
        registration = self._registrations.get(request.tool)
        if registration is None:
            return ToolCallResult.fail(f"Unimplemented tool: {request.tool}")
        try:
            params = registration.input_model.model_validate(request.parameters)
            return registration.handler(params, self.context)
        except Exception as exc:
            self.logger.warning("tool %s failed: %s", request.tool, exc)
            return ToolCallResult.fail(str(exc) or f"{request.tool} failed: {type(exc).__name__}")

    def _emit_event(self, phase: str, tool_name: str, data: dict[str, Any]) -> None:
        with self._events_lock:
            self.events.append({"phase": phase, "tool": tool_name, **data})

    def _log_request(self, request: ToolCallRequest) -> None:
        self.logger.info("tool request: %s args=%s", request.tool, self._stringify(request.parameters))

    def _log_response(self, name: str, result: ToolCallResult) -> None:
        self.logger.debug("tool response: %s result=%s", name, self._stringify(result.model_dump()))

    @staticmethod
    def _stringify(obj: Any) -> str:
        try:
            text = json.dumps(obj, default=str)
        except (TypeError, ValueError):
            text = repr(obj)

        if len(text) > 2000:
            return f"{text[:2000]}... [truncated]"
        return text


__all__ = ["ToolRouter", "CANCELLED_BY_USER"]
