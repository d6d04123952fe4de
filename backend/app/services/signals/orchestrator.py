"""
Top-level entry point for automatic signal processing.

Flow (LangGraph):
    START -> build_context -> [unmatched -> END]
          -> plan -> run_processors -> apply_actions -> END

Processors run at most once per kind. The application is reloaded before
state actions are applied so processor writes are visible.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from langgraph.graph import END, START, StateGraph
from sqlalchemy.orm import Session
from typing_extensions import TypedDict

from ...models import Signal
from ..notifier import ErrorNotifier, notifier as default_notifier
from .action_applier import ActionApplier
from .application_status_processor import ApplicationStatusProcessor
from .base_processor import NOT_MATCHED
from .interview_round_processor import InterviewRoundProcessor
from .planner import plan
from .round_feedback_processor import RoundFeedbackProcessor
from .state_context import StateContext
from .types import ActionKind, PlannedAction

logger = logging.getLogger(__name__)

# processor directive -> (result key, processor class)
PROCESSORS: Dict[ActionKind, tuple] = {
    ActionKind.RUN_INTERVIEW_ROUND_PROCESSOR: ("interview_round", InterviewRoundProcessor),
    ActionKind.RUN_ROUND_FEEDBACK_PROCESSOR: ("round_feedback", RoundFeedbackProcessor),
    ActionKind.RUN_STATUS_PROCESSOR: ("application_status", ApplicationStatusProcessor),
}


class OrchestrationState(TypedDict, total=False):
    """State that flows through the orchestration graph."""
    signal: Signal
    context: StateContext
    actions: List[PlannedAction]
    processor_results: Dict[str, dict]
    applied_actions: List[dict]
    skipped_reason: Optional[str]


class SignalOrchestrator:
    def __init__(
        self,
        db: Session,
        *,
        processor_options: Optional[Dict[str, Any]] = None,
        notifier: Optional[ErrorNotifier] = None,
        applier_factory: Callable[..., ActionApplier] = ActionApplier,
    ):
        self.db = db
        self.notifier = notifier or default_notifier
        # Extra kwargs for processors (e.g. runner_factory in tests/scripts)
        self.processor_options = dict(processor_options or {})
        self.processor_options.setdefault("notifier", self.notifier)
        self.applier_factory = applier_factory
        self.graph = self._build_graph()

    def _build_graph(self):
        graph = StateGraph(OrchestrationState)
        graph.add_node("build_context", self._build_context_node)
        graph.add_node("plan", self._plan_node)
        graph.add_node("run_processors", self._run_processors_node)
        graph.add_node("apply_actions", self._apply_actions_node)

        graph.add_edge(START, "build_context")
        graph.add_conditional_edges(
            "build_context",
            lambda state: "plan" if state["context"].matched else END,
            ["plan", END],
        )
        graph.add_edge("plan", "run_processors")
        graph.add_edge("run_processors", "apply_actions")
        graph.add_edge("apply_actions", END)
        return graph.compile()

    def process(self, signal: Signal) -> dict:
        try:
            if not signal.matched:
                logger.info("[SignalOrchestrator] Signal #%s skipped: %s", signal.id, NOT_MATCHED)
                return {"success": False, "skipped": True, "reason": NOT_MATCHED}

            final = self.graph.invoke({"signal": signal, "processor_results": {}, "applied_actions": []})
            if final.get("skipped_reason"):
                return {"success": False, "skipped": True, "reason": final["skipped_reason"]}
            return {
                "success": True,
                "actions": [a.as_dict() for a in final.get("actions", [])],
                "processor_results": final.get("processor_results", {}),
                "applied_actions": final.get("applied_actions", []),
            }
        except Exception as e:
            self.db.rollback()
            self.notifier.notify(
                e,
                {
                    "component": "SignalOrchestrator",
                    "signal_id": signal.id,
                    "application_id": signal.interview_application_id,
                },
            )
            return {"success": False, "error": str(e)}

    # -- graph nodes --------------------------------------------------------

    def _build_context_node(self, state: OrchestrationState) -> dict:
        context = StateContext.build(state["signal"])
        if not context.matched:
            return {"context": context, "skipped_reason": NOT_MATCHED}
        return {"context": context}

    def _plan_node(self, state: OrchestrationState) -> dict:
        context = state["context"]
        actions = plan(context)
        logger.info(
            "[SignalOrchestrator] Signal #%s (%s) planned: %s",
            context.signal.id, context.signal_type.value, [a.kind.value for a in actions],
        )
        return {"actions": actions}

    def _run_processors_node(self, state: OrchestrationState) -> dict:
        signal = state["context"].signal
        results: Dict[str, dict] = {}
        seen = set()
        for action in state["actions"]:
            if not action.is_processor or action.kind in seen:
                continue
            seen.add(action.kind)
            key, processor_cls = PROCESSORS[action.kind]
            results[key] = processor_cls(self.db, signal, **self.processor_options).process()
        return {"processor_results": results}

    def _apply_actions_node(self, state: OrchestrationState) -> dict:
        context = state["context"]
        state_actions = [a for a in state["actions"] if not a.is_processor]
        if not state_actions:
            return {"applied_actions": []}
        applier = self.applier_factory(self.db, context.application, notifier=self.notifier)
        return {"applied_actions": applier.apply(state_actions)}
