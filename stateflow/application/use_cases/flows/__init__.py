"""Flow use cases."""

from stateflow.application.use_cases.flows.run_state_flow import StateFlowRunner

__all__ = ["StateFlowRunner"]
