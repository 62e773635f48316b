"""Intent models for natural language automation requests.

These Pydantic models define the structured form of a user's request:
what starts the automation, which steps it performs in order, and the
constraints the designed graph must satisfy.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

TriggerType = Literal["manual", "schedule", "webhook", "event"]


class IntentStep(BaseModel):
    """One ordered step the automation performs.

    Attributes:
        action: Short verb-like action name (fetch, transform, notify, ...)
        parameters: Step parameters extracted from the request
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    action: str = Field(
        ...,
        min_length=1,
        description="Action name, resolved to a node kind by the designer",
    )
    parameters: dict[str, Any] = Field(
        default_factory=dict,
        description="Parameters extracted for this step",
    )


class IntentConstraints(BaseModel):
    """Limits the designed graph must respect.

    Attributes:
        max_nodes: Upper bound on node count, trigger included
        allowed_integrations: Whitelist of integrations; None allows all
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    max_nodes: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum number of nodes in the graph",
    )
    allowed_integrations: Optional[list[str]] = Field(
        default=None,
        description="Integrations the graph may use; None means no restriction",
    )


class Intent(BaseModel):
    """Structured request extracted from the conversation.

    An Intent is replaced wholesale on re-extraction, never merged with the
    previous one. ``version`` is bumped by the orchestrator on every
    replacement so later stages can tell which intent they designed from.

    Attributes:
        goal: One-sentence description of what the automation achieves
        trigger: What starts the automation
        steps: Ordered steps executed after the trigger
        constraints: Design constraints
        version: Replacement counter, starting at 1
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    goal: str = Field(
        ...,
        min_length=1,
        description="What the automation achieves",
    )
    trigger: TriggerType = Field(
        ...,
        description="What starts the automation",
    )
    steps: list[IntentStep] = Field(
        default_factory=list,
        description="Ordered steps after the trigger",
    )
    constraints: IntentConstraints = Field(
        default_factory=IntentConstraints,
        description="Design constraints",
    )
    version: int = Field(
        default=1,
        ge=1,
        description="Replacement counter",
    )

    def describe(self) -> str:
        """Return a short human-readable summary for confirmation prompts."""
        if self.steps:
            actions = ", then ".join(step.action for step in self.steps)
        else:
            actions = "nothing yet"
        return f"{self.goal} (trigger: {self.trigger}; steps: {actions})"
