"""
Schemas for the query planning stage.

Each downstream tool gets its own parameter model, tagged by
``tool_name``, so a misspelled parameter is a validation error instead
of a silently ignored dict key.  Parameters serialize with camelCase
aliases (``projectName``, ``dateRange``) to match the tool signatures
the LLM sees.
"""

from __future__ import annotations

from datetime import date
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

from nlpipe.schemas.intent import Currency, MovementType, Role


class DateRange(BaseModel):
    start: date
    end: date

    model_config = ConfigDict(frozen=True)


class _ToolParameters(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )

    def to_arguments(self) -> dict[str, Any]:
        """Tool arguments as the LLM sees them (camelCase, no empty fields)."""
        return self.model_dump(
            mode="json", by_alias=True, exclude_none=True, exclude={"tool_name"},
        )


class NoToolParameters(_ToolParameters):
    tool_name: Literal["none"] = "none"


class DateRangeMovementsParameters(_ToolParameters):
    tool_name: Literal["getDateRangeMovements"] = "getDateRangeMovements"
    project_name: str | None = None
    contact_name: str | None = None
    wallet: str | None = None
    category: str | None = None
    currency: Currency | None = None
    type: MovementType | None = None
    role: Role | None = None
    date_range: DateRange | None = None


class OrganizationBalanceParameters(_ToolParameters):
    tool_name: Literal["getOrganizationBalance"] = "getOrganizationBalance"
    currency: Currency | None = None
    date_range: DateRange | None = None


class ProjectFinancialSummaryParameters(_ToolParameters):
    tool_name: Literal["getProjectFinancialSummary"] = "getProjectFinancialSummary"
    project_name: str | None = None
    currency: Currency | None = None
    date_range: DateRange | None = None


class ContactMovementsParameters(_ToolParameters):
    tool_name: Literal["getContactMovements"] = "getContactMovements"
    contact_name: str | None = None
    project_name: str | None = None
    currency: Currency | None = None
    type: MovementType | None = None
    date_range: DateRange | None = None


class PaymentsByContactParameters(_ToolParameters):
    tool_name: Literal["getTotalPaymentsByContactAndProject"] = "getTotalPaymentsByContactAndProject"
    contact_name: str | None = None
    project_name: str | None = None
    currency: Currency | None = None
    role: Role | None = None


class RoleSpendingParameters(_ToolParameters):
    tool_name: Literal["getRoleSpending"] = "getRoleSpending"
    role: Role | None = None
    project_name: str | None = None
    currency: Currency | None = None
    date_range: DateRange | None = None


class CashflowTrendParameters(_ToolParameters):
    tool_name: Literal["getCashflowTrend"] = "getCashflowTrend"
    project_name: str | None = None
    wallet: str | None = None
    currency: Currency | None = None
    date_range: DateRange | None = None


class ClientCommitmentsParameters(_ToolParameters):
    tool_name: Literal["getClientCommitments"] = "getClientCommitments"
    project_name: str | None = None
    contact_name: str | None = None
    currency: Currency | None = None


class ProjectsListParameters(_ToolParameters):
    tool_name: Literal["getProjectsList"] = "getProjectsList"


class ProjectDetailsParameters(_ToolParameters):
    tool_name: Literal["getProjectDetails"] = "getProjectDetails"
    project_name: str | None = None


ToolParameters = Annotated[
    Union[
        NoToolParameters,
        DateRangeMovementsParameters,
        OrganizationBalanceParameters,
        ProjectFinancialSummaryParameters,
        ContactMovementsParameters,
        PaymentsByContactParameters,
        RoleSpendingParameters,
        CashflowTrendParameters,
        ClientCommitmentsParameters,
        ProjectsListParameters,
        ProjectDetailsParameters,
    ],
    Field(discriminator="tool_name"),
]

# tool name → parameter model
PARAMETERS_BY_TOOL: dict[str, type[_ToolParameters]] = {
    model.model_fields["tool_name"].default: model
    for model in (
        NoToolParameters,
        DateRangeMovementsParameters,
        OrganizationBalanceParameters,
        ProjectFinancialSummaryParameters,
        ContactMovementsParameters,
        PaymentsByContactParameters,
        RoleSpendingParameters,
        CashflowTrendParameters,
        ClientCommitmentsParameters,
        ProjectsListParameters,
        ProjectDetailsParameters,
    )
}


class QueryPlan(BaseModel):
    """Tool name + typed parameters handed to the tool-calling collaborator."""
    parameters: ToolParameters = Field(default_factory=NoToolParameters)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: str = ""

    @computed_field  # type: ignore[prop-decorator]
    @property
    def tool_name(self) -> str:
        return self.parameters.tool_name
