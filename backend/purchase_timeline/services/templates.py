"""Default step template for a new home purchase timeline."""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional

from purchase_timeline.models.enums import StepCategory, StepPriority


@dataclass(frozen=True)
class StepTemplate:
    """Blueprint for one step. Costs are in dollars."""
    title: str
    description: str
    days_from_start: int
    estimated_duration: int
    category: StepCategory
    icon: str
    priority: StepPriority
    is_required: bool
    estimated_cost: Optional[Decimal] = None
    external_url: Optional[str] = None
    dependencies: List[str] = field(default_factory=list)


DEFAULT_TIMELINE_STEPS: List[StepTemplate] = [
    StepTemplate(
        title="Offer Accepted",
        description=(
            "Your offer has been accepted by the seller. The home buying process "
            "officially begins. Prepare for the steps ahead."
        ),
        days_from_start=0,
        estimated_duration=1,
        category=StepCategory.LEGAL,
        icon="CheckCircle",
        priority=StepPriority.CRITICAL,
        is_required=True,
    ),
    StepTemplate(
        title="Purchase Contract Review",
        description=(
            "Review and sign the purchase agreement. Make sure you understand all "
            "clauses, contingencies and deadlines."
        ),
        days_from_start=1,
        estimated_duration=2,
        category=StepCategory.LEGAL,
        icon="FileText",
        priority=StepPriority.HIGH,
        is_required=True,
        dependencies=["Offer Accepted"],
    ),
    StepTemplate(
        title="Submit Earnest Money",
        description=(
            "Submit the earnest money deposit to show serious intent to purchase "
            "and secure your position as a buyer."
        ),
        days_from_start=2,
        estimated_duration=1,
        category=StepCategory.PAPERWORK,
        icon="DollarSign",
        priority=StepPriority.HIGH,
        is_required=True,
        estimated_cost=Decimal("5000"),
        dependencies=["Purchase Contract Review"],
    ),
    StepTemplate(
        title="Submit Mortgage Application",
        description=(
            "Complete and submit the mortgage application with all required "
            "documents. Respond quickly to lender requests."
        ),
        days_from_start=3,
        estimated_duration=3,
        category=StepCategory.FINANCING,
        icon="Building",
        priority=StepPriority.CRITICAL,
        is_required=True,
    ),
    StepTemplate(
        title="Schedule Home Inspection",
        description=(
            "Hire a qualified inspector to examine the property and identify "
            "problems before closing."
        ),
        days_from_start=7,
        estimated_duration=5,
        category=StepCategory.INSPECTION,
        icon="Search",
        priority=StepPriority.HIGH,
        is_required=True,
        estimated_cost=Decimal("500"),
        dependencies=["Purchase Contract Review"],
    ),
    StepTemplate(
        title="Property Appraisal",
        description=(
            "The lender orders an appraisal to confirm the loan amount matches "
            "the property's market value."
        ),
        days_from_start=10,
        estimated_duration=3,
        category=StepCategory.FINANCING,
        icon="TrendingUp",
        priority=StepPriority.HIGH,
        is_required=True,
        estimated_cost=Decimal("400"),
        dependencies=["Purchase Contract Review"],
    ),
    StepTemplate(
        title="Inspection Issues Resolution",
        description=(
            "Address issues found during inspection through negotiation or "
            "repairs."
        ),
        days_from_start=12,
        estimated_duration=5,
        category=StepCategory.INSPECTION,
        icon="Wrench",
        priority=StepPriority.MEDIUM,
        # Only needed when the inspection finds something
        is_required=False,
        dependencies=["Schedule Home Inspection"],
    ),
    StepTemplate(
        title="Mortgage Underwriting",
        description=(
            "The lender reviews the application for final approval. Answer "
            "requests for additional documentation promptly."
        ),
        days_from_start=15,
        estimated_duration=7,
        category=StepCategory.FINANCING,
        icon="Shield",
        priority=StepPriority.CRITICAL,
        is_required=True,
        dependencies=["Submit Mortgage Application"],
    ),
    StepTemplate(
        title="Final Walkthrough",
        description=(
            "Inspect the property one last time before closing and verify that "
            "agreed repairs are complete."
        ),
        days_from_start=28,
        estimated_duration=1,
        category=StepCategory.INSPECTION,
        icon="Eye",
        priority=StepPriority.HIGH,
        is_required=True,
        dependencies=["Inspection Issues Resolution"],
    ),
    StepTemplate(
        title="Closing Day",
        description=(
            "Sign the final documents, complete the transaction and get your keys."
        ),
        days_from_start=30,
        estimated_duration=1,
        category=StepCategory.CLOSING,
        icon="Key",
        priority=StepPriority.CRITICAL,
        is_required=True,
        estimated_cost=Decimal("3000"),
        dependencies=[
            "Offer Accepted",
            "Purchase Contract Review",
            "Submit Earnest Money",
            "Submit Mortgage Application",
            "Schedule Home Inspection",
            "Property Appraisal",
            "Inspection Issues Resolution",
            "Mortgage Underwriting",
            "Final Walkthrough",
        ],
    ),
]
