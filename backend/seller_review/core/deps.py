from typing import Annotated

from fastapi import Header, Request

from seller_review.services.workflow import ApprovalWorkflow


def get_workflow(request: Request) -> ApprovalWorkflow:
    """Return the app-wide workflow built during startup."""
    return request.app.state.workflow


def get_reviewer(
    x_reviewer: Annotated[str | None, Header(description="Email of the reviewing admin")] = None,
) -> str | None:
    """Reviewer identity forwarded by the auth gateway in front of this service."""
    return x_reviewer.strip() if x_reviewer and x_reviewer.strip() else None
