"""Request workflow package."""

from familybank.workflow.requests import RequestWorkflow

__all__ = ["RequestWorkflow"]
