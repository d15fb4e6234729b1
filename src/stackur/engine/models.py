"""Data models for the desired template, remote snapshot, change sets and events."""

import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


TEMPLATE_FORMAT_VERSION = "2010-09-09"

# Resource type CloudFormation reports for the stack itself in its event stream
STACK_RESOURCE_TYPE = "AWS::CloudFormation::Stack"


class ResourceDefinition(BaseModel):
    """Backend-native resource fragment: a kind plus its property bag."""

    type: str = Field(..., min_length=1, description="CloudFormation type, e.g. AWS::S3::Bucket")
    properties: Dict[str, Any] = Field(default_factory=dict)
    depends_on: List[str] = Field(default_factory=list)
    logical_id: Optional[str] = Field(
        None, description="Logical id suggested by the compiler for secondary fragments"
    )

    def to_cfn(self) -> Dict[str, Any]:
        """Convert to the CloudFormation template shape."""
        resource: Dict[str, Any] = {"Type": self.type, "Properties": self.properties}
        if self.depends_on:
            resource["DependsOn"] = self.depends_on
        return resource

    @classmethod
    def from_cfn(cls, data: Dict[str, Any]) -> "ResourceDefinition":
        """Create a definition from a CloudFormation template entry."""
        depends_on = data.get("DependsOn", [])
        if isinstance(depends_on, str):
            depends_on = [depends_on]
        return cls(
            type=data["Type"],
            properties=data.get("Properties", {}) or {},
            depends_on=depends_on,
        )


class Template(BaseModel):
    """Desired state document: logical name -> resource definition.

    Resources serialize in insertion order; re-adding a name replaces its
    definition in place.
    """

    format_version: str = TEMPLATE_FORMAT_VERSION
    resources: Dict[str, ResourceDefinition] = Field(default_factory=dict)

    def upsert(self, name: str, definition: ResourceDefinition) -> None:
        """Insert or replace the definition for a logical name."""
        self.resources[name] = definition

    def get(self, name: str) -> Optional[ResourceDefinition]:
        """Get the definition for a logical name."""
        return self.resources.get(name)

    def is_empty(self) -> bool:
        """Check if no resource has been added yet."""
        return not self.resources

    def to_cfn(self) -> Dict[str, Any]:
        """Convert to a CloudFormation template body."""
        return {
            "AWSTemplateFormatVersion": self.format_version,
            "Resources": {name: resource.to_cfn() for name, resource in self.resources.items()},
        }

    def to_json(self, indent: Optional[int] = None) -> str:
        """Serialize deterministically for submission or diagnostics."""
        return json.dumps(self.to_cfn(), indent=indent)

    @classmethod
    def from_cfn(cls, data: Dict[str, Any]) -> "Template":
        """Create a template from a CloudFormation template body."""
        return cls(
            format_version=data.get("AWSTemplateFormatVersion", TEMPLATE_FORMAT_VERSION),
            resources={
                name: ResourceDefinition.from_cfn(resource)
                for name, resource in (data.get("Resources") or {}).items()
            },
        )


@dataclass
class RemoteState:
    """Last known copy of the backend's view of the stack."""

    exists: bool = False
    template: Optional[Dict[str, Any]] = None
    refreshed_at: Optional[datetime] = None

    def snapshot(self) -> str:
        """Stable serialization used to compare snapshots."""
        return json.dumps({"exists": self.exists, "template": self.template}, sort_keys=True, default=str)


class ChangeSetType(Enum):
    """Whether a change set creates the stack or updates it."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"


class CommitResult(Enum):
    """Outcome of a commit that did not fail."""
    APPLIED = "applied"
    NO_CHANGES = "no_changes"
    REJECTED = "rejected"
    ROLLED_BACK = "rolled_back"


@dataclass
class ResourceChange:
    """One planned change inside a change set."""

    action: str
    logical_id: str
    resource_type: str
    physical_id: Optional[str] = None
    replacement: Optional[str] = None

    @classmethod
    def from_response(cls, change: Dict[str, Any]) -> "ResourceChange":
        """Build from a DescribeChangeSet ``Changes`` entry."""
        resource_change = change.get("ResourceChange", {})
        return cls(
            action=resource_change.get("Action", ""),
            logical_id=resource_change.get("LogicalResourceId", ""),
            resource_type=resource_change.get("ResourceType", ""),
            physical_id=resource_change.get("PhysicalResourceId"),
            replacement=resource_change.get("Replacement"),
        )


@dataclass
class ChangeSet:
    """Backend-computed transaction between desired and current state."""

    # Terminal planning statuses of a change set
    TERMINAL_STATUSES = ("CREATE_COMPLETE", "DELETE_COMPLETE", "FAILED")

    name: str
    stack_name: str
    status: str
    execution_status: Optional[str] = None
    status_reason: Optional[str] = None
    changes: List[ResourceChange] = field(default_factory=list)

    def is_terminal(self) -> bool:
        """Check if planning has finished one way or the other."""
        return self.status in self.TERMINAL_STATUSES

    def is_empty(self) -> bool:
        """Check if the backend reported that nothing would change."""
        reason = self.status_reason or ""
        return "didn't contain changes" in reason or "No updates are to be performed" in reason

    def is_executable(self) -> bool:
        """Check if the change set can be executed."""
        return self.execution_status == "AVAILABLE"


@dataclass
class StackEvent:
    """A single record from the stack's event stream."""

    # Statuses that end an apply when reported for the stack itself
    STACK_TERMINAL_STATUSES = (
        "CREATE_COMPLETE",
        "UPDATE_COMPLETE",
        "ROLLBACK_COMPLETE",
        "UPDATE_ROLLBACK_COMPLETE",
    )
    ROLLBACK_STATUSES = ("ROLLBACK_COMPLETE", "UPDATE_ROLLBACK_COMPLETE")
    # The stack stopped in a failed state and will not reach a terminal status on its own
    STACK_FAILED_STATUSES = (
        "CREATE_FAILED",
        "UPDATE_FAILED",
        "ROLLBACK_FAILED",
        "UPDATE_ROLLBACK_FAILED",
    )

    event_id: str
    logical_id: str
    resource_type: str
    resource_status: str
    status_reason: Optional[str] = None
    physical_id: Optional[str] = None
    timestamp: Optional[datetime] = None

    @classmethod
    def from_response(cls, event: Dict[str, Any]) -> "StackEvent":
        """Build from a DescribeStackEvents ``StackEvents`` entry."""
        return cls(
            event_id=event.get("EventId", ""),
            logical_id=event.get("LogicalResourceId", ""),
            resource_type=event.get("ResourceType", ""),
            resource_status=event.get("ResourceStatus", ""),
            status_reason=event.get("ResourceStatusReason"),
            physical_id=event.get("PhysicalResourceId"),
            timestamp=event.get("Timestamp"),
        )

    def is_stack_event(self, stack_name: Optional[str] = None) -> bool:
        """Check if the event describes the whole stack.

        Nested stacks share the resource type, so passing the stack name
        also requires the logical id to match it.
        """
        if self.resource_type != STACK_RESOURCE_TYPE:
            return False
        return stack_name is None or self.logical_id == stack_name

    def is_stack_terminal(self, stack_name: Optional[str] = None) -> bool:
        """Check if the event ends the apply phase."""
        return self.is_stack_event(stack_name) and self.resource_status in self.STACK_TERMINAL_STATUSES

    def is_stack_failed(self, stack_name: Optional[str] = None) -> bool:
        """Check if the event leaves the stack in a failed state."""
        return self.is_stack_event(stack_name) and self.resource_status in self.STACK_FAILED_STATUSES

    def is_rollback(self) -> bool:
        """Check if the event reports a completed rollback."""
        return self.resource_status in self.ROLLBACK_STATUSES
