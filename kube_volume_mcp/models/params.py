"""Parameter models for FastMCP tool validation."""

from typing import Annotated, Any

from pydantic import Field, StringConstraints, field_validator, model_validator

from .enums import VolumeAction
from .volume import MCPModel

# Type aliases for string constraints
DNSLabel = Annotated[
    str, StringConstraints(max_length=63, pattern=r"^$|^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
]
DNSSubdomain = Annotated[
    str,
    StringConstraints(max_length=253, pattern=r"^$|^[a-z0-9]([-a-z0-9.]*[a-z0-9])?$"),
]


def _validate_enum_action(value: Any, enum_class: type) -> Any:
    """Generic validator for enum action fields."""
    if isinstance(value, str):
        # Handle "EnumClass.VALUE" format
        if "." in value:
            enum_value = value.split(".")[-1].lower()
        else:
            enum_value = value.lower()

        for action in enum_class:
            if action.value == enum_value or action.name.lower() == enum_value:
                return action
    elif isinstance(value, enum_class):
        return value

    # Let Pydantic handle the error if no match
    return value


class KubeVolumeParams(MCPModel):
    """Parameters for the kube_volume consolidated tool."""

    action: VolumeAction = Field(default=VolumeAction.LIST, description="Action to perform")
    namespace: DNSLabel = Field(default="", description="Namespace of the claim")
    name: DNSSubdomain = Field(default="", description="Volume claim name")
    size: str = Field(default="", description="Target size for resize (e.g. '20Gi')")
    confirm: bool = Field(default=False, description="Must be True to delete")
    dry_run: bool = Field(default=False, description="Validate and plan without changes")

    @field_validator("action", mode="before")
    @classmethod
    def validate_action(cls, v):
        """Validate action field to handle various enum input formats."""
        return _validate_enum_action(v, VolumeAction)

    @field_validator("size")
    @classmethod
    def strip_size(cls, v: str) -> str:
        return v.strip()

    @model_validator(mode="after")
    def check_required(self) -> "KubeVolumeParams":
        if self.action in (VolumeAction.INFO, VolumeAction.RESIZE, VolumeAction.DELETE):
            if not self.namespace or not self.name:
                raise ValueError(f"namespace and name are required for {self.action.value}")
        if self.action == VolumeAction.RESIZE and not self.size:
            raise ValueError("size is required for resize")
        return self
