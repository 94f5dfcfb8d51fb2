"""
projecthub/schemas.py

Pydantic request/response schemas.

The API speaks camelCase (companyId, adminEmail, ...); field names are the
snake_case storage columns, so a request's model_dump() maps straight onto a
row. Both spellings are accepted on input. Unknown keys are ignored, which is
how client-supplied companyId/status fields are dropped where they are not
allowed.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from projecthub.models import ASSIGNABLE_ROLES, DELETED_STATUS, ProjectStatus, TaskStatus, UserRole

# Seat cap inputs are clamped later, so any scalar is accepted here
CapInput = Optional[Union[int, float, str]]


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        use_enum_values=True,
    )


def _strip_required(value: Any, field: str) -> Any:
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError(f"{field} must not be empty")
    return value


def _lower_email(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip().lower()
        if "@" not in value or value.startswith("@") or value.endswith("@"):
            raise ValueError("email must be a valid address")
    return value


def _assignable_role(value: Any) -> Any:
    role = value.value if isinstance(value, UserRole) else value
    if role is not None and role not in ASSIGNABLE_ROLES:
        raise ValueError("role must be one of: " + ", ".join(ASSIGNABLE_ROLES))
    return value


def update_values(request: BaseModel, required: tuple = ()) -> Dict[str, Any]:
    """
    Columns to change for a partial update.

    Only fields present in the request are returned; an explicit null is
    dropped for NOT NULL columns listed in `required`.
    """
    values = request.model_dump(exclude_unset=True)
    for column in required:
        if column in values and values[column] is None:
            del values[column]
    return values


# ========================================================================
# AUTH
# ========================================================================

class LoginRequest(ApiModel):
    email: str = Field(..., min_length=1, max_length=254)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class UserResponse(ApiModel):
    """Never carries the password hash."""
    id: int
    company_id: Optional[int] = None
    name: str
    email: str
    role: str
    status: str
    permissions: List[str] = Field(default_factory=list)
    last_login: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class LoginResponse(ApiModel):
    message: str = "Login successful"
    token: str
    user: UserResponse


class MeResponse(ApiModel):
    id: int
    email: str
    role: str
    company_id: Optional[int] = None
    permissions: List[str] = Field(default_factory=list)


class MessageResponse(ApiModel):
    message: str


# ========================================================================
# COMPANIES
# ========================================================================

class CompanyCreateRequest(ApiModel):
    company_name: str = Field(
        ...,
        max_length=200,
        validation_alias=AliasChoices("companyName", "company_name", "name"),
    )
    plan: Optional[str] = None
    admin_name: str = Field(..., max_length=200)
    admin_email: str = Field(..., max_length=254)
    admin_password: str = Field(..., min_length=1)
    max_admins: CapInput = None
    max_managers: CapInput = None
    max_users: CapInput = None

    @field_validator("company_name", "admin_name")
    @classmethod
    def required_text(cls, v, info):
        return _strip_required(v, info.field_name)

    @field_validator("admin_email")
    @classmethod
    def normalize_email(cls, v):
        return _lower_email(v)


class CompanyUpdateRequest(ApiModel):
    company_name: Optional[str] = Field(
        None,
        max_length=200,
        validation_alias=AliasChoices("companyName", "company_name", "name"),
    )
    plan: Optional[str] = None
    max_admins: CapInput = None
    max_managers: CapInput = None
    max_users: CapInput = None
    is_active: Optional[bool] = None

    @field_validator("company_name")
    @classmethod
    def required_text(cls, v):
        return _strip_required(v, "company_name") if v is not None else v


class CompanyResponse(ApiModel):
    id: int
    name: str
    plan: str
    admin_name: Optional[str] = None
    admin_email: str
    max_admins: int
    max_managers: int
    max_users: int
    is_active: bool
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class CompanyWithUsersResponse(CompanyResponse):
    users: List[UserResponse] = Field(default_factory=list)


class CompanyCreateResponse(ApiModel):
    message: str = "Company and admin created successfully"
    company: CompanyResponse
    admin: UserResponse


class CompanyPlanResponse(ApiModel):
    id: int
    name: str
    plan: str
    max_admins: int
    max_managers: int
    max_users: int
    seats_used: Dict[str, int] = Field(default_factory=dict)


class StatusToggleRequest(ApiModel):
    status: str

    @field_validator("status", mode="before")
    @classmethod
    def upper_status(cls, v):
        return v.strip().upper() if isinstance(v, str) else v


class StatusToggleResponse(ApiModel):
    message: str = "User status updated successfully"
    user: UserResponse
    is_primary_admin: bool
    cascaded: int


# ========================================================================
# USERS
# ========================================================================

class UserCreateRequest(ApiModel):
    """company_id is honoured for superadmin callers only."""
    name: str = Field(..., max_length=200)
    email: str = Field(..., max_length=254)
    password: str = Field(..., min_length=1)
    role: UserRole = UserRole.user.value
    permissions: List[str] = Field(default_factory=list)
    company_id: Optional[int] = None

    @field_validator("name")
    @classmethod
    def required_name(cls, v):
        return _strip_required(v, "name")

    @field_validator("role")
    @classmethod
    def assignable_role(cls, v):
        return _assignable_role(v)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return _lower_email(v)


class UserUpdateRequest(ApiModel):
    """Status is changed only through the company status toggle."""
    name: Optional[str] = Field(None, max_length=200)
    email: Optional[str] = Field(None, max_length=254)
    password: Optional[str] = Field(None, min_length=1)
    role: Optional[UserRole] = None
    permissions: Optional[List[str]] = None

    @field_validator("role")
    @classmethod
    def assignable_role(cls, v):
        return _assignable_role(v)

    @field_validator("name")
    @classmethod
    def required_name(cls, v):
        return _strip_required(v, "name") if v is not None else v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return _lower_email(v) if v is not None else v


# ========================================================================
# PROJECTS
# ========================================================================

class ProjectCreateRequest(ApiModel):
    name: str = Field(..., max_length=200)
    client_name: Optional[str] = Field(None, max_length=200)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    project_manager: Optional[str] = Field(None, max_length=200)
    budget: Optional[float] = Field(None, ge=0)
    status: ProjectStatus = ProjectStatus.planned.value
    priority_level: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def required_name(cls, v):
        return _strip_required(v, "name")


class ProjectUpdateRequest(ApiModel):
    name: Optional[str] = Field(None, max_length=200)
    client_name: Optional[str] = Field(None, max_length=200)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    project_manager: Optional[str] = Field(None, max_length=200)
    budget: Optional[float] = Field(None, ge=0)
    status: Optional[ProjectStatus] = None
    priority_level: Optional[str] = Field(None, max_length=50)
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def required_name(cls, v):
        return _strip_required(v, "name") if v is not None else v


class ProjectResponse(ApiModel):
    id: int
    company_id: int
    name: str
    client_name: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    project_manager: Optional[str] = None
    budget: Optional[float] = None
    status: str
    priority_level: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# ========================================================================
# TASKS
# ========================================================================

class TaskCreateRequest(ApiModel):
    project_id: int
    title: str = Field(..., max_length=300)
    assigned_to: Optional[int] = None
    priority: Optional[str] = Field(None, max_length=50)
    status: TaskStatus = TaskStatus.pending.value
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    completion_date: Optional[str] = None

    @field_validator("title")
    @classmethod
    def required_title(cls, v):
        return _strip_required(v, "title")


class TaskUpdateRequest(ApiModel):
    project_id: Optional[int] = None
    title: Optional[str] = Field(None, max_length=300)
    assigned_to: Optional[int] = None
    priority: Optional[str] = Field(None, max_length=50)
    status: Optional[TaskStatus] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    completion_date: Optional[str] = None

    @field_validator("title")
    @classmethod
    def required_title(cls, v):
        return _strip_required(v, "title") if v is not None else v


class TaskResponse(ApiModel):
    id: int
    company_id: int
    project_id: int
    title: str
    assigned_to: Optional[int] = None
    priority: Optional[str] = None
    status: str
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    completion_date: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# ========================================================================
# RESOURCES
# ========================================================================

class ResourceCreateRequest(ApiModel):
    project_id: int
    resource_type: str = Field(..., max_length=100)
    assigned_project: Optional[str] = Field(None, max_length=200)
    allocation_start: Optional[str] = None
    allocation_end: Optional[str] = None
    utilization_rate: Optional[float] = Field(None, ge=0, le=100)

    @field_validator("resource_type")
    @classmethod
    def required_type(cls, v):
        return _strip_required(v, "resource_type")


class ResourceUpdateRequest(ApiModel):
    project_id: Optional[int] = None
    resource_type: Optional[str] = Field(None, max_length=100)
    assigned_project: Optional[str] = Field(None, max_length=200)
    allocation_start: Optional[str] = None
    allocation_end: Optional[str] = None
    utilization_rate: Optional[float] = Field(None, ge=0, le=100)

    @field_validator("resource_type")
    @classmethod
    def required_type(cls, v):
        return _strip_required(v, "resource_type") if v is not None else v


class ResourceResponse(ApiModel):
    id: int
    company_id: int
    project_id: int
    resource_type: str
    assigned_project: Optional[str] = None
    allocation_start: Optional[str] = None
    allocation_end: Optional[str] = None
    utilization_rate: Optional[float] = None
    status: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# ========================================================================
# RISKS
# ========================================================================

def _reject_deleted(v):
    if isinstance(v, str) and v.strip().upper() == DELETED_STATUS:
        raise ValueError("use DELETE to remove a risk")
    return v


class RiskCreateRequest(ApiModel):
    project_id: int
    description: str
    severity_level: Optional[str] = Field(None, max_length=50)
    mitigation_plan: Optional[str] = None
    risk_owner: Optional[str] = Field(None, max_length=200)
    status: str = Field("OPEN", max_length=50)

    @field_validator("description")
    @classmethod
    def required_description(cls, v):
        return _strip_required(v, "description")

    @field_validator("status")
    @classmethod
    def status_not_deleted(cls, v):
        return _reject_deleted(v)


class RiskUpdateRequest(ApiModel):
    project_id: Optional[int] = None
    description: Optional[str] = None
    severity_level: Optional[str] = Field(None, max_length=50)
    mitigation_plan: Optional[str] = None
    risk_owner: Optional[str] = Field(None, max_length=200)
    status: Optional[str] = Field(None, max_length=50)

    @field_validator("description")
    @classmethod
    def required_description(cls, v):
        return _strip_required(v, "description") if v is not None else v

    @field_validator("status")
    @classmethod
    def status_not_deleted(cls, v):
        return _reject_deleted(v)


class RiskResponse(ApiModel):
    id: int
    company_id: int
    project_id: int
    description: str
    severity_level: Optional[str] = None
    mitigation_plan: Optional[str] = None
    risk_owner: Optional[str] = None
    status: str
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# ========================================================================
# BUDGETS
# ========================================================================

class BudgetCreateRequest(ApiModel):
    project_id: int
    category: str = Field(..., max_length=100)
    planned_amount: float = Field(0, ge=0)
    actual_amount: float = Field(0, ge=0)
    notes: Optional[str] = None

    @field_validator("category")
    @classmethod
    def required_category(cls, v):
        return _strip_required(v, "category")


class BudgetUpdateRequest(ApiModel):
    project_id: Optional[int] = None
    category: Optional[str] = Field(None, max_length=100)
    planned_amount: Optional[float] = Field(None, ge=0)
    actual_amount: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None

    @field_validator("category")
    @classmethod
    def required_category(cls, v):
        return _strip_required(v, "category") if v is not None else v


class BudgetResponse(ApiModel):
    id: int
    company_id: int
    project_id: int
    category: str
    planned_amount: float
    actual_amount: float
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ProjectWithRelatedResponse(ProjectResponse):
    """Project list item; related lists are present only when requested and visible."""
    tasks: Optional[List[TaskResponse]] = None
    risks: Optional[List[RiskResponse]] = None
    resources: Optional[List[ResourceResponse]] = None


# ========================================================================
# ACTIVITY
# ========================================================================

class ActivityLogResponse(ApiModel):
    id: int
    company_id: int
    entity_type: str
    entity_id: int
    action: str
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    created_at: str
