from pydantic import BaseModel, Field


class ProjectRules(BaseModel):
    slug: str
    rules_version: str

class SiteRules(BaseModel):
    fullname: str
    url: str
    noreply_email: str
    noreply_name: str = "Site administrator"

class InvitationEmailTemplate(BaseModel):
    subject: str
    body: str

class InvitationRules(BaseModel):
    redeem_path: str = "/enrol/invitation/redeem"
    edit_path: str = "/enrol/invitation/edit"
    invite_path: str = "/enrol/invitation/invite"
    unenrol_path: str = "/enrol/invitation/unenrol"
    edit_enrolment_path: str = "/enrol/invitation/edit-enrolment"
    enrolled_users_path: str = "/enrol/users"
    token_length: int = Field(default=32, ge=16, le=64)
    invite_email: InvitationEmailTemplate
    enrolled_email: InvitationEmailTemplate

class RbacRules(BaseModel):
    roles: dict[str, list[str]]
    guest_capabilities: list[str] = Field(default_factory=list)

class OpsRules(BaseModel):
    data_dir_required: bool
    required_env: list[str]

class Rules(BaseModel):
    project: ProjectRules
    site: SiteRules
    invitation: InvitationRules
    rbac: RbacRules
    ops: OpsRules
