from pydantic import BaseModel, Field, model_validator


class ProjectRules(BaseModel):
    slug: str
    rules_version: str


class PermissionVocabulary(BaseModel):
    platform: list[str]
    site: list[str]


class RoleDefinition(BaseModel):
    name: str
    display_name: str
    description: str = ""
    level: int = Field(ge=0, le=8)
    permissions: list[str] = Field(default_factory=list)
    is_active: bool = True


class AuthorizationRules(BaseModel):
    ownership_override_roles: list[str]
    private_post_reader_roles: list[str]
    scheduled_list_roles: list[str]


class SanitizerRules(BaseModel):
    allow_tags: list[str]
    allow_attrs: dict[str, list[str]] = Field(default_factory=dict)
    drop_content_tags: list[str] = Field(default_factory=list)
    forbid_protocols: list[str]


class ContentRules(BaseModel):
    max_versions: int = Field(default=10, ge=1)
    view_history_days: int = Field(default=30, ge=1)
    default_language: str = "en"
    title_max_length: int = 200
    excerpt_max_length: int = 500
    meta_description_max_length: int = 160
    focus_keyword_max_length: int = 100
    slug_max_attempts: int = Field(default=50, ge=1)
    words_per_minute: int = 200
    page_size_default: int = 10
    page_size_max: int = 100
    sanitizer: SanitizerRules


class NotificationRules(BaseModel):
    rooms: list[str]


class SchedulingRules(BaseModel):
    sweep_interval_seconds: float = 60
    purge_interval_seconds: float = 3600


class PasswordRules(BaseModel):
    min_length: int
    pattern: str


class AuthRules(BaseModel):
    token_ttl_minutes: int
    otp_ttl_minutes: int
    otp_length: int = 6
    reset_token_ttl_minutes: int
    token_blacklist_cap: int = 10
    unverified_retention_hours: int = 24
    self_registration_roles: list[str]
    default_role: str
    name_max_length: int = 50
    password: PasswordRules


class SiteRules(BaseModel):
    subdomain_pattern: str
    subdomain_max_length: int
    reserved_subdomains: list[str]
    ignored_host_labels: list[str]
    types: list[str]
    default_theme: str = "default"
    default_template: str = "minimal"


class PlanFeatureRules(BaseModel):
    custom_domain: bool
    ai_credits: int
    max_users: int
    max_storage: int
    analytics: bool
    backups: bool


class PlanDefinition(BaseModel):
    name: str
    price: float = Field(ge=0)
    features: PlanFeatureRules


class PlanRules(BaseModel):
    yearly_multiplier: int = 10
    catalog: dict[str, PlanDefinition]


class OpsRules(BaseModel):
    required_env: list[str] = Field(default_factory=list)


class Rules(BaseModel):
    project: ProjectRules
    permissions: PermissionVocabulary
    roles: list[RoleDefinition]
    site_roles: list[RoleDefinition]
    authorization: AuthorizationRules
    content: ContentRules
    notifications: NotificationRules
    scheduling: SchedulingRules
    auth: AuthRules
    sites: SiteRules
    plans: PlanRules
    ops: OpsRules = Field(default_factory=OpsRules)

    @model_validator(mode="after")
    def check_role_catalog(self) -> "Rules":
        """Role names are unique per ladder and permissions come from the vocabulary."""
        for scope, roles, vocabulary in (
            ("platform", self.roles, self.permissions.platform),
            ("site", self.site_roles, self.permissions.site),
        ):
            names = [r.name for r in roles]
            duplicates = {n for n in names if names.count(n) > 1}
            if duplicates:
                raise ValueError(f"Duplicate {scope} role names: {sorted(duplicates)}")
            allowed = set(vocabulary)
            for role in roles:
                unknown = set(role.permissions) - allowed
                if unknown:
                    raise ValueError(
                        f"{scope} role '{role.name}' uses unknown permissions: {sorted(unknown)}"
                    )

        platform_names = {r.name for r in self.roles}
        for name in self.auth.self_registration_roles + [self.auth.default_role]:
            if name not in platform_names:
                raise ValueError(f"auth references unknown role '{name}'")
        if "free" not in self.plans.catalog:
            raise ValueError("plans.catalog must define a 'free' plan")
        return self
