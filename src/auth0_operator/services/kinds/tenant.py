"""
A0Tenant: the settings of an Auth0 tenant.

A tenant always exists on the Auth0 side, so it is adopted on first
reconcile and never created or deleted. Only a fixed set of settings is
compared for drift.
"""

import copy
import logging
from typing import Any

from auth0_operator.constants import TENANT_COMPARED_FIELDS, TENANT_PLURAL
from auth0_operator.errors import ConfigurationError, ValidationError
from auth0_operator.models import EntitySpec, TenantSpec
from auth0_operator.services.drift import changed_fields, values_equal

from .base import ReconcileContext, ResourceKind

logger = logging.getLogger(__name__)

SETTINGS_PATH = "tenants/settings"


def compared_settings(settings: dict[str, Any]) -> dict[str, Any]:
    return {key: settings[key] for key in TENANT_COMPARED_FIELDS if key in settings}


def tenant_key(spec: EntitySpec, namespace: str, name: str) -> tuple[str, str]:
    return (namespace, name)


async def find_tenant(ctx: ReconcileContext) -> str | None:
    return ctx.domain


async def create_tenant(ctx: ReconcileContext) -> str:
    raise ConfigurationError("Tenants cannot be created through the Management API.")


async def get_tenant_settings(ctx: ReconcileContext, id: str) -> dict[str, Any] | None:
    return await ctx.api.get(SETTINGS_PATH)


async def update_tenant_settings(ctx: ReconcileContext, id: str) -> None:
    conf = ctx.conf or {}
    current = await ctx.api.get(SETTINGS_PATH) or {}

    desired_fields = compared_settings(conf)
    current_fields = compared_settings(current)
    if values_equal(current_fields, desired_fields):
        logger.debug(f"Tenant {ctx.namespace}/{ctx.name} settings are up to date")
        return

    added, modified, removed = changed_fields(current_fields, desired_fields)
    logger.warning(
        f"Tenant {ctx.namespace}/{ctx.name} settings drifted: "
        f"added={added} modified={modified} removed={removed}",
        extra={"tenant": ctx.domain},
    )

    desired_sso = (conf.get("flags") or {}).get("enable_sso")
    current_sso = (current.get("flags") or {}).get("enable_sso")
    if desired_sso is not None and current_sso is not None and desired_sso != current_sso:
        raise ValidationError(
            f"updating the enable_sso flag is not allowed (currently {current_sso})",
            field="flags.enable_sso",
        )

    request = copy.deepcopy(conf)
    if isinstance(request.get("flags"), dict):
        request["flags"].pop("enable_sso", None)
        if not request["flags"]:
            del request["flags"]

    logger.info(f"Updating settings of tenant {ctx.domain}")
    await ctx.api.patch(SETTINGS_PATH, json=request)


async def delete_tenant(ctx: ReconcileContext, id: str) -> None:
    logger.info(f"Tenant {ctx.domain} is not deleted from Auth0")


TENANT_KIND = ResourceKind(
    name="tenant",
    kind="A0Tenant",
    plural=TENANT_PLURAL,
    spec_model=TenantSpec,
    find=find_tenant,
    create=create_tenant,
    update=update_tenant_settings,
    get=get_tenant_settings,
    delete=delete_tenant,
    tenant_key=tenant_key,
)
