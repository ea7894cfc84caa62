"""Policy assignments scoped to the spoke resource group"""

import pulumi
from pulumi_azure_native import authorization, resources

from spoke.config import PolicyConfig, SpokeConfig
from spoke.naming import Namer


def _assignment_args(policy: PolicyConfig, cfg: SpokeConfig) -> dict:
    args = {
        "display_name": policy.display_name or policy.name,
        "enforcement_mode": policy.enforcement_mode,
        "parameters": {
            key: authorization.ParameterValuesValueArgs(value=value) for key, value in policy.parameters.items()
        },
    }
    if policy.description:
        args["description"] = policy.description
    if policy.assign_identity:
        # Remediation (deployIfNotExists/modify) runs as this identity, which needs a location.
        args["identity"] = authorization.IdentityArgs(type="SystemAssigned")
        args["location"] = cfg.location
    if policy.non_compliance_message:
        args["non_compliance_messages"] = [
            authorization.NonComplianceMessageArgs(message=policy.non_compliance_message)
        ]
    return args


def create_policy_assignments(
    cfg: SpokeConfig, namer: Namer, resource_group: resources.ResourceGroup
) -> dict[str, authorization.PolicyAssignment]:
    assignments = {}
    for policy in cfg.policies:
        assignment_name = namer.policy_assignment(policy.name)
        assignments[policy.name] = authorization.PolicyAssignment(
            assignment_name,
            policy_assignment_name=assignment_name,
            policy_definition_id=policy.policy_definition_id,
            scope=resource_group.id,
            **_assignment_args(policy, cfg),
        )
        if policy.enforcement_mode == "DoNotEnforce":
            pulumi.log.warn(f"policy {policy.name} is assigned in audit-only mode (DoNotEnforce)")
    return assignments
