import pulumi

from spoke.policies import create_policy_assignments

POLICY = "azure-native:authorization:PolicyAssignment"

ALLOWED_LOCATIONS = "/providers/Microsoft.Authorization/policyDefinitions/e56962a6-4747-49cd-b67b-bf8b01975c4c"
FLOW_LOGS = "/providers/Microsoft.Authorization/policyDefinitions/27960feb-a23c-4577-8d36-ef8b5f35e0be"


@pulumi.runtime.test
def test_policy_assignments(mocks, make_config, namer, resource_group):
    cfg = make_config(
        policies=[
            {
                "name": "allowed-locations",
                "policy_definition_id": ALLOWED_LOCATIONS,
                "parameters": {"listOfAllowedLocations": ["westeurope", "northeurope"]},
                "non_compliance_message": "Spoke resources must stay in the EU.",
            },
            {
                "name": "deploy-flow-logs",
                "policy_definition_id": FLOW_LOGS,
                "display_name": "Deploy NSG flow logs",
                "description": "Flow logs for every NSG in the spoke",
                "enforcement_mode": "DoNotEnforce",
                "assign_identity": True,
            },
        ]
    )
    rg = resource_group()
    assignments = create_policy_assignments(cfg, namer, rg)
    assert sorted(assignments) == ["allowed-locations", "deploy-flow-logs"]

    def check(_):
        by_name = {r.inputs["policyAssignmentName"]: r.inputs for r in mocks.of_type(POLICY)}

        locations = by_name["pa-payments-dev-weu-allowed-locations"]
        assert locations["scope"] == "rg-payments-dev-weu_id"
        assert locations["policyDefinitionId"] == ALLOWED_LOCATIONS
        assert locations["displayName"] == "allowed-locations"
        assert locations["enforcementMode"] == "Default"
        assert locations["parameters"] == {"listOfAllowedLocations": {"value": ["westeurope", "northeurope"]}}
        assert locations["nonComplianceMessages"] == [{"message": "Spoke resources must stay in the EU."}]
        assert "identity" not in locations
        assert "description" not in locations

        flow_logs = by_name["pa-payments-dev-weu-deploy-flow-logs"]
        assert flow_logs["displayName"] == "Deploy NSG flow logs"
        assert flow_logs["description"] == "Flow logs for every NSG in the spoke"
        assert flow_logs["enforcementMode"] == "DoNotEnforce"
        assert flow_logs["identity"] == {"type": "SystemAssigned"}
        assert flow_logs["location"] == "westeurope"

    return mocks.settled(rg, *assignments.values()).apply(check)


def test_no_policies(make_config, namer):
    assert create_policy_assignments(make_config(), namer, None) == {}
