import pytest

from spoke.errors import ConfigError
from spoke.naming import Namer, parse_resource_id, region_code


def test_region_code():
    assert region_code("westeurope") == "weu"
    assert region_code("West Europe") == "weu"
    assert region_code("polandcentral") == "polandcentral"


def test_names(namer):
    assert namer.resource_group == "rg-payments-dev-weu"
    assert namer.virtual_network == "vnet-payments-dev-weu"
    assert namer.route_table == "rt-payments-dev-weu"
    assert namer.network_security_group("App") == "nsg-payments-dev-weu-app"
    assert namer.name("virtual_machine", "jump") == "vm-payments-dev-weu-jump"


def test_peering_names(namer):
    assert namer.peering("vnet-hub-prod-weu") == "peer-vnet-payments-dev-weu-to-vnet-hub-prod-weu"
    assert namer.reverse_peering("vnet-hub-prod-weu") == "peer-vnet-hub-prod-weu-to-vnet-payments-dev-weu"


def test_windows_computer_name():
    name = Namer("customer-portal", "prod", "westeurope").computer_name("windows")
    assert name == "jbcustomerporta"
    assert len(name) <= 15


def test_windows_computer_name_not_numeric():
    name = Namer("12345678", "1234567", "westeurope").computer_name("windows")
    assert not name.isdigit()
    assert len(name) <= 15


def test_linux_computer_name(namer):
    assert namer.computer_name("linux") == "vm-payments-dev-weu-jump"


def test_policy_assignment_name_limit(namer):
    name = namer.policy_assignment("deploy-diagnostic-settings-for-network-security-groups")
    assert len(name) <= 64
    assert not name.endswith("-")
    assert name.startswith("pa-payments-dev-weu-deploy")


def test_parse_resource_id():
    rid = parse_resource_id(
        "/subscriptions/abc/resourcegroups/rg-hub/providers/Microsoft.Network/virtualNetworks/vnet-hub"
    )
    assert rid.subscription_id == "abc"
    assert rid.resource_group == "rg-hub"
    assert rid.namespace == "Microsoft.Network"
    assert rid.resource_type == "virtualNetworks"
    assert rid.name == "vnet-hub"


@pytest.mark.parametrize(
    "bad",
    [
        "",
        None,
        "/subscriptions/abc/resourceGroups/rg-hub",
        "/subscriptions/abc/resourceGroups/rg-hub/providers/Microsoft.Network/virtualNetworks/vnet/subnets/a",
    ],
)
def test_parse_resource_id_malformed(bad):
    with pytest.raises(ConfigError):
        parse_resource_id(bad)


def test_truncated_policy_assignments_stay_distinct(namer):
    prefix = "deploy-diagnostic-settings-for-network-security-groups"
    flow_logs = namer.policy_assignment(f"{prefix}-flow-logs")
    event_hub = namer.policy_assignment(f"{prefix}-event-hub")
    assert flow_logs != event_hub
    assert len(flow_logs) <= 64 and len(event_hub) <= 64
    assert namer.policy_assignment(f"{prefix}-flow-logs") == flow_logs


def test_short_policy_assignment_is_untouched(namer):
    assert namer.policy_assignment("allowed-locations") == "pa-payments-dev-weu-allowed-locations"
