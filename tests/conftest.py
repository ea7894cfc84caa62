import copy
import logging

import pulumi
import pytest
from pulumi.runtime.mocks import MockMonitor
from pulumi_azure_native import resources

from spoke.config import SpokeConfig
from spoke.naming import Namer

# Input that carries the Azure name, echoed back as the `name` output.
NAME_INPUTS = {
    "azure-native:resources:ResourceGroup": "resourceGroupName",
    "azure-native:network:VirtualNetwork": "virtualNetworkName",
    "azure-native:network:Subnet": "subnetName",
    "azure-native:network:NetworkSecurityGroup": "networkSecurityGroupName",
    "azure-native:network:RouteTable": "routeTableName",
    "azure-native:network:VirtualNetworkPeering": "virtualNetworkPeeringName",
    "azure-native:network:NetworkInterface": "networkInterfaceName",
    "azure-native:network:PublicIPAddress": "publicIpAddressName",
    "azure-native:compute:VirtualMachine": "vmName",
    "azure-native:authorization:PolicyAssignment": "policyAssignmentName",
}

HUB_ID = (
    "/subscriptions/11111111-1111-1111-1111-111111111111/resourceGroups/rg-connectivity-prod-weu"
    "/providers/Microsoft.Network/virtualNetworks/vnet-hub-prod-weu"
)


ENGINE_LOGGER = logging.getLogger("spoke.tests.engine")


class SpokeMocks(pulumi.runtime.Mocks):
    def __init__(self):
        self.resources = []
        # Logical name -> logical names of everything it was registered after.
        self.dependencies = {}

    def new_resource(self, args: pulumi.runtime.MockResourceArgs):
        self.resources.append(args)
        outputs = dict(args.inputs)
        name_input = NAME_INPUTS.get(args.typ)
        if name_input and name_input in outputs:
            outputs["name"] = outputs[name_input]
        if args.typ == "azure-native:network:PublicIPAddress":
            outputs["ipAddress"] = "203.0.113.10"
        if args.typ == "azure-native:network:NetworkInterface":
            outputs["ipConfigurations"] = [
                dict(config, privateIPAddress="10.50.4.4") for config in outputs.get("ipConfigurations", [])
            ]
        return [f"{args.name}_id", outputs]

    def call(self, args: pulumi.runtime.MockCallArgs):
        return {}

    def reset(self):
        self.resources.clear()
        self.dependencies.clear()

    def of_type(self, typ):
        return [r for r in self.resources if r.typ == typ]

    def single(self, typ):
        found = self.of_type(typ)
        assert len(found) == 1, f"expected one {typ}, got {[r.name for r in found]}"
        return found[0]

    @staticmethod
    def network(spoke):
        found = [spoke.vnet, *spoke.subnets.values(), *spoke.nsgs.values()]
        if spoke.route_table is not None:
            found.append(spoke.route_table)
        return found

    @staticmethod
    def settled(*resources):
        """Resolves once every given resource has been registered."""
        return pulumi.Output.all(*[r.id for r in resources])


class RecordingMonitor(MockMonitor):
    """Keeps the dependency URNs that MockResourceArgs leaves out."""

    def RegisterResource(self, request):
        self.mocks.dependencies[request.name] = [urn.split("::")[-1] for urn in request.dependencies]
        return super().RegisterResource(request)


MOCKS = SpokeMocks()
pulumi.runtime.set_mocks(MOCKS, preview=False, logger=ENGINE_LOGGER, monitor=RecordingMonitor(MOCKS))


@pytest.fixture
def mocks():
    MOCKS.reset()
    return MOCKS


@pytest.fixture
def stack_config():
    """Sets the stack config seen by pulumi.Config, cleared again afterwards."""

    def set_config(values, secret_keys=None):
        pulumi.runtime.set_all_config(values, secret_keys or [])

    yield set_config
    pulumi.runtime.set_all_config({}, [])


@pytest.fixture
def raw_config():
    return copy.deepcopy(
        {
            "workload": "payments",
            "environment": "dev",
            "location": "westeurope",
            "tags": {"cost-center": "4711"},
            "network": {
                "address_space": ["10.50.0.0/16"],
                "firewall_private_ip": "10.0.1.4",
                "subnets": [
                    {"name": "app", "address_prefix": "10.50.1.0/24"},
                    {"name": "data", "address_prefix": "10.50.2.0/24", "route_table": False},
                    {"name": "management", "address_prefix": "10.50.4.0/27"},
                ],
            },
        }
    )


@pytest.fixture
def make_config(raw_config):
    def make(**overrides):
        raw = copy.deepcopy(raw_config)
        raw.update(overrides)
        return SpokeConfig.from_dict(raw).validate()

    return make


@pytest.fixture
def namer():
    return Namer("payments", "dev", "westeurope")


@pytest.fixture
def hub_id():
    return HUB_ID


@pytest.fixture
def resource_group():
    # Only call inside a @pulumi.runtime.test function.
    def make(name="rg-payments-dev-weu"):
        return resources.ResourceGroup(name, resource_group_name=name, location="westeurope")

    return make
