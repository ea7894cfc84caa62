"""Stack configuration for the spoke.

Everything the program declares comes from the Pulumi stack config. Object
values (``network``, ``hub``, ``jumpbox``, ``policies``) use snake_case keys that
map one to one onto the dataclasses below, e.g. in ``Pulumi.dev.yaml``::

    config:
      spoke-network:workload: payments
      spoke-network:environment: dev
      spoke-network:network:
        address_space: ["10.50.0.0/16"]
        firewall_private_ip: 10.0.1.4
        subnets:
          - name: app
            address_prefix: 10.50.1.0/24

The whole config is validated before a single resource is registered.
"""

import re
from dataclasses import dataclass, field, fields
from typing import Any, Optional

import pulumi

from spoke import addressing
from spoke.errors import ConfigError
from spoke.naming import Namer, default_tags, parse_resource_id

# Subnets whose names Azure reserves for platform services. None of them
# accept a user NSG or route table.
RESERVED_SUBNETS = frozenset(
    {
        "gatewaysubnet",
        "azurefirewallsubnet",
        "azurefirewallmanagementsubnet",
        "azurebastionsubnet",
        "routeserversubnet",
    }
)

DIRECTIONS = ("Inbound", "Outbound")
ACCESSES = ("Allow", "Deny")
PROTOCOLS = ("Tcp", "Udp", "Icmp", "Esp", "Ah", "*")
NEXT_HOP_TYPES = ("VirtualNetworkGateway", "VnetLocal", "Internet", "VirtualAppliance", "None")
ENFORCEMENT_MODES = ("Default", "DoNotEnforce")
OS_TYPES = ("linux", "windows")

FIREWALL_ROUTE_NAME = "default-via-firewall"
JUMPBOX_RULE_PRIORITY = 100

_WORKLOAD = re.compile(r"^(?=.{2,20}$)[a-z0-9]+(?:-[a-z0-9]+)*$")
_ENVIRONMENT = re.compile(r"^[a-z0-9]{1,10}$")


def is_reserved_subnet(name: str) -> bool:
    return name.lower() in RESERVED_SUBNETS


def _build(cls, raw: Any, where: str):
    """Instantiate a flat dataclass from a mapping, naming the offending key on failure."""
    if not isinstance(raw, dict):
        raise ConfigError(f"{where}: expected an object, got {type(raw).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"{where}: unknown keys {', '.join(unknown)}")
    try:
        return cls(**raw)
    except TypeError as e:
        raise ConfigError(f"{where}: {e}") from e


def _list(raw: Any, where: str) -> list:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError(f"{where}: expected a list, got {type(raw).__name__}")
    return raw


@dataclass
class SecurityRuleConfig:
    name: str
    priority: int
    direction: str
    access: str
    protocol: str
    source_address_prefix: str = "*"
    destination_address_prefix: str = "*"
    destination_port_range: str = "*"
    source_port_range: str = "*"

    @classmethod
    def from_dict(cls, raw, where="security rule"):
        return _build(cls, raw, where)

    def validate(self, where: str):
        if not isinstance(self.priority, int) or not 100 <= self.priority <= 4096:
            raise ConfigError(f"{where}: priority must be between 100 and 4096, got {self.priority!r}")
        if self.direction not in DIRECTIONS:
            raise ConfigError(f"{where}: direction must be one of {DIRECTIONS}")
        if self.access not in ACCESSES:
            raise ConfigError(f"{where}: access must be one of {ACCESSES}")
        if self.protocol not in PROTOCOLS:
            raise ConfigError(f"{where}: protocol must be one of {PROTOCOLS}")


@dataclass
class RouteConfig:
    name: str
    address_prefix: str
    next_hop_type: str
    next_hop_ip_address: Optional[str] = None

    @classmethod
    def from_dict(cls, raw, where="route"):
        return _build(cls, raw, where)

    def validate(self, where: str):
        if self.next_hop_type not in NEXT_HOP_TYPES:
            raise ConfigError(f"{where}: next_hop_type must be one of {NEXT_HOP_TYPES}")
        if self.next_hop_type == "VirtualAppliance":
            if not self.next_hop_ip_address or not addressing.is_ip_address(self.next_hop_ip_address):
                raise ConfigError(f"{where}: VirtualAppliance routes need a valid next_hop_ip_address")
        elif self.next_hop_ip_address:
            raise ConfigError(f"{where}: next_hop_ip_address is only valid for VirtualAppliance routes")
        try:
            addressing.parse_prefix(self.address_prefix)
        except ValueError as e:
            raise ConfigError(f"{where}: {e}") from e


@dataclass
class SubnetConfig:
    name: str
    address_prefix: str
    nsg: Optional[bool] = None
    route_table: Optional[bool] = None
    service_endpoints: list[str] = field(default_factory=list)
    delegation: Optional[str] = None
    private_endpoint_network_policies: str = "Disabled"
    security_rules: list[SecurityRuleConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw, where="subnet"):
        subnet = _build(cls, raw, where)
        subnet.security_rules = [
            SecurityRuleConfig.from_dict(r, f"{where}.security_rules[{i}]")
            for i, r in enumerate(_list(subnet.security_rules, f"{where}.security_rules"))
        ]
        subnet.service_endpoints = _list(subnet.service_endpoints, f"{where}.service_endpoints")
        return subnet

    @property
    def reserved(self) -> bool:
        return is_reserved_subnet(self.name)

    @property
    def wants_nsg(self) -> bool:
        return not self.reserved and self.nsg is not False

    @property
    def wants_route_table(self) -> bool:
        return not self.reserved and self.route_table is not False


@dataclass
class NetworkConfig:
    address_space: list[str]
    subnets: list[SubnetConfig]
    dns_servers: list[str] = field(default_factory=list)
    firewall_private_ip: Optional[str] = None
    disable_bgp_route_propagation: bool = True
    routes: list[RouteConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw, where="network"):
        net = _build(cls, raw, where)
        net.address_space = _list(net.address_space, f"{where}.address_space")
        net.dns_servers = _list(net.dns_servers, f"{where}.dns_servers")
        net.subnets = [
            SubnetConfig.from_dict(s, f"{where}.subnets[{i}]")
            for i, s in enumerate(_list(net.subnets, f"{where}.subnets"))
        ]
        net.routes = [
            RouteConfig.from_dict(r, f"{where}.routes[{i}]")
            for i, r in enumerate(_list(net.routes, f"{where}.routes"))
        ]
        return net

    def subnet(self, name: str) -> Optional[SubnetConfig]:
        for s in self.subnets:
            if s.name.lower() == name.lower():
                return s
        return None

    @property
    def has_routes(self) -> bool:
        return bool(self.firewall_private_ip or self.routes)

    def validate(self):
        if not self.address_space:
            raise ConfigError("network.address_space: at least one prefix is required")
        if not self.subnets:
            raise ConfigError("network.subnets: at least one subnet is required")

        try:
            for prefix in self.address_space:
                addressing.parse_prefix(prefix)
            for s in self.subnets:
                addressing.parse_prefix(s.address_prefix)
        except ValueError as e:
            raise ConfigError(f"network: {e}") from e

        clashes = addressing.overlapping(self.address_space)
        if clashes:
            left, right = clashes[0]
            raise ConfigError(f"network.address_space: {left} overlaps {right}")

        seen = set()
        for s in self.subnets:
            key = s.name.lower()
            if key in seen:
                raise ConfigError(f"network.subnets: duplicate subnet name {s.name!r}")
            seen.add(key)
            if not addressing.contained_in(s.address_prefix, self.address_space):
                raise ConfigError(
                    f"subnet {s.name}: {s.address_prefix} is outside the address space {self.address_space}"
                )
            self._validate_rules(s)

        clashes = addressing.overlapping([s.address_prefix for s in self.subnets])
        if clashes:
            left, right = clashes[0]
            raise ConfigError(f"network.subnets: {left} overlaps {right}")

        for dns in self.dns_servers:
            if not addressing.is_ip_address(dns):
                raise ConfigError(f"network.dns_servers: {dns!r} is not an IP address")

        if self.firewall_private_ip is not None and not addressing.is_ip_address(self.firewall_private_ip):
            raise ConfigError(f"network.firewall_private_ip: {self.firewall_private_ip!r} is not an IP address")

        route_names = set()
        for i, route in enumerate(self.routes):
            route.validate(f"network.routes[{i}]")
            if route.name == FIREWALL_ROUTE_NAME:
                raise ConfigError(f"network.routes[{i}]: the name {FIREWALL_ROUTE_NAME!r} is reserved")
            if route.name in route_names:
                raise ConfigError(f"network.routes: duplicate route name {route.name!r}")
            route_names.add(route.name)

    @staticmethod
    def _validate_rules(subnet: SubnetConfig):
        taken = set()
        names = set()
        for rule in subnet.security_rules:
            where = f"subnet {subnet.name} rule {rule.name}"
            rule.validate(where)
            if (rule.direction, rule.priority) in taken:
                raise ConfigError(f"{where}: priority {rule.priority} already used for {rule.direction}")
            if rule.name in names:
                raise ConfigError(f"{where}: duplicate rule name")
            taken.add((rule.direction, rule.priority))
            names.add(rule.name)


@dataclass
class HubConfig:
    virtual_network_id: str
    allow_forwarded_traffic: bool = True
    allow_gateway_transit: bool = False
    use_remote_gateways: bool = False
    create_reverse_peering: bool = False

    @classmethod
    def from_dict(cls, raw, where="hub"):
        return _build(cls, raw, where)

    @property
    def resource_id(self):
        return parse_resource_id(self.virtual_network_id)

    def validate(self):
        rid = self.resource_id
        if rid.namespace.lower() != "microsoft.network" or rid.resource_type.lower() != "virtualnetworks":
            raise ConfigError(f"hub.virtual_network_id: {self.virtual_network_id!r} is not a virtual network")
        if self.use_remote_gateways and self.allow_gateway_transit:
            raise ConfigError("hub: use_remote_gateways and allow_gateway_transit cannot both be set on the spoke")


@dataclass
class JumpBoxConfig:
    subnet: str
    os_type: str = "linux"
    enabled: bool = True
    size: str = "Standard_B2s"
    admin_username: str = "azureuser"
    ssh_public_key: Optional[str] = None
    admin_password: Optional[pulumi.Input[str]] = None
    public_ip: bool = False
    allowed_source_prefixes: list[str] = field(default_factory=lambda: ["VirtualNetwork"])

    @classmethod
    def from_dict(cls, raw, where="jumpbox"):
        jumpbox = _build(cls, raw, where)
        jumpbox.os_type = str(jumpbox.os_type).lower()
        jumpbox.allowed_source_prefixes = _list(jumpbox.allowed_source_prefixes, f"{where}.allowed_source_prefixes")
        return jumpbox

    @property
    def management_port(self) -> str:
        return "3389" if self.os_type == "windows" else "22"

    def validate(self, network: NetworkConfig):
        if self.os_type not in OS_TYPES:
            raise ConfigError(f"jumpbox.os_type must be one of {OS_TYPES}, got {self.os_type!r}")
        subnet = network.subnet(self.subnet)
        if subnet is None:
            raise ConfigError(f"jumpbox.subnet: no subnet named {self.subnet!r}")
        if subnet.reserved:
            raise ConfigError(f"jumpbox.subnet: {subnet.name} is reserved for Azure platform services")
        if self.os_type == "linux" and not self.ssh_public_key:
            raise ConfigError("jumpbox: a Linux jump box needs ssh_public_key")
        if self.os_type == "windows" and self.admin_password is None:
            raise ConfigError("jumpbox: a Windows jump box needs the jumpboxAdminPassword secret")
        if not self.allowed_source_prefixes:
            raise ConfigError("jumpbox.allowed_source_prefixes: at least one source is required")
        if len(self.allowed_source_prefixes) > 1:
            for prefix in self.allowed_source_prefixes:
                if not addressing.is_address_or_prefix(prefix):
                    raise ConfigError(
                        f"jumpbox.allowed_source_prefixes: {prefix!r} is a service tag or wildcard, "
                        "which Azure only accepts as the single source"
                    )
        for rule in subnet.security_rules:
            if rule.direction == "Inbound" and rule.priority == JUMPBOX_RULE_PRIORITY:
                raise ConfigError(
                    f"subnet {subnet.name} rule {rule.name}: inbound priority {JUMPBOX_RULE_PRIORITY} "
                    "is used by the jump box management rule"
                )


@dataclass
class PolicyConfig:
    name: str
    policy_definition_id: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    enforcement_mode: str = "Default"
    parameters: dict = field(default_factory=dict)
    assign_identity: bool = False
    non_compliance_message: Optional[str] = None

    @classmethod
    def from_dict(cls, raw, where="policy"):
        policy = _build(cls, raw, where)
        if policy.parameters is None:
            policy.parameters = {}
        return policy

    def validate(self, where: str):
        if self.enforcement_mode not in ENFORCEMENT_MODES:
            raise ConfigError(f"{where}: enforcement_mode must be one of {ENFORCEMENT_MODES}")
        if "/providers/microsoft.authorization/policy" not in self.policy_definition_id.lower():
            raise ConfigError(f"{where}: {self.policy_definition_id!r} is not a policy definition id")
        if not isinstance(self.parameters, dict):
            raise ConfigError(f"{where}.parameters: expected an object")


@dataclass
class SpokeConfig:
    workload: str
    environment: str
    location: str
    network: NetworkConfig
    tags: dict = field(default_factory=dict)
    hub: Optional[HubConfig] = None
    jumpbox: Optional[JumpBoxConfig] = None
    policies: list[PolicyConfig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: dict) -> "SpokeConfig":
        cfg = _build(cls, raw, "config")
        if cfg.network is None:
            raise ConfigError("config: network is required")
        cfg.network = NetworkConfig.from_dict(cfg.network)
        cfg.tags = default_tags(cfg.workload, cfg.environment, cfg.tags)
        if cfg.hub is not None:
            cfg.hub = HubConfig.from_dict(cfg.hub)
        if isinstance(cfg.jumpbox, dict) and not cfg.jumpbox.get("enabled", True):
            cfg.jumpbox = None
        if cfg.jumpbox is not None:
            cfg.jumpbox = JumpBoxConfig.from_dict(cfg.jumpbox)
        cfg.policies = [
            PolicyConfig.from_dict(p, f"policies[{i}]") for i, p in enumerate(_list(cfg.policies, "policies"))
        ]
        return cfg

    def validate(self) -> "SpokeConfig":
        if not _WORKLOAD.match(self.workload or ""):
            raise ConfigError(f"workload {self.workload!r}: 2-20 lowercase letters, digits or single inner hyphens")
        if not _ENVIRONMENT.match(self.environment or ""):
            raise ConfigError(f"environment {self.environment!r}: 1-10 lowercase letters or digits")
        if not self.location:
            raise ConfigError("location is required")

        self.network.validate()
        if self.hub:
            self.hub.validate()
        if self.jumpbox:
            self.jumpbox.validate(self.network)

        namer = Namer(self.workload, self.environment, self.location)
        assigned = {}
        for i, policy in enumerate(self.policies):
            policy.validate(f"policies[{i}]")
            assignment_name = namer.policy_assignment(policy.name)
            if assignment_name in assigned:
                raise ConfigError(
                    f"policies: {policy.name!r} and {assigned[assignment_name]!r} both become {assignment_name!r}"
                )
            assigned[assignment_name] = policy.name
        return self


def load_config() -> SpokeConfig:
    """Read the current stack's configuration."""
    config = pulumi.Config()
    location = config.get("location") or pulumi.Config("azure-native").get("location")
    raw = {
        "workload": config.require("workload"),
        "environment": config.require("environment"),
        "location": location,
        "tags": config.get_object("tags") or {},
        "network": config.require_object("network"),
        "hub": config.get_object("hub"),
        "jumpbox": config.get_object("jumpbox"),
        "policies": config.get_object("policies") or [],
    }
    if raw["jumpbox"] is not None:
        raw["jumpbox"] = dict(raw["jumpbox"], admin_password=config.get_secret("jumpboxAdminPassword"))
    return SpokeConfig.from_dict(raw).validate()
