"""Spoke virtual network, subnets, NSGs and the egress route table"""

from dataclasses import dataclass, field
from typing import Optional

import pulumi
from pulumi_azure_native import network, resources

from spoke.config import FIREWALL_ROUTE_NAME, JUMPBOX_RULE_PRIORITY, SpokeConfig, SubnetConfig
from spoke.naming import Namer


@dataclass
class SpokeNetwork:
    vnet: network.VirtualNetwork
    vnet_name: str
    subnets: dict[str, network.Subnet] = field(default_factory=dict)
    nsgs: dict[str, network.NetworkSecurityGroup] = field(default_factory=dict)
    route_table: Optional[network.RouteTable] = None


def create_virtual_network(cfg: SpokeConfig, namer: Namer, resource_group: resources.ResourceGroup):
    vnet_name = namer.virtual_network
    return network.VirtualNetwork(
        vnet_name,
        address_space=network.AddressSpaceArgs(address_prefixes=cfg.network.address_space),
        dhcp_options=network.DhcpOptionsArgs(dns_servers=cfg.network.dns_servers)
        if cfg.network.dns_servers
        else None,
        virtual_network_name=vnet_name,
        resource_group_name=resource_group.name,
        location=cfg.location,
        tags=cfg.tags,
    )


def _source_args(prefixes: list[str]) -> dict:
    # Service tags and "*" are only accepted in the singular field.
    if len(prefixes) == 1:
        return {"source_address_prefix": prefixes[0]}
    return {"source_address_prefixes": prefixes}


def security_rules_for(subnet: SubnetConfig, cfg: SpokeConfig) -> list[network.SecurityRuleArgs]:
    rules = []
    jumpbox = cfg.jumpbox
    if jumpbox and jumpbox.subnet.lower() == subnet.name.lower():
        rules.append(
            network.SecurityRuleArgs(
                name=f"allow-{jumpbox.os_type}-management-inbound",
                priority=JUMPBOX_RULE_PRIORITY,
                direction=network.SecurityRuleDirection.INBOUND,
                access=network.SecurityRuleAccess.ALLOW,
                protocol=network.SecurityRuleProtocol.TCP,
                source_port_range="*",
                destination_address_prefix="*",
                destination_port_range=jumpbox.management_port,
                **_source_args(jumpbox.allowed_source_prefixes),
            )
        )
    for rule in subnet.security_rules:
        rules.append(
            network.SecurityRuleArgs(
                name=rule.name,
                priority=rule.priority,
                direction=rule.direction,
                access=rule.access,
                protocol=rule.protocol,
                source_address_prefix=rule.source_address_prefix,
                source_port_range=rule.source_port_range,
                destination_address_prefix=rule.destination_address_prefix,
                destination_port_range=rule.destination_port_range,
            )
        )
    return rules


def create_network_security_group(
    subnet: SubnetConfig, cfg: SpokeConfig, namer: Namer, resource_group: resources.ResourceGroup
):
    nsg_name = namer.network_security_group(subnet.name)
    return network.NetworkSecurityGroup(
        nsg_name,
        network_security_group_name=nsg_name,
        resource_group_name=resource_group.name,
        location=cfg.location,
        security_rules=security_rules_for(subnet, cfg),
        tags=cfg.tags,
    )


def create_route_table(cfg: SpokeConfig, namer: Namer, resource_group: resources.ResourceGroup):
    """Route table shared by every subnet that accepts one, or None when nothing routes."""
    if not cfg.network.has_routes:
        return None

    routes = []
    if cfg.network.firewall_private_ip:
        routes.append(
            network.RouteArgs(
                name=FIREWALL_ROUTE_NAME,
                address_prefix="0.0.0.0/0",
                next_hop_type=network.RouteNextHopType.VIRTUAL_APPLIANCE,
                next_hop_ip_address=cfg.network.firewall_private_ip,
            )
        )
    for route in cfg.network.routes:
        routes.append(
            network.RouteArgs(
                name=route.name,
                address_prefix=route.address_prefix,
                next_hop_type=route.next_hop_type,
                next_hop_ip_address=route.next_hop_ip_address,
            )
        )

    rt_name = namer.route_table
    return network.RouteTable(
        rt_name,
        route_table_name=rt_name,
        resource_group_name=resource_group.name,
        location=cfg.location,
        disable_bgp_route_propagation=cfg.network.disable_bgp_route_propagation,
        routes=routes,
        tags=cfg.tags,
    )


def _subnet_args(subnet: SubnetConfig, nsg, route_table) -> dict:
    args = {}
    if nsg is not None:
        args["network_security_group"] = network.NetworkSecurityGroupArgs(id=nsg.id)
    if route_table is not None:
        args["route_table"] = network.RouteTableArgs(id=route_table.id)
    if subnet.service_endpoints:
        args["service_endpoints"] = [
            network.ServiceEndpointPropertiesFormatArgs(service=service) for service in subnet.service_endpoints
        ]
    if subnet.delegation:
        args["delegations"] = [
            network.DelegationArgs(
                name=subnet.delegation.split("/")[-1].lower() + "-delegation",
                service_name=subnet.delegation,
            )
        ]
    return args


def create_subnets(
    cfg: SpokeConfig,
    namer: Namer,
    resource_group: resources.ResourceGroup,
    vnet: network.VirtualNetwork,
    route_table: Optional[network.RouteTable],
):
    subnets = {}
    nsgs = {}
    previous = None
    for subnet in cfg.network.subnets:
        if subnet.reserved and (subnet.nsg or subnet.route_table):
            pulumi.log.warn(f"{subnet.name} is reserved by Azure, ignoring its NSG/route table settings")

        nsg = None
        if subnet.wants_nsg:
            nsg = create_network_security_group(subnet, cfg, namer, resource_group)
            nsgs[subnet.name] = nsg

        rt = route_table if subnet.wants_route_table else None

        # ARM rejects concurrent writes to subnets of the same VNet.
        sub = network.Subnet(
            f"{namer.virtual_network}-{subnet.name}",
            address_prefix=subnet.address_prefix,
            resource_group_name=resource_group.name,
            subnet_name=subnet.name,
            virtual_network_name=vnet.name,
            private_endpoint_network_policies=subnet.private_endpoint_network_policies,
            opts=pulumi.ResourceOptions(parent=vnet, depends_on=[previous] if previous else None),
            **_subnet_args(subnet, nsg, rt),
        )
        subnets[subnet.name] = sub
        previous = sub
    return subnets, nsgs


def create_network(cfg: SpokeConfig, namer: Namer, resource_group: resources.ResourceGroup) -> SpokeNetwork:
    vnet = create_virtual_network(cfg, namer, resource_group)
    route_table = create_route_table(cfg, namer, resource_group)
    subnets, nsgs = create_subnets(cfg, namer, resource_group, vnet, route_table)
    pulumi.log.info(
        f"{namer.virtual_network}: {len(subnets)} subnets, {len(nsgs)} NSGs, "
        f"route table {'on' if route_table else 'off'}"
    )
    return SpokeNetwork(
        vnet=vnet,
        vnet_name=namer.virtual_network,
        subnets=subnets,
        nsgs=nsgs,
        route_table=route_table,
    )
