"""Composes the whole spoke from a validated config"""

import pulumi
from pulumi_azure_native import resources

from spoke.config import SpokeConfig
from spoke.naming import Namer
from spoke.peering import create_peerings
from spoke.policies import create_policy_assignments
from spoke.vms import create_jumpbox
from spoke.vnets import create_network


def deploy(cfg: SpokeConfig) -> dict:
    namer = Namer(cfg.workload, cfg.environment, cfg.location)

    rg_name = namer.resource_group
    resource_group = resources.ResourceGroup(
        rg_name,
        resource_group_name=rg_name,
        location=cfg.location,
        tags=cfg.tags,
    )
    pulumi.log.info(f"spoke {cfg.workload}/{cfg.environment} in {cfg.location}, resource group {rg_name}")

    spoke = create_network(cfg, namer, resource_group)
    peerings = create_peerings(cfg, namer, resource_group, spoke)
    jumpbox = create_jumpbox(cfg, namer, resource_group, spoke)
    assignments = create_policy_assignments(cfg, namer, resource_group)

    return {
        "resource_group_name": resource_group.name,
        "vnet_id": spoke.vnet.id,
        "vnet_name": spoke.vnet.name,
        "subnet_ids": {name: subnet.id for name, subnet in spoke.subnets.items()},
        "nsg_ids": {name: nsg.id for name, nsg in spoke.nsgs.items()},
        "route_table_id": spoke.route_table.id if spoke.route_table else None,
        "hub_peering_name": peerings.spoke_to_hub.name if peerings else None,
        "jumpbox_name": jumpbox.vm.name if jumpbox else None,
        "jumpbox_private_ip": jumpbox.private_ip if jumpbox else None,
        "jumpbox_public_ip": jumpbox.public_ip.ip_address if jumpbox and jumpbox.public_ip else None,
        "policy_assignment_ids": {name: a.id for name, a in assignments.items()},
    }
