"""Spoke to hub peering"""

from dataclasses import dataclass
from typing import Optional

import pulumi
import pulumi_azure_native
from pulumi_azure_native import network, resources

from spoke.config import SpokeConfig
from spoke.naming import Namer
from spoke.vnets import SpokeNetwork


@dataclass
class Peerings:
    spoke_to_hub: network.VirtualNetworkPeering
    hub_to_spoke: Optional[network.VirtualNetworkPeering] = None


def create_peerings(
    cfg: SpokeConfig, namer: Namer, resource_group: resources.ResourceGroup, spoke: SpokeNetwork
) -> Optional[Peerings]:
    hub = cfg.hub
    if hub is None:
        return None

    hub_id = hub.resource_id
    # Peering while a subnet is still being written fails with AnotherOperationInProgress.
    after_subnets = list(spoke.subnets.values())

    peer_name = namer.peering(hub_id.name)
    spoke_to_hub = network.VirtualNetworkPeering(
        peer_name,
        resource_group_name=resource_group.name,
        virtual_network_name=spoke.vnet.name,
        virtual_network_peering_name=peer_name,
        remote_virtual_network=network.SubResourceArgs(id=hub.virtual_network_id),
        allow_virtual_network_access=True,
        allow_forwarded_traffic=hub.allow_forwarded_traffic,
        allow_gateway_transit=hub.allow_gateway_transit,
        use_remote_gateways=hub.use_remote_gateways,
        opts=pulumi.ResourceOptions(depends_on=after_subnets),
    )
    pulumi.log.info(f"peering {spoke.vnet_name} to hub {hub_id.name}")

    if not hub.create_reverse_peering:
        return Peerings(spoke_to_hub=spoke_to_hub)

    # The hub usually lives in a connectivity subscription of its own.
    hub_provider = pulumi_azure_native.Provider(
        f"hub-{hub_id.subscription_id}",
        subscription_id=hub_id.subscription_id,
    )
    reverse_name = namer.reverse_peering(hub_id.name)
    hub_to_spoke = network.VirtualNetworkPeering(
        reverse_name,
        resource_group_name=hub_id.resource_group,
        virtual_network_name=hub_id.name,
        virtual_network_peering_name=reverse_name,
        remote_virtual_network=network.SubResourceArgs(id=spoke.vnet.id),
        allow_virtual_network_access=True,
        allow_forwarded_traffic=hub.allow_forwarded_traffic,
        allow_gateway_transit=hub.use_remote_gateways,
        use_remote_gateways=False,
        opts=pulumi.ResourceOptions(provider=hub_provider, depends_on=after_subnets),
    )
    pulumi.log.info(f"peering hub {hub_id.name} back to {spoke.vnet_name}")
    return Peerings(spoke_to_hub=spoke_to_hub, hub_to_spoke=hub_to_spoke)
