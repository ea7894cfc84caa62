"""Optional jump box in the spoke"""

from dataclasses import dataclass
from typing import Optional

import pulumi
from pulumi_azure_native import compute, network, resources

from spoke.config import JumpBoxConfig, SpokeConfig
from spoke.naming import Namer
from spoke.vnets import SpokeNetwork

IMAGES = {
    "linux": {
        "publisher": "Canonical",
        "offer": "0001-com-ubuntu-server-jammy",
        "sku": "22_04-lts-gen2",
    },
    "windows": {
        "publisher": "MicrosoftWindowsServer",
        "offer": "WindowsServer",
        "sku": "2022-datacenter-azure-edition",
    },
}


@dataclass
class JumpBox:
    vm: compute.VirtualMachine
    nic: network.NetworkInterface
    public_ip: Optional[network.PublicIPAddress] = None

    @property
    def private_ip(self) -> pulumi.Output:
        return self.nic.ip_configurations.apply(
            lambda configs: configs[0].private_ip_address if configs else None
        )


def image_reference(os_type: str) -> compute.ImageReferenceArgs:
    return compute.ImageReferenceArgs(version="latest", **IMAGES[os_type])


def _os_profile(jumpbox: JumpBoxConfig, computer_name: str) -> compute.OSProfileArgs:
    if jumpbox.os_type == "windows":
        return compute.OSProfileArgs(
            admin_username=jumpbox.admin_username,
            admin_password=jumpbox.admin_password,
            computer_name=computer_name,
            windows_configuration=compute.WindowsConfigurationArgs(
                enable_automatic_updates=True,
                provision_vm_agent=True,
            ),
        )
    return compute.OSProfileArgs(
        admin_username=jumpbox.admin_username,
        computer_name=computer_name,
        linux_configuration=compute.LinuxConfigurationArgs(
            disable_password_authentication=True,
            ssh=compute.SshConfigurationArgs(
                public_keys=[
                    compute.SshPublicKeyArgs(
                        key_data=jumpbox.ssh_public_key,
                        path=f"/home/{jumpbox.admin_username}/.ssh/authorized_keys",
                    )
                ],
            ),
        ),
    )


def create_jumpbox(
    cfg: SpokeConfig, namer: Namer, resource_group: resources.ResourceGroup, spoke: SpokeNetwork
) -> Optional[JumpBox]:
    jumpbox = cfg.jumpbox
    if jumpbox is None:
        return None

    subnet_name = cfg.network.subnet(jumpbox.subnet).name
    vm_name = namer.name("virtual_machine", "jump")

    pip = None
    if jumpbox.public_ip:
        pip_name = namer.name("public_ip", "jump")
        pip = network.PublicIPAddress(
            pip_name,
            public_ip_address_name=pip_name,
            resource_group_name=resource_group.name,
            location=cfg.location,
            public_ip_allocation_method=network.IPAllocationMethod.STATIC,
            sku=network.PublicIPAddressSkuArgs(name=network.PublicIPAddressSkuName.STANDARD),
            tags=cfg.tags,
        )

    ip_config = {
        "name": "ipconfig1",
        "subnet": network.SubnetArgs(id=spoke.subnets[subnet_name].id),
        "private_ip_allocation_method": network.IPAllocationMethod.DYNAMIC,
    }
    if pip is not None:
        ip_config["public_ip_address"] = network.PublicIPAddressArgs(id=pip.id)

    nic_name = namer.name("network_interface", "jump")
    nic = network.NetworkInterface(
        nic_name,
        network_interface_name=nic_name,
        ip_configurations=[network.NetworkInterfaceIPConfigurationArgs(**ip_config)],
        location=cfg.location,
        resource_group_name=resource_group.name,
        tags=cfg.tags,
    )

    vm = compute.VirtualMachine(
        vm_name,
        vm_name=vm_name,
        hardware_profile=compute.HardwareProfileArgs(vm_size=jumpbox.size),
        location=cfg.location,
        network_profile=compute.NetworkProfileArgs(
            network_interfaces=[
                compute.NetworkInterfaceReferenceArgs(
                    id=nic.id,
                    primary=True,
                )
            ],
        ),
        os_profile=_os_profile(jumpbox, namer.computer_name(jumpbox.os_type)),
        resource_group_name=resource_group.name,
        storage_profile=compute.StorageProfileArgs(
            image_reference=image_reference(jumpbox.os_type),
            os_disk=compute.OSDiskArgs(
                caching="ReadWrite",
                create_option="FromImage",
                delete_option="Delete",
                managed_disk=compute.ManagedDiskParametersArgs(
                    storage_account_type="StandardSSD_LRS",
                ),
                name=namer.name("os_disk", "jump"),
            ),
        ),
        tags=cfg.tags,
    )
    pulumi.log.info(f"{jumpbox.os_type} jump box {vm_name} in subnet {subnet_name}")
    return JumpBox(vm=vm, nic=nic, public_ip=pip)
