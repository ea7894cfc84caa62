"""Azure resource name derivation.

Names follow the Cloud Adoption Framework shape
``<abbreviation>-<workload>-<environment>-<region code>[-<qualifier>...]``,
e.g. ``vnet-payments-dev-weu`` or ``nsg-payments-dev-weu-app``.
"""

import hashlib
import re
from dataclasses import dataclass
from typing import Optional

from spoke.errors import ConfigError

ABBREVIATIONS = {
    "resource_group": "rg",
    "virtual_network": "vnet",
    "network_security_group": "nsg",
    "route_table": "rt",
    "peering": "peer",
    "virtual_machine": "vm",
    "network_interface": "nic",
    "public_ip": "pip",
    "os_disk": "osdisk",
    "policy_assignment": "pa",
}

REGION_CODES = {
    "australiaeast": "aue",
    "brazilsouth": "brs",
    "canadacentral": "cac",
    "centralindia": "inc",
    "centralus": "cus",
    "eastasia": "ea",
    "eastus": "eus",
    "eastus2": "eus2",
    "francecentral": "frc",
    "germanywestcentral": "gwc",
    "japaneast": "jpe",
    "northcentralus": "ncus",
    "northeurope": "neu",
    "southcentralus": "scus",
    "southeastasia": "sea",
    "swedencentral": "sdc",
    "switzerlandnorth": "szn",
    "uksouth": "uks",
    "ukwest": "ukw",
    "westeurope": "weu",
    "westindia": "inw",
    "westus": "wus",
    "westus2": "wus2",
    "westus3": "wus3",
}

WINDOWS_COMPUTER_NAME_MAX = 15
LINUX_COMPUTER_NAME_MAX = 64
POLICY_ASSIGNMENT_NAME_MAX = 64

_RESOURCE_ID = re.compile(
    r"^/subscriptions/(?P<subscription>[^/]+)"
    r"/resourceGroups/(?P<group>[^/]+)"
    r"/providers/(?P<namespace>[^/]+)"
    r"/(?P<type>[^/]+)/(?P<name>[^/]+)/?$",
    re.IGNORECASE,
)


def region_code(location: str) -> str:
    key = location.replace(" ", "").lower()
    return REGION_CODES.get(key, key)


@dataclass(frozen=True)
class ResourceId:
    subscription_id: str
    resource_group: str
    namespace: str
    resource_type: str
    name: str


def parse_resource_id(resource_id: str) -> ResourceId:
    match = _RESOURCE_ID.match(resource_id or "")
    if not match:
        raise ConfigError(f"malformed Azure resource id: {resource_id!r}")
    return ResourceId(
        subscription_id=match["subscription"],
        resource_group=match["group"],
        namespace=match["namespace"],
        resource_type=match["type"],
        name=match["name"],
    )


def default_tags(workload: str, environment: str, extra: Optional[dict] = None) -> dict:
    tags = {
        "workload": workload,
        "environment": environment,
        "managed-by": "pulumi",
    }
    tags.update(extra or {})
    return tags


class Namer:
    """Builds every resource name of one spoke from a fixed workload/environment/region."""

    def __init__(self, workload: str, environment: str, location: str):
        self.workload = workload
        self.environment = environment
        self.region = region_code(location)

    def name(self, kind: str, *qualifiers: str) -> str:
        parts = [ABBREVIATIONS[kind], self.workload, self.environment, self.region]
        parts.extend(q.lower() for q in qualifiers if q)
        return "-".join(parts)

    @property
    def resource_group(self) -> str:
        return self.name("resource_group")

    @property
    def virtual_network(self) -> str:
        return self.name("virtual_network")

    def network_security_group(self, subnet_name: str) -> str:
        return self.name("network_security_group", subnet_name)

    @property
    def route_table(self) -> str:
        return self.name("route_table")

    def peering(self, remote_name: str) -> str:
        return f"{ABBREVIATIONS['peering']}-{self.virtual_network}-to-{remote_name}"

    def reverse_peering(self, hub_name: str) -> str:
        return f"{ABBREVIATIONS['peering']}-{hub_name}-to-{self.virtual_network}"

    def computer_name(self, os_type: str) -> str:
        if os_type == "windows":
            # NetBIOS limit. The "jb" prefix keeps it from ever being all digits.
            compact = re.sub(r"[^a-z0-9]", "", f"jb{self.workload}{self.environment}".lower())
            return compact[:WINDOWS_COMPUTER_NAME_MAX]
        return self.name("virtual_machine", "jump")[:LINUX_COMPUTER_NAME_MAX].rstrip("-")

    def policy_assignment(self, policy_name: str) -> str:
        name = self.name("policy_assignment", policy_name)
        if len(name) <= POLICY_ASSIGNMENT_NAME_MAX:
            return name
        # Truncated names keep a digest of the full name so long prefixes stay distinct.
        digest = hashlib.sha1(name.encode()).hexdigest()[:6]
        head = name[: POLICY_ASSIGNMENT_NAME_MAX - len(digest) - 1].rstrip("-")
        return f"{head}-{digest}"
