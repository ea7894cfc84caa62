"""A hub-and-spoke landing zone spoke, declared with Pulumi"""

import pulumi

from spoke.config import load_config
from spoke.stack import deploy

cfg = load_config()

for key, value in deploy(cfg).items():
    pulumi.export(key, value)
