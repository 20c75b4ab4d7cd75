from pathlib import Path

import xdeploy

#
# Filesystem
#

PROJECT_ROOT = Path(xdeploy.__file__).parent.parent
ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"

#
# Networks
#

LOCAL_NETWORKS = ["local", "hardhat"]

# Explorer credential used when the ecosystem has no ape-etherscan mapping
DEFAULT_EXPLORER_API_KEY_ENVVAR = "ETHERSCAN_API_KEY"

DEFAULT_CONFIRMATIONS = 1

#
# Plans
#

VARIABLE_PREFIX = "$"
DEPLOYER_VARIABLE = "deployer"

#
# Contracts
#

OZ_DEPENDENCY_NAME = "openzeppelin"
OZ_DEPENDENCY_VERSION = "5.0.0"

# EIP1967 Admin slot - https://eips.ethereum.org/EIPS/eip-1967#admin-address
EIP1967_ADMIN_SLOT = 0xB53127684A568B3173AE13B9F8A6016E243E63B6E8EE1178D6A717850B5D6103

# Token amounts in configuration files are expressed in whole tokens
TOKEN_DECIMALS_UNIT = "ether"
TOKEN_DECIMALS = 18

MAX_UINT256 = 2**256 - 1

#
# Output
#

STANDARD_RESULT_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}
