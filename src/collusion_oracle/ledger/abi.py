"""ABI fragment of the collusion contract, limited to what the oracle uses."""

from typing import Any

from typing_extensions import Final


def _fn(
    name: str,
    inputs: list[tuple[str, str]],
    outputs: list[str] | None = None,
    *,
    view: bool = False,
) -> dict[str, Any]:
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": t} for t in outputs or []],
        "stateMutability": "view" if view else "nonpayable",
    }


COLLUSION_CONTRACT_ABI: Final[list[dict[str, Any]]] = [
    # Reads
    _fn("isReadyToBegin", [], ["bool"], view=True),
    _fn("attackHasBegun", [], ["bool"], view=True),
    _fn("getColludingValidators", [], ["string[]"], view=True),
    _fn("percentageOfStakedEtherControlledIs", [("percentage", "uint256")], ["bool"], view=True),
    # Writes
    _fn(
        "postValidatorInfo",
        [("validatorId", "string"), ("balance", "uint256"), ("status", "string")],
    ),
    _fn("updateStakedEther", [("amount", "uint256")]),
    _fn("postAttackInfo", [("addressToCensor", "address"), ("epoch", "uint256")]),
    _fn("beginAttackIfPossible", []),
    _fn("postAttackSuccess", [("success", "bool")]),
    _fn("postAndSlashMisbehavingValidators", [("validatorIds", "string[]")]),
    # Events
    {
        "type": "event",
        "name": "NewColluder",
        "anonymous": False,
        "inputs": [
            {"name": "validatorId", "type": "string", "indexed": False},
            {"name": "signature", "type": "string", "indexed": False},
            {"name": "messageHash", "type": "bytes32", "indexed": False},
        ],
    },
]
"""Functions and events of the collusion contract called by the oracle."""
