"""ABI fragments for the contracts this daemon touches.

Only the members used here are listed: the proposal event on openSTUtility,
the two registrar methods, and the confirmation events they emit.
"""

from __future__ import annotations

PROPOSED_BRANDED_TOKEN_EVENT = {
    "anonymous": False,
    "name": "ProposedBrandedToken",
    "type": "event",
    "inputs": [
        {"indexed": True, "name": "_requester", "type": "address"},
        {"indexed": False, "name": "_token", "type": "address"},
        {"indexed": False, "name": "_uuid", "type": "bytes32"},
        {"indexed": False, "name": "_symbol", "type": "string"},
        {"indexed": False, "name": "_name", "type": "string"},
        {"indexed": False, "name": "_conversionRate", "type": "uint256"},
    ],
}

OPENST_UTILITY_ABI = [PROPOSED_BRANDED_TOKEN_EVENT]

REGISTERED_BRANDED_TOKEN_EVENT = {
    "anonymous": False,
    "name": "RegisteredBrandedToken",
    "type": "event",
    "inputs": [
        {"indexed": True, "name": "_registrar", "type": "address"},
        {"indexed": True, "name": "_token", "type": "address"},
        {"indexed": False, "name": "_uuid", "type": "bytes32"},
        {"indexed": False, "name": "_symbol", "type": "string"},
        {"indexed": False, "name": "_name", "type": "string"},
        {"indexed": False, "name": "_conversionRate", "type": "uint256"},
        {"indexed": False, "name": "_requester", "type": "address"},
    ],
}

UTILITY_TOKEN_REGISTERED_EVENT = {
    "anonymous": False,
    "name": "UtilityTokenRegistered",
    "type": "event",
    "inputs": [
        {"indexed": True, "name": "_uuid", "type": "bytes32"},
        {"indexed": True, "name": "stake", "type": "address"},
        {"indexed": False, "name": "_symbol", "type": "string"},
        {"indexed": False, "name": "_name", "type": "string"},
        {"indexed": False, "name": "_decimals", "type": "uint256"},
        {"indexed": False, "name": "_conversionRate", "type": "uint256"},
        {"indexed": False, "name": "_chainIdUtility", "type": "uint256"},
        {"indexed": True, "name": "_stakingAccount", "type": "address"},
    ],
}

UTILITY_REGISTRAR_ABI = [
    {
        "name": "registerBrandedToken",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_registry", "type": "address"},
            {"name": "_symbol", "type": "string"},
            {"name": "_name", "type": "string"},
            {"name": "_conversionRate", "type": "uint256"},
            {"name": "_requester", "type": "address"},
            {"name": "_brandedToken", "type": "address"},
            {"name": "_checkUuid", "type": "bytes32"},
        ],
        "outputs": [{"name": "registeredUuid", "type": "bytes32"}],
    },
    REGISTERED_BRANDED_TOKEN_EVENT,
]

VALUE_REGISTRAR_ABI = [
    {
        "name": "registerUtilityToken",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "_registry", "type": "address"},
            {"name": "_symbol", "type": "string"},
            {"name": "_name", "type": "string"},
            {"name": "_conversionRate", "type": "uint256"},
            {"name": "_chainIdUtility", "type": "uint256"},
            {"name": "_stakingAccount", "type": "address"},
            {"name": "_checkUuid", "type": "bytes32"},
        ],
        "outputs": [{"name": "uuid", "type": "bytes32"}],
    },
    UTILITY_TOKEN_REGISTERED_EVENT,
]


def event_names(abi: list[dict]) -> list[str]:
    return [entry["name"] for entry in abi if entry.get("type") == "event"]
