# gapwatch/fixtures.py
"""
Static fixture data: sample contract sources, the offline verdict tables
and the system prompt sent to the text-generation API.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional

@dataclass(frozen=True, slots=True)
class ContractFixture:
    address: str
    name: str
    code: str

SAFE_CONTRACTS: List[ContractFixture] = [
    ContractFixture(
        address="0x742d35Cc6634C0532925a3b844Bc9e7595f2bD28",
        name="StandardERC20",
        code="""// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

import "@openzeppelin/contracts/token/ERC20/ERC20.sol";

contract PurpleToken is ERC20 {
    constructor() ERC20("Purple Token", "PRPL") {
        _mint(msg.sender, 1000000 * 10**18);
    }
}""",
    ),
    ContractFixture(
        address="0x8B3a08B22F23f37FA4e2E0E5a0F147F4829E2c3A",
        name="SimpleDEXPool",
        code="""// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

import "@openzeppelin/contracts/token/ERC20/IERC20.sol";

contract SimpleDEXPool {
    IERC20 public tokenA;
    IERC20 public tokenB;

    function swap(address tokenIn, uint256 amountIn) external returns (uint256 amountOut) {
        require(tokenIn == address(tokenA) || tokenIn == address(tokenB), "Invalid token");
        IERC20 input = IERC20(tokenIn);
        IERC20 output = tokenIn == address(tokenA) ? tokenB : tokenA;
        uint256 reserveIn = input.balanceOf(address(this));
        uint256 reserveOut = output.balanceOf(address(this));
        amountOut = (amountIn * reserveOut) / (reserveIn + amountIn);
        input.transferFrom(msg.sender, address(this), amountIn);
        output.transfer(msg.sender, amountOut);
    }
}""",
    ),
]

SCAM_CONTRACTS: List[ContractFixture] = [
    ContractFixture(
        address="0xDEAD000000000000000000000000000000001337",
        name="HoneypotToken",
        code="""// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

contract HoneypotToken {
    mapping(address => uint256) public balanceOf;
    mapping(address => bool) private _blacklisted;
    address public owner;
    bool public sellEnabled = false;
    uint256 private _hiddenTax = 25;

    modifier onlyOwner() { require(msg.sender == owner); _; }

    function sell(uint256 amount) external {
        require(sellEnabled, "Trading not enabled yet");
        require(!_blacklisted[msg.sender], "Blacklisted");
        uint256 taxed = amount * (100 - _hiddenTax) / 100;
        balanceOf[msg.sender] -= amount;
        payable(msg.sender).transfer(taxed);
    }

    function setTax(uint256 tax) external onlyOwner { _hiddenTax = tax; }
    function blacklist(address user) external onlyOwner { _blacklisted[user] = true; }
    function withdrawAll() external onlyOwner { payable(owner).transfer(address(this).balance); }
}""",
    ),
    ContractFixture(
        address="0xBAD0000000000000000000000000000000000069",
        name="RugPullDex",
        code="""// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

contract RugPullDex {
    address public owner;
    bool public paused;

    modifier onlyOwner() { require(msg.sender == owner); _; }

    function removeLiquidity(uint256 amount) external {
        require(msg.sender == owner, "Only owner");
        payable(owner).transfer(amount);
    }

    function pause() external onlyOwner { paused = true; }
    function swap(address, uint256) external view { require(!paused, "Paused"); }
    function emergencyWithdraw() external onlyOwner { selfdestruct(payable(owner)); }
}""",
    ),
    ContractFixture(
        address="0xFAKE00000000000000000000000000000000DEAD",
        name="ProxyRugToken",
        code="""// SPDX-License-Identifier: MIT
pragma solidity ^0.8.20;

contract ProxyRugToken {
    address public implementation;
    address public owner;
    mapping(address => uint256) public balances;

    modifier onlyOwner() { require(msg.sender == owner); _; }

    function transfer(address to, uint256 amount) external returns (bool) {
        if (implementation != address(0)) {
            (bool ok,) = implementation.delegatecall(
                abi.encodeWithSignature("beforeTransfer(address,address,uint256)", msg.sender, to, amount)
            );
            require(ok);
        }
        balances[msg.sender] -= amount;
        balances[to] += amount;
        return true;
    }

    function setImplementation(address impl) external onlyOwner { implementation = impl; }
    function mint(uint256 amount) external onlyOwner { balances[owner] += amount; }
}""",
    ),
]

# Pool the feed draws an opportunity's contract from
CONTRACT_POOL: List[str] = [
    SAFE_CONTRACTS[0].address,
    SCAM_CONTRACTS[0].address,
    SAFE_CONTRACTS[1].address,
    SCAM_CONTRACTS[1].address,
    SCAM_CONTRACTS[2].address,
]

SCAM_VERDICTS: Dict[str, Dict] = {
    "HoneypotToken": {
        "threats": [
            "sell function permanently disabled",
            "hidden 25% tax",
            "owner blacklist function",
            "owner can withdraw all ETH",
        ],
        "rationale": (
            "Selling is gated on a flag the owner never flips, a 25% tax hides behind a private "
            "variable the owner can raise to 100%, and any holder can be blacklisted. "
            "Buyers get in, nobody gets out. Hard pass."
        ),
    },
    "RugPullDex": {
        "threats": [
            "only owner can remove liquidity",
            "pausable by owner",
            "selfdestruct enabled",
            "fake swap function",
        ],
        "rationale": (
            "Only the owner can pull liquidity, the owner can pause swaps at will, the swap "
            "does nothing at all and an emergency selfdestruct sends everything home. "
            "This is a piggy bank with a DEX sticker on it."
        ),
    },
    "ProxyRugToken": {
        "threats": [
            "delegatecall to mutable implementation",
            "unlimited owner minting",
            "changeable transfer logic",
        ],
        "rationale": (
            "Transfers delegatecall into an implementation the owner can swap at any time, and "
            "the owner can mint without limit. The transfer rules you read today are not the "
            "ones you will get tomorrow."
        ),
    },
}

GENERIC_SCAM_VERDICT: Dict = {
    "threats": ["suspicious patterns detected"],
    "rationale": "More red flags than a parade. Hard pass.",
}

UNKNOWN_UNSAFE_THREATS: List[str] = ["suspicious owner privileges", "potential transfer restrictions"]

SAFE_RATIONALES: List[str] = [
    "{name} is clean: no hidden fees, no owner backdoors, nothing clever hiding in the transfer path.",
    "Standard logic, transparent code and no privileged exits. {name} passes.",
    "Read every line of {name}. Clean mint, clean transfers, clean everything.",
]

UNKNOWN_SAFE_RATIONALE = "Contract {short} passes the check. No known rug patterns detected."
UNKNOWN_UNSAFE_RATIONALE = (
    "Contract {short} ships hidden owner functions and suspicious transfer logic. Hard pass."
)

SOURCE_UNAVAILABLE = "// Contract source not available for {address}\n// Using bytecode analysis fallback"

SYSTEM_PROMPT = """You are a blunt smart-contract security auditor for an arbitrage bot.

Analyze the Solidity source you are given for scams and malicious patterns:
1. Honeypot patterns: locked sell functions, fake liquidity, transfer restrictions
2. Rug-pull vectors: owner-only privileges, pausable transfers, proxies hiding logic
3. Malicious code: hidden fees above 5%, blacklist functions, selfdestruct, delegatecall abuse
4. Fake approvals: infinite allowance drains, approval front-running
5. Liquidity traps: owner-only liquidity removal, fake LP tokens

Respond with a single JSON object and nothing else:
{
  "safe": true | false,
  "confidence": <number 0-100>,
  "threats": ["<threat>", ...],
  "roast": "<if safe, a short endorsement; if unsafe, a savage one-paragraph takedown of the author>"
}"""

def find_fixture(address: str) -> Optional[ContractFixture]:
    for fixture in SAFE_CONTRACTS + SCAM_CONTRACTS:
        if fixture.address == address:
            return fixture
    return None

def is_safe_fixture(address: str) -> bool:
    return any(c.address == address for c in SAFE_CONTRACTS)

def scam_verdict_for(name: str) -> Dict:
    return SCAM_VERDICTS.get(name, GENERIC_SCAM_VERDICT)
