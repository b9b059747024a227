"""
web3.py implementations of the venue collaborators

Shared by the Uniswap V3 and PancakeSwap V3 connectors: both deploy the
same NonfungiblePositionManager and SwapRouter interfaces and differ
only in addresses, fee tiers and the pool slot0 layout.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple

from eth_abi import decode as abi_decode
from web3 import Web3
from web3.logs import DISCARD

from .base import (
    Chain,
    CustodyJournal,
    ExchangeRouter,
    PoolReader,
    PoolState,
    PositionRegistry,
    TokenLedger,
    VenueConnector,
)
from ..config import EVMConfig, config as global_config
from ..errors import (
    MetadataUnavailable,
    PoolUnavailable,
    RpcError,
    TransactionError,
)
from ..infra.evm import EvmTransactor, get_nonce_manager
from ..infra.revert import classify_revert
from ..types import MAX_UINT128, MintParams, Position, Venue, is_zero_address, same_address

logger = logging.getLogger(__name__)


# =========================================================================
# ABIs
# =========================================================================

# ERC20 with write functions declared without return values: the return
# is checked separately so tokens that return nothing are accepted
ERC20_ABI = [
    {
        "inputs": [{"name": "_owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "balance", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "_owner", "type": "address"},
            {"name": "_spender", "type": "address"}
        ],
        "name": "allowance",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "_to", "type": "address"},
            {"name": "_value", "type": "uint256"}
        ],
        "name": "transfer",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "_from", "type": "address"},
            {"name": "_to", "type": "address"},
            {"name": "_value", "type": "uint256"}
        ],
        "name": "transferFrom",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "_spender", "type": "address"},
            {"name": "_value", "type": "uint256"}
        ],
        "name": "approve",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "name",
        "outputs": [{"name": "", "type": "string"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "from", "type": "address"},
            {"indexed": True, "name": "to", "type": "address"},
            {"indexed": False, "name": "value", "type": "uint256"}
        ],
        "name": "Transfer",
        "type": "event"
    },
]

# Tokens such as MKR return bytes32 for name/symbol
ERC20_BYTES32_METADATA_ABI = [
    {
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "bytes32"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [],
        "name": "name",
        "outputs": [{"name": "", "type": "bytes32"}],
        "stateMutability": "view",
        "type": "function"
    },
]

# V3 NonfungiblePositionManager ABI
POSITION_MANAGER_ABI = [
    {
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "name": "positions",
        "outputs": [
            {"name": "nonce", "type": "uint96"},
            {"name": "operator", "type": "address"},
            {"name": "token0", "type": "address"},
            {"name": "token1", "type": "address"},
            {"name": "fee", "type": "uint24"},
            {"name": "tickLower", "type": "int24"},
            {"name": "tickUpper", "type": "int24"},
            {"name": "liquidity", "type": "uint128"},
            {"name": "feeGrowthInside0LastX128", "type": "uint256"},
            {"name": "feeGrowthInside1LastX128", "type": "uint256"},
            {"name": "tokensOwed0", "type": "uint128"},
            {"name": "tokensOwed1", "type": "uint128"},
        ],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "name": "ownerOf",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "name": "getApproved",
        "outputs": [{"name": "", "type": "address"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "owner", "type": "address"},
            {"name": "operator", "type": "address"}
        ],
        "name": "isApprovedForAll",
        "outputs": [{"name": "", "type": "bool"}],
        "stateMutability": "view",
        "type": "function"
    },
    {
        "inputs": [
            {"name": "from", "type": "address"},
            {"name": "to", "type": "address"},
            {"name": "tokenId", "type": "uint256"}
        ],
        "name": "safeTransferFrom",
        "outputs": [],
        "stateMutability": "nonpayable",
        "type": "function"
    },
    {
        "inputs": [
            {
                "components": [
                    {"name": "token0", "type": "address"},
                    {"name": "token1", "type": "address"},
                    {"name": "fee", "type": "uint24"},
                    {"name": "tickLower", "type": "int24"},
                    {"name": "tickUpper", "type": "int24"},
                    {"name": "amount0Desired", "type": "uint256"},
                    {"name": "amount1Desired", "type": "uint256"},
                    {"name": "amount0Min", "type": "uint256"},
                    {"name": "amount1Min", "type": "uint256"},
                    {"name": "recipient", "type": "address"},
                    {"name": "deadline", "type": "uint256"},
                ],
                "name": "params",
                "type": "tuple"
            }
        ],
        "name": "mint",
        "outputs": [
            {"name": "tokenId", "type": "uint256"},
            {"name": "liquidity", "type": "uint128"},
            {"name": "amount0", "type": "uint256"},
            {"name": "amount1", "type": "uint256"},
        ],
        "stateMutability": "payable",
        "type": "function"
    },
    {
        "inputs": [
            {
                "components": [
                    {"name": "tokenId", "type": "uint256"},
                    {"name": "amount0Desired", "type": "uint256"},
                    {"name": "amount1Desired", "type": "uint256"},
                    {"name": "amount0Min", "type": "uint256"},
                    {"name": "amount1Min", "type": "uint256"},
                    {"name": "deadline", "type": "uint256"},
                ],
                "name": "params",
                "type": "tuple"
            }
        ],
        "name": "increaseLiquidity",
        "outputs": [
            {"name": "liquidity", "type": "uint128"},
            {"name": "amount0", "type": "uint256"},
            {"name": "amount1", "type": "uint256"},
        ],
        "stateMutability": "payable",
        "type": "function"
    },
    {
        "inputs": [
            {
                "components": [
                    {"name": "tokenId", "type": "uint256"},
                    {"name": "liquidity", "type": "uint128"},
                    {"name": "amount0Min", "type": "uint256"},
                    {"name": "amount1Min", "type": "uint256"},
                    {"name": "deadline", "type": "uint256"},
                ],
                "name": "params",
                "type": "tuple"
            }
        ],
        "name": "decreaseLiquidity",
        "outputs": [
            {"name": "amount0", "type": "uint256"},
            {"name": "amount1", "type": "uint256"},
        ],
        "stateMutability": "payable",
        "type": "function"
    },
    {
        "inputs": [
            {
                "components": [
                    {"name": "tokenId", "type": "uint256"},
                    {"name": "recipient", "type": "address"},
                    {"name": "amount0Max", "type": "uint128"},
                    {"name": "amount1Max", "type": "uint128"},
                ],
                "name": "params",
                "type": "tuple"
            }
        ],
        "name": "collect",
        "outputs": [
            {"name": "amount0", "type": "uint256"},
            {"name": "amount1", "type": "uint256"},
        ],
        "stateMutability": "payable",
        "type": "function"
    },
    {
        "inputs": [{"name": "tokenId", "type": "uint256"}],
        "name": "burn",
        "outputs": [],
        "stateMutability": "payable",
        "type": "function"
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "tokenId", "type": "uint256"},
            {"indexed": False, "name": "liquidity", "type": "uint128"},
            {"indexed": False, "name": "amount0", "type": "uint256"},
            {"indexed": False, "name": "amount1", "type": "uint256"},
        ],
        "name": "IncreaseLiquidity",
        "type": "event"
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "tokenId", "type": "uint256"},
            {"indexed": False, "name": "liquidity", "type": "uint128"},
            {"indexed": False, "name": "amount0", "type": "uint256"},
            {"indexed": False, "name": "amount1", "type": "uint256"},
        ],
        "name": "DecreaseLiquidity",
        "type": "event"
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "tokenId", "type": "uint256"},
            {"indexed": False, "name": "recipient", "type": "address"},
            {"indexed": False, "name": "amount0", "type": "uint256"},
            {"indexed": False, "name": "amount1", "type": "uint256"},
        ],
        "name": "Collect",
        "type": "event"
    },
]

# V3 SwapRouter ABI (exactInputSingle with deadline in the params struct)
SWAP_ROUTER_ABI = [
    {
        "inputs": [
            {
                "components": [
                    {"name": "tokenIn", "type": "address"},
                    {"name": "tokenOut", "type": "address"},
                    {"name": "fee", "type": "uint24"},
                    {"name": "recipient", "type": "address"},
                    {"name": "deadline", "type": "uint256"},
                    {"name": "amountIn", "type": "uint256"},
                    {"name": "amountOutMinimum", "type": "uint256"},
                    {"name": "sqrtPriceLimitX96", "type": "uint160"},
                ],
                "name": "params",
                "type": "tuple"
            }
        ],
        "name": "exactInputSingle",
        "outputs": [{"name": "amountOut", "type": "uint256"}],
        "stateMutability": "payable",
        "type": "function"
    },
]


def pool_abi(fee_protocol_type: str) -> List[Dict[str, Any]]:
    """V3 pool read ABI; venues differ in the width of slot0.feeProtocol"""
    return [
        {
            "inputs": [],
            "name": "factory",
            "outputs": [{"name": "", "type": "address"}],
            "stateMutability": "view",
            "type": "function"
        },
        {
            "inputs": [],
            "name": "slot0",
            "outputs": [
                {"name": "sqrtPriceX96", "type": "uint160"},
                {"name": "tick", "type": "int24"},
                {"name": "observationIndex", "type": "uint16"},
                {"name": "observationCardinality", "type": "uint16"},
                {"name": "observationCardinalityNext", "type": "uint16"},
                {"name": "feeProtocol", "type": fee_protocol_type},
                {"name": "unlocked", "type": "bool"},
            ],
            "stateMutability": "view",
            "type": "function"
        },
        {
            "inputs": [],
            "name": "token0",
            "outputs": [{"name": "", "type": "address"}],
            "stateMutability": "view",
            "type": "function"
        },
        {
            "inputs": [],
            "name": "token1",
            "outputs": [{"name": "", "type": "address"}],
            "stateMutability": "view",
            "type": "function"
        },
        {
            "inputs": [],
            "name": "fee",
            "outputs": [{"name": "", "type": "uint24"}],
            "stateMutability": "view",
            "type": "function"
        },
        {
            "inputs": [],
            "name": "tickSpacing",
            "outputs": [{"name": "", "type": "int24"}],
            "stateMutability": "view",
            "type": "function"
        },
        {
            "inputs": [],
            "name": "liquidity",
            "outputs": [{"name": "", "type": "uint128"}],
            "stateMutability": "view",
            "type": "function"
        },
    ]


def _checksum(address: str) -> str:
    return Web3.to_checksum_address(address)


def _read(fn, description: str) -> Any:
    """Plain view call with revert classification"""
    try:
        return fn.call()
    except Exception as e:
        raise classify_revert(e, description) from e


# =========================================================================
# Tokens
# =========================================================================

class EvmTokenLedger(TokenLedger):
    """ERC20 accounts of the custody account"""

    def __init__(self, transactor: EvmTransactor, evm_config: Optional[EVMConfig] = None):
        self._tx = transactor
        self._evm = evm_config or global_config.evm
        self._contracts: Dict[str, Any] = {}

    @property
    def custody(self) -> str:
        return self._tx.address

    def _token(self, token: str):
        key = token.lower()
        if key not in self._contracts:
            self._contracts[key] = self._tx.web3.eth.contract(address=_checksum(token), abi=ERC20_ABI)
        return self._contracts[key]

    def balance_of(self, token: str, account: str) -> int:
        return _read(self._token(token).functions.balanceOf(_checksum(account)), f"balanceOf({token})")

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return _read(
            self._token(token).functions.allowance(_checksum(owner), _checksum(spender)),
            f"allowance({token})",
        )

    def _send(self, token: str, fn_name: str, args: list, description: str) -> None:
        contract = self._token(token)
        data = contract.encode_abi(fn_name, args=args)
        try:
            raw = self._tx.web3.eth.call({"from": self.custody, "to": contract.address, "data": data})
        except Exception as e:
            raise classify_revert(e, description) from e
        self._check_bool_return(bytes(raw), description)
        fn = getattr(contract.functions, fn_name)(*args)
        gas = self._evm.approve_gas_limit if fn_name == "approve" else self._evm.transfer_gas_limit
        self._tx.execute(fn, gas, description, preview=False)

    @staticmethod
    def _check_bool_return(raw: bytes, description: str) -> None:
        # Non-standard tokens return nothing; only an explicit false fails
        if not raw:
            return
        try:
            (ok,) = abi_decode(["bool"], raw)
        except Exception as e:
            raise TransactionError.simulation_failed(f"{description}: unexpected return data", original_error=e)
        if not ok:
            raise TransactionError.simulation_failed(f"{description}: token returned false")

    def transfer(self, token: str, to: str, amount: int) -> None:
        self._send(token, "transfer", [_checksum(to), amount], f"transfer {amount} of {token} to {to}")

    def transfer_from(self, token: str, owner: str, amount: int) -> None:
        self._send(
            token,
            "transferFrom",
            [_checksum(owner), _checksum(self.custody), amount],
            f"transferFrom {amount} of {token} from {owner}",
        )

    def approve(self, token: str, spender: str, amount: int) -> None:
        self._send(token, "approve", [_checksum(spender), amount], f"approve {spender} for {amount} of {token}")

    def _string_field(self, token: str, field_name: str) -> str:
        try:
            return getattr(self._token(token).functions, field_name)().call()
        except Exception as first_error:
            legacy = self._tx.web3.eth.contract(address=_checksum(token), abi=ERC20_BYTES32_METADATA_ABI)
            try:
                raw = getattr(legacy.functions, field_name)().call()
            except Exception:
                raise MetadataUnavailable.unreadable(token, field_name, first_error)
            return bytes(raw).rstrip(b"\x00").decode("utf-8", errors="replace")

    def name(self, token: str) -> str:
        return self._string_field(token, "name")

    def symbol(self, token: str) -> str:
        return self._string_field(token, "symbol")

    def decimals(self, token: str) -> int:
        try:
            return int(self._token(token).functions.decimals().call())
        except Exception as e:
            raise MetadataUnavailable.unreadable(token, "decimals", e)


# =========================================================================
# Position registry
# =========================================================================

class EvmPositionRegistry(PositionRegistry):
    """NonfungiblePositionManager driven from the custody account"""

    def __init__(self, transactor: EvmTransactor, address: str, venue: Venue,
                 evm_config: Optional[EVMConfig] = None):
        self._tx = transactor
        self._address = _checksum(address)
        self._venue = venue
        self._evm = evm_config or global_config.evm
        self._contract = transactor.web3.eth.contract(address=self._address, abi=POSITION_MANAGER_ABI)

    @property
    def address(self) -> str:
        return self._address

    @property
    def venue(self) -> Venue:
        return self._venue

    def positions(self, token_id: int) -> Position:
        data = _read(self._contract.functions.positions(token_id), f"positions({token_id})")
        return Position(
            token_id=token_id,
            venue=self._venue,
            token0=data[2],
            token1=data[3],
            fee=data[4],
            tick_lower=data[5],
            tick_upper=data[6],
            liquidity=data[7],
            tokens_owed0=data[10],
            tokens_owed1=data[11],
            owner=self.owner_of(token_id),
        )

    def owner_of(self, token_id: int) -> str:
        return _read(self._contract.functions.ownerOf(token_id), f"ownerOf({token_id})")

    def get_approved(self, token_id: int) -> Optional[str]:
        approved = _read(self._contract.functions.getApproved(token_id), f"getApproved({token_id})")
        return None if is_zero_address(approved) else approved

    def is_approved_for_all(self, owner: str, operator: str) -> bool:
        return bool(_read(
            self._contract.functions.isApprovedForAll(_checksum(owner), _checksum(operator)),
            f"isApprovedForAll({owner}, {operator})",
        ))

    def _event_args(self, receipt, event_name: str, token_id: Optional[int] = None) -> Optional[dict]:
        event = getattr(self._contract.events, event_name)()
        for log in event.process_receipt(receipt, errors=DISCARD):
            if not same_address(log["address"], self._address):
                continue
            if token_id is not None and log["args"]["tokenId"] != token_id:
                continue
            return log["args"]
        return None

    def mint(self, params: MintParams) -> Tuple[int, int, int, int]:
        fn = self._contract.functions.mint((
            _checksum(params.token0),
            _checksum(params.token1),
            params.fee,
            params.tick_lower,
            params.tick_upper,
            params.amount0_desired,
            params.amount1_desired,
            params.amount0_min,
            params.amount1_min,
            _checksum(params.recipient),
            params.deadline,
        ))
        preview, receipt = self._tx.execute(fn, self._evm.lp_gas_limit, f"{self._venue.value} mint")
        args = self._event_args(receipt, "IncreaseLiquidity")
        if args is None:
            return tuple(preview)
        return args["tokenId"], args["liquidity"], args["amount0"], args["amount1"]

    def increase_liquidity(
        self,
        token_id: int,
        amount0_desired: int,
        amount1_desired: int,
        amount0_min: int,
        amount1_min: int,
        deadline: int,
    ) -> Tuple[int, int, int]:
        fn = self._contract.functions.increaseLiquidity(
            (token_id, amount0_desired, amount1_desired, amount0_min, amount1_min, deadline)
        )
        preview, receipt = self._tx.execute(fn, self._evm.lp_gas_limit, f"{self._venue.value} increaseLiquidity #{token_id}")
        args = self._event_args(receipt, "IncreaseLiquidity", token_id)
        if args is None:
            return tuple(preview)
        return args["liquidity"], args["amount0"], args["amount1"]

    def decrease_liquidity(
        self,
        token_id: int,
        liquidity: int,
        amount0_min: int,
        amount1_min: int,
        deadline: int,
    ) -> Tuple[int, int]:
        fn = self._contract.functions.decreaseLiquidity(
            (token_id, liquidity, amount0_min, amount1_min, deadline)
        )
        preview, receipt = self._tx.execute(fn, self._evm.lp_gas_limit, f"{self._venue.value} decreaseLiquidity #{token_id}")
        args = self._event_args(receipt, "DecreaseLiquidity", token_id)
        if args is None:
            return tuple(preview)
        return args["amount0"], args["amount1"]

    def collect(
        self,
        token_id: int,
        recipient: str,
        amount0_max: int = MAX_UINT128,
        amount1_max: int = MAX_UINT128,
    ) -> Tuple[int, int]:
        fn = self._contract.functions.collect((token_id, _checksum(recipient), amount0_max, amount1_max))
        preview, receipt = self._tx.execute(fn, self._evm.lp_gas_limit, f"{self._venue.value} collect #{token_id}")
        args = self._event_args(receipt, "Collect", token_id)
        if args is None:
            return tuple(preview)
        return args["amount0"], args["amount1"]

    def burn(self, token_id: int) -> None:
        self._tx.execute(
            self._contract.functions.burn(token_id),
            self._evm.lp_gas_limit,
            f"{self._venue.value} burn #{token_id}",
        )

    def transfer_certificate(self, sender: str, recipient: str, token_id: int) -> None:
        self._tx.execute(
            self._contract.functions.safeTransferFrom(_checksum(sender), _checksum(recipient), token_id),
            self._evm.transfer_gas_limit,
            f"{self._venue.value} safeTransferFrom #{token_id} to {recipient}",
        )


# =========================================================================
# Exchange router
# =========================================================================

class EvmExchangeRouter(ExchangeRouter):
    """SwapRouter.exactInputSingle driven from the custody account"""

    def __init__(self, transactor: EvmTransactor, address: str, venue: Venue,
                 evm_config: Optional[EVMConfig] = None):
        self._tx = transactor
        self._address = _checksum(address)
        self._venue = venue
        self._evm = evm_config or global_config.evm
        self._contract = transactor.web3.eth.contract(address=self._address, abi=SWAP_ROUTER_ABI)
        self._erc20 = transactor.web3.eth.contract(abi=ERC20_ABI)

    @property
    def address(self) -> str:
        return self._address

    @property
    def venue(self) -> Venue:
        return self._venue

    def exchange_exact_in(
        self,
        token_in: str,
        token_out: str,
        fee: int,
        recipient: str,
        deadline: int,
        amount_in: int,
        min_amount_out: int,
    ) -> int:
        fn = self._contract.functions.exactInputSingle((
            _checksum(token_in),
            _checksum(token_out),
            fee,
            _checksum(recipient),
            deadline,
            amount_in,
            min_amount_out,
            0,
        ))
        preview, receipt = self._tx.execute(
            fn, self._evm.swap_gas_limit, f"{self._venue.value} exactInputSingle {amount_in} {token_in}"
        )

        # Output actually credited to the recipient
        received = 0
        for log in self._erc20.events.Transfer().process_receipt(receipt, errors=DISCARD):
            if same_address(log["address"], token_out) and same_address(log["args"]["to"], recipient):
                received += log["args"]["value"]
        return received if received else preview


# =========================================================================
# Pools
# =========================================================================

class EvmPoolReader(PoolReader):
    """
    slot0 and immutables of a V3 pool

    With a factory address, pools deployed by any other factory are
    rejected: both venues' pools decode under either ABI.
    """

    def __init__(self, web3: "Web3", abi: List[Dict[str, Any]], factory: str = ""):
        self._web3 = web3
        self._abi = abi
        self._factory = factory

    def read_pool(self, pool_address: str) -> PoolState:
        try:
            address = _checksum(pool_address)
        except ValueError as e:
            raise PoolUnavailable.not_found(pool_address, e)

        if not self._web3.eth.get_code(address):
            raise PoolUnavailable.not_found(pool_address)

        pool = self._web3.eth.contract(address=address, abi=self._abi)
        try:
            token0 = pool.functions.token0().call()
            token1 = pool.functions.token1().call()
            fee = pool.functions.fee().call()
            tick_spacing = pool.functions.tickSpacing().call()
            liquidity = pool.functions.liquidity().call()
            slot0 = pool.functions.slot0().call()
        except Exception as e:
            logger.warning(f"Pool read failed for {pool_address}: {e}")
            raise PoolUnavailable.not_found(pool_address, e)

        if self._factory:
            try:
                deployer = pool.functions.factory().call()
            except Exception as e:
                raise PoolUnavailable.not_found(pool_address, e)
            if not same_address(deployer, self._factory):
                raise PoolUnavailable.invalid_state(
                    pool_address, f"deployed by {deployer}, expected factory {self._factory}"
                )

        return PoolState(
            address=address,
            token0=token0,
            token1=token1,
            fee=fee,
            tick_spacing=tick_spacing,
            liquidity=liquidity,
            sqrt_price_x96=slot0[0],
            tick=slot0[1],
        )


# =========================================================================
# Chain
# =========================================================================

class EvmChain(Chain):
    """
    Block clock and rollback for an EVM network

    With snapshot_rollback the whole operation is reverted through
    evm_snapshot/evm_revert (anvil, hardhat). Otherwise the custody
    journal's compensations are replayed.
    """

    def __init__(self, transactor: EvmTransactor, evm_config: Optional[EVMConfig] = None):
        self._tx = transactor
        self._evm = evm_config or global_config.evm

    def now(self) -> int:
        try:
            return int(self._tx.web3.eth.get_block("latest")["timestamp"])
        except Exception as e:
            raise RpcError.connection_failed("eth_getBlockByNumber", e)

    def deadline(self) -> int:
        # A deadline of the latest block timestamp has passed by the time
        # the transaction is mined, so 'now' carries the configured window
        return self.now() + self._evm.tx_deadline_seconds

    @contextmanager
    def atomic(self) -> Iterator[CustodyJournal]:
        if not self._evm.snapshot_rollback:
            with super().atomic() as journal:
                yield journal
            return

        provider = self._tx.web3.provider
        snapshot_id = provider.make_request("evm_snapshot", [])["result"]
        try:
            yield CustodyJournal()
        except BaseException:
            provider.make_request("evm_revert", [snapshot_id])
            get_nonce_manager().reset(self._tx.address)
            logger.info(f"Reverted chain to snapshot {snapshot_id}")
            raise


# =========================================================================
# Connector
# =========================================================================

class EvmVenueConnector(VenueConnector):
    """
    Base connector for V3-style venues reached through web3

    Subclasses provide the venue tag, pool ABI and deployment tables
    (position manager, swap router, pool factory).
    """

    VENUE: Venue
    POOL_ABI: List[Dict[str, Any]] = []
    POSITION_MANAGER_ADDRESSES: Dict[int, str] = {}
    SWAP_ROUTER_ADDRESSES: Dict[int, str] = {}
    FACTORY_ADDRESSES: Dict[int, str] = {}

    def __init__(
        self,
        transactor: EvmTransactor,
        position_manager_override: str = "",
        swap_router_override: str = "",
        factory_override: str = "",
    ):
        self._tx = transactor
        self._position_manager_override = position_manager_override
        self._swap_router_override = swap_router_override
        self._factory_override = factory_override

    @property
    def venue(self) -> Venue:
        return self.VENUE

    def position_registry(self, address: str) -> EvmPositionRegistry:
        return EvmPositionRegistry(self._tx, address, self.VENUE, self._tx.evm_config)

    def exchange_router(self, address: str) -> EvmExchangeRouter:
        return EvmExchangeRouter(self._tx, address, self.VENUE, self._tx.evm_config)

    def pool_reader(self) -> EvmPoolReader:
        return EvmPoolReader(self._tx.web3, self.POOL_ABI, self.factory_address())

    def factory_address(self) -> str:
        """Pool factory on the connected chain, empty when unknown"""
        return self._factory_override or self.FACTORY_ADDRESSES.get(self._tx.chain_id, "")

    def default_entries(self) -> Tuple[str, str]:
        chain_id = self._tx.chain_id
        return (
            self._position_manager_override or self.POSITION_MANAGER_ADDRESSES.get(chain_id, ""),
            self._swap_router_override or self.SWAP_ROUTER_ADDRESSES.get(chain_id, ""),
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(chain={self._tx.chain_id})"
