"""
Uniswap V3 Contract Addresses and Constants
"""

# =========================================================================
# Uniswap V3 Contracts
# =========================================================================

# NonfungiblePositionManager address per chain
UNISWAP_V3_POSITION_MANAGER_ADDRESSES = {
    1: "0xC36442b4a4522E871399CD717aBDD847Ab11FE88",   # Ethereum Mainnet
    56: "0x7b8A01B39D58278b5DE7e48c8449c9f4F5170613",  # BSC
}

# SwapRouter (exactInputSingle with deadline) address per chain
UNISWAP_V3_SWAP_ROUTER_ADDRESSES = {
    1: "0xE592427A0AEce92De3Edee1F18E0157C05861564",   # Ethereum Mainnet
}

# UniswapV3Factory address per chain (deployer of every pool)
UNISWAP_V3_FACTORY_ADDRESSES = {
    1: "0x1F98431c8aD98523631AE4a59f267346ea31F984",   # Ethereum Mainnet
    56: "0xdB1d10011AD0Ff90774D0C6Bb92e5C5c8b4461F7",  # BSC
}

# =========================================================================
# Common Constants
# =========================================================================

# Fee tiers (in hundredths of a bip, i.e., 1e-6)
# 100 = 0.01%, 500 = 0.05%, 3000 = 0.30%, 10000 = 1%
UNISWAP_FEE_TIERS = [100, 500, 3000, 10000]

# Tick spacing for each fee tier
TICK_SPACING_BY_FEE = {
    100: 1,
    500: 10,
    3000: 60,
    10000: 200,
}
