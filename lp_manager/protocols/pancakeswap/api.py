"""
PancakeSwap V3 Contract Addresses and Constants
"""

# NonfungiblePositionManager address per chain
PANCAKESWAP_POSITION_MANAGER_ADDRESSES = {
    1: "0x46A15B0b27311cedF172AB29E4f4766fbE7F4364",   # Ethereum Mainnet
    56: "0x46A15B0b27311cedF172AB29E4f4766fbE7F4364",  # BSC
}

# SwapRouter (exactInputSingle with deadline) address per chain
PANCAKESWAP_SWAP_ROUTER_ADDRESSES = {
    1: "0x1b81D678ffb9C0263b24A97847620C99d213eB14",   # Ethereum Mainnet
    56: "0x1b81D678ffb9C0263b24A97847620C99d213eB14",  # BSC
}

# PancakeV3Factory address per chain
PANCAKESWAP_FACTORY_ADDRESSES = {
    1: "0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",   # Ethereum Mainnet
    56: "0x0BFbCF9fa4f9C56B0F40a671Ad40E0805A091865",  # BSC
}

# Fee tiers (in hundredths of a bip, i.e., 1e-6)
# 100 = 0.01%, 500 = 0.05%, 2500 = 0.25%, 10000 = 1%
PANCAKESWAP_FEE_TIERS = [100, 500, 2500, 10000]

# Tick spacing for each fee tier
TICK_SPACING_BY_FEE = {
    100: 1,
    500: 10,
    2500: 50,
    10000: 200,
}
