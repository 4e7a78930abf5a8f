"""Chain layer - Chainhook payload models, Clarity decoding and event parsers."""

from stackpulse.chain.clarity import (
    ClarityType,
    ClarityValue,
    DecodeError,
    decode_clarity_hex,
    decode_clarity_value,
    decode_print_payload,
    encode_clarity_hex,
)
from stackpulse.chain.models import (
    ChainhookBlock,
    ChainhookPayload,
    ChainhookTransaction,
    ContractDeploymentRecord,
    LargeSwapRecord,
    NFTMintRecord,
    PrintEventRecord,
    TokenLaunchRecord,
    WhaleTransferRecord,
    decode_event,
)
from stackpulse.chain.parsers import (
    format_stx,
    parse_contract_deployment,
    parse_large_swap,
    parse_nft_mint,
    parse_print_event,
    parse_token_launch,
    parse_whale_transfer,
)

__all__ = [
    "ChainhookBlock",
    "ChainhookPayload",
    "ChainhookTransaction",
    "ClarityType",
    "ClarityValue",
    "ContractDeploymentRecord",
    "DecodeError",
    "LargeSwapRecord",
    "NFTMintRecord",
    "PrintEventRecord",
    "TokenLaunchRecord",
    "WhaleTransferRecord",
    "decode_clarity_hex",
    "decode_clarity_value",
    "decode_event",
    "decode_print_payload",
    "encode_clarity_hex",
    "format_stx",
    "parse_contract_deployment",
    "parse_large_swap",
    "parse_nft_mint",
    "parse_print_event",
    "parse_token_launch",
    "parse_whale_transfer",
]
