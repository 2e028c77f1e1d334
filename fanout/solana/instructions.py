"""
Instruction builders for native SOL transfers.
"""

from typing import List, Optional

from solders.hash import Hash
from solders.instruction import Instruction, AccountMeta
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer

from fanout.config import MEMO_PROGRAM_ID


def create_memo_instruction(signer: Pubkey, memo: str) -> Instruction:
    """
    Create a memo instruction signed by the sender.

    Args:
        signer: Public key of the transaction signer
        memo: UTF-8 memo text

    Returns:
        Memo program instruction
    """
    return Instruction(
        program_id=Pubkey.from_string(MEMO_PROGRAM_ID),
        data=memo.encode("utf-8"),
        accounts=[AccountMeta(pubkey=signer, is_signer=True, is_writable=False)],
    )


def build_transfer_instructions(
    sender: Pubkey,
    recipient: Pubkey,
    lamports: int,
    memo: Optional[str] = None
) -> List[Instruction]:
    instructions = [
        transfer(
            TransferParams(
                from_pubkey=sender,
                to_pubkey=recipient,
                lamports=lamports
            )
        )
    ]
    if memo:
        instructions.append(create_memo_instruction(sender, memo))
    return instructions


def build_transfer_message(
    sender: Pubkey,
    recipient: Pubkey,
    lamports: int,
    blockhash: Hash,
    memo: Optional[str] = None
) -> Message:
    instructions = build_transfer_instructions(sender, recipient, lamports, memo)
    return Message.new_with_blockhash(instructions, sender, blockhash)
