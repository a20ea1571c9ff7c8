"""Proof-of-possession documents and RPC response shapes."""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List

_SIGN_DATA_TYPE = "sign/MsgSignData"

_GO_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def _canonical_json(value: Any, sort_keys: bool) -> str:
    text = json.dumps(value, sort_keys=sort_keys, separators=(",", ":"), ensure_ascii=False)
    for char, escape in _GO_ESCAPES.items():
        text = text.replace(char, escape)
    return text


@dataclass
class PopResponse:
    """Cross-signatures proving control of both a BTC and a Babylon key."""

    baby_address: str
    btc_address: str
    btc_public_key: str
    btc_sign_baby: str
    baby_sign_btc: str
    baby_public_key: str

    def to_json(self) -> str:
        """Serialise with the wire field names, in declaration order."""
        return _canonical_json(
            {
                "babyAddress": self.baby_address,
                "btcAddress": self.btc_address,
                "btcPublicKey": self.btc_public_key,
                "btcSignBaby": self.btc_sign_baby,
                "babySignBtc": self.baby_sign_btc,
                "babyPublicKey": self.baby_public_key,
            },
            sort_keys=False,
        )


@dataclass
class Fee:
    gas: str = "0"
    amount: List[str] = field(default_factory=list)


@dataclass
class MsgValue:
    signer: str
    data: str


@dataclass
class Msg:
    type: str
    value: MsgValue


@dataclass
class SignDoc:
    """An ADR-36 amino sign document."""

    chain_id: str
    account_number: str
    sequence: str
    fee: Fee
    msgs: List[Msg]
    memo: str

    def to_dict(self) -> Dict[str, Any]:
        """Return the document with its wire field names."""
        return {
            "chain_id": self.chain_id,
            "account_number": self.account_number,
            "sequence": self.sequence,
            "fee": {"gas": self.fee.gas, "amount": list(self.fee.amount)},
            "msgs": [
                {"type": m.type, "value": {"signer": m.value.signer, "data": m.value.data}}
                for m in self.msgs
            ],
            "memo": self.memo,
        }


@dataclass
class GenerateScriptResponse:
    script: str
    address: str


@dataclass
class CreateStakingTransactionResponse:
    transaction_hex: str


@dataclass
class SendTransactionResponse:
    transaction_hash_hex: str
    transaction_hex: str


def new_cosmos_sign_doc(signer: str, data: str) -> SignDoc:
    """Build an ADR-36 sign document carrying ``data`` for ``signer``."""
    return SignDoc(
        chain_id="",
        account_number="0",
        sequence="0",
        fee=Fee(gas="0", amount=[]),
        msgs=[Msg(type=_SIGN_DATA_TYPE, value=MsgValue(signer=signer, data=data))],
        memo="",
    )


def adr36_sign_bytes(cosmos_bech32_address: str, bytes_to_sign: bytes) -> bytes:
    """Return the sorted-JSON bytes that an ADR-36 signature covers."""
    data = base64.b64encode(bytes_to_sign).decode("ascii")
    doc = new_cosmos_sign_doc(cosmos_bech32_address, data)
    return _canonical_json(doc.to_dict(), sort_keys=True).encode("utf-8")