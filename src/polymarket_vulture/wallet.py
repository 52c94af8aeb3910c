from __future__ import annotations
from typing import Optional, Tuple
import httpx
from rich import print

USDC_ADDRESS = "0x2791Bca1f2de4661ED88A30C99A7a9449Aa84174"  # USDC.e on Polygon
USDC_DECIMALS = 6
BALANCE_OF_SELECTOR = "0x70a08231"


def balance_of_calldata(address: str) -> str:
    addr = address.lower().removeprefix("0x")
    if len(addr) != 40:
        raise ValueError(f"invalid address: {address}")
    return BALANCE_OF_SELECTOR + addr.rjust(64, "0")


class WalletChecker:
    """Startup-only balance check of the proxy wallet that funds live orders."""

    def __init__(self, rpc_url: str, proxy_address: str, timeout: float = 10.0, transport: Optional[httpx.BaseTransport] = None):
        self.rpc_url = rpc_url
        self.proxy_address = proxy_address
        self.timeout = timeout
        self.transport = transport
        self._req_id = 0

    def _rpc(self, method: str, params: list):
        self._req_id += 1
        body = {"jsonrpc": "2.0", "id": self._req_id, "method": method, "params": params}
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            r = client.post(self.rpc_url, json=body)
            r.raise_for_status()
            data = r.json()
        if data.get("error"):
            raise RuntimeError(f"rpc_error {method}: {data['error']}")
        return data.get("result")

    def matic_balance(self) -> float:
        wei = int(self._rpc("eth_getBalance", [self.proxy_address, "latest"]) or "0x0", 16)
        return wei / 10**18

    def usdc_balance(self) -> float:
        call = {"to": USDC_ADDRESS, "data": balance_of_calldata(self.proxy_address)}
        raw = self._rpc("eth_call", [call, "latest"])
        if not raw or raw == "0x":
            return 0.0
        return int(raw, 16) / 10**USDC_DECIMALS

    def check_balances(self) -> Tuple[float, float]:
        matic = self.matic_balance()
        usdc = self.usdc_balance()
        print(f"[bold]wallet[/bold] proxy={self.proxy_address} MATIC={matic:.4f} USDC=${usdc:.2f}")
        return matic, usdc

    def validate_trading_balance(self, minimum_required: float) -> bool:
        _, usdc = self.check_balances()
        if usdc < minimum_required:
            print(f"[red]insufficient USDC[/red] need=${minimum_required:.2f} have=${usdc:.2f}")
            return False
        return True
