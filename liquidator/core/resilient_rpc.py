# /liquidator/core/resilient_rpc.py
# Multi-node Web3 provider: unreachable nodes are skipped at startup and the
# first reachable one becomes primary for the session.
from typing import List, Optional

from eth_account import Account
from web3 import Web3

from liquidator.core.config import Settings
from liquidator.core.logger import get_logger

log = get_logger(__name__)


class ResilientWeb3Provider:
    def __init__(self, rpc_urls: List[str], private_key: Optional[str] = None, timeout: int = 10):
        self.rpc_urls = rpc_urls
        if len(self.rpc_urls) < 2:
            log.warning("RESILIENCE_DEGRADED_LT_2_RPCS", count=len(self.rpc_urls))

        self.providers: List[Web3] = []
        for url in self.rpc_urls:
            provider = Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": timeout}))
            if provider.is_connected():
                self.providers.append(provider)
            else:
                log.error("RPC_NODE_UNREACHABLE", index=self.rpc_urls.index(url))

        if not self.providers:
            raise ConnectionError("All RPC nodes are unreachable.")
        self.primary_provider = self.providers[0]

        self.account = Account.from_key(private_key) if private_key else None
        self.address = self.account.address if self.account else None
        log.info("RESILIENT_WEB3_PROVIDER_INITIALIZED", rpc_count=len(self.providers), signer=self.address)

    @classmethod
    def from_settings(cls, s: Settings) -> "ResilientWeb3Provider":
        key = s.EXECUTOR_PRIVATE_KEY.get_secret_value() if s.EXECUTOR_PRIVATE_KEY else None
        return cls(s.rpc_urls, key)

    def get_primary_provider(self) -> Web3:
        """Returns the primary provider, used for reads and for sending transactions."""
        return self.primary_provider
