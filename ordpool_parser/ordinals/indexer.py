"""Block-range scanning for inscriptions.

The scanner walks blocks fetched over RPC and runs the inscription parser on
every transaction. Results are returned to the caller; nothing is stored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from ordpool_parser.ordinals.inscriptions import Inscription, parse_inscriptions

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InscriptionLocation:
    """An inscription together with the transaction that revealed it."""

    txid: str
    index: int
    height: Optional[int]
    inscription: Inscription

    @property
    def inscription_id(self) -> str:
        return f"{self.txid}i{self.index}"


@dataclass
class ScanConfig:
    """Configuration for scanning a range of blocks."""

    start_height: Optional[int]
    end_height: Optional[int]
    limit: Optional[int] = None


class InscriptionScanner:
    """Scanner feeding RPC block data into :func:`parse_inscriptions`."""

    def __init__(self, rpc_client) -> None:
        """Initialize the scanner.

        Args:
            rpc_client: An :class:`~ordpool_parser.rpc_client.BitcoinRPCClient`
                or any object offering ``get_best_height``,
                ``getblock_by_height`` (verbosity 2) and
                ``get_raw_transaction``.
        """

        self.rpc_client = rpc_client

    def _iter_block_range(self, config: ScanConfig) -> Iterable[dict]:
        start_height = config.start_height if config.start_height is not None else 0
        end_height = (
            config.end_height
            if config.end_height is not None
            else self.rpc_client.get_best_height()
        )
        if end_height < start_height:
            raise ValueError(f"end height {end_height} is below start height {start_height}")

        for height in range(start_height, end_height + 1):
            yield self.rpc_client.getblock_by_height(height)

    def scan_block(self, block_json: dict) -> List[InscriptionLocation]:
        locations: List[InscriptionLocation] = []
        block_height = block_json.get("height")

        for tx in block_json.get("tx", []):
            if not isinstance(tx, dict):
                # verbosity=1 blocks only list txids
                logger.debug("Block %s lists txids only; skipping", block_height)
                continue
            txid = tx.get("txid") or tx.get("hash")
            if txid is None:
                continue
            for index, inscription in enumerate(parse_inscriptions(tx)):
                locations.append(
                    InscriptionLocation(
                        txid=txid,
                        index=index,
                        height=block_height,
                        inscription=inscription,
                    )
                )
        return locations

    def scan_range(self, config: ScanConfig) -> List[InscriptionLocation]:
        """Scan a block range, stopping early once ``config.limit`` is reached."""

        locations: List[InscriptionLocation] = []
        for block_json in self._iter_block_range(config):
            locations.extend(self.scan_block(block_json))
            if config.limit is not None and len(locations) >= config.limit:
                return locations[: config.limit]
        return locations

    def scan_tx(self, txid: str) -> List[InscriptionLocation]:
        """Inspect a single transaction."""

        verbose_tx = self.rpc_client.get_raw_transaction(txid, verbose=True)
        pseudo_block = {"tx": [verbose_tx], "height": verbose_tx.get("height")}
        return self.scan_block(pseudo_block)
