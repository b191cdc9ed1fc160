# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

"""
Artifact distribution: compress, keep a local copy, publish, return the CID.

The compressed file is written next to the uncompressed artifact before the
upload so an operator can always re-publish by hand if the network is down.
"""

from pathlib import Path

import zstandard as zstd

from ..api.errors import DistributionError
from ..chain.clients import DistributionClient
from ..core.config import DEFAULT_COMPRESSION_LEVEL, WatchtowerConfig
from ..core.log import get_logger
from ..core.types import ContentId
from .artifact import compressed_path, write_atomic


class ArtifactDistributor:
    def __init__(self, client: DistributionClient, *, level: int = DEFAULT_COMPRESSION_LEVEL) -> None:
        if not 1 <= level <= zstd.MAX_COMPRESSION_LEVEL:
            raise ValueError(f"zstd level must be within 1..{zstd.MAX_COMPRESSION_LEVEL}, got {level}")
        self.client = client
        self.level = level
        self.log = get_logger("distribution")

    @classmethod
    def from_config(cls, client: DistributionClient, cfg: WatchtowerConfig) -> ArtifactDistributor:
        return cls(client, level=cfg.distribution_compression_level)

    def compress(self, data: bytes) -> bytes:
        return zstd.ZstdCompressor(level=self.level).compress(data)

    @staticmethod
    def decompress(data: bytes) -> bytes:
        return zstd.ZstdDecompressor().decompress(data)

    async def distribute(self, data: bytes, artifact_path: Path, *, description: str = "artifact") -> ContentId:
        """
        Compress `data`, write it to `<artifact_path>.zst` and upload it.

        Raises:
            ArtifactError: if the compressed copy cannot be written.
            DistributionError: if the upload fails or returns an empty CID.
        """
        target = compressed_path(artifact_path)
        compressed = self.compress(data)
        write_atomic(target, compressed)

        self.log.info(
            f"Uploading {description} ({len(data)} bytes, {len(compressed)} compressed)...",
            event="distribution.upload",
            path=str(target),
            raw_size=len(data),
            compressed_size=len(compressed),
        )
        try:
            cid = await self.client.upload(compressed, name=target.name)
        except DistributionError:
            raise
        except Exception as e:
            raise DistributionError(f"error uploading {description}: {e}") from e
        if not cid:
            raise DistributionError(f"distribution network returned an empty CID for {description}")

        self.log.info(f"Uploaded {description} with CID {cid}", event="distribution.uploaded", cid=cid)
        return cid
