from .chunks import ChunkDownloadError, ChunkSnapshot, ChunkSnapshotFetcher

__all__ = ["ChunkDownloadError", "ChunkSnapshot", "ChunkSnapshotFetcher"]
