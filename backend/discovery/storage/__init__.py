"""Document blob storage backends."""

from discovery.storage.blob import BlobStorage, InMemoryBlobStorage, S3BlobStorage, document_key

__all__ = ["BlobStorage", "InMemoryBlobStorage", "S3BlobStorage", "document_key"]
