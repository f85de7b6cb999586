"""
mediastore - media storage over an S3-compatible bucket.

This package contains the complete adapter:
- core: Framework-agnostic key derivation, errors and variant planning
- infrastructure: boto3 object store client and Pillow resizer
- storage: The storage adapter and the streaming relay
- api: FastAPI routes and dependencies
- config: Application and adapter configuration
"""

__version__ = "0.1.0"
