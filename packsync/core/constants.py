"""
Shared constants for Pack Sync.
"""

# Block size used when hashing local files
HASH_CHUNK_SIZE = 1 << 16

# Block size used when streaming downloads to disk
DOWNLOAD_CHUNK_SIZE = 32768

# Digest algorithm used by content manifests and asset indexes
DIGEST_ALGORITHM = "sha1"

# Manifest keys with this prefix live in the shared assets directory
ASSETS_PREFIX = "assets/"

# Public host for shared asset objects (addressed by digest)
RESOURCES_URL_BASE = "https://resources.download.minecraft.net"

# Name of the remote manifest list and of the local sync record
INDEX_FILENAME = "index.json"
